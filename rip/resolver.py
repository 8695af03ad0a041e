"""Choosing which journal records a resurrection restores."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from rip.journal import JournalRecord
from rip.paths import is_within, join_absolute, symlink_exists

log = logging.getLogger(__name__)


class ResolveError(Exception):
    """Raised when no record matches a resurrection request."""


class NothingToResurrect(ResolveError):
    def __init__(self, message: str = "But nobody came") -> None:
        super().__init__(message)


class UnknownGraveError(ResolveError):
    def __init__(self, grave: str) -> None:
        self.grave = grave
        super().__init__(f"No journal record for {grave}")


def is_resurrection(record: JournalRecord, graveyard: Path | str) -> bool:
    """True for records written when something left the graveyard."""
    return is_within(record.original, graveyard)


def last_bury(
    records: Sequence[JournalRecord],
    actor: str,
    graveyard: Path | str,
) -> tuple[JournalRecord | None, list[JournalRecord]]:
    """Find the most recent burial by ``actor`` that is still in the graveyard.

    Records are walked newest first. A resurrection record pushes the grave
    it emptied onto a stack; the next older burial into that grave is the
    one it undid and is skipped. Burials whose grave has vanished are
    collected as stale.

    Returns:
        ``(record, stale)``; ``record`` is None when nothing qualifies.
    """
    pending: list[str] = []
    stale: list[JournalRecord] = []

    for record in reversed(records):
        if record.actor != actor:
            continue
        if is_resurrection(record, graveyard):
            pending.append(record.original)
            continue
        # An undone burial is skipped even if its grave is also gone
        if pending and pending[-1] == record.grave:
            pending.pop()
            continue
        if symlink_exists(record.grave):
            return record, stale
        log.debug("Stale journal record: %s", record.grave)
        stale.append(record)

    return None, stale


def seance(
    records: Iterable[JournalRecord],
    graveyard: Path | str,
    cwd: Path | str,
    max_depth: int | None = None,
) -> list[JournalRecord]:
    """Return live burials made from ``cwd`` or anywhere below it.

    A grave reused by several records is reported once, for the newest
    record. ``max_depth`` counts path components below the mirrored cwd,
    so ``1`` lists only what was buried directly from ``cwd``.
    """
    mirror = join_absolute(graveyard, cwd)
    latest: dict[str, JournalRecord] = {}
    for record in records:
        if is_resurrection(record, graveyard):
            continue
        grave = Path(record.grave)
        if not is_within(grave, mirror):
            continue
        if max_depth is not None and len(grave.relative_to(mirror).parts) > max_depth:
            continue
        latest.pop(record.grave, None)
        latest[record.grave] = record
    return [r for r in latest.values() if symlink_exists(r.grave)]


def explicit_graves(
    records: Sequence[JournalRecord],
    graves: Iterable[str],
    graveyard: Path | str,
) -> tuple[list[JournalRecord], list[UnknownGraveError]]:
    """Look up the newest burial record for each named grave, for any actor."""
    found: list[JournalRecord] = []
    missing: list[UnknownGraveError] = []
    for grave in graves:
        match = next(
            (r for r in reversed(records)
             if r.grave == grave and not is_resurrection(r, graveyard)),
            None,
        )
        if match is None:
            missing.append(UnknownGraveError(grave))
        elif match not in found:
            found.append(match)
    return found, missing
