"""Burial and resurrection.

:class:`BurialEngine` ties together grave naming (:mod:`rip.paths`),
relocation (:mod:`rip.transfer`), the journal (:mod:`rip.journal`) and
record selection (:mod:`rip.resolver`). Everything that would otherwise be
ambient process state (graveyard, actor, working directory, prompts) is
passed in explicitly.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from rip.journal import Journal, JournalError, JournalRecord
from rip.paths import is_within, map_to_grave, resolve_collision, symlink_exists
from rip.resolver import NothingToResurrect, explicit_graves, last_bury, seance
from rip.transfer import (
    BIG_FILE_THRESHOLD,
    DEFAULT_DIR_MODE,
    RollbackError,
    SourceRemovalError,
    TransferError,
    transfer,
)

log = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


class BurialError(Exception):
    """Raised when a target cannot be buried at all."""


@dataclass
class Burial:
    """Outcome of burying one target."""

    target: str
    source: Path
    grave: Path | None = None
    purged: bool = False
    skipped: bool = False


@dataclass
class Resurrection:
    grave: Path
    restored_to: Path


@dataclass
class Failure:
    target: str
    error: Exception

    def __str__(self) -> str:
        message = str(self.error)
        if self.target in message:
            return f"ERROR: {message}"
        return f"ERROR: {message}: {self.target}"


@dataclass
class BatchResult:
    """Per-target outcomes of a multi-target command."""

    done: list[Burial | Resurrection] = field(default_factory=list)
    failures: list[Failure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def purge(path: Path) -> None:
    """Unlink ``path`` for good, whatever its type."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


class BurialEngine:
    """Bury targets in a graveyard and bring them back.

    Parameters
    ----------
    graveyard:
        Absolute graveyard root.
    actor:
        Name recorded with each burial; scopes "undo the last burial".
    confirm:
        Yes/no prompt primitive.
    big_file_threshold:
        Files above this many bytes ask before being copied across devices.
    dir_mode:
        Permission bits for directories created inside the graveyard.
    keep_history:
        Append a resurrection record instead of deleting the burial record.
    """

    def __init__(
        self,
        graveyard: Path,
        actor: str,
        confirm: Confirm,
        *,
        big_file_threshold: int = BIG_FILE_THRESHOLD,
        dir_mode: int = DEFAULT_DIR_MODE,
        keep_history: bool = False,
    ) -> None:
        self.graveyard = Path(graveyard)
        self.actor = actor
        self.confirm = confirm
        self.big_file_threshold = big_file_threshold
        self.dir_mode = dir_mode
        self.keep_history = keep_history
        self.journal = Journal.for_graveyard(self.graveyard)

    def _transfer(self, source: Path, dest: Path, dir_mode: int | None) -> bool:
        return transfer(
            source,
            dest,
            confirm=self.confirm,
            big_file_threshold=self.big_file_threshold,
            dir_mode=dir_mode,
        )

    # ------------------------------------------------------------------
    # Burial

    def bury(self, target: str, cwd: Path) -> Burial:
        """Send one target to the graveyard.

        Raises FileNotFoundError if ``target`` does not exist, and lets
        transfer and journal errors propagate.
        """
        source = Path(os.path.abspath(Path(cwd) / target))
        if not symlink_exists(source):
            raise FileNotFoundError(f"Cannot remove {target}: no such file or directory")

        if is_within(self.graveyard, source) and source != self.graveyard:
            raise BurialError(f"Cannot bury {target}: it contains the graveyard")

        if is_within(source, self.graveyard):
            log.info("%s is already in the graveyard", source)
            if self.confirm(f"{source} is already in the graveyard. Permanently unlink it?"):
                purge(source)
                return Burial(target, source, purged=True)
            return Burial(target, source, skipped=True)

        dest = resolve_collision(map_to_grave(source, self.graveyard))
        record = JournalRecord(self.actor, str(source), str(dest))
        # Fail on unrecordable paths before anything moves
        record.to_line()

        try:
            kept = self._transfer(source, dest, self.dir_mode)
        except SourceRemovalError:
            # The grave is complete, so it must stay findable
            if symlink_exists(dest):
                self._record(target, record)
            raise
        if not kept:
            log.info("%s was discarded instead of buried", source)
            return Burial(target, source, purged=True)

        self._record(target, record)
        log.info("Buried %s at %s", source, dest)
        return Burial(target, source, grave=dest)

    def _record(self, target: str, record: JournalRecord) -> None:
        try:
            self.journal.append(record)
        except OSError as exc:
            raise JournalError(f"Error adding {target} to record: {exc}") from exc

    def bury_all(self, targets: Iterable[str], cwd: Path) -> BatchResult:
        """Bury each target; one failing target does not stop the rest.

        A failed rollback is raised immediately since it leaves a partial
        grave behind.
        """
        result = BatchResult()
        for target in targets:
            try:
                result.done.append(self.bury(target, cwd))
            except RollbackError:
                raise
            except (OSError, BurialError, TransferError, JournalError) as exc:
                log.warning("Could not bury %s: %s", target, exc)
                result.failures.append(Failure(target, exc))
        return result

    # ------------------------------------------------------------------
    # Resurrection

    def select(
        self,
        graves: Sequence[str] = (),
        *,
        cwd: Path | None = None,
        use_seance: bool = False,
        max_depth: int | None = None,
    ) -> tuple[list[JournalRecord], list[Failure]]:
        """Pick the records a resurrection request refers to.

        Named graves and the seance listing (limited to ``max_depth``) are
        combined; with neither, the actor's last burial is chosen and stale
        records met on the way are pruned from the journal.
        """
        records = self.journal.scan()
        base = Path(cwd) if cwd is not None else Path.cwd()
        wanted = [os.path.abspath(base / g) for g in graves]
        selected, missing = explicit_graves(records, wanted, self.graveyard)
        failures = [Failure(err.grave, err) for err in missing]

        if use_seance:
            for record in seance(records, self.graveyard, base, max_depth):
                if record not in selected:
                    selected.append(record)

        if not selected and not graves:
            record, stale = last_bury(records, self.actor, self.graveyard)
            if stale:
                stale_set = set(stale)
                pruned = self.journal.delete(lambda r: r in stale_set)
                log.info("Pruned %d stale journal record(s)", pruned)
            if record is not None:
                selected.append(record)

        return selected, failures

    def resurrect(
        self,
        graves: Sequence[str] = (),
        *,
        cwd: Path | None = None,
        use_seance: bool = False,
        max_depth: int | None = None,
    ) -> BatchResult:
        """Return graves to where they came from.

        Raises NothingToResurrect when no record matches. A record whose
        transfer fails stays in the journal. Parents of the original
        location are recreated under the process umask, not ``dir_mode``.
        """
        selected, failures = self.select(
            graves, cwd=cwd, use_seance=use_seance, max_depth=max_depth
        )
        result = BatchResult(failures=failures)
        if not selected:
            if failures:
                return result
            raise NothingToResurrect()

        restored: list[tuple[JournalRecord, Path]] = []
        for record in selected:
            grave = Path(record.grave)
            dest = resolve_collision(record.original)
            try:
                kept = self._transfer(grave, dest, None)
            except RollbackError:
                raise
            except SourceRemovalError as exc:
                # Restored in full; only leftovers remain in the graveyard
                log.warning("Restored %s but could not clear the grave: %s", dest, exc)
                result.failures.append(Failure(record.grave, exc))
                restored.append((record, dest))
                result.done.append(Resurrection(grave, dest))
                continue
            except (OSError, TransferError) as exc:
                log.warning("Could not resurrect %s: %s", grave, exc)
                result.failures.append(Failure(record.grave, exc))
                continue
            restored.append((record, dest))
            if not kept:
                log.info("%s was discarded instead of restored", grave)
                continue
            result.done.append(Resurrection(grave, dest))
            log.info("Returned %s to %s", grave, dest)

        self._consume(restored)
        return result

    def _consume(self, restored: list[tuple[JournalRecord, Path]]) -> None:
        if not restored:
            return
        if self.keep_history:
            for record, dest in restored:
                self.journal.append(JournalRecord(self.actor, record.grave, str(dest)))
            return
        graves = {record.grave for record, _ in restored}
        self.journal.delete(
            lambda r: r.grave in graves and not is_within(r.original, self.graveyard)
        )

    # ------------------------------------------------------------------
    # Listing and destruction

    def seance(self, cwd: Path, max_depth: int | None = None) -> list[JournalRecord]:
        """Live graves that were buried from ``cwd`` or below."""
        return seance(self.journal.scan(), self.graveyard, cwd, max_depth)

    def decompose(self) -> bool:
        """Permanently remove the whole graveyard after confirmation."""
        if not self.confirm("Really unlink the entire graveyard?"):
            return False
        if self.graveyard.exists():
            shutil.rmtree(self.graveyard)
        log.info("Decomposed %s", self.graveyard)
        return True
