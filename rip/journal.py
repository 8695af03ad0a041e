"""The burial journal: one tab-separated line per burial.

Line format::

    actor<TAB>original path<TAB>grave path

The file is append-only except for :meth:`Journal.delete`, which rewrites
it without the matching records.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import NamedTuple

log = logging.getLogger(__name__)

RECORD_NAME = ".record"
DELIMITER = "\t"
_FORBIDDEN = (DELIMITER, "\n", "\r")
# Paths are bytes on POSIX; undecodable bytes must round-trip
ENCODING = "utf-8"
ERRORS = "surrogateescape"


class JournalError(Exception):
    """Raised when the journal cannot be read or written."""


class JournalCorruptError(JournalError):
    """A journal line does not hold the expected fields."""

    def __init__(self, path: Path, lineno: int, line: str) -> None:
        self.path = path
        self.lineno = lineno
        self.line = line
        super().__init__(f"{path}:{lineno}: malformed journal line: {line!r}")


class JournalRecord(NamedTuple):
    """A single burial (or, in history mode, resurrection)."""

    actor: str
    original: str
    grave: str

    def to_line(self) -> str:
        for value in self:
            if any(ch in value for ch in _FORBIDDEN):
                raise JournalError(f"Cannot record path containing a tab or newline: {value!r}")
        return DELIMITER.join(self) + "\n"

    @classmethod
    def from_line(cls, line: str) -> JournalRecord | None:
        """Parse one line; returns None if the field count is wrong."""
        fields = line.rstrip("\n").split(DELIMITER)
        if len(fields) != len(cls._fields):
            return None
        return cls(*fields)


class Journal:
    """The journal file of one graveyard.

    Parameters
    ----------
    path:
        Location of the journal file. It is created on first append.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @classmethod
    def for_graveyard(cls, graveyard: Path) -> Journal:
        return cls(Path(graveyard) / RECORD_NAME)

    def append(self, record: JournalRecord) -> None:
        """Append ``record`` as a single line."""
        line = record.to_line()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding=ENCODING, errors=ERRORS) as f:
            f.write(line)
        log.debug("Journal +%s", record.grave)

    def scan(self) -> list[JournalRecord]:
        """Return every record, oldest first.

        Raises JournalCorruptError on the first malformed line; a missing
        journal is empty.
        """
        if not self.path.exists():
            return []
        records: list[JournalRecord] = []
        with open(self.path, encoding=ENCODING, errors=ERRORS) as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                record = JournalRecord.from_line(line)
                if record is None:
                    raise JournalCorruptError(self.path, lineno, line.rstrip("\n"))
                records.append(record)
        return records

    def delete(self, matching: Callable[[JournalRecord], bool]) -> int:
        """Rewrite the journal without the records ``matching`` selects.

        Survivors keep their order. Not safe against a concurrent append.
        Returns the number of records removed.
        """
        records = self.scan()
        kept = [r for r in records if not matching(r)]
        removed = len(records) - len(kept)
        if removed == 0:
            return 0
        with open(self.path, "w", encoding=ENCODING, errors=ERRORS) as f:
            f.writelines(r.to_line() for r in kept)
        log.debug("Journal compacted: removed %d record(s)", removed)
        return removed
