"""Inspect previews shown before a target is buried."""

from __future__ import annotations

import os
import stat
from itertools import islice
from pathlib import Path

BYTE_UNITS = ("bytes", "KB", "MB", "GB", "TB")


def humanize_bytes(n: int) -> str:
    """Format a byte count with the largest unit that still shows more than 10.

    ``5000`` stays ``5000 bytes``; ``123456789`` becomes ``123 MB``.
    """
    unit = 0
    for i in range(1, len(BYTE_UNITS)):
        if n // 1000**i > 10:
            unit = i
        else:
            break
    return f"{n // 1000**unit} {BYTE_UNITS[unit]}"


def tree_size(path: Path) -> int:
    """Total size of ``path`` and everything under it, without following links."""
    total = 0
    for dirpath, dirnames, filenames in os.walk(path):
        for name in dirnames + filenames:
            try:
                total += os.lstat(os.path.join(dirpath, name)).st_size
            except OSError:
                continue
    return total + os.lstat(path).st_size


def describe(path: Path, label: str, lines: int = 6, files: int = 6) -> list[str]:
    """Build the preview lines for ``path``.

    Directories report their total size and the first few top-level
    entries; files report their size and first few lines of text.
    """
    st = os.lstat(path)
    if path.is_dir() and not path.is_symlink():
        out = [f"{label}: directory, {humanize_bytes(tree_size(path))} including:"]
        entries = sorted(os.listdir(path))
        out.extend(str(path / name) for name in entries[:files])
        return out

    out = [f"{label}: file, {humanize_bytes(st.st_size)}"]
    if not stat.S_ISREG(st.st_mode):
        return out
    try:
        with open(path, errors="replace") as f:
            out.extend("> " + line.rstrip("\n") for line in islice(f, lines))
    except OSError:
        out.append(f"Error reading {path}")
    return out
