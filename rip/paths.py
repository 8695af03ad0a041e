"""Mapping between original locations and graves.

The graveyard mirrors absolute source paths: ``/home/me/a.txt`` buried in
``/tmp/graveyard-me`` lands at ``/tmp/graveyard-me/home/me/a.txt``.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Iterator
from pathlib import Path

# Separator between a grave name and its collision counter
COLLISION_MARK = "~"


def join_absolute(left: Path | str, right: Path | str) -> Path:
    """Join ``right`` under ``left`` even when ``right`` is absolute.

    ``Path("/g") / "/etc/x"`` would discard ``/g``; here the leading root of
    ``right`` is stripped first.
    """
    right = str(right)
    stripped = right.lstrip(os.sep)
    return Path(left) / stripped if stripped else Path(left)


def map_to_grave(original: Path | str, graveyard_root: Path | str) -> Path:
    """Return the grave that mirrors ``original`` under ``graveyard_root``."""
    return join_absolute(graveyard_root, original)


def symlink_exists(path: Path | str) -> bool:
    """Like ``os.path.exists`` but a dangling symlink still counts."""
    return os.path.lexists(path)


def is_within(path: Path | str, root: Path | str) -> bool:
    """True if ``path`` is ``root`` or sits somewhere below it.

    Compares path components, so ``/tmp/graveyard-bob`` is not inside
    ``/tmp/graveyard``.
    """
    path, root = Path(path), Path(root)
    return path == root or root in path.parents


def collision_candidates(candidate: Path | str) -> Iterator[Path]:
    """Yield ``candidate~1``, ``candidate~2``, ... without end."""
    name = str(candidate)
    for i in itertools.count(1):
        yield Path(f"{name}{COLLISION_MARK}{i}")


def resolve_collision(candidate: Path | str) -> Path:
    """Return ``candidate`` if nothing occupies it, else the first free sibling.

    The answer is only unique at the instant of the check.
    """
    candidate = Path(candidate)
    if not symlink_exists(candidate):
        return candidate
    return next(p for p in collision_candidates(candidate) if not symlink_exists(p))
