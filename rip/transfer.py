"""Relocating files and directory trees into and out of the graveyard.

A plain ``rename`` is tried first. When that fails (typically ``EXDEV``
across mount points) the object is copied and the original removed, with a
copy policy per file type.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from collections.abc import Callable, Iterator
from pathlib import Path

from rip.preview import humanize_bytes

log = logging.getLogger(__name__)

Confirm = Callable[[str], bool]

BIG_FILE_THRESHOLD = 500_000_000  # 500 MB
DEFAULT_DIR_MODE = 0o777

MARKER_TEXT = (
    "This is a marker for a file that was permanently deleted.  "
    "Requiescat in pace.\n"
)


class TransferError(Exception):
    """Raised when an object cannot be relocated."""


class PartialTransferError(TransferError):
    """A directory copy failed part-way; the partial copy was rolled back."""


class RollbackError(TransferError):
    """A partial copy could not be removed from the destination."""


class NonTransferableError(TransferError):
    """A special file could not be copied and was not discarded."""


class SourceRemovalError(TransferError):
    """The copy at the destination is complete but the source could not be removed."""

    def __init__(self, source: Path, dest: Path, reason: OSError) -> None:
        self.source = source
        self.dest = dest
        super().__init__(f"Copied {source} to {dest} but could not remove the original: {reason}")


def _never(prompt: str) -> bool:
    return False


def ensure_parent(dest: Path, mode: int | None = DEFAULT_DIR_MODE) -> None:
    """Create the missing parents of ``dest``.

    Each directory created here gets ``mode`` applied with ``chmod`` so the
    result does not depend on the process umask. With ``mode=None`` the
    umask decides.
    """
    if mode is None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        return

    missing: list[Path] = []
    curr = dest.parent
    while not curr.exists():
        missing.append(curr)
        if curr.parent == curr:
            break
        curr = curr.parent

    for d in reversed(missing):
        try:
            d.mkdir()
        except FileExistsError:
            continue
        os.chmod(d, mode)


def _walk(top: Path) -> Iterator[tuple[Path, os.stat_result]]:
    """Yield ``(path, lstat)`` for everything below ``top``, parents first.

    Symlinks to directories are yielded as links and never descended into.
    """
    with os.scandir(top) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        path = Path(entry.path)
        st = entry.stat(follow_symlinks=False)
        yield path, st
        if stat.S_ISDIR(st.st_mode):
            yield from _walk(path)


def copy_object(
    source: Path,
    dest: Path,
    confirm: Confirm = _never,
    big_file_threshold: int = BIG_FILE_THRESHOLD,
) -> bool:
    """Copy a single non-directory object from ``source`` to ``dest``.

    Returns False when the object was discarded instead of copied.
    """
    st = os.lstat(source)
    mode = st.st_mode

    if stat.S_ISLNK(mode):
        os.symlink(os.readlink(source), dest)
        return True

    if stat.S_ISFIFO(mode):
        os.mkfifo(dest)
        os.chmod(dest, stat.S_IMODE(mode))
        return True

    if stat.S_ISREG(mode):
        if st.st_size > big_file_threshold:
            log.info("Big file: %s (%d bytes)", source, st.st_size)
            if confirm(
                f"About to copy a big file ({source} is {humanize_bytes(st.st_size)}). "
                "Permanently delete this file instead?"
            ):
                return False
        shutil.copyfile(source, dest)
        shutil.copymode(source, dest)
        return True

    # Device nodes, sockets and whatever else the platform has
    is_device = stat.S_ISCHR(mode) or stat.S_ISBLK(mode)
    try:
        if is_device:
            # copyfile would stream the device's contents into a regular file
            os.mknod(dest, mode, st.st_rdev)
        else:
            shutil.copyfile(source, dest)
    except OSError as exc:
        log.warning("Non-regular file %s cannot be copied: %s", source, exc)
        if not confirm(f"Non-regular file or directory: {source}. Permanently delete the file?"):
            raise NonTransferableError(f"Cannot copy special file {source}") from exc
        with open(dest, "w") as f:
            f.write(MARKER_TEXT)
        return True

    if is_device:
        os.chmod(dest, stat.S_IMODE(mode))
    return True


def _remove_partial(dest: Path) -> None:
    if not os.path.lexists(dest):
        return
    if dest.is_dir() and not dest.is_symlink():
        shutil.rmtree(dest)
    else:
        dest.unlink()


def _copy_tree(
    source: Path,
    dest: Path,
    confirm: Confirm,
    big_file_threshold: int,
) -> None:
    dir_modes: list[tuple[Path, int]] = [(dest, stat.S_IMODE(os.lstat(source).st_mode))]
    dest.mkdir()
    try:
        for path, st in _walk(source):
            target = dest / path.relative_to(source)
            if stat.S_ISDIR(st.st_mode):
                target.mkdir()
                dir_modes.append((target, stat.S_IMODE(st.st_mode)))
            else:
                copy_object(path, target, confirm, big_file_threshold)
    except (OSError, TransferError) as exc:
        log.warning("Copy of %s failed, rolling back %s", source, dest)
        try:
            shutil.rmtree(dest)
        except OSError as rm_exc:
            raise RollbackError(f"Could not remove partial copy at {dest}: {rm_exc}") from rm_exc
        raise PartialTransferError(f"Failed to copy {source} to {dest}: {exc}") from exc

    # Deepest first, so read-only directories do not block their children
    for d, mode in reversed(dir_modes):
        os.chmod(d, mode)


def transfer(
    source: Path | str,
    dest: Path | str,
    *,
    confirm: Confirm = _never,
    big_file_threshold: int = BIG_FILE_THRESHOLD,
    dir_mode: int | None = DEFAULT_DIR_MODE,
) -> bool:
    """Move ``source`` to ``dest``, copying across devices if needed.

    Parameters
    ----------
    source:
        Existing file, symlink, FIFO, special file or directory.
    dest:
        Destination path; must not exist yet.
    confirm:
        Yes/no prompt used before discarding oversized or uncopyable files.
    big_file_threshold:
        Size in bytes above which a copy asks whether to delete instead.
    dir_mode:
        Permission bits for parent directories created on the way; None
        leaves them to the umask.

    Returns
    -------
    bool
        True if the object now lives at ``dest``; False if it was discarded.

    Raises
    ------
    PartialTransferError
        A directory copy failed and was rolled back; ``source`` is untouched.
    RollbackError
        A directory copy failed and the partial copy could not be removed.
    SourceRemovalError
        The copy at ``dest`` is whole but ``source`` (or part of it) is
        still there.
    """
    source, dest = Path(source), Path(dest)
    # rename() would silently replace an existing file
    if os.path.lexists(dest):
        raise FileExistsError(f"Destination already exists: {dest}")
    ensure_parent(dest, dir_mode)

    try:
        os.rename(source, dest)
        return True
    except OSError as exc:
        log.debug("rename %s -> %s failed (%s), copying instead", source, dest, exc)

    if stat.S_ISDIR(os.lstat(source).st_mode):
        _copy_tree(source, dest, confirm, big_file_threshold)
        try:
            shutil.rmtree(source)
        except OSError as exc:
            raise SourceRemovalError(source, dest, exc) from exc
        return True

    try:
        kept = copy_object(source, dest, confirm, big_file_threshold)
    except (OSError, TransferError):
        _remove_partial(dest)
        raise
    try:
        source.unlink()
    except OSError as exc:
        raise SourceRemovalError(source, dest, exc) from exc
    return kept
