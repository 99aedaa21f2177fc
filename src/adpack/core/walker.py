"""Depth-first directory traversal shared by scan, estimate and batch."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from adpack.core.errors import NotFoundError

log = logging.getLogger(__name__)

SKIPPED_DIR_NAMES = frozenset({"node_modules"})


def require_directory(root: Path | str) -> str:
    """Return *root* as an absolute path string, or raise NotFoundError."""
    path = os.path.abspath(root)
    if not os.path.isdir(path):
        raise NotFoundError(f"Directory does not exist: {root}")
    return path


def is_skipped_dir(name: str) -> bool:
    """Hidden directories and dependency caches are never traversed."""
    return name.startswith(".") or name in SKIPPED_DIR_NAMES


def list_dir(path: str) -> list[os.DirEntry]:
    """List *path* sorted by name; an unreadable directory reads as empty."""
    try:
        with os.scandir(path) as it:
            entries = list(it)
    except OSError as e:
        log.debug("Cannot read directory %s: %s", path, e)
        return []
    return sorted(entries, key=lambda e: e.name)


def is_directory(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir(follow_symlinks=False)
    except OSError:
        return False


def is_regular_file(entry: os.DirEntry) -> bool:
    try:
        return entry.is_file()
    except OSError:
        return False


def join_relative(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


def iter_files(
    root: str,
    extensions: frozenset[str] | None = None,
    *,
    include_symlinks: bool = True,
) -> Iterator[tuple[os.DirEntry, str]]:
    """Yield ``(entry, relative_path)`` for every file under *root*.

    Args:
        root: Directory to walk.
        extensions: If given, only files whose lowercase suffix is in this
            set are yielded.
        include_symlinks: If False, symlinked files are not yielded. Used by
            the batch path so nothing outside the tree gets rewritten.
    """
    yield from _walk(root, "", extensions, include_symlinks)


def _walk(
    path: str,
    relative: str,
    extensions: frozenset[str] | None,
    include_symlinks: bool,
) -> Iterator[tuple[os.DirEntry, str]]:
    for entry in list_dir(path):
        rel = join_relative(relative, entry.name)
        if is_directory(entry):
            if is_skipped_dir(entry.name):
                continue
            yield from _walk(entry.path, rel, extensions, include_symlinks)
            continue
        if not include_symlinks and entry.is_symlink():
            log.debug("Skipping symlink: %s", rel)
            continue
        if not is_regular_file(entry):
            continue
        if extensions is not None and os.path.splitext(entry.name)[1].lower() not in extensions:
            continue
        yield entry, rel
