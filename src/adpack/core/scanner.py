"""Recursive asset scanner building folder and type aggregates."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from adpack.core.classifier import classify
from adpack.core.walker import (
    is_directory,
    is_regular_file,
    is_skipped_dir,
    join_relative,
    list_dir,
    require_directory,
)
from adpack.models.scan_result import FileEntry, FolderNode, ScanResult, TypeStat

log = logging.getLogger(__name__)


class _Accumulator:
    """Flat file list and per-type totals collected during one walk."""

    def __init__(self) -> None:
        self.files: list[FileEntry] = []
        self.type_counts: dict[str, list[int]] = {}

    def add(self, entry: FileEntry) -> None:
        self.files.append(entry)
        bucket = self.type_counts.setdefault(entry.asset_type, [0, 0])
        bucket[0] += 1
        bucket[1] += entry.size_bytes

    def type_stats(self) -> dict[str, TypeStat]:
        return {t: TypeStat(count=c, size_bytes=s) for t, (c, s) in self.type_counts.items()}


def scan(root: Path | str) -> ScanResult:
    """Scan *root* and return files, folder tree and per-type stats.

    Hidden directories and ``node_modules`` are skipped. Unreadable
    directories count as empty and files that cannot be stat'ed are left
    out of every total.

    Raises:
        NotFoundError: If *root* is not an existing directory.
    """
    root_path = require_directory(root)
    acc = _Accumulator()
    tree = _scan_dir(root_path, os.path.basename(root_path) or root_path, "", acc)

    log.info("Scanned %s: %d files, %d bytes", root_path, len(acc.files), tree.size_bytes)
    return ScanResult(
        root_path=root_path,
        files=tuple(acc.files),
        folder_tree=tree,
        type_stats=acc.type_stats(),
        scanned_at=datetime.now(timezone.utc).isoformat(),
    )


def _scan_dir(path: str, name: str, relative: str, acc: _Accumulator) -> FolderNode:
    """Scan one directory; the returned node is final once this returns."""
    children: dict[str, FolderNode] = {}
    size = 0
    count = 0

    for entry in list_dir(path):
        rel = join_relative(relative, entry.name)

        if is_directory(entry):
            if is_skipped_dir(entry.name):
                continue
            child = _scan_dir(entry.path, entry.name, rel, acc)
            children[entry.name] = child
            size += child.size_bytes
            count += child.file_count
            continue

        if not is_regular_file(entry):
            continue
        try:
            file_size = entry.stat().st_size
        except OSError as e:
            log.debug("Cannot stat %s: %s", rel, e)
            continue

        acc.add(FileEntry(name=entry.name, relative_path=rel, size_bytes=file_size, asset_type=classify(entry.name)))
        size += file_size
        count += 1

    return FolderNode(name=name, children=children, size_bytes=size, file_count=count)
