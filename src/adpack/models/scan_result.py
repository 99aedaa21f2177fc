"""Scan result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class FileEntry:
    """Single file found during a scan.

    ``relative_path`` always uses forward slashes, regardless of platform.
    """

    name: str
    relative_path: str
    size_bytes: int
    asset_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.relative_path,
            "size_bytes": self.size_bytes,
            "type": self.asset_type,
        }


@dataclass(frozen=True, slots=True)
class FolderNode:
    """Directory in the scanned tree with totals for its whole subtree."""

    name: str
    children: dict[str, FolderNode] = field(default_factory=dict)
    size_bytes: int = 0
    file_count: int = 0

    def walk(self, prefix: str = ""):
        """Yield ``(relative_path, node)`` for every descendant folder."""
        for name, child in self.children.items():
            path = f"{prefix}/{name}" if prefix else name
            yield path, child
            yield from child.walk(path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "size_bytes": self.size_bytes,
            "file_count": self.file_count,
            "children": {name: child.to_dict() for name, child in self.children.items()},
        }


@dataclass(frozen=True, slots=True)
class TypeStat:
    """Aggregate count and size for one asset type."""

    count: int = 0
    size_bytes: int = 0


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Result of scanning an asset directory."""

    root_path: str
    files: tuple[FileEntry, ...]
    folder_tree: FolderNode
    type_stats: dict[str, TypeStat]
    scanned_at: str

    @property
    def total_bytes(self) -> int:
        return self.folder_tree.size_bytes

    @property
    def file_count(self) -> int:
        return len(self.files)

    def largest_files(self, limit: int = 10) -> list[FileEntry]:
        """Return the biggest files, largest first."""
        return sorted(self.files, key=lambda f: f.size_bytes, reverse=True)[:limit]

    def largest_folders(self, limit: int = 10) -> list[tuple[str, FolderNode]]:
        """Return the biggest folders anywhere in the tree, largest first."""
        folders = list(self.folder_tree.walk())
        return sorted(folders, key=lambda item: item[1].size_bytes, reverse=True)[:limit]

    def over_budget(self, budget_bytes: int) -> int:
        """Bytes above *budget_bytes*, or 0 when the tree fits."""
        return max(0, self.total_bytes - budget_bytes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "root_path": self.root_path,
            "scanned_at": self.scanned_at,
            "total_bytes": self.total_bytes,
            "file_count": self.file_count,
            "files": [f.to_dict() for f in self.files],
            "folder_tree": self.folder_tree.to_dict(),
            "type_stats": {
                asset_type: {"count": stat.count, "size_bytes": stat.size_bytes}
                for asset_type, stat in self.type_stats.items()
            },
        }
