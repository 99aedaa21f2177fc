"""Batch result and estimation dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from adpack.models.outcome import CompressionOutcome


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Totals for one batch run plus the per-file outcomes in traversal order."""

    kind: str
    total: int = 0
    succeeded_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    converted_count: int = 0
    original_size_bytes: int = 0
    new_size_bytes: int = 0
    saved_size_bytes: int = 0
    per_file: tuple[tuple[str, CompressionOutcome], ...] = ()
    cancelled: bool = False

    @property
    def fully_successful(self) -> bool:
        return self.failed_count == 0 and not self.cancelled

    @property
    def errors(self) -> list[str]:
        return [f"{path}: {o.error_message}" for path, o in self.per_file if not o.success]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "total": self.total,
            "succeeded": self.succeeded_count,
            "skipped": self.skipped_count,
            "failed": self.failed_count,
            "converted": self.converted_count,
            "original_size_bytes": self.original_size_bytes,
            "new_size_bytes": self.new_size_bytes,
            "saved_size_bytes": self.saved_size_bytes,
            "cancelled": self.cancelled,
            "files": [{"path": path, **outcome.to_dict()} for path, outcome in self.per_file],
        }


@dataclass(frozen=True, slots=True)
class EstimatedFile:
    path: str
    size_bytes: int
    format: str


@dataclass(frozen=True, slots=True)
class EstimationResult:
    """Heuristic, read-only prediction of what a batch would save.

    ``estimated_saving_bytes`` comes from fixed ratios, never from a
    measurement, and is always rounded down.
    """

    kind: str
    total_count: int = 0
    total_size_bytes: int = 0
    estimated_saving_bytes: int = 0
    files: tuple[EstimatedFile, ...] = ()
    by_format: dict[str, dict[str, int]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "estimated": True,
            "total_count": self.total_count,
            "total_size_bytes": self.total_size_bytes,
            "estimated_saving_bytes": self.estimated_saving_bytes,
            "by_format": self.by_format,
            "files": [
                {"path": f.path, "size_bytes": f.size_bytes, "format": f.format} for f in self.files
            ],
        }
