"""Accumulates per-file outcomes into batch totals."""

from __future__ import annotations

import threading
from dataclasses import replace

from adpack.models.batch_result import BatchResult
from adpack.models.outcome import CompressionOutcome


def fold_outcome(result: BatchResult, relative_path: str, outcome: CompressionOutcome) -> BatchResult:
    """Return *result* updated with one more file's outcome.

    Exactly one of succeeded/skipped/failed is incremented. Byte totals are
    plain sums of the outcome's fields, so a failed or skipped file adds
    nothing to ``saved_size_bytes``.
    """
    succeeded = skipped = failed = converted = 0
    if not outcome.success:
        failed = 1
    elif outcome.skipped:
        skipped = 1
    else:
        succeeded = 1
        if outcome.converted:
            converted = 1

    return replace(
        result,
        total=result.total + 1,
        succeeded_count=result.succeeded_count + succeeded,
        skipped_count=result.skipped_count + skipped,
        failed_count=result.failed_count + failed,
        converted_count=result.converted_count + converted,
        original_size_bytes=result.original_size_bytes + outcome.original_size_bytes,
        new_size_bytes=result.new_size_bytes + outcome.new_size_bytes,
        saved_size_bytes=result.saved_size_bytes + outcome.saved_bytes,
        per_file=result.per_file + ((relative_path, outcome),),
    )


def merge(first: BatchResult, second: BatchResult) -> BatchResult:
    """Combine two partial results of the same kind.

    Totals commute; ``per_file`` keeps *first*'s files before *second*'s.
    """
    if first.kind != second.kind:
        raise ValueError(f"Cannot merge '{first.kind}' and '{second.kind}' results")
    return BatchResult(
        kind=first.kind,
        total=first.total + second.total,
        succeeded_count=first.succeeded_count + second.succeeded_count,
        skipped_count=first.skipped_count + second.skipped_count,
        failed_count=first.failed_count + second.failed_count,
        converted_count=first.converted_count + second.converted_count,
        original_size_bytes=first.original_size_bytes + second.original_size_bytes,
        new_size_bytes=first.new_size_bytes + second.new_size_bytes,
        saved_size_bytes=first.saved_size_bytes + second.saved_size_bytes,
        per_file=first.per_file + second.per_file,
        cancelled=first.cancelled or second.cancelled,
    )


class ResultAggregator:
    """Thread-safe running ``BatchResult`` for one batch.

    Counters are folded one outcome at a time; the per-file list is only
    frozen into the result on ``snapshot()``.
    """

    def __init__(self, kind: str) -> None:
        self._lock = threading.Lock()
        self._totals = BatchResult(kind=kind)
        self._files: list[tuple[str, CompressionOutcome]] = []

    def add(self, relative_path: str, outcome: CompressionOutcome) -> None:
        with self._lock:
            self._totals = replace(fold_outcome(self._totals, relative_path, outcome), per_file=())
            self._files.append((relative_path, outcome))

    def mark_cancelled(self) -> None:
        with self._lock:
            self._totals = replace(self._totals, cancelled=True)

    def snapshot(self) -> BatchResult:
        with self._lock:
            return replace(self._totals, per_file=tuple(self._files))
