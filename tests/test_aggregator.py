"""Tests for folding per-file outcomes into batch totals."""

from __future__ import annotations

import threading

import pytest

from adpack.core.aggregator import ResultAggregator, fold_outcome, merge
from adpack.models.batch_result import BatchResult
from adpack.models.outcome import SKIP_LARGER, CompressionOutcome

APPLIED = CompressionOutcome.applied(1000, 400)
SKIPPED = CompressionOutcome.skip(500, SKIP_LARGER)
FAILED = CompressionOutcome.failure("broken file")
CONVERTED = CompressionOutcome.applied(2000, 2100, original_format="wav", new_format="mp3", converted=True)


class TestOutcome:
    def test_applied(self):
        assert APPLIED.success and not APPLIED.skipped
        assert APPLIED.saved_bytes == 600

    def test_skip_saves_nothing(self):
        assert SKIPPED.success and SKIPPED.skipped
        assert SKIPPED.new_size_bytes == SKIPPED.original_size_bytes
        assert SKIPPED.saved_bytes == 0
        assert SKIPPED.skip_reason == SKIP_LARGER

    def test_failure_has_zero_bytes(self):
        assert not FAILED.success
        assert FAILED.original_size_bytes == FAILED.new_size_bytes == FAILED.saved_bytes == 0

    def test_to_dict_drops_unset_fields(self):
        data = APPLIED.to_dict()
        assert "new_width" not in data
        assert data["saved_bytes"] == 600


class TestFoldOutcome:
    def test_buckets(self):
        result = BatchResult(kind="image")
        for i, outcome in enumerate((APPLIED, SKIPPED, FAILED)):
            result = fold_outcome(result, f"f{i}", outcome)
        assert result.total == 3
        assert (result.succeeded_count, result.skipped_count, result.failed_count) == (1, 1, 1)
        assert result.total == result.succeeded_count + result.skipped_count + result.failed_count

    def test_bytes_are_plain_sums(self):
        result = BatchResult(kind="image")
        for i, outcome in enumerate((APPLIED, SKIPPED, FAILED)):
            result = fold_outcome(result, f"f{i}", outcome)
        assert result.original_size_bytes == 1500
        assert result.new_size_bytes == 900
        assert result.saved_size_bytes == 600

    def test_does_not_mutate_input(self):
        empty = BatchResult(kind="image")
        fold_outcome(empty, "a.png", APPLIED)
        assert empty.total == 0
        assert empty.per_file == ()

    def test_converted_counts_and_negative_saving(self):
        result = fold_outcome(BatchResult(kind="audio"), "a.wav", CONVERTED)
        assert result.succeeded_count == 1
        assert result.converted_count == 1
        assert result.saved_size_bytes == -100

    def test_per_file_order(self):
        result = BatchResult(kind="image")
        for name in ("b.png", "a.png", "c.png"):
            result = fold_outcome(result, name, APPLIED)
        assert [path for path, _ in result.per_file] == ["b.png", "a.png", "c.png"]


class TestMerge:
    def test_totals_commute(self):
        a = fold_outcome(BatchResult(kind="image"), "a.png", APPLIED)
        b = fold_outcome(fold_outcome(BatchResult(kind="image"), "b.png", SKIPPED), "c.png", FAILED)
        ab, ba = merge(a, b), merge(b, a)
        for field in ("total", "succeeded_count", "skipped_count", "failed_count", "saved_size_bytes"):
            assert getattr(ab, field) == getattr(ba, field)
        assert [p for p, _ in ab.per_file] == ["a.png", "b.png", "c.png"]

    def test_merge_matches_sequential_fold(self):
        sequential = BatchResult(kind="image")
        for name, outcome in (("a", APPLIED), ("b", SKIPPED), ("c", FAILED)):
            sequential = fold_outcome(sequential, name, outcome)
        left = fold_outcome(BatchResult(kind="image"), "a", APPLIED)
        right = fold_outcome(fold_outcome(BatchResult(kind="image"), "b", SKIPPED), "c", FAILED)
        assert merge(left, right) == sequential

    def test_kind_mismatch(self):
        with pytest.raises(ValueError):
            merge(BatchResult(kind="image"), BatchResult(kind="audio"))


class TestResultAggregator:
    def test_concurrent_adds(self):
        agg = ResultAggregator("image")

        def worker(n):
            for i in range(100):
                agg.add(f"{n}/{i}", APPLIED)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        result = agg.snapshot()
        assert result.total == 400
        assert result.saved_size_bytes == 400 * 600

    def test_mark_cancelled(self):
        agg = ResultAggregator("audio")
        agg.mark_cancelled()
        result = agg.snapshot()
        assert result.cancelled
        assert not result.fully_successful

    def test_to_dict(self):
        agg = ResultAggregator("image")
        agg.add("a.png", APPLIED)
        agg.add("b.png", FAILED)
        data = agg.snapshot().to_dict()
        assert data["succeeded"] == 1
        assert data["failed"] == 1
        assert data["files"][1] == {"path": "b.png", **FAILED.to_dict()}
        assert agg.snapshot().errors == ["b.png: broken file"]

    def test_snapshot_matches_sequential_fold(self):
        agg = ResultAggregator("image")
        expected = BatchResult(kind="image")
        for i, outcome in enumerate((APPLIED, SKIPPED, FAILED, APPLIED)):
            agg.add(f"f{i}", outcome)
            expected = fold_outcome(expected, f"f{i}", outcome)
        assert agg.snapshot() == expected

    def test_snapshot_is_frozen(self):
        agg = ResultAggregator("image")
        agg.add("a.png", APPLIED)
        first = agg.snapshot()
        agg.add("b.png", APPLIED)
        assert first.total == 1
        assert [p for p, _ in first.per_file] == ["a.png"]
        assert [p for p, _ in agg.snapshot().per_file] == ["a.png", "b.png"]

    def test_large_batch(self):
        agg = ResultAggregator("image")
        for i in range(50_000):
            agg.add(f"f{i}.png", APPLIED)
        result = agg.snapshot()
        assert result.total == len(result.per_file) == 50_000
        assert result.saved_size_bytes == 50_000 * 600
