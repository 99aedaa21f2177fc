"""Tests for the tracker module."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

import adpack.core.tracker as tracker_module
from adpack.core.tracker import Tracker
from adpack.models.batch_result import BatchResult
from adpack.models.outcome import SKIP_LARGER, CompressionOutcome

pytestmark = pytest.mark.usefixtures("isolate_storage")


def batch(kind="image", saved=1000, succeeded=2, failed=0, skipped=0):
    return BatchResult(
        kind=kind,
        total=succeeded + failed + skipped,
        succeeded_count=succeeded,
        failed_count=failed,
        skipped_count=skipped,
        saved_size_bytes=saved,
    )


class TestTracker:
    def test_record_batch(self, isolate_storage):
        Tracker().record_batch(batch(saved=5000, succeeded=3, failed=1), "/assets")

        history = json.loads(isolate_storage.read_text())
        assert len(history["runs"]) == 1
        run = history["runs"][0]
        assert run["kind"] == "image"
        assert run["root"] == "/assets"
        assert run["files"] == 4
        assert run["bytes_saved"] == 5000
        assert run["failed"] == 1
        assert run["cancelled"] is False

    def test_record_batch_from_event_payload(self, isolate_storage):
        Tracker().record_batch(batch(kind="audio", saved=42).to_dict(), "/assets")
        run = json.loads(isolate_storage.read_text())["runs"][0]
        assert run["kind"] == "audio"
        assert run["bytes_saved"] == 42

    def test_record_single_applied(self, isolate_storage):
        Tracker().record_single("image", "img/a.png", CompressionOutcome.applied(1000, 300))
        run = json.loads(isolate_storage.read_text())["runs"][0]
        assert run["files"] == 1
        assert run["bytes_saved"] == 700

    def test_record_single_ignores_skips_and_failures(self, isolate_storage):
        tracker = Tracker()
        tracker.record_single("image", "a.png", CompressionOutcome.skip(1000, SKIP_LARGER))
        tracker.record_single("image", "b.png", CompressionOutcome.failure("bad"))
        assert not isolate_storage.exists()

    def test_last_run(self):
        tracker = Tracker()
        assert tracker.get_stats()["last_run"] is None
        tracker.record_batch(batch(), "/assets")
        assert datetime.fromisoformat(tracker.get_stats("today")["last_run"]).tzinfo is not None

    def test_corrupt_history_is_ignored(self, isolate_storage):
        isolate_storage.write_text("{not json")
        assert Tracker().get_stats()["run_count"] == 0


class TestTrackerStats:
    def test_get_stats_all(self):
        tracker = Tracker()
        tracker.record_batch(batch(saved=999, succeeded=7, failed=2), "/a")
        stats = tracker.get_stats("all")
        assert stats["bytes_saved"] == 999
        assert stats["files_optimized"] == 7
        assert stats["files_failed"] == 2
        assert stats["run_count"] == 1
        assert stats["lifetime_bytes_saved"] == 999

    def test_per_kind_aggregation(self):
        tracker = Tracker()
        tracker.record_batch(batch(kind="image", saved=100, succeeded=5), "/a")
        tracker.record_batch(batch(kind="audio", saved=200, succeeded=3), "/a")
        tracker.record_batch(batch(kind="image", saved=150, succeeded=8), "/a")

        per_kind = tracker.get_stats("all")["per_kind"]
        assert per_kind["image"] == {"bytes_saved": 250, "files_optimized": 13}
        assert per_kind["audio"] == {"bytes_saved": 200, "files_optimized": 3}

    def test_period_filters_old_runs(self, monkeypatch):
        tracker = Tracker()
        now = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)

        monkeypatch.setattr(tracker_module, "_now", lambda: now - timedelta(days=20))
        tracker.record_batch(batch(saved=100), "/a")
        monkeypatch.setattr(tracker_module, "_now", lambda: now - timedelta(days=3))
        tracker.record_batch(batch(saved=200), "/a")
        monkeypatch.setattr(tracker_module, "_now", lambda: now)
        tracker.record_batch(batch(saved=400), "/a")

        assert tracker.get_stats("today")["bytes_saved"] == 400
        assert tracker.get_stats("week")["bytes_saved"] == 600
        assert tracker.get_stats("month")["bytes_saved"] == 700
        assert tracker.get_stats("today")["lifetime_bytes_saved"] == 700
