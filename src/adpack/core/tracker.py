"""Tracks bytes saved across optimization runs."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from adpack.models.batch_result import BatchResult
from adpack.models.outcome import CompressionOutcome
from adpack.storage import load_history, save_history

log = logging.getLogger(__name__)


class Tracker:
    """Records finished batches and single-file operations to history."""

    def record_batch(self, result: BatchResult | dict[str, Any], root: str) -> None:
        """Persist one finished batch.

        Accepts a ``BatchResult`` or its ``to_dict()`` form, which is what
        a ``complete`` event carries.
        """
        summary = result.to_dict() if isinstance(result, BatchResult) else result
        self._append({
            "timestamp": _now().isoformat(),
            "kind": summary["kind"],
            "root": root,
            "files": summary["total"],
            "succeeded": summary["succeeded"],
            "skipped": summary["skipped"],
            "failed": summary["failed"],
            "bytes_saved": summary["saved_size_bytes"],
            "cancelled": summary.get("cancelled", False),
        })

    def record_single(self, kind: str, path: str, outcome: CompressionOutcome) -> None:
        """Persist an interactive compress/resize on one file."""
        if not outcome.success or outcome.skipped:
            return
        self._append({
            "timestamp": _now().isoformat(),
            "kind": kind,
            "root": path,
            "files": 1,
            "succeeded": 1,
            "skipped": 0,
            "failed": 0,
            "bytes_saved": outcome.saved_bytes,
            "cancelled": False,
        })

    def get_stats(self, period: str = "all") -> dict[str, Any]:
        """Get aggregated statistics for a time period.

        Args:
            period: One of 'today', 'week', 'month', 'all'.
        """
        all_runs = load_history().get("runs", [])

        match period:
            case "today":
                cutoff = _start_of_today()
            case "week":
                cutoff = _start_of_today() - timedelta(days=7)
            case "month":
                cutoff = _start_of_today() - timedelta(days=30)
            case _:
                cutoff = None

        if cutoff is not None:
            runs = [r for r in all_runs if datetime.fromisoformat(r["timestamp"]) >= cutoff]
        else:
            runs = all_runs

        return {
            "period": period,
            "bytes_saved": sum(r.get("bytes_saved", 0) for r in runs),
            "files_optimized": sum(r.get("succeeded", 0) for r in runs),
            "files_failed": sum(r.get("failed", 0) for r in runs),
            "run_count": len(runs),
            "lifetime_bytes_saved": sum(r.get("bytes_saved", 0) for r in all_runs),
            "per_kind": self._aggregate_kind_stats(runs),
            "last_run": all_runs[-1]["timestamp"] if all_runs else None,
        }

    @staticmethod
    def _append(entry: dict[str, Any]) -> None:
        history = load_history()
        history["runs"].append(entry)
        save_history(history)
        log.info("Recorded %s run: %d bytes saved", entry["kind"], entry["bytes_saved"])

    @staticmethod
    def _aggregate_kind_stats(runs: list[dict[str, Any]]) -> dict[str, dict[str, int]]:
        totals: dict[str, dict[str, int]] = {}
        for run in runs:
            kind = totals.setdefault(run["kind"], {"bytes_saved": 0, "files_optimized": 0})
            kind["bytes_saved"] += run.get("bytes_saved", 0)
            kind["files_optimized"] += run.get("succeeded", 0)
        return totals


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _start_of_today() -> datetime:
    """Return the start of the current UTC day."""
    return _now().replace(hour=0, minute=0, second=0, microsecond=0)
