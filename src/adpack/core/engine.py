"""Batch optimization engine."""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping

from adpack.core.aggregator import ResultAggregator
from adpack.core.errors import NotFoundError, UnavailableError, ValidationError
from adpack.core.registry import CompressorRegistry
from adpack.core.walker import iter_files, require_directory
from adpack.models.batch_result import BatchResult
from adpack.models.compressor import Compressor
from adpack.models.outcome import CompressionOutcome, ProgressEvent

log = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class BatchOptimizer:
    """Runs a compressor over every matching file under a directory.

    A file that fails never stops the batch: its failure is recorded in the
    result and the walk moves on.
    """

    def __init__(self, registry: CompressorRegistry, max_workers: int = 1) -> None:
        self.registry = registry
        self.max_workers = max(1, max_workers)

    def run_batch(
        self,
        root: Path | str,
        kind: str,
        options: Mapping[str, Any] | Any | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """Compress every *kind* file under *root*.

        Args:
            root: Directory to walk. Same skip rules as a scan.
            kind: Media kind, e.g. 'image' or 'audio'.
            options: Raw option mapping or an already parsed options object.
            on_progress: Called with each file's 1-based index and relative
                path right before it is processed, in traversal order.
            cancel: When set, no further files are scheduled. Files already
                being processed are allowed to finish.

        Raises:
            NotFoundError: If *root* is not an existing directory.
            ValidationError: On unknown kind or invalid options.
            UnavailableError: If the compressor cannot run on this system.
        """
        compressor = self._resolve(kind)
        root_path = require_directory(root)
        parsed = self._parse_options(compressor, options)
        aggregator = ResultAggregator(compressor.kind)

        files = ((entry.path, rel) for entry, rel in iter_files(root_path, compressor.extensions, include_symlinks=False))
        if self.max_workers > 1:
            self._run_parallel(compressor, parsed, files, aggregator, on_progress, cancel)
        else:
            self._run_sequential(compressor, parsed, files, aggregator, on_progress, cancel)

        result = aggregator.snapshot()
        log.info(
            "Batch %s on %s: %d files, %d succeeded, %d skipped, %d failed, %d bytes saved",
            compressor.kind,
            root_path,
            result.total,
            result.succeeded_count,
            result.skipped_count,
            result.failed_count,
            result.saved_size_bytes,
        )
        return result

    def _run_sequential(
        self,
        compressor: Compressor,
        options: Any,
        files: Iterator[tuple[str, str]],
        aggregator: ResultAggregator,
        on_progress: ProgressCallback | None,
        cancel: threading.Event | None,
    ) -> None:
        """Process files one at a time."""
        for index, (path, rel) in enumerate(files, 1):
            if cancel is not None and cancel.is_set():
                aggregator.mark_cancelled()
                log.info("Batch cancelled before %s", rel)
                return
            if on_progress:
                on_progress(ProgressEvent(index, rel))
            aggregator.add(rel, self._compress_file(compressor, path, options, rel))

    def _run_parallel(
        self,
        compressor: Compressor,
        options: Any,
        files: Iterator[tuple[str, str]],
        aggregator: ResultAggregator,
        on_progress: ProgressCallback | None,
        cancel: threading.Event | None,
    ) -> None:
        """Process files on a bounded thread pool.

        Progress is emitted here, on the scheduling thread, so it stays in
        traversal order. Outcomes are folded in submission order, which
        keeps ``per_file`` in traversal order as well.
        """
        window = self.max_workers * 2
        pending: deque[tuple[str, Future[CompressionOutcome]]] = deque()

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for index, (path, rel) in enumerate(files, 1):
                if cancel is not None and cancel.is_set():
                    aggregator.mark_cancelled()
                    log.info("Batch cancelled before %s", rel)
                    break
                if on_progress:
                    on_progress(ProgressEvent(index, rel))
                pending.append((rel, executor.submit(self._compress_file, compressor, path, options, rel)))
                while len(pending) >= window:
                    done_rel, future = pending.popleft()
                    aggregator.add(done_rel, future.result())

            while pending:
                done_rel, future = pending.popleft()
                aggregator.add(done_rel, future.result())

    def compress_one(
        self,
        path: Path | str,
        kind: str | None = None,
        options: Mapping[str, Any] | Any | None = None,
    ) -> CompressionOutcome:
        """Compress a single file, inferring the kind from its extension.

        Raises:
            NotFoundError: If *path* is not an existing file.
            ValidationError: If no compressor handles the file, or on bad options.
        """
        path = Path(path)
        if not path.is_file():
            raise NotFoundError(f"File does not exist: {path}")
        if kind is None:
            compressor = self.registry.for_path(str(path))
            if compressor is None:
                raise ValidationError(f"No compressor handles '{path.name}'")
            kind = compressor.kind
        compressor = self._resolve(kind)
        parsed = self._parse_options(compressor, options)
        return self._compress_file(compressor, str(path), parsed, path.name)

    def resize_one(self, path: Path | str, width: int | None = None, height: int | None = None) -> CompressionOutcome:
        """Resize a single image.

        Raises:
            NotFoundError: If *path* is not an existing file.
            ValidationError: On missing or out-of-range dimensions.
        """
        path = Path(path)
        if not path.is_file():
            raise NotFoundError(f"File does not exist: {path}")
        compressor = self._resolve("image")
        return compressor.resize(path, width=width, height=height)

    def _compress_file(self, compressor: Compressor, path: str, options: Any, rel: str) -> CompressionOutcome:
        try:
            return compressor.compress(Path(path), options)
        except Exception as e:
            log.exception("Compressor '%s' crashed on %s", compressor.kind, rel)
            return CompressionOutcome.failure(f"Compressor crashed: {e}")

    def _resolve(self, kind: str) -> Compressor:
        compressor = self.registry.require(kind)
        reason = compressor.unavailable_reason
        if reason is not None:
            raise UnavailableError(f"{compressor.name} unavailable: {reason}")
        return compressor

    @staticmethod
    def _parse_options(compressor: Compressor, options: Mapping[str, Any] | Any | None) -> Any:
        if options is None or isinstance(options, Mapping):
            return compressor.parse_options(options)
        return options
