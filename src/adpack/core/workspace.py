"""Path-safe operations on the current asset root."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from adpack.compressors.audio import TranscodeError
from adpack.core.engine import BatchOptimizer, ProgressCallback
from adpack.core.errors import AdpackError, NotFoundError, ValidationError
from adpack.core.estimator import estimate
from adpack.core.events import ERROR, BatchEvent, stream_batch
from adpack.core.registry import CompressorRegistry, default_registry
from adpack.core.scanner import scan
from adpack.core.session import Session
from adpack.models.batch_result import BatchResult, EstimationResult
from adpack.models.outcome import CompressionOutcome
from adpack.models.scan_result import ScanResult

if TYPE_CHECKING:
    from adpack.settings import Settings

log = logging.getLogger(__name__)


class Workspace:
    """Entry points for the CLI and D-Bus service.

    Every path argument is resolved against the session root and rejected
    if it escapes it. Each call pins the root for its whole duration.
    """

    def __init__(
        self,
        session: Session,
        registry: CompressorRegistry | None = None,
        max_workers: int = 1,
        ratios: Mapping[str, float] | None = None,
    ) -> None:
        self.session = session
        self.registry = registry or default_registry()
        self.optimizer = BatchOptimizer(self.registry, max_workers=max_workers)
        self.ratios = dict(ratios or {})

    @classmethod
    def from_settings(cls, settings: Settings, root: Path | str | None = None) -> Workspace:
        session = Session(root) if root else Session.from_settings(settings)
        return cls(
            session,
            max_workers=int(settings.get("optimizer.max_workers", 1)),
            ratios=settings.get("estimate.ratios", {}),
        )

    def scan(self) -> ScanResult:
        with self.session.operation() as root:
            return scan(root)

    def estimate(self, kind: str) -> EstimationResult:
        compressor = self.registry.require(kind)
        with self.session.operation() as root:
            return estimate(root, compressor, self.ratios)

    def run_batch(
        self,
        kind: str,
        options: Mapping[str, Any] | None = None,
        target: Path | str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """Run a batch on the root, or on *target* inside it."""
        with self.session.operation():
            directory = self._target_dir(target)
            return self.optimizer.run_batch(directory, kind, options, on_progress=on_progress, cancel=cancel)

    def stream_batch(
        self,
        kind: str,
        options: Mapping[str, Any] | None = None,
        target: Path | str | None = None,
        cancel: threading.Event | None = None,
    ) -> Iterator[BatchEvent]:
        """Like ``run_batch`` but as an event stream; bad targets become an error event."""
        with self.session.operation():
            try:
                directory = self._target_dir(target)
            except AdpackError as e:
                yield BatchEvent(ERROR, {"error": str(e)})
                return
            yield from stream_batch(self.optimizer, directory, kind, options, cancel=cancel)

    def compress_one(self, path: Path | str, options: Mapping[str, Any] | None = None) -> CompressionOutcome:
        with self.session.operation():
            return self.optimizer.compress_one(self._existing_file(path), options=options)

    def resize_one(self, path: Path | str, width: int | None = None, height: int | None = None) -> CompressionOutcome:
        with self.session.operation():
            return self.optimizer.resize_one(self._existing_file(path), width=width, height=height)

    def media_info(self, path: Path | str) -> dict[str, Any]:
        """Dimensions for an image, stream details for an audio file."""
        with self.session.operation():
            full = self._existing_file(path)
            compressor = self.registry.for_path(str(full))
            if compressor is None:
                raise ValidationError(f"No compressor handles '{full.name}'")
            try:
                if compressor.kind == "image":
                    return compressor.read_metadata(full).to_dict()
                return compressor.probe(full).to_dict()
            except (OSError, TranscodeError) as e:
                raise AdpackError(f"Cannot read {path}: {e}") from e

    def change_root(self, path: Path | str) -> Path:
        return self.session.change_root(path)

    def _target_dir(self, target: Path | str | None) -> Path:
        if not target:
            return self.session.root
        directory = self.session.resolve(target)
        if not directory.is_dir():
            raise NotFoundError(f"Directory does not exist: {target}")
        return directory

    def _existing_file(self, path: Path | str) -> Path:
        full = self.session.require_existing(path)
        if not full.is_file():
            raise NotFoundError(f"Not a file: {path}")
        return full
