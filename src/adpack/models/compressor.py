"""Base compressor interface."""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping

from adpack.models.outcome import CompressionOutcome

log = logging.getLogger(__name__)


class Compressor(ABC):
    """Base class for per-media-kind compressors.

    A compressor shrinks one file in place. It must never raise for a
    per-file problem: decode, encode and I/O errors are reported as a failed
    ``CompressionOutcome`` and the original file is left intact.
    """

    @property
    @abstractmethod
    def kind(self) -> str:
        """Media kind handled, e.g. 'image'."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name, e.g. 'Image (Pillow)'."""

    @property
    @abstractmethod
    def extensions(self) -> frozenset[str]:
        """Lowercase dotted suffixes this compressor picks up in a batch."""

    @abstractmethod
    def parse_options(self, raw: Mapping[str, Any] | None = None) -> Any:
        """Build this compressor's options object from a plain mapping.

        Raises:
            ValidationError: On unknown keys or out-of-range values.
        """

    @abstractmethod
    def compress(self, path: Path, options: Any = None) -> CompressionOutcome:
        """Try to shrink *path* in place."""

    def accepts(self, path: Path | str) -> bool:
        return os.path.splitext(str(path))[1].lower() in self.extensions

    @property
    def unavailable_reason(self) -> str | None:
        """Why this compressor cannot run here, or None if it can."""
        return None

    def is_available(self) -> bool:
        return self.unavailable_reason is None


def replace_with_bytes(path: Path, data: bytes) -> None:
    """Atomically replace *path* with *data*.

    The bytes go to a hidden sibling first so a crash mid-write never leaves
    a truncated asset behind.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            log.debug("Could not remove temp file %s", tmp_name)
        raise
