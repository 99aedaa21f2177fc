"""Registry of compressors keyed by media kind."""

from __future__ import annotations

import logging
import os

from adpack.core.classifier import classify
from adpack.core.errors import ValidationError
from adpack.models.compressor import Compressor

log = logging.getLogger(__name__)


class CompressorRegistry:
    """Stores and retrieves the compressor for each media kind."""

    def __init__(self) -> None:
        self._compressors: dict[str, Compressor] = {}

    def register(self, compressor: Compressor) -> None:
        """Register a compressor instance."""
        if compressor.kind in self._compressors:
            log.warning("Compressor for '%s' already registered, skipping duplicate", compressor.kind)
            return
        self._compressors[compressor.kind] = compressor
        log.debug("Registered compressor: %s (%s)", compressor.kind, compressor.name)

    def require(self, kind: str) -> Compressor:
        """Get the compressor for *kind* or raise ValidationError."""
        compressor = self._compressors.get(kind)
        if compressor is None:
            known = ", ".join(sorted(self._compressors)) or "none"
            raise ValidationError(f"Unknown media kind '{kind}' (known: {known})")
        return compressor

    def for_path(self, path: str) -> Compressor | None:
        """Find the compressor for the asset type *path* classifies as."""
        return self._compressors.get(classify(os.path.basename(path)))


def default_registry() -> CompressorRegistry:
    """Registry with the built-in image and audio compressors."""
    from adpack.compressors.audio import AudioCompressor
    from adpack.compressors.image import ImageCompressor

    registry = CompressorRegistry()
    registry.register(ImageCompressor())
    registry.register(AudioCompressor())
    return registry
