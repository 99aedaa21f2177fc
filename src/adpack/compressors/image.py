"""Image re-encoding and resizing via Pillow."""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from PIL import Image

from adpack.core.errors import ValidationError
from adpack.models.compressor import Compressor, replace_with_bytes
from adpack.models.outcome import (
    SKIP_LARGER,
    SKIP_UNCHANGED,
    SKIP_UNSUPPORTED,
    CompressionOutcome,
)

log = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".webp"})

# Pillow format name -> short name used in outcomes
SUPPORTED_FORMATS = {"PNG": "png", "JPEG": "jpeg", "WEBP": "webp"}

MIN_DIMENSION = 1
MAX_DIMENSION = 4096
DEFAULT_QUALITY = 80

# Decode/encode problems Pillow reports; all become a failed outcome.
_CODEC_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


@dataclass(frozen=True, slots=True)
class ImageOptions:
    quality: int = DEFAULT_QUALITY
    max_width: int | None = None
    max_height: int | None = None


@dataclass(frozen=True, slots=True)
class ImageInfo:
    width: int
    height: int
    format: str
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {"width": self.width, "height": self.height, "format": self.format, "size_bytes": self.size_bytes}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def check_dimension(label: str, value: Any) -> int:
    """Validate one target dimension, returning it as an int."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be an integer, got {value!r}")
    if not MIN_DIMENSION <= value <= MAX_DIMENSION:
        raise ValidationError(f"{label} must be between {MIN_DIMENSION} and {MAX_DIMENSION}, got {value}")
    return value


def resolve_dimensions(
    current_width: int,
    current_height: int,
    width: int | None,
    height: int | None,
) -> tuple[int, int]:
    """Fill in a missing target dimension from the current aspect ratio.

    Raises:
        ValidationError: If neither dimension is given, or a given or derived
            dimension lies outside ``[1, 4096]``.
    """
    if width is None and height is None:
        raise ValidationError("Either width or height is required")
    if width is not None:
        check_dimension("width", width)
    if height is not None:
        check_dimension("height", height)

    if height is None:
        height = round_half_up(width * current_height / current_width)
        check_dimension("height", height)
    elif width is None:
        width = round_half_up(height * current_width / current_height)
        check_dimension("width", width)
    return width, height


def _encode(img: Image.Image, fmt: str, quality: int) -> bytes:
    buf = io.BytesIO()
    if fmt == "PNG":
        if img.mode != "P":
            colors = max(2, min(256, round_half_up(256 * quality / 100)))
            img = img.convert("RGBA").quantize(colors=colors, method=Image.Quantize.FASTOCTREE)
        img.save(buf, format="PNG", optimize=True)
    elif fmt == "JPEG":
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.save(buf, format="JPEG", quality=quality, optimize=True, progressive=True)
    else:
        img.save(buf, format="WEBP", quality=quality, method=6)
    return buf.getvalue()


def _save_resized(img: Image.Image, fmt: str) -> bytes:
    """Write *img* back in its source format with light settings."""
    buf = io.BytesIO()
    if fmt == "PNG":
        img.save(buf, format="PNG", optimize=True)
    elif fmt == "JPEG":
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.save(buf, format="JPEG", quality=DEFAULT_QUALITY, optimize=True)
    elif fmt == "WEBP":
        img.save(buf, format="WEBP", quality=DEFAULT_QUALITY)
    else:
        img.save(buf, format=fmt)
    return buf.getvalue()


class ImageCompressor(Compressor):
    """Re-encodes PNG, JPEG and WebP images in place."""

    @property
    def kind(self) -> str:
        return "image"

    @property
    def name(self) -> str:
        return "Image (Pillow)"

    @property
    def extensions(self) -> frozenset[str]:
        return IMAGE_EXTENSIONS

    def parse_options(self, raw: Mapping[str, Any] | None = None) -> ImageOptions:
        values = dict(raw or {})
        quality = values.pop("quality", DEFAULT_QUALITY)
        max_width = values.pop("max_width", None)
        max_height = values.pop("max_height", None)
        if values:
            raise ValidationError(f"Unknown image option(s): {', '.join(sorted(values))}")

        if isinstance(quality, bool) or not isinstance(quality, int) or not 1 <= quality <= 100:
            raise ValidationError(f"quality must be an integer between 1 and 100, got {quality!r}")
        if max_width is not None:
            check_dimension("max_width", max_width)
        if max_height is not None:
            check_dimension("max_height", max_height)
        return ImageOptions(quality=quality, max_width=max_width, max_height=max_height)

    def compress(self, path: Path, options: ImageOptions | None = None) -> CompressionOutcome:
        """Re-encode *path*, writing back only if the result is strictly smaller."""
        options = options or ImageOptions()
        path = Path(path)
        try:
            original_size = path.stat().st_size
            with Image.open(path) as img:
                img.load()
                fmt = img.format
                width, height = img.size
                if fmt not in SUPPORTED_FORMATS:
                    return CompressionOutcome.skip(
                        original_size,
                        SKIP_UNSUPPORTED,
                        original_width=width,
                        original_height=height,
                        original_format=(fmt or "unknown").lower(),
                    )
                if options.max_width or options.max_height:
                    img.thumbnail(
                        (options.max_width or width, options.max_height or height),
                        Image.Resampling.LANCZOS,
                    )
                new_width, new_height = img.size
                data = _encode(img, fmt, options.quality)
        except _CODEC_ERRORS as e:
            log.debug("Cannot compress %s: %s", path, e)
            return CompressionOutcome.failure(str(e))

        dims = {"original_width": width, "original_height": height, "original_format": SUPPORTED_FORMATS[fmt]}
        if len(data) >= original_size:
            return CompressionOutcome.skip(original_size, SKIP_LARGER, new_width=width, new_height=height, **dims)

        try:
            replace_with_bytes(path, data)
        except OSError as e:
            log.debug("Cannot write %s: %s", path, e)
            return CompressionOutcome.failure(str(e))

        return CompressionOutcome.applied(
            original_size,
            len(data),
            new_width=new_width,
            new_height=new_height,
            **dims,
        )

    def resize(self, path: Path, width: int | None = None, height: int | None = None) -> CompressionOutcome:
        """Resize *path* to the given dimensions, keeping aspect for a missing one.

        Raises:
            ValidationError: Before touching the file if the requested
                dimensions are missing or out of range.
        """
        if width is None and height is None:
            raise ValidationError("Either width or height is required")
        if width is not None:
            check_dimension("width", width)
        if height is not None:
            check_dimension("height", height)

        path = Path(path)
        try:
            original_size = path.stat().st_size
            with Image.open(path) as img:
                img.load()
                fmt = img.format
                cur_width, cur_height = img.size
                new_width, new_height = resolve_dimensions(cur_width, cur_height, width, height)
                dims = {
                    "original_width": cur_width,
                    "original_height": cur_height,
                    "new_width": new_width,
                    "new_height": new_height,
                }
                if (new_width, new_height) == (cur_width, cur_height):
                    return CompressionOutcome.skip(original_size, SKIP_UNCHANGED, **dims)
                if fmt not in Image.SAVE:
                    return CompressionOutcome.failure(f"Cannot write {fmt or 'unknown'} images")
                resized = img.resize((new_width, new_height), Image.Resampling.LANCZOS)
                data = _save_resized(resized, fmt)
            replace_with_bytes(path, data)
        except _CODEC_ERRORS as e:
            log.debug("Cannot resize %s: %s", path, e)
            return CompressionOutcome.failure(str(e))

        return CompressionOutcome.applied(original_size, len(data), **dims)

    def read_metadata(self, path: Path) -> ImageInfo:
        """Return dimensions and format without decoding pixel data."""
        path = Path(path)
        size = path.stat().st_size
        with Image.open(path) as img:
            return ImageInfo(
                width=img.width,
                height=img.height,
                format=(img.format or "unknown").lower(),
                size_bytes=size,
            )
