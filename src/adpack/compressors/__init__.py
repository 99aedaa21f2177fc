"""Built-in compressors."""

from adpack.compressors.audio import AudioCompressor, AudioOptions
from adpack.compressors.image import ImageCompressor, ImageOptions

__all__ = [
    "AudioCompressor",
    "AudioOptions",
    "ImageCompressor",
    "ImageOptions",
]
