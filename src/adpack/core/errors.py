"""Error types raised by adpack operations."""

from __future__ import annotations


class AdpackError(Exception):
    """Base class for errors surfaced to callers."""


class NotFoundError(AdpackError):
    """Target directory or file does not exist."""


class OutOfBoundsError(AdpackError):
    """Resolved path escapes the configured root."""


class ValidationError(AdpackError):
    """Invalid options, dimensions or media kind."""


class RootBusyError(AdpackError):
    """Root cannot change while an operation is running against it."""


class UnavailableError(AdpackError):
    """Compressor cannot run on this system (e.g. ffmpeg missing)."""
