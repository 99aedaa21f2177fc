"""Per-file compression outcome and progress event."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

SKIP_UNSUPPORTED = "unsupported"
SKIP_LARGER = "larger"
SKIP_UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class CompressionOutcome:
    """Result of one compress or resize attempt on a single file.

    Exactly one of three shapes:

    * applied: ``success=True, skipped=False``
    * skipped: ``success=True, skipped=True`` with a ``skip_reason``
    * failed: ``success=False`` with an ``error_message`` and zero byte counts

    Image outcomes fill the width/height fields, audio outcomes fill the
    format/codec fields. Unused fields stay ``None``.
    """

    success: bool
    original_size_bytes: int = 0
    new_size_bytes: int = 0
    saved_bytes: int = 0
    skipped: bool = False
    skip_reason: str | None = None
    error_message: str | None = None

    original_width: int | None = None
    original_height: int | None = None
    new_width: int | None = None
    new_height: int | None = None

    original_format: str | None = None
    new_format: str | None = None
    codec: str | None = None
    converted: bool | None = None
    new_path: str | None = None

    @classmethod
    def applied(cls, original_size: int, new_size: int, **extra: Any) -> CompressionOutcome:
        return cls(
            success=True,
            original_size_bytes=original_size,
            new_size_bytes=new_size,
            saved_bytes=original_size - new_size,
            **extra,
        )

    @classmethod
    def skip(cls, size: int, reason: str, **extra: Any) -> CompressionOutcome:
        return cls(
            success=True,
            original_size_bytes=size,
            new_size_bytes=size,
            saved_bytes=0,
            skipped=True,
            skip_reason=reason,
            **extra,
        )

    @classmethod
    def failure(cls, message: str) -> CompressionOutcome:
        return cls(success=False, error_message=message)

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Announces the file a batch is about to process."""

    current_index: int
    relative_path: str

    def to_dict(self) -> dict[str, Any]:
        return {"current": self.current_index, "file": self.relative_path}
