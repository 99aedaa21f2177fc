"""Audio transcoding via the ffmpeg executable."""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from adpack.core.errors import ValidationError
from adpack.models.compressor import Compressor
from adpack.models.outcome import SKIP_LARGER, SKIP_UNSUPPORTED, CompressionOutcome

log = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset({".mp3", ".ogg", ".wav", ".m4a"})

# Output format -> (ffmpeg muxer, audio codec)
AUDIO_FORMATS: dict[str, tuple[str, str]] = {
    "mp3": ("mp3", "libmp3lame"),
    "ogg": ("ogg", "libvorbis"),
    "m4a": ("ipod", "aac"),
    "aac": ("adts", "aac"),
    "wav": ("wav", "pcm_s16le"),
}

# Bitrate suited to playable-ad size budgets.
DEFAULT_BITRATE = "96k"

# Timeout for a single ffmpeg/ffprobe run (seconds).
_FFMPEG_TIMEOUT = 300

_BITRATE_RE = re.compile(r"^\d+[kK]?$")


class TranscodeError(Exception):
    """Raised when ffmpeg or ffprobe fails."""


@dataclass(frozen=True, slots=True)
class AudioOptions:
    bitrate: str = DEFAULT_BITRATE
    sample_rate: int | None = None
    channels: int | None = None
    format: str | None = None
    quality: int | None = None


@dataclass(frozen=True, slots=True)
class AudioInfo:
    duration: float | None
    bitrate: int | None
    format: str
    codec: str
    sample_rate: int | None
    channels: int | None
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration": self.duration,
            "bitrate": self.bitrate,
            "format": self.format,
            "codec": self.codec,
            "sample_rate": self.sample_rate,
            "channels": self.channels,
            "size_bytes": self.size_bytes,
        }


def target_format(path: Path, requested: str | None) -> str:
    """Pick the output format: explicit request, else WAV becomes MP3."""
    if requested:
        return requested
    current = path.suffix.lower().lstrip(".")
    return "mp3" if current == "wav" else current


def build_command(source: Path, output: Path, fmt: str, options: AudioOptions) -> list[str]:
    muxer, codec = AUDIO_FORMATS[fmt]
    cmd = ["ffmpeg", "-hide_banner", "-loglevel", "error", "-y", "-i", str(source), "-vn", "-c:a", codec]
    if codec != "pcm_s16le":
        cmd += ["-b:a", options.bitrate]
    if fmt == "mp3" and options.quality is not None:
        cmd += ["-q:a", str(options.quality)]
    if options.sample_rate:
        cmd += ["-ar", str(options.sample_rate)]
    if options.channels:
        cmd += ["-ac", str(options.channels)]
    cmd += ["-f", muxer, str(output)]
    return cmd


def _run(cmd: list[str]) -> subprocess.CompletedProcess:
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, timeout=_FFMPEG_TIMEOUT)
    except subprocess.TimeoutExpired:
        raise TranscodeError(f"{cmd[0]} timed out after {_FFMPEG_TIMEOUT} seconds")
    except FileNotFoundError:
        raise TranscodeError(f"{cmd[0]} not found on PATH")
    if proc.returncode != 0:
        lines = (proc.stderr or "").strip().splitlines()
        detail = lines[-1] if lines else "no output"
        raise TranscodeError(f"{cmd[0]} failed (exit {proc.returncode}): {detail}")
    return proc


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        log.warning("Could not remove temp file %s: %s", path, e)


class AudioCompressor(Compressor):
    """Transcodes MP3, OGG, WAV and M4A files through ffmpeg."""

    @property
    def kind(self) -> str:
        return "audio"

    @property
    def name(self) -> str:
        return "Audio (ffmpeg)"

    @property
    def extensions(self) -> frozenset[str]:
        return AUDIO_EXTENSIONS

    @property
    def unavailable_reason(self) -> str | None:
        if shutil.which("ffmpeg") is None:
            return "ffmpeg not found on PATH"
        return None

    def parse_options(self, raw: Mapping[str, Any] | None = None) -> AudioOptions:
        values = dict(raw or {})
        bitrate = str(values.pop("bitrate", DEFAULT_BITRATE))
        sample_rate = values.pop("sample_rate", None)
        channels = values.pop("channels", None)
        fmt = values.pop("format", None)
        quality = values.pop("quality", None)
        if values:
            raise ValidationError(f"Unknown audio option(s): {', '.join(sorted(values))}")

        if not _BITRATE_RE.match(bitrate):
            raise ValidationError(f"bitrate must look like '96k', got {bitrate!r}")
        if sample_rate is not None and (not isinstance(sample_rate, int) or sample_rate <= 0):
            raise ValidationError(f"sample_rate must be a positive integer, got {sample_rate!r}")
        if channels is not None and channels not in (1, 2):
            raise ValidationError(f"channels must be 1 or 2, got {channels!r}")
        if fmt is not None:
            fmt = str(fmt).lower()
            if fmt not in AUDIO_FORMATS:
                raise ValidationError(f"format must be one of {', '.join(AUDIO_FORMATS)}, got {fmt!r}")
        if quality is not None and (not isinstance(quality, int) or not 0 <= quality <= 9):
            raise ValidationError(f"quality must be an integer between 0 and 9, got {quality!r}")
        return AudioOptions(bitrate=bitrate, sample_rate=sample_rate, channels=channels, format=fmt, quality=quality)

    def compress(self, path: Path, options: AudioOptions | None = None) -> CompressionOutcome:
        """Transcode *path* into a temp sibling and swap it in when worthwhile.

        The result replaces the original when it is smaller, or when the
        format changes. A format change is applied even if the new file is
        larger, because normalizing formats is a goal of its own.
        """
        options = options or AudioOptions()
        path = Path(path)
        source_fmt = path.suffix.lower().lstrip(".")
        out_fmt = target_format(path, options.format)

        try:
            original_size = path.stat().st_size
        except OSError as e:
            return CompressionOutcome.failure(str(e))

        if out_fmt not in AUDIO_FORMATS:
            return CompressionOutcome.skip(original_size, SKIP_UNSUPPORTED, original_format=source_fmt)

        codec = AUDIO_FORMATS[out_fmt][1]
        converted = out_fmt != source_fmt
        final = path.with_suffix(f".{out_fmt}") if converted else path
        if converted and final.exists():
            return CompressionOutcome.failure(f"Cannot convert to {final.name}: file already exists")

        tmp: Path | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=f".{out_fmt}", dir=path.parent)
            os.close(fd)
            tmp = Path(tmp_name)

            _run(build_command(path, tmp, out_fmt, options))
            new_size = tmp.stat().st_size

            if new_size >= original_size and not converted:
                return CompressionOutcome.skip(
                    original_size,
                    SKIP_LARGER,
                    original_format=source_fmt,
                    new_format=out_fmt,
                    codec=codec,
                    converted=False,
                )

            os.replace(tmp, final)
            tmp = None
            if converted:
                try:
                    path.unlink()
                except OSError:
                    _remove_quietly(final)
                    raise
                log.info("Converted %s -> %s", path.name, final.name)
        except (OSError, TranscodeError) as e:
            log.debug("Cannot transcode %s: %s", path, e)
            return CompressionOutcome.failure(str(e))
        finally:
            if tmp is not None:
                _remove_quietly(tmp)

        return CompressionOutcome.applied(
            original_size,
            new_size,
            original_format=source_fmt,
            new_format=out_fmt,
            codec=codec,
            converted=converted,
            new_path=str(final),
        )

    def probe(self, path: Path) -> AudioInfo:
        """Read stream metadata with ffprobe.

        Raises:
            TranscodeError: If ffprobe fails or finds no audio stream.
        """
        path = Path(path)
        proc = _run([
            "ffprobe", "-v", "quiet", "-print_format", "json", "-show_format", "-show_streams", str(path),
        ])
        try:
            data = json.loads(proc.stdout)
        except (json.JSONDecodeError, TypeError) as exc:
            raise TranscodeError(f"Invalid ffprobe output: {exc}")

        stream = next((s for s in data.get("streams", []) if s.get("codec_type") == "audio"), None)
        if stream is None:
            raise TranscodeError("No audio stream found")
        fmt = data.get("format", {})
        return AudioInfo(
            duration=_as_float(fmt.get("duration")),
            bitrate=_as_int(fmt.get("bit_rate")),
            format=fmt.get("format_name", ""),
            codec=stream.get("codec_name", ""),
            sample_rate=_as_int(stream.get("sample_rate")),
            channels=_as_int(stream.get("channels")),
            size_bytes=path.stat().st_size,
        )


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
