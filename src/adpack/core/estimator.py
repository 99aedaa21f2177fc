"""Dry-run savings estimate from fixed per-format ratios."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Mapping

from adpack.core.errors import ValidationError
from adpack.core.walker import iter_files, require_directory
from adpack.models.batch_result import EstimatedFile, EstimationResult
from adpack.models.compressor import Compressor

log = logging.getLogger(__name__)

# Heuristic reduction ratios, not measurements. "*" covers every format
# without its own entry: WAV shrinks a lot once transcoded, already
# compressed formats much less.
DEFAULT_RATIOS: dict[str, float] = {
    "wav": 0.9,
    "ogg": 0.25,
    "*": 0.3,
}


def estimate(
    root: Path | str,
    compressor: Compressor,
    ratios: Mapping[str, float] | None = None,
) -> EstimationResult:
    """Predict what a batch with *compressor* would save under *root*.

    Reads sizes only; never touches file contents. Each per-format bucket
    is floored before summing so the estimate never overstates.

    Raises:
        NotFoundError: If *root* is not an existing directory.
        ValidationError: If a ratio lies outside ``[0, 1]``.
    """
    root_path = require_directory(root)
    table = {**DEFAULT_RATIOS, **(ratios or {})}
    for fmt, ratio in table.items():
        if not 0 <= ratio <= 1:
            raise ValidationError(f"Estimation ratio for '{fmt}' must be between 0 and 1, got {ratio}")

    files: list[EstimatedFile] = []
    by_format: dict[str, dict[str, int]] = {}
    total = 0

    for entry, rel in iter_files(root_path, compressor.extensions, include_symlinks=False):
        try:
            size = entry.stat().st_size
        except OSError as e:
            log.debug("Cannot stat %s: %s", rel, e)
            continue
        fmt = entry.name.rpartition(".")[2].lower()
        files.append(EstimatedFile(path=rel, size_bytes=size, format=fmt))
        bucket = by_format.setdefault(fmt, {"count": 0, "size_bytes": 0})
        bucket["count"] += 1
        bucket["size_bytes"] += size
        total += size

    saving = 0
    for fmt, bucket in by_format.items():
        ratio = table.get(fmt, table["*"])
        bucket["estimated_saving_bytes"] = math.floor(bucket["size_bytes"] * ratio)
        saving += bucket["estimated_saving_bytes"]

    return EstimationResult(
        kind=compressor.kind,
        total_count=len(files),
        total_size_bytes=total,
        estimated_saving_bytes=saving,
        files=tuple(files),
        by_format=by_format,
    )
