"""adpack data models."""

from adpack.models.compressor import Compressor
from adpack.models.scan_result import FileEntry, FolderNode, ScanResult, TypeStat
from adpack.models.outcome import CompressionOutcome, ProgressEvent
from adpack.models.batch_result import BatchResult, EstimatedFile, EstimationResult

__all__ = [
    "BatchResult",
    "CompressionOutcome",
    "Compressor",
    "EstimatedFile",
    "EstimationResult",
    "FileEntry",
    "FolderNode",
    "ProgressEvent",
    "ScanResult",
    "TypeStat",
]
