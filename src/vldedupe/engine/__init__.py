"""Duplicate detection orchestration.

This module provides the DuplicateDetector (single listing and batch
detection) and the versioned configuration registry.
"""

from vldedupe.engine.detector import DEFAULT_BATCH_WORKERS, DuplicateDetector
from vldedupe.engine.registry import ConfigRegistry
from vldedupe.engine.results import BatchSummary, DeduplicationResult

__all__ = [
    "DuplicateDetector",
    "DEFAULT_BATCH_WORKERS",
    "DeduplicationResult",
    "BatchSummary",
    "ConfigRegistry",
]
