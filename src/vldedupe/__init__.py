"""Duplicate detection for scraped vehicle listings.

This package provides:
- Data models (vldedupe.models) - listing snapshot and pair identifiers
- Similarity (vldedupe.similarity) - string, numeric and location calculators
- Images (vldedupe.images) - perceptual hashing of listing photos
- Scoring (vldedupe.scoring) - weighted, renormalized pair scoring
- Decision (vldedupe.decision) - duplicate / review / distinct classification
- Review (vldedupe.review) - review item state machine and workflow
- Metrics (vldedupe.metrics) - precision/recall feedback from reviews
- Storage (vldedupe.storage) - SQLite persistence and listing sources
- Engine (vldedupe.engine) - detection orchestration and config registry
- Audit (vldedupe.audit) - JSONL event logging
- CLI (vldedupe.cli) - command-line interface
- Public API (vldedupe.api) - high-level convenience functions
"""

__version__ = "0.1.0"
__license__ = "MIT"

from vldedupe.api import ListingParseError, dedupe, read_listings, score_pair
from vldedupe.config import DeduplicationConfig
from vldedupe.models import ListingData
from vldedupe.scoring import MatchResult

__all__ = [
    "__version__",
    "__license__",
    "ListingData",
    "DeduplicationConfig",
    "MatchResult",
    "read_listings",
    "score_pair",
    "dedupe",
    "ListingParseError",
]
