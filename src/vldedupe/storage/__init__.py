"""Persistence and listing-lookup boundaries.

- sqlite: DuplicateMatch / ReviewItem / config registry / metrics snapshots
- listings: ListingSource protocol used by batch detection
"""

from vldedupe.storage.listings import (
    CandidateFetchError,
    CandidateFilter,
    InMemoryListingSource,
    ListingSource,
)
from vldedupe.storage.sqlite import SQLiteStore

__all__ = [
    "SQLiteStore",
    "ListingSource",
    "InMemoryListingSource",
    "CandidateFilter",
    "CandidateFetchError",
]
