"""Listing source boundary: where the detector fetches listings and candidates.

Candidate selection belongs to the listing store. The detector only calls
``get_listing`` and ``get_candidates`` and passes the caller's timeout
through, so a slow lookup aborts the affected listing only.
"""

from collections.abc import Callable, Iterable
from typing import Protocol, runtime_checkable

from vldedupe.models import ListingData

__all__ = ["CandidateFetchError", "ListingSource", "InMemoryListingSource", "CandidateFilter"]

CandidateFilter = Callable[[ListingData, ListingData], bool]


class CandidateFetchError(Exception):
    """Raised when a listing or its candidates cannot be fetched."""


@runtime_checkable
class ListingSource(Protocol):
    """External listing lookup used by batch detection."""

    def get_listing(self, listing_id: str, timeout: float | None = None) -> ListingData:
        """Fetch one listing; raise CandidateFetchError if unavailable."""
        ...

    def get_candidates(
        self, listing: ListingData, timeout: float | None = None
    ) -> list[ListingData]:
        """Fetch the candidate set for a listing."""
        ...


class InMemoryListingSource:
    """ListingSource over an in-memory collection.

    Parameters
    ----------
    listings : Iterable[ListingData]
        Known listings (ids must be unique).
    candidate_filter : CandidateFilter | None, optional
        Predicate ``(listing, other) -> bool`` restricting candidates.
        All other listings are candidates if not provided.
    """

    def __init__(
        self,
        listings: Iterable[ListingData],
        candidate_filter: CandidateFilter | None = None,
    ) -> None:
        self._listings: dict[str, ListingData] = {}
        for listing in listings:
            if listing.id in self._listings:
                raise ValueError(f"Duplicate listing id: {listing.id}")
            self._listings[listing.id] = listing
        self._candidate_filter = candidate_filter

    def __len__(self) -> int:
        return len(self._listings)

    @property
    def listing_ids(self) -> list[str]:
        """Ids in insertion order."""
        return list(self._listings)

    def get_listing(self, listing_id: str, timeout: float | None = None) -> ListingData:
        """Fetch one listing.

        Raises
        ------
        CandidateFetchError
            If the id is unknown.
        """
        try:
            return self._listings[listing_id]
        except KeyError as e:
            raise CandidateFetchError(f"Listing not found: {listing_id}") from e

    def get_candidates(
        self, listing: ListingData, timeout: float | None = None
    ) -> list[ListingData]:
        """All other listings passing the candidate filter."""
        return [
            other
            for other in self._listings.values()
            if other.id != listing.id
            and (self._candidate_filter is None or self._candidate_filter(listing, other))
        ]
