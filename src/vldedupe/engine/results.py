"""Detection run result dataclasses."""

from dataclasses import dataclass, field
from typing import Any

from vldedupe.decision.models import DuplicateMatch
from vldedupe.review.models import ReviewItem

__all__ = ["DeduplicationResult", "BatchSummary"]


@dataclass
class DeduplicationResult:
    """Outcome of duplicate detection for one listing.

    Attributes
    ----------
    listing_id : str
        Listing checked.
    duplicates : list[DuplicateMatch]
        Stored matches (new or refreshed) for above-threshold pairs.
    review_items : list[ReviewItem]
        Pending review items (new or refreshed) for review-band pairs.
    candidates_checked : int
        Candidates scored.
    duration_seconds : float
        Wall-clock duration.
    success : bool
        Whether detection completed.
    error_message : str | None
        "ExceptionClass: message" if failed.
    """

    listing_id: str
    duplicates: list[DuplicateMatch] = field(default_factory=list)
    review_items: list[ReviewItem] = field(default_factory=list)
    candidates_checked: int = 0
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None

    @classmethod
    def failed(
        cls, listing_id: str, error_message: str, duration_seconds: float = 0.0
    ) -> "DeduplicationResult":
        """Result of a listing whose detection raised."""
        return cls(
            listing_id=listing_id,
            duration_seconds=duration_seconds,
            success=False,
            error_message=error_message,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "listing_id": self.listing_id,
            "duplicates": [match.to_dict() for match in self.duplicates],
            "review_items": [item.to_dict() for item in self.review_items],
            "candidates_checked": self.candidates_checked,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
        }


@dataclass
class BatchSummary:
    """Aggregate counts over a batch of detection results."""

    listings: int
    succeeded: int
    failed: int
    duplicates: int
    review_items: int
    candidates_checked: int

    @classmethod
    def from_results(cls, results: list[DeduplicationResult]) -> "BatchSummary":
        """Summarize per-listing results."""
        succeeded = sum(1 for result in results if result.success)
        return cls(
            listings=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            duplicates=sum(len(result.duplicates) for result in results),
            review_items=sum(len(result.review_items) for result in results),
            candidates_checked=sum(result.candidates_checked for result in results),
        )

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary for JSON serialization."""
        return {
            "listings": self.listings,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duplicates": self.duplicates,
            "review_items": self.review_items,
            "candidates_checked": self.candidates_checked,
        }
