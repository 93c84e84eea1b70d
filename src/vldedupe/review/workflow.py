"""Review workflow: queue access and persisted state transitions."""

from typing import TYPE_CHECKING

from vldedupe.audit.logger import AuditLogger
from vldedupe.review.models import (
    InvalidReviewOperation,
    ResolutionDecision,
    ReviewItem,
    ReviewNotFoundError,
    ReviewStatus,
    append_note,
    dismiss,
    resolve,
)

if TYPE_CHECKING:
    from vldedupe.storage.sqlite import SQLiteStore

__all__ = ["ReviewService"]

_STAGE = "review"


class ReviewService:
    """Human review of ambiguous listing pairs.

    Parameters
    ----------
    store : SQLiteStore
        Persistence for review items.
    logger : AuditLogger | None, optional
        Audit logger for review events.
    """

    def __init__(self, store: "SQLiteStore", logger: AuditLogger | None = None) -> None:
        self.store = store
        self.logger = logger

    def get(self, review_id: str) -> ReviewItem:
        """Review item by id.

        Raises
        ------
        ReviewNotFoundError
            If the id is unknown.
        """
        item = self.store.get_review_item(review_id)
        if item is None:
            raise ReviewNotFoundError(f"Review item not found: {review_id}")
        return item

    def list_pending(self, skip: int = 0, take: int | None = None) -> list[ReviewItem]:
        """Pending items, highest priority (then score) first."""
        return self.store.list_review_items(status=ReviewStatus.PENDING, skip=skip, take=take)

    def pending_count(self) -> int:
        """Number of pending items."""
        return self.store.count_review_items(status=ReviewStatus.PENDING)

    def resolve(
        self,
        review_id: str,
        decision: ResolutionDecision | str,
        reviewer: str | None = None,
        notes: str | None = None,
    ) -> ReviewItem:
        """Resolve a pending item.

        A SameVehicle decision also confirms the DuplicateMatch of the pair,
        if one exists.

        Parameters
        ----------
        review_id : str
            Review item id.
        decision : ResolutionDecision | str
            SAME_VEHICLE or DIFFERENT_VEHICLE.
        reviewer : str | None, optional
            Reviewer identity.
        notes : str | None, optional
            Resolution notes.

        Returns
        -------
        ReviewItem
            Resolved item.

        Raises
        ------
        ReviewNotFoundError
            If the id is unknown.
        InvalidReviewOperation
            If the item is not pending or the decision is NONE.
        """
        resolved = resolve(
            self.get(review_id), ResolutionDecision(decision), reviewer=reviewer, notes=notes
        )
        self._persist(resolved, "resolve")

        if self.logger:
            self.logger.event(
                "review_resolved",
                data={
                    "review_id": resolved.id,
                    "listing_a": resolved.listing_a,
                    "listing_b": resolved.listing_b,
                    "decision": resolved.decision.value,
                    "reviewer": reviewer,
                },
                stage=_STAGE,
            )
        return resolved

    def dismiss(self, review_id: str, reason: str | None = None) -> ReviewItem:
        """Dismiss a pending item.

        Raises
        ------
        ReviewNotFoundError
            If the id is unknown.
        InvalidReviewOperation
            If the item is not pending.
        """
        dismissed = dismiss(self.get(review_id), reason=reason)
        self._persist(dismissed, "dismiss")

        if self.logger:
            self.logger.event(
                "review_dismissed",
                data={
                    "review_id": dismissed.id,
                    "listing_a": dismissed.listing_a,
                    "listing_b": dismissed.listing_b,
                    "reason": reason,
                },
                stage=_STAGE,
            )
        return dismissed

    def add_note(self, review_id: str, note: str) -> ReviewItem:
        """Append a note to a pending item."""
        annotated = append_note(self.get(review_id), note)
        if not self.store.save_review_notes(annotated):
            raise InvalidReviewOperation(f"Review item {review_id} was closed concurrently")
        return annotated

    def _persist(self, item: ReviewItem, operation: str) -> None:
        # Another reviewer may have closed the item since it was read
        if not self.store.save_review_transition(item):
            current = self.get(item.id)
            raise InvalidReviewOperation(
                f"Cannot {operation} review item {item.id}: status is {current.status.value}"
            )
