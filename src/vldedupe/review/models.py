"""Review item state machine.

A ReviewItem holds an ambiguous listing pair until a human decides:

    Pending --resolve(decision)--> Resolved(decision, reviewer, notes)
    Pending --dismiss(reason)----> Dismissed(reason)

Resolved and Dismissed are terminal. Transition functions return a new
item and raise InvalidReviewOperation from any non-pending state.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from vldedupe.models import canonical_pair, new_entity_id
from vldedupe.utils import get_iso_timestamp, parse_iso_timestamp, utc_now

__all__ = [
    "ReviewStatus",
    "ResolutionDecision",
    "Pending",
    "Resolved",
    "Dismissed",
    "ReviewState",
    "ReviewItem",
    "InvalidReviewOperation",
    "ReviewNotFoundError",
    "resolve",
    "dismiss",
    "append_note",
]


class InvalidReviewOperation(Exception):
    """Raised on a transition from a non-pending state or with no decision."""


class ReviewNotFoundError(LookupError):
    """Raised when a review item id is unknown."""


class ReviewStatus(StrEnum):
    """Lifecycle status of a review item."""

    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ResolutionDecision(StrEnum):
    """Reviewer verdict on a pair.

    Attributes
    ----------
    NONE : str
        No decision; invalid when resolving.
    SAME_VEHICLE : str
        The pair is a true duplicate.
    DIFFERENT_VEHICLE : str
        The pair is a false positive.
    """

    NONE = "none"
    SAME_VEHICLE = "same_vehicle"
    DIFFERENT_VEHICLE = "different_vehicle"


@dataclass(frozen=True, slots=True)
class Pending:
    """Awaiting a reviewer."""

    status = ReviewStatus.PENDING


@dataclass(frozen=True, slots=True)
class Resolved:
    """Closed with a decision."""

    decision: ResolutionDecision
    reviewer: str | None
    notes: str | None
    resolved_at: datetime

    status = ReviewStatus.RESOLVED


@dataclass(frozen=True, slots=True)
class Dismissed:
    """Closed without a decision."""

    reason: str | None
    dismissed_at: datetime

    status = ReviewStatus.DISMISSED


ReviewState = Pending | Resolved | Dismissed


@dataclass(frozen=True, slots=True)
class ReviewItem:
    """Listing pair awaiting (or closed by) human adjudication.

    Attributes
    ----------
    id : str
        Entity identifier.
    listing_a : str
        Smaller listing id of the canonical pair.
    listing_b : str
        Larger listing id of the canonical pair.
    score : float
        Match score that sent the pair to review.
    priority : int
        Review priority (higher first), monotonic in score.
    state : ReviewState
        Pending, Resolved or Dismissed.
    created_at : datetime
        Creation time.
    notes : str | None
        Reviewer notes appended while the item is open.
    """

    id: str
    listing_a: str
    listing_b: str
    score: float
    priority: int
    state: ReviewState
    created_at: datetime
    notes: str | None = None

    @classmethod
    def create(
        cls,
        listing_a: str,
        listing_b: str,
        score: float,
        priority: int,
        created_at: datetime | None = None,
    ) -> "ReviewItem":
        """New pending item for a pair (ids are put in canonical order)."""
        first, second = canonical_pair(listing_a, listing_b)
        return cls(
            id=new_entity_id(),
            listing_a=first,
            listing_b=second,
            score=score,
            priority=priority,
            state=Pending(),
            created_at=created_at or utc_now(),
        )

    @property
    def status(self) -> ReviewStatus:
        """Lifecycle status."""
        return self.state.status

    @property
    def is_pending(self) -> bool:
        """Whether the item can still transition."""
        return isinstance(self.state, Pending)

    @property
    def decision(self) -> ResolutionDecision:
        """Resolution decision (NONE unless resolved)."""
        if isinstance(self.state, Resolved):
            return self.state.decision
        return ResolutionDecision.NONE

    @property
    def closed_at(self) -> datetime | None:
        """Resolution or dismissal time."""
        match self.state:
            case Resolved(resolved_at=moment):
                return moment
            case Dismissed(dismissed_at=moment):
                return moment
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "id": self.id,
            "listing_a": self.listing_a,
            "listing_b": self.listing_b,
            "score": self.score,
            "priority": self.priority,
            "status": self.status.value,
            "decision": self.decision.value,
            "reviewer": None,
            "resolution_notes": None,
            "dismiss_reason": None,
            "notes": self.notes,
            "created_at": get_iso_timestamp(self.created_at),
            "closed_at": get_iso_timestamp(self.closed_at) if self.closed_at else None,
        }
        match self.state:
            case Resolved(reviewer=reviewer, notes=notes):
                data["reviewer"] = reviewer
                data["resolution_notes"] = notes
            case Dismissed(reason=reason):
                data["dismiss_reason"] = reason
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReviewItem":
        """Build from a dictionary produced by ``to_dict``."""
        status = ReviewStatus(data["status"])
        closed_at = data.get("closed_at")
        state: ReviewState
        if status is ReviewStatus.RESOLVED:
            state = Resolved(
                decision=ResolutionDecision(data["decision"]),
                reviewer=data.get("reviewer"),
                notes=data.get("resolution_notes"),
                resolved_at=parse_iso_timestamp(closed_at),
            )
        elif status is ReviewStatus.DISMISSED:
            state = Dismissed(
                reason=data.get("dismiss_reason"),
                dismissed_at=parse_iso_timestamp(closed_at),
            )
        else:
            state = Pending()

        return cls(
            id=data["id"],
            listing_a=data["listing_a"],
            listing_b=data["listing_b"],
            score=data["score"],
            priority=data["priority"],
            state=state,
            created_at=parse_iso_timestamp(data["created_at"]),
            notes=data.get("notes"),
        )


def _require_pending(item: ReviewItem, operation: str) -> None:
    if not item.is_pending:
        raise InvalidReviewOperation(
            f"Cannot {operation} review item {item.id}: status is {item.status.value}"
        )


def resolve(
    item: ReviewItem,
    decision: ResolutionDecision,
    reviewer: str | None = None,
    notes: str | None = None,
    resolved_at: datetime | None = None,
) -> ReviewItem:
    """Close a pending item with a decision.

    Raises
    ------
    InvalidReviewOperation
        If the item is not pending or the decision is NONE.
    """
    _require_pending(item, "resolve")
    decision = ResolutionDecision(decision)
    if decision is ResolutionDecision.NONE:
        raise InvalidReviewOperation(f"Resolving review item {item.id} requires a decision")

    state = Resolved(
        decision=decision,
        reviewer=reviewer,
        notes=notes,
        resolved_at=resolved_at or utc_now(),
    )
    return replace(item, state=state)


def dismiss(
    item: ReviewItem,
    reason: str | None = None,
    dismissed_at: datetime | None = None,
) -> ReviewItem:
    """Close a pending item without a decision.

    Raises
    ------
    InvalidReviewOperation
        If the item is not pending.
    """
    _require_pending(item, "dismiss")
    return replace(item, state=Dismissed(reason=reason, dismissed_at=dismissed_at or utc_now()))


def append_note(item: ReviewItem, note: str) -> ReviewItem:
    """Append a line to the item's notes (pending items only)."""
    _require_pending(item, "annotate")
    if not note or not note.strip():
        raise InvalidReviewOperation("Note must not be empty")
    notes = f"{item.notes}\n{note.strip()}" if item.notes else note.strip()
    return replace(item, notes=notes)
