"""Review workflow for ambiguous listing pairs."""

from vldedupe.review.models import (
    Dismissed,
    InvalidReviewOperation,
    Pending,
    ResolutionDecision,
    Resolved,
    ReviewItem,
    ReviewNotFoundError,
    ReviewState,
    ReviewStatus,
    append_note,
    dismiss,
    resolve,
)
from vldedupe.review.workflow import ReviewService

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
    "ReviewService",
]
