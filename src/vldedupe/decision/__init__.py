"""Three-way classification of scored listing pairs.

Turns a MatchResult into a DuplicateMatch, a pending ReviewItem or nothing.
"""

from vldedupe.decision.models import Confidence, Decision, DuplicateMatch, ScoreBreakdown
from vldedupe.decision.policy import (
    HIGH_CONFIDENCE_SCORE,
    build_duplicate_match,
    build_review_item,
    confidence_tier,
    make_decision,
    review_priority,
    score_breakdown,
)

__all__ = [
    # Models
    "Decision",
    "Confidence",
    "ScoreBreakdown",
    "DuplicateMatch",
    # Policy
    "HIGH_CONFIDENCE_SCORE",
    "make_decision",
    "confidence_tier",
    "review_priority",
    "score_breakdown",
    "build_duplicate_match",
    "build_review_item",
]
