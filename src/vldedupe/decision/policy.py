"""Classification policy: turn a MatchResult into a persisted decision.

- score >= overall match threshold -> DuplicateMatch (confidence banded)
- review threshold <= score < overall match threshold -> pending ReviewItem
- otherwise -> discarded
"""

from datetime import datetime

from vldedupe.config import DeduplicationConfig
from vldedupe.decision.models import Confidence, Decision, DuplicateMatch, ScoreBreakdown
from vldedupe.models import canonical_pair, new_entity_id
from vldedupe.review.models import ReviewItem
from vldedupe.scoring import MatchResult, threshold_flags
from vldedupe.utils import utc_now

__all__ = [
    "HIGH_CONFIDENCE_SCORE",
    "MAX_PRIORITY",
    "make_decision",
    "confidence_tier",
    "review_priority",
    "score_breakdown",
    "build_duplicate_match",
    "build_review_item",
]

HIGH_CONFIDENCE_SCORE = 0.95
MAX_PRIORITY = 100


def make_decision(result: MatchResult) -> Decision:
    """Classify a scored pair from its threshold flags."""
    if result.is_above_threshold:
        return Decision.DUPLICATE
    if result.requires_review:
        return Decision.REVIEW
    return Decision.DISTINCT


def confidence_tier(score: float, config: DeduplicationConfig) -> Confidence:
    """Band a score into High (>= 0.95), Medium (>= match threshold) or Low."""
    if score >= HIGH_CONFIDENCE_SCORE:
        return Confidence.HIGH
    is_above, _ = threshold_flags(score, config)
    if is_above:
        return Confidence.MEDIUM
    return Confidence.LOW


def review_priority(score: float) -> int:
    """Review priority in [0, 100]; a higher score is reviewed first."""
    return max(0, min(MAX_PRIORITY, int(score * MAX_PRIORITY)))


def score_breakdown(result: MatchResult) -> ScoreBreakdown:
    """Sub-scores and match reasons of a result."""
    return ScoreBreakdown(
        vin=result.vin_score,
        title=result.title_score,
        image=result.image_score,
        price=result.price_score,
        mileage=result.mileage_score,
        location=result.location_score,
        reasons=tuple(reason.value for reason in result.match_reasons),
    )


def build_duplicate_match(
    result: MatchResult,
    config: DeduplicationConfig,
    detected_at: datetime | None = None,
) -> DuplicateMatch:
    """New DuplicateMatch for an above-threshold result (canonical pair order)."""
    listing_a, listing_b = canonical_pair(result.source_id, result.target_id)
    return DuplicateMatch(
        id=new_entity_id(),
        listing_a=listing_a,
        listing_b=listing_b,
        score=result.overall_score,
        confidence=confidence_tier(result.overall_score, config),
        breakdown=score_breakdown(result),
        detected_at=detected_at or utc_now(),
    )


def build_review_item(result: MatchResult, created_at: datetime | None = None) -> ReviewItem:
    """New pending ReviewItem for a review-band result (canonical pair order)."""
    listing_a, listing_b = canonical_pair(result.source_id, result.target_id)
    return ReviewItem.create(
        listing_a=listing_a,
        listing_b=listing_b,
        score=result.overall_score,
        priority=review_priority(result.overall_score),
        created_at=created_at,
    )
