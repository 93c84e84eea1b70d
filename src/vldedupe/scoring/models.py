"""Data models for pairwise listing scoring."""

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any

__all__ = ["ScoredField", "MatchReason", "FieldScore", "MatchResult"]


class ScoredField(StrEnum):
    """Listing attributes that contribute to the overall score."""

    VIN = "vin"
    TITLE = "title"
    IMAGE = "image"
    PRICE = "price"
    MILEAGE = "mileage"
    LOCATION = "location"


class MatchReason(StrEnum):
    """Signals that agreed strongly for a pair."""

    VIN_EXACT = "vin_exact"
    TITLE_SIMILAR = "title_similar"
    IMAGE_SIMILAR = "image_similar"
    PRICE_CLOSE = "price_close"
    MILEAGE_CLOSE = "mileage_close"
    LOCATION_CLOSE = "location_close"


@dataclass(frozen=True, slots=True)
class FieldScore:
    """Contribution of one field available on both listings.

    Attributes
    ----------
    field : ScoredField
        Scored attribute.
    weight : float
        Weight applied (after any VIN boost).
    score : float
        Sub-score in [0, 1].
    """

    field: ScoredField
    weight: float
    score: float


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Score of one listing pair.

    Sub-scores are None when the field was not comparable (missing on
    either side); such fields are excluded from ``overall_score``.

    Attributes
    ----------
    source_id : str
        Listing being checked.
    target_id : str
        Candidate listing.
    overall_score : float
        Weighted, renormalized score in [0, 1].
    vin_score, title_score, image_score : float | None
        Identifier, text and photo sub-scores.
    price_score, mileage_score, location_score : float | None
        Numeric and geographic sub-scores.
    is_above_threshold : bool
        overall_score >= overall match threshold.
    requires_review : bool
        review threshold <= overall_score < overall match threshold.
    match_reasons : tuple[MatchReason, ...]
        Strongly agreeing signals.
    """

    source_id: str
    target_id: str
    overall_score: float
    vin_score: float | None = None
    title_score: float | None = None
    image_score: float | None = None
    price_score: float | None = None
    mileage_score: float | None = None
    location_score: float | None = None
    is_above_threshold: bool = False
    requires_review: bool = False
    match_reasons: tuple[MatchReason, ...] = field(default_factory=tuple)

    @property
    def field_scores(self) -> dict[str, float | None]:
        """Sub-scores keyed by field name."""
        return {
            ScoredField.VIN.value: self.vin_score,
            ScoredField.TITLE.value: self.title_score,
            ScoredField.IMAGE.value: self.image_score,
            ScoredField.PRICE.value: self.price_score,
            ScoredField.MILEAGE.value: self.mileage_score,
            ScoredField.LOCATION.value: self.location_score,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["match_reasons"] = [reason.value for reason in self.match_reasons]
        return data
