"""Data models for match decisions.

This module defines the classification outcome of a scored pair and the
persisted DuplicateMatch entity.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from vldedupe.utils import get_iso_timestamp, parse_iso_timestamp

__all__ = ["Decision", "Confidence", "ScoreBreakdown", "DuplicateMatch"]


class Decision(StrEnum):
    """Three-way classification of a scored pair.

    Attributes
    ----------
    DUPLICATE : str
        Score at or above the overall match threshold.
    REVIEW : str
        Score in the review band.
    DISTINCT : str
        Score below the review threshold; nothing is persisted.
    """

    DUPLICATE = "duplicate"
    REVIEW = "review"
    DISTINCT = "distinct"


class Confidence(StrEnum):
    """Confidence tier of a DuplicateMatch, banded from its score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    """Per-field sub-scores and agreeing signals of a match.

    Attributes
    ----------
    vin, title, image, price, mileage, location : float | None
        Sub-scores (None when the field was not comparable).
    reasons : tuple[str, ...]
        Match reason codes (e.g., "vin_exact", "price_close").
    """

    vin: float | None = None
    title: float | None = None
    image: float | None = None
    price: float | None = None
    mileage: float | None = None
    location: float | None = None
    reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "vin": self.vin,
            "title": self.title,
            "image": self.image,
            "price": self.price,
            "mileage": self.mileage,
            "location": self.location,
            "reasons": list(self.reasons),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScoreBreakdown":
        """Build from a dictionary produced by ``to_dict``."""
        return cls(
            vin=data.get("vin"),
            title=data.get("title"),
            image=data.get("image"),
            price=data.get("price"),
            mileage=data.get("mileage"),
            location=data.get("location"),
            reasons=tuple(data.get("reasons", ())),
        )


@dataclass(frozen=True, slots=True)
class DuplicateMatch:
    """Persisted automatic duplicate decision for a canonical listing pair.

    Attributes
    ----------
    id : str
        Entity identifier.
    listing_a : str
        Smaller listing id of the canonical pair.
    listing_b : str
        Larger listing id of the canonical pair.
    score : float
        Overall match score.
    confidence : Confidence
        Tier banded from the score.
    breakdown : ScoreBreakdown
        Sub-scores and match reasons.
    detected_at : datetime
        First detection time.
    is_confirmed : bool
        Set when a reviewer confirmed the pair as the same vehicle.
    """

    id: str
    listing_a: str
    listing_b: str
    score: float
    confidence: Confidence
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    detected_at: datetime | None = None
    is_confirmed: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "listing_a": self.listing_a,
            "listing_b": self.listing_b,
            "score": self.score,
            "confidence": self.confidence.value,
            "breakdown": self.breakdown.to_dict(),
            "detected_at": get_iso_timestamp(self.detected_at) if self.detected_at else None,
            "is_confirmed": self.is_confirmed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DuplicateMatch":
        """Build from a dictionary produced by ``to_dict``."""
        detected_at = data.get("detected_at")
        return cls(
            id=data["id"],
            listing_a=data["listing_a"],
            listing_b=data["listing_b"],
            score=data["score"],
            confidence=Confidence(data["confidence"]),
            breakdown=ScoreBreakdown.from_dict(data.get("breakdown") or {}),
            detected_at=parse_iso_timestamp(detected_at) if detected_at else None,
            is_confirmed=bool(data.get("is_confirmed", False)),
        )
