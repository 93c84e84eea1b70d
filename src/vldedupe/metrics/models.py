"""Accuracy metrics derived from review outcomes."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from vldedupe.utils import get_iso_timestamp, parse_iso_timestamp, utc_now

__all__ = ["AccuracyMetrics", "ThresholdPoint", "safe_ratio"]


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is 0."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


@dataclass(frozen=True, slots=True)
class AccuracyMetrics:
    """Immutable accuracy snapshot.

    Recall is measured against the system's own output (``total_matches``)
    because no ground truth exists beyond the reviewed pairs.

    Attributes
    ----------
    total_matches : int
        DuplicateMatches plus ReviewItems ever created.
    confirmed_duplicates : int
        Pairs confirmed as the same vehicle.
    confirmed_not_duplicates : int
        Pairs confirmed as different vehicles.
    pending_reviews : int
        Open review items.
    precision : float
        confirmed_duplicates / (confirmed_duplicates + confirmed_not_duplicates).
    recall : float
        confirmed_duplicates / total_matches.
    f1_score : float
        Harmonic mean of precision and recall.
    average_score : float
        Mean score of DuplicateMatches (0.0 if none).
    calculated_at : datetime
        Calculation time.
    id : int | None
        Snapshot id once recorded.
    """

    total_matches: int
    confirmed_duplicates: int
    confirmed_not_duplicates: int
    pending_reviews: int
    precision: float
    recall: float
    f1_score: float
    average_score: float
    calculated_at: datetime
    id: int | None = None

    @classmethod
    def calculate(
        cls,
        total_matches: int,
        confirmed_duplicates: int,
        confirmed_not_duplicates: int,
        pending_reviews: int,
        average_score: float = 0.0,
        calculated_at: datetime | None = None,
    ) -> "AccuracyMetrics":
        """Derive precision, recall and F1 from outcome counts.

        Each ratio is 0.0 when its denominator is 0.
        """
        labeled = confirmed_duplicates + confirmed_not_duplicates
        precision = safe_ratio(confirmed_duplicates, labeled)
        recall = safe_ratio(confirmed_duplicates, total_matches)
        f1_score = safe_ratio(2 * precision * recall, precision + recall)

        return cls(
            total_matches=total_matches,
            confirmed_duplicates=confirmed_duplicates,
            confirmed_not_duplicates=confirmed_not_duplicates,
            pending_reviews=pending_reviews,
            precision=precision,
            recall=recall,
            f1_score=f1_score,
            average_score=average_score,
            calculated_at=calculated_at or utc_now(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["calculated_at"] = get_iso_timestamp(self.calculated_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccuracyMetrics":
        """Build from a dictionary produced by ``to_dict``."""
        values = dict(data)
        values["calculated_at"] = parse_iso_timestamp(values["calculated_at"])
        return cls(**values)


@dataclass(frozen=True, slots=True)
class ThresholdPoint:
    """Precision of reviewed pairs scoring at or above a cut-off.

    Attributes
    ----------
    threshold : float
        Score cut-off.
    labeled_pairs : int
        Reviewed pairs with score >= threshold.
    confirmed_duplicates : int
        Of those, pairs confirmed as the same vehicle.
    precision : float
        confirmed_duplicates / labeled_pairs (0.0 if none).
    """

    threshold: float
    labeled_pairs: int
    confirmed_duplicates: int
    precision: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)
