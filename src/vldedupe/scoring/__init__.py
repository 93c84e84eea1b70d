"""Fuzzy matching engine for listing pairs.

Combines the similarity calculators into one renormalized score per pair
and classifies it against the configured thresholds.
"""

from vldedupe.scoring.engine import (
    calculate_match_score,
    combine_field_scores,
    compute_field_scores,
    find_potential_matches,
    is_exact_vin_match,
    threshold_flags,
    title_similarity,
    vehicle_attribute_similarity,
    vin_similarity,
)
from vldedupe.scoring.models import FieldScore, MatchReason, MatchResult, ScoredField

__all__ = [
    "ScoredField",
    "MatchReason",
    "FieldScore",
    "MatchResult",
    "vin_similarity",
    "is_exact_vin_match",
    "vehicle_attribute_similarity",
    "title_similarity",
    "compute_field_scores",
    "combine_field_scores",
    "threshold_flags",
    "calculate_match_score",
    "find_potential_matches",
]
