"""Similarity calculators.

Pure functions comparing one attribute of two listings:
- strings: Levenshtein, Jaro-Winkler (rapidfuzz) and n-gram Jaccard similarity
- numeric: percentage (price) and absolute (mileage) proximity
- location: haversine distance, postal FSA and combined location signal

Calculators return None when a field cannot be compared, which the
scoring engine treats as "unavailable" rather than as a mismatch.
"""

from vldedupe.similarity.location import (
    DEFAULT_MAX_DISTANCE_KM,
    combined_location_similarity,
    haversine_distance_km,
    location_similarity,
    postal_code_similarity,
)
from vldedupe.similarity.numeric import (
    DEFAULT_MILEAGE_TOLERANCE,
    DEFAULT_PRICE_TOLERANCE_PERCENT,
    absolute_similarity,
    percentage_similarity,
)
from vldedupe.similarity.strings import (
    jaccard_similarity,
    jaro_similarity,
    jaro_winkler_similarity,
    levenshtein_distance,
    levenshtein_similarity,
    ngram_similarity,
    normalize_text,
)

__all__ = [
    # Strings
    "normalize_text",
    "levenshtein_distance",
    "levenshtein_similarity",
    "jaccard_similarity",
    "jaro_similarity",
    "jaro_winkler_similarity",
    "ngram_similarity",
    # Numeric
    "DEFAULT_PRICE_TOLERANCE_PERCENT",
    "DEFAULT_MILEAGE_TOLERANCE",
    "percentage_similarity",
    "absolute_similarity",
    # Location
    "DEFAULT_MAX_DISTANCE_KM",
    "haversine_distance_km",
    "location_similarity",
    "postal_code_similarity",
    "combined_location_similarity",
]
