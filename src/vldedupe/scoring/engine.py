"""Fuzzy matching engine: combine field similarities into one score.

Scoring a pair:
    1. Each field yields a ``FieldScore`` or None when it is missing on
       either side (unavailable fields are never scored as zero).
    2. Identical full VINs boost the VIN weight so that the VIN alone
       carries at least 95% of the applied weight.
    3. ``overall = sum(weight * score) / sum(weight)`` over the available
       fields, clamped to [0, 1].
    4. Threshold flags are inclusive on the lower edge.

All functions are pure and safe to run from parallel workers.
"""

import os
from collections.abc import Iterable, Sequence
from concurrent.futures import ProcessPoolExecutor
from functools import partial

from vldedupe.config import DeduplicationConfig
from vldedupe.images.phash import hash_similarity, is_valid_hash
from vldedupe.models import ListingData, is_full_vin, normalize_vin
from vldedupe.scoring.models import FieldScore, MatchReason, MatchResult, ScoredField
from vldedupe.similarity import (
    absolute_similarity,
    combined_location_similarity,
    jaro_winkler_similarity,
    levenshtein_similarity,
    ngram_similarity,
    normalize_text,
    percentage_similarity,
)

__all__ = [
    "VIN_DOMINANCE",
    "CLOSE_SCORE",
    "PARALLEL_MIN_CANDIDATES",
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

# Share of the applied weight an exact VIN match carries at minimum
VIN_DOMINANCE = 0.95

# Sub-score at which price/mileage/location count as a match reason
CLOSE_SCORE = 0.9

# Levenshtein similarity above which two different VINs are read as OCR noise
VIN_OCR_SIMILARITY = 0.9

TITLE_NGRAM_SIZE = 3

# Below this many candidates process start-up costs more than it saves
PARALLEL_MIN_CANDIDATES = 256

_ATTRIBUTE_WEIGHT = 0.6
_JARO_WINKLER_WEIGHT = 0.25
_NGRAM_WEIGHT = 0.15
_TITLE_ONLY_JARO_WINKLER_WEIGHT = 0.6
_TITLE_ONLY_NGRAM_WEIGHT = 0.4


# ---------------------------------------------------------------------------
# Field similarities
# ---------------------------------------------------------------------------


def vin_similarity(vin_a: str | None, vin_b: str | None) -> float | None:
    """Similarity of two VINs.

    Parameters
    ----------
    vin_a : str | None
        First raw VIN.
    vin_b : str | None
        Second raw VIN.

    Returns
    -------
    float | None
        1.0 for equal full VINs; the Levenshtein similarity for different
        full VINs above 0.9 (likely OCR/typing noise), else 0.0. None when
        either VIN is absent or partial.
    """
    normalized_a = normalize_vin(vin_a)
    normalized_b = normalize_vin(vin_b)
    if not is_full_vin(normalized_a) or not is_full_vin(normalized_b):
        return None
    if normalized_a == normalized_b:
        return 1.0
    similarity = levenshtein_similarity(normalized_a, normalized_b)
    return similarity if similarity > VIN_OCR_SIMILARITY else 0.0


def is_exact_vin_match(source: ListingData, target: ListingData) -> bool:
    """Whether both listings carry the same full VIN."""
    normalized = normalize_vin(source.vin)
    return is_full_vin(normalized) and normalized == normalize_vin(target.vin)


def vehicle_attribute_similarity(source: ListingData, target: ListingData) -> float | None:
    """Fraction of year/make/model present on both sides that agree.

    Returns None if none of the three is present on both listings.
    """
    agreements: list[bool] = []

    if source.year is not None and target.year is not None:
        agreements.append(source.year == target.year)

    for name in ("make", "model"):
        value_a = normalize_text(getattr(source, name))
        value_b = normalize_text(getattr(target, name))
        if value_a and value_b:
            agreements.append(value_a == value_b)

    if not agreements:
        return None
    return sum(agreements) / len(agreements)


def title_similarity(source: ListingData, target: ListingData) -> float | None:
    """Title score blending vehicle attributes with string similarity.

    ``0.6 * attributes + 0.25 * jaro_winkler + 0.15 * trigram`` when any
    vehicle attribute is comparable, otherwise
    ``0.6 * jaro_winkler + 0.4 * trigram``. None if either title is blank.
    """
    title_a = normalize_text(source.title)
    title_b = normalize_text(target.title)
    if not title_a or not title_b:
        return None

    jaro_winkler = jaro_winkler_similarity(title_a, title_b)
    ngram = ngram_similarity(title_a, title_b, n=TITLE_NGRAM_SIZE)

    attributes = vehicle_attribute_similarity(source, target)
    if attributes is None:
        return _TITLE_ONLY_JARO_WINKLER_WEIGHT * jaro_winkler + _TITLE_ONLY_NGRAM_WEIGHT * ngram

    return (
        _ATTRIBUTE_WEIGHT * attributes
        + _JARO_WINKLER_WEIGHT * jaro_winkler
        + _NGRAM_WEIGHT * ngram
    )


def _image_similarity(source: ListingData, target: ListingData) -> float | None:
    if not is_valid_hash(source.image_hash) or not is_valid_hash(target.image_hash):
        return None
    return hash_similarity(source.image_hash, target.image_hash)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def compute_field_scores(
    source: ListingData,
    target: ListingData,
    config: DeduplicationConfig,
) -> dict[ScoredField, float | None]:
    """Sub-score of every field, None where the field is unavailable."""
    return {
        ScoredField.VIN: vin_similarity(source.vin, target.vin),
        ScoredField.TITLE: title_similarity(source, target),
        ScoredField.IMAGE: _image_similarity(source, target),
        ScoredField.PRICE: percentage_similarity(
            source.price, target.price, config.price_tolerance_percent
        ),
        ScoredField.MILEAGE: absolute_similarity(
            source.mileage, target.mileage, config.mileage_tolerance
        ),
        ScoredField.LOCATION: combined_location_similarity(
            source, target, config.max_distance_km
        ),
    }


def _weighted_fields(
    scores: dict[ScoredField, float | None],
    config: DeduplicationConfig,
    exact_vin: bool,
) -> list[FieldScore]:
    weights = config.weights
    present = [
        FieldScore(field=name, weight=weights[name.value], score=score)
        for name, score in scores.items()
        if score is not None and weights[name.value] > 0
    ]
    if not exact_vin:
        return present

    others = sum(item.weight for item in present if item.field is not ScoredField.VIN)
    boosted = others * VIN_DOMINANCE / (1.0 - VIN_DOMINANCE)
    return [
        FieldScore(field=item.field, weight=max(item.weight, boosted), score=item.score)
        if item.field is ScoredField.VIN
        else item
        for item in present
    ]


def combine_field_scores(field_scores: Iterable[FieldScore]) -> float:
    """Renormalized weighted mean of the available fields, clamped to [0, 1].

    Returns 0.0 when no field is available.
    """
    total_weight = 0.0
    weighted_sum = 0.0
    for item in field_scores:
        total_weight += item.weight
        weighted_sum += item.weight * item.score

    if total_weight <= 0:
        return 0.0
    return min(1.0, max(0.0, weighted_sum / total_weight))


def threshold_flags(score: float, config: DeduplicationConfig) -> tuple[bool, bool]:
    """Classify a score as (is_above_threshold, requires_review).

    Both comparisons are inclusive on the lower edge.
    """
    is_above = score >= config.overall_match_threshold
    requires_review = config.review_threshold <= score < config.overall_match_threshold
    return is_above, requires_review


def _match_reasons(
    scores: dict[ScoredField, float | None],
    config: DeduplicationConfig,
    exact_vin: bool,
) -> tuple[MatchReason, ...]:
    cutoffs = (
        (ScoredField.TITLE, config.title_similarity_threshold, MatchReason.TITLE_SIMILAR),
        (ScoredField.IMAGE, config.image_similarity_threshold, MatchReason.IMAGE_SIMILAR),
        (ScoredField.PRICE, CLOSE_SCORE, MatchReason.PRICE_CLOSE),
        (ScoredField.MILEAGE, CLOSE_SCORE, MatchReason.MILEAGE_CLOSE),
        (ScoredField.LOCATION, CLOSE_SCORE, MatchReason.LOCATION_CLOSE),
    )
    reasons = [MatchReason.VIN_EXACT] if exact_vin else []
    for name, cutoff, reason in cutoffs:
        score = scores[name]
        if score is not None and score >= cutoff:
            reasons.append(reason)
    return tuple(reasons)


def calculate_match_score(
    source: ListingData,
    target: ListingData,
    config: DeduplicationConfig,
) -> MatchResult:
    """Score one listing pair.

    Parameters
    ----------
    source : ListingData
        Listing being checked.
    target : ListingData
        Candidate listing.
    config : DeduplicationConfig
        Weights, tolerances and thresholds.

    Returns
    -------
    MatchResult
        Overall score, sub-scores, threshold flags and match reasons.
    """
    scores = compute_field_scores(source, target, config)
    exact_vin = is_exact_vin_match(source, target)

    overall = combine_field_scores(_weighted_fields(scores, config, exact_vin))
    is_above, requires_review = threshold_flags(overall, config)

    return MatchResult(
        source_id=source.id,
        target_id=target.id,
        overall_score=overall,
        vin_score=scores[ScoredField.VIN],
        title_score=scores[ScoredField.TITLE],
        image_score=scores[ScoredField.IMAGE],
        price_score=scores[ScoredField.PRICE],
        mileage_score=scores[ScoredField.MILEAGE],
        location_score=scores[ScoredField.LOCATION],
        is_above_threshold=is_above,
        requires_review=requires_review,
        match_reasons=_match_reasons(scores, config, exact_vin),
    )


def _score_candidate(
    source: ListingData,
    config: DeduplicationConfig,
    target: ListingData,
) -> MatchResult:
    return calculate_match_score(source, target, config)


def find_potential_matches(
    listing: ListingData,
    candidates: Sequence[ListingData],
    config: DeduplicationConfig,
    max_workers: int | None = None,
) -> list[MatchResult]:
    """Score a listing against every candidate.

    Parameters
    ----------
    listing : ListingData
        Listing being checked.
    candidates : Sequence[ListingData]
        Candidate listings; the listing itself is skipped if present.
    config : DeduplicationConfig
        Configuration snapshot.
    max_workers : int | None, optional
        Process pool size (None: number of CPUs). Large candidate sets are
        scored in parallel unless max_workers is 1.

    Returns
    -------
    list[MatchResult]
        Results for all candidates, by descending overall score (ties by
        target id).
    """
    others = [candidate for candidate in candidates if candidate.id != listing.id]
    score = partial(_score_candidate, listing, config)

    if max_workers == 1 or len(others) < PARALLEL_MIN_CANDIDATES:
        results = [score(candidate) for candidate in others]
    else:
        workers = max_workers or os.cpu_count() or 1
        chunksize = max(1, len(others) // (4 * workers))
        with ProcessPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(score, others, chunksize=chunksize))

    results.sort(key=lambda result: (-result.overall_score, result.target_id))
    return results
