"""Tests for accuracy metrics and the metrics service."""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from vldedupe.audit import AuditLogger
from vldedupe.decision import Confidence, DuplicateMatch
from vldedupe.metrics import (
    DEFAULT_ANALYSIS_THRESHOLDS,
    AccuracyMetrics,
    MetricsService,
    safe_ratio,
)
from vldedupe.review import ResolutionDecision, ReviewItem, ReviewService
from vldedupe.storage import SQLiteStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _add_match(store: SQLiteStore, listing_b: str, score: float) -> DuplicateMatch:
    return store.upsert_duplicate_match(
        DuplicateMatch(
            id=f"m-{listing_b}",
            listing_a="A",
            listing_b=listing_b,
            score=score,
            confidence=Confidence.HIGH if score >= 0.95 else Confidence.MEDIUM,
        )
    )


def _add_review(store: SQLiteStore, listing_b: str, score: float) -> ReviewItem:
    return store.upsert_review_item(
        ReviewItem.create("A", listing_b, score=score, priority=int(score * 100))
    )


# ---------------------------------------------------------------------------
# AccuracyMetrics
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_safe_ratio_zero_denominator() -> None:
    """Test division by zero yields 0.0."""
    assert safe_ratio(3, 0) == 0.0
    assert safe_ratio(1, 4) == 0.25


@pytest.mark.unit
def test_accuracy_metrics_calculate() -> None:
    """Test precision, recall and F1 from outcome counts."""
    metrics = AccuracyMetrics.calculate(
        total_matches=10,
        confirmed_duplicates=6,
        confirmed_not_duplicates=2,
        pending_reviews=2,
        average_score=0.9,
    )

    assert metrics.precision == pytest.approx(0.75)
    assert metrics.recall == pytest.approx(0.6)
    assert metrics.f1_score == pytest.approx(2 * 0.75 * 0.6 / 1.35)
    assert metrics.calculated_at.tzinfo is not None


@pytest.mark.unit
def test_accuracy_metrics_empty_counts_are_zero() -> None:
    """Test nothing reviewed yields zero ratios instead of errors."""
    metrics = AccuracyMetrics.calculate(0, 0, 0, 0)

    assert (metrics.precision, metrics.recall, metrics.f1_score) == (0.0, 0.0, 0.0)


@pytest.mark.unit
def test_accuracy_metrics_dict_round_trip() -> None:
    """Test to_dict / from_dict preserve a snapshot."""
    metrics = AccuracyMetrics.calculate(
        4, 2, 1, 1, calculated_at=datetime(2026, 2, 1, 8, 30, tzinfo=UTC)
    )

    data = metrics.to_dict()

    assert data["calculated_at"] == "2026-02-01T08:30:00.000000Z"
    assert AccuracyMetrics.from_dict(data) == metrics


# ---------------------------------------------------------------------------
# MetricsService
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_calculate_current_on_empty_store(store: SQLiteStore) -> None:
    """Test an empty store yields all-zero metrics."""
    metrics = MetricsService(store).calculate_current()

    assert metrics.total_matches == 0
    assert metrics.precision == 0.0
    assert metrics.average_score == 0.0


@pytest.mark.unit
def test_different_vehicle_resolution_lowers_precision(store: SQLiteStore) -> None:
    """Test review verdicts feed precision and recall."""
    _add_match(store, "B", 0.9)
    _add_match(store, "C", 0.96)
    same = _add_review(store, "B", 0.8)
    different = _add_review(store, "D", 0.7)
    _add_review(store, "E", 0.65)
    reviews = ReviewService(store)
    service = MetricsService(store)

    reviews.resolve(same.id, ResolutionDecision.SAME_VEHICLE)
    before = service.calculate_current()
    reviews.resolve(different.id, ResolutionDecision.DIFFERENT_VEHICLE)
    after = service.calculate_current()

    assert before.precision == 1.0
    assert after.precision == pytest.approx(0.5)
    assert after.total_matches == 5
    assert after.confirmed_duplicates == 1
    assert after.confirmed_not_duplicates == 1
    assert after.pending_reviews == 1
    assert after.recall == pytest.approx(1 / 5)
    assert after.average_score == pytest.approx(0.93)


@pytest.mark.unit
def test_confirmed_match_is_not_counted_twice(store: SQLiteStore) -> None:
    """Test a pair confirmed through review counts once as a duplicate."""
    _add_match(store, "B", 0.9)
    item = _add_review(store, "B", 0.8)

    ReviewService(store).resolve(item.id, ResolutionDecision.SAME_VEHICLE)
    metrics = MetricsService(store).calculate_current()

    assert store.get_duplicate_match("A", "B").is_confirmed
    assert metrics.confirmed_duplicates == 1


@pytest.mark.unit
def test_record_snapshot_and_history(store: SQLiteStore, tmp_path: Path) -> None:
    """Test snapshots are stored, logged and returned by history."""
    _add_match(store, "B", 0.9)
    log_path = tmp_path / "events.jsonl"

    with AuditLogger(log_path, run_id="test_run") as logger:
        service = MetricsService(store, logger=logger)
        first = service.record_snapshot()
        second = service.record_snapshot()

    assert first.id is not None and second.id is not None
    assert [snapshot.id for snapshot in service.history()] == [first.id, second.id]
    future = first.calculated_at + timedelta(days=1)
    assert service.history(start=future) == []

    with log_path.open() as f:
        events = [json.loads(line) for line in f]
    assert [event["event"] for event in events] == ["metrics_snapshot_recorded"] * 2
    assert events[0]["stage"] == "metrics"


@pytest.mark.unit
def test_threshold_analysis_precision_per_cutoff(store: SQLiteStore) -> None:
    """Test precision of labeled pairs at and above each cut-off."""
    reviews = ReviewService(store)
    for listing_b, score, decision in [
        ("B", 0.62, ResolutionDecision.DIFFERENT_VEHICLE),
        ("C", 0.72, ResolutionDecision.DIFFERENT_VEHICLE),
        ("D", 0.81, ResolutionDecision.SAME_VEHICLE),
    ]:
        reviews.resolve(_add_review(store, listing_b, score).id, decision)
    store.upsert_duplicate_match(
        DuplicateMatch(
            id="m-E",
            listing_a="A",
            listing_b="E",
            score=0.97,
            confidence=Confidence.HIGH,
            is_confirmed=True,
        )
    )
    _add_match(store, "G", 0.92)
    _add_review(store, "F", 0.7)

    points = MetricsService(store).threshold_analysis([0.9, 0.6, 0.7, 0.8])

    assert [point.threshold for point in points] == [0.6, 0.7, 0.8, 0.9]
    assert [point.labeled_pairs for point in points] == [4, 3, 2, 1]
    assert [point.confirmed_duplicates for point in points] == [2, 2, 2, 1]
    assert [point.precision for point in points] == pytest.approx([0.5, 2 / 3, 1.0, 1.0])


@pytest.mark.unit
def test_default_analysis_thresholds() -> None:
    """Test the default sweep covers 0.50 to 0.95 in 0.05 steps."""
    assert DEFAULT_ANALYSIS_THRESHOLDS[0] == 0.5
    assert DEFAULT_ANALYSIS_THRESHOLDS[-1] == 0.95
    assert len(DEFAULT_ANALYSIS_THRESHOLDS) == 10
