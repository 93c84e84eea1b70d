"""Tests for SQLite persistence and listing sources."""

import sqlite3
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from vldedupe.config import ConfigNotFoundError, DeduplicationConfig
from vldedupe.decision import Confidence, DuplicateMatch, ScoreBreakdown
from vldedupe.metrics import AccuracyMetrics
from vldedupe.models import ListingData
from vldedupe.review import ResolutionDecision, ReviewItem, ReviewStatus, dismiss, resolve
from vldedupe.storage import (
    CandidateFetchError,
    InMemoryListingSource,
    ListingSource,
    SQLiteStore,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _match(
    match_id: str, listing_a: str = "A", listing_b: str = "B", score: float = 0.9
) -> DuplicateMatch:
    return DuplicateMatch(
        id=match_id,
        listing_a=listing_a,
        listing_b=listing_b,
        score=score,
        confidence=Confidence.HIGH if score >= 0.95 else Confidence.MEDIUM,
        breakdown=ScoreBreakdown(title=0.9, reasons=("title_similar",)),
    )


def _metrics(calculated_at: datetime) -> AccuracyMetrics:
    return AccuracyMetrics.calculate(
        total_matches=4,
        confirmed_duplicates=2,
        confirmed_not_duplicates=2,
        pending_reviews=0,
        calculated_at=calculated_at,
    )


# ---------------------------------------------------------------------------
# Duplicate matches
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_upsert_duplicate_match_is_idempotent(store: SQLiteStore) -> None:
    """Test re-detecting a pair refreshes the score on the original row."""
    first = store.upsert_duplicate_match(_match("m1", score=0.9))
    second = store.upsert_duplicate_match(_match("m2", "B", "A", score=0.97))

    assert second.id == first.id == "m1"
    assert second.score == 0.97
    assert second.confidence is Confidence.HIGH
    assert second.detected_at == first.detected_at
    assert len(store.list_duplicate_matches()) == 1


@pytest.mark.unit
def test_duplicate_match_breakdown_round_trips(store: SQLiteStore) -> None:
    """Test the JSON breakdown survives storage."""
    store.upsert_duplicate_match(_match("m1"))

    stored = store.get_duplicate_match("B", "A")

    assert stored.breakdown == ScoreBreakdown(title=0.9, reasons=("title_similar",))
    assert store.get_duplicate_match("A", "C") is None


@pytest.mark.unit
def test_list_duplicate_matches_filters_by_listing(store: SQLiteStore) -> None:
    """Test matches can be listed for one listing, highest score first."""
    store.upsert_duplicate_match(_match("m1", "A", "B", score=0.9))
    store.upsert_duplicate_match(_match("m2", "A", "C", score=0.96))
    store.upsert_duplicate_match(_match("m3", "D", "E", score=0.99))

    assert [match.id for match in store.list_duplicate_matches("A")] == ["m2", "m1"]
    assert [match.id for match in store.list_duplicate_matches()] == ["m3", "m2", "m1"]


@pytest.mark.unit
def test_concurrent_upserts_converge_on_one_row(tmp_path: Path) -> None:
    """Test racing detections of the same pair leave a single match."""
    with SQLiteStore(tmp_path / "race.db") as store:
        with ThreadPoolExecutor(max_workers=8) as executor:
            stored = list(
                executor.map(
                    lambda i: store.upsert_duplicate_match(_match(f"m{i}", score=0.9)),
                    range(32),
                )
            )

        assert len(store.list_duplicate_matches()) == 1
        assert len({match.id for match in stored}) == 1


class _CommitFailsOnce:
    """Connection wrapper whose first COMMIT raises like a busy database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self.failed = False

    def execute(self, sql: str, *args: object) -> sqlite3.Cursor:
        if sql == "COMMIT" and not self.failed:
            self.failed = True
            raise sqlite3.OperationalError("database is locked")
        return self._connection.execute(sql, *args)

    def __getattr__(self, name: str) -> object:
        return getattr(self._connection, name)


@pytest.mark.unit
def test_failed_commit_rolls_back_and_connection_recovers(store: SQLiteStore) -> None:
    """Test a COMMIT error leaves no open transaction on the thread's connection."""
    real = store._connection()
    store._local.connection = _CommitFailsOnce(real)

    try:
        with pytest.raises(sqlite3.OperationalError, match="locked"):
            store.upsert_duplicate_match(_match("m1"))
        assert not real.in_transaction
        assert store.get_duplicate_match("A", "B") is None

        stored = store.upsert_duplicate_match(_match("m2"))
    finally:
        store._local.connection = real

    assert stored.id == "m2"
    assert store.get_duplicate_match("A", "B").id == "m2"


# ---------------------------------------------------------------------------
# Review items
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_upsert_review_item_refreshes_pending(store: SQLiteStore) -> None:
    """Test re-detection updates score and priority of the pending item."""
    first = store.upsert_review_item(ReviewItem.create("A", "B", score=0.65, priority=65))
    second = store.upsert_review_item(ReviewItem.create("B", "A", score=0.75, priority=75))

    assert second.id == first.id
    assert (second.score, second.priority) == (0.75, 75)
    assert store.count_review_items() == 1


@pytest.mark.unit
@pytest.mark.parametrize(
    "close",
    [
        lambda item: resolve(item, ResolutionDecision.DIFFERENT_VEHICLE, reviewer="bob"),
        lambda item: dismiss(item, reason="sold"),
    ],
)
def test_closed_review_item_is_never_reopened(store: SQLiteStore, close) -> None:
    """Test re-detecting a closed pair returns the closed item unchanged."""
    pending = store.upsert_review_item(ReviewItem.create("A", "B", score=0.65, priority=65))
    assert store.save_review_transition(close(pending))

    again = store.upsert_review_item(ReviewItem.create("A", "B", score=0.8, priority=80))

    assert again.id == pending.id
    assert not again.is_pending
    assert again.score == 0.65
    assert store.count_review_items(ReviewStatus.PENDING) == 0


@pytest.mark.unit
def test_list_review_items_rejects_negative_paging(store: SQLiteStore) -> None:
    """Test skip and take must be non-negative."""
    with pytest.raises(ValueError):
        store.list_review_items(skip=-1)


@pytest.mark.unit
def test_get_review_for_pair(store: SQLiteStore) -> None:
    """Test lookup by pair works in either order."""
    item = store.upsert_review_item(ReviewItem.create("A", "B", score=0.7, priority=70))

    assert store.get_review_for_pair("B", "A").id == item.id
    assert store.get_review_for_pair("A", "C") is None


# ---------------------------------------------------------------------------
# Metrics snapshots
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_metrics_snapshots_filter_by_time_range(store: SQLiteStore) -> None:
    """Test history is inclusive of both bounds and ordered by time."""
    base = datetime(2026, 2, 1, tzinfo=UTC)
    for day in (0, 1, 2, 3):
        store.insert_metrics_snapshot(_metrics(base + timedelta(days=day)))

    window = store.list_metrics_snapshots(
        start=base + timedelta(days=1), end=base + timedelta(days=2)
    )

    assert [snapshot.calculated_at for snapshot in window] == [
        base + timedelta(days=1),
        base + timedelta(days=2),
    ]
    assert all(snapshot.id is not None for snapshot in window)
    assert len(store.list_metrics_snapshots()) == 4


# ---------------------------------------------------------------------------
# Configuration registry
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_get_active_config_seeds_default(store: SQLiteStore) -> None:
    """Test an empty registry activates the default configuration once."""
    active = store.get_active_config()

    assert active.is_active
    assert active.id is not None
    assert active.overall_match_threshold == DeduplicationConfig().overall_match_threshold
    assert store.get_active_config().id == active.id
    assert len(store.list_configs()) == 1


@pytest.mark.unit
def test_save_config_creates_inactive_versions(store: SQLiteStore) -> None:
    """Test each save of a name is the next inactive version."""
    first = store.save_config(DeduplicationConfig(name="strict", overall_match_threshold=0.9))
    second = store.save_config(DeduplicationConfig(name="strict", overall_match_threshold=0.92))

    assert (first.version, second.version) == (1, 2)
    assert not first.is_active and not second.is_active
    assert first.id != second.id
    assert store.get_config(second.id).overall_match_threshold == 0.92


@pytest.mark.unit
def test_activate_config_keeps_single_active(store: SQLiteStore) -> None:
    """Test activation moves the active flag to exactly one version."""
    default = store.get_active_config()
    strict = store.save_config(DeduplicationConfig(name="strict", review_threshold=0.7))

    activated = store.activate_config(strict.id)

    assert activated.is_active
    assert store.get_active_config().id == strict.id
    assert not store.get_config(default.id).is_active
    assert sum(config.is_active for config in store.list_configs()) == 1


@pytest.mark.unit
def test_deactivate_then_active_reseeds_default(store: SQLiteStore) -> None:
    """Test deactivating the only active config falls back to a fresh default."""
    strict = store.save_config(DeduplicationConfig(name="strict"))
    store.activate_config(strict.id)

    store.deactivate_config(strict.id)
    active = store.get_active_config()

    assert active.name == "default"
    assert active.id != strict.id


@pytest.mark.unit
def test_unknown_config_id_raises(store: SQLiteStore) -> None:
    """Test every id-based config operation rejects unknown ids."""
    for operation in (store.get_config, store.activate_config, store.deactivate_config):
        with pytest.raises(ConfigNotFoundError):
            operation("missing")


# ---------------------------------------------------------------------------
# Listing sources
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_in_memory_source_candidates(make_listing: Callable[..., ListingData]) -> None:
    """Test candidates exclude the listing itself and honour the filter."""
    listings = [make_listing("A"), make_listing("B", make="Ford"), make_listing("C")]
    source = InMemoryListingSource(listings, candidate_filter=lambda a, b: a.make == b.make)

    assert isinstance(source, ListingSource)
    assert len(source) == 3
    assert source.listing_ids == ["A", "B", "C"]
    assert [other.id for other in source.get_candidates(listings[0])] == ["C"]


@pytest.mark.unit
def test_in_memory_source_errors(make_listing: Callable[..., ListingData]) -> None:
    """Test unknown ids and duplicate ids are rejected."""
    source = InMemoryListingSource([make_listing("A")])

    with pytest.raises(CandidateFetchError, match="Listing not found: Z"):
        source.get_listing("Z")
    with pytest.raises(ValueError, match="Duplicate listing id"):
        InMemoryListingSource([make_listing("A"), make_listing("A")])
