"""SQLite persistence for matches, review items, configs and metrics.

Concurrency model:
- one connection per thread (``threading.local``), WAL journal;
- uniqueness of a canonical pair is enforced by UNIQUE constraints and
  writes are ``INSERT ... ON CONFLICT DO UPDATE`` upserts, so concurrent
  detections of the same pair converge on one row;
- review transitions are conditional updates (``WHERE status = 'pending'``);
- multi-statement writes run inside ``BEGIN IMMEDIATE`` transactions.
"""

import json
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from vldedupe.config import (
    ConfigNotFoundError,
    DeduplicationConfig,
)
from vldedupe.decision.models import DuplicateMatch
from vldedupe.metrics.models import AccuracyMetrics
from vldedupe.models import canonical_pair, new_entity_id
from vldedupe.review.models import ResolutionDecision, ReviewItem, ReviewStatus
from vldedupe.utils import get_iso_timestamp, utc_now

__all__ = ["SQLiteStore", "DEFAULT_BUSY_TIMEOUT"]

DEFAULT_BUSY_TIMEOUT = 30.0

_CONFIG_IDENTITY_FIELDS = ("id", "name", "version", "is_active", "created_at")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS duplicate_matches (
    id TEXT PRIMARY KEY,
    listing_a TEXT NOT NULL,
    listing_b TEXT NOT NULL,
    score REAL NOT NULL,
    confidence TEXT NOT NULL,
    breakdown TEXT NOT NULL,
    detected_at TEXT NOT NULL,
    is_confirmed INTEGER NOT NULL DEFAULT 0,
    UNIQUE (listing_a, listing_b)
);

CREATE TABLE IF NOT EXISTS review_items (
    id TEXT PRIMARY KEY,
    listing_a TEXT NOT NULL,
    listing_b TEXT NOT NULL,
    score REAL NOT NULL,
    priority INTEGER NOT NULL,
    status TEXT NOT NULL,
    decision TEXT NOT NULL,
    reviewer TEXT,
    resolution_notes TEXT,
    dismiss_reason TEXT,
    notes TEXT,
    created_at TEXT NOT NULL,
    closed_at TEXT,
    UNIQUE (listing_a, listing_b)
);

CREATE INDEX IF NOT EXISTS idx_review_items_queue
    ON review_items (status, priority DESC, score DESC);

CREATE TABLE IF NOT EXISTS dedup_configs (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    version INTEGER NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    params TEXT NOT NULL,
    UNIQUE (name, version)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_dedup_configs_single_active
    ON dedup_configs (is_active) WHERE is_active = 1;

CREATE TABLE IF NOT EXISTS metrics_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    calculated_at TEXT NOT NULL,
    total_matches INTEGER NOT NULL,
    confirmed_duplicates INTEGER NOT NULL,
    confirmed_not_duplicates INTEGER NOT NULL,
    pending_reviews INTEGER NOT NULL,
    precision REAL NOT NULL,
    recall REAL NOT NULL,
    f1_score REAL NOT NULL,
    average_score REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_metrics_snapshots_time
    ON metrics_snapshots (calculated_at);
"""


class SQLiteStore:
    """Thread-safe SQLite store.

    Parameters
    ----------
    db_path : Path | str
        Database file (parent directories are created).
    timeout : float, optional
        Seconds to wait on a locked database.
    """

    def __init__(self, db_path: Path | str, timeout: float = DEFAULT_BUSY_TIMEOUT) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection().executescript(_SCHEMA)

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close every per-thread connection."""
        with self._connections_lock:
            for connection in self._connections:
                connection.close()
            self._connections.clear()
        self._local = threading.local()

    # -----------------------------------------------------------------------
    # Connection handling
    # -----------------------------------------------------------------------

    def _connection(self) -> sqlite3.Connection:
        connection = getattr(self._local, "connection", None)
        if connection is None:
            connection = sqlite3.connect(
                self.db_path,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            connection.row_factory = sqlite3.Row
            connection.execute("PRAGMA journal_mode=WAL")
            connection.execute("PRAGMA foreign_keys=ON")
            self._local.connection = connection
            with self._connections_lock:
                self._connections.append(connection)
        return connection

    @contextmanager
    def _transaction(self, mode: str = "IMMEDIATE") -> Iterator[sqlite3.Connection]:
        connection = self._connection()
        connection.execute(f"BEGIN {mode}")
        try:
            yield connection
            connection.execute("COMMIT")
        except BaseException:
            # A failed COMMIT (e.g. SQLITE_BUSY) leaves the transaction open
            if connection.in_transaction:
                connection.execute("ROLLBACK")
            raise

    # -----------------------------------------------------------------------
    # Duplicate matches
    # -----------------------------------------------------------------------

    def upsert_duplicate_match(self, match: DuplicateMatch) -> DuplicateMatch:
        """Insert a match or refresh the existing one for the same pair.

        Score, confidence and breakdown are updated; id, detection time and
        confirmation of an existing row are kept.

        Returns
        -------
        DuplicateMatch
            The stored row.
        """
        listing_a, listing_b = canonical_pair(match.listing_a, match.listing_b)
        with self._transaction() as connection:
            connection.execute(
                """
                INSERT INTO duplicate_matches
                    (id, listing_a, listing_b, score, confidence, breakdown, detected_at,
                     is_confirmed)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (listing_a, listing_b) DO UPDATE SET
                    score = excluded.score,
                    confidence = excluded.confidence,
                    breakdown = excluded.breakdown
                """,
                (
                    match.id,
                    listing_a,
                    listing_b,
                    match.score,
                    match.confidence.value,
                    json.dumps(match.breakdown.to_dict(), sort_keys=True),
                    get_iso_timestamp(match.detected_at or utc_now()),
                    int(match.is_confirmed),
                ),
            )
            row = connection.execute(
                "SELECT * FROM duplicate_matches WHERE listing_a = ? AND listing_b = ?",
                (listing_a, listing_b),
            ).fetchone()
        return _match_from_row(row)

    def get_duplicate_match(self, listing_id_a: str, listing_id_b: str) -> DuplicateMatch | None:
        """Match for a pair (either order), or None."""
        listing_a, listing_b = canonical_pair(listing_id_a, listing_id_b)
        row = (
            self._connection()
            .execute(
                "SELECT * FROM duplicate_matches WHERE listing_a = ? AND listing_b = ?",
                (listing_a, listing_b),
            )
            .fetchone()
        )
        return _match_from_row(row) if row else None

    def list_duplicate_matches(self, listing_id: str | None = None) -> list[DuplicateMatch]:
        """All matches (optionally involving one listing), highest score first."""
        query = "SELECT * FROM duplicate_matches"
        params: tuple[Any, ...] = ()
        if listing_id is not None:
            query += " WHERE listing_a = ? OR listing_b = ?"
            params = (listing_id, listing_id)
        query += " ORDER BY score DESC, listing_a, listing_b"
        rows = self._connection().execute(query, params).fetchall()
        return [_match_from_row(row) for row in rows]

    # -----------------------------------------------------------------------
    # Review items
    # -----------------------------------------------------------------------

    def upsert_review_item(self, item: ReviewItem) -> ReviewItem:
        """Insert a pending item or refresh score/priority of the pending one.

        A closed (resolved or dismissed) item for the pair is never reopened
        and is returned unchanged.
        """
        listing_a, listing_b = canonical_pair(item.listing_a, item.listing_b)
        data = item.to_dict()
        with self._transaction() as connection:
            connection.execute(
                """
                INSERT INTO review_items
                    (id, listing_a, listing_b, score, priority, status, decision, reviewer,
                     resolution_notes, dismiss_reason, notes, created_at, closed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (listing_a, listing_b) DO UPDATE SET
                    score = excluded.score,
                    priority = excluded.priority
                WHERE review_items.status = 'pending'
                """,
                (
                    data["id"],
                    listing_a,
                    listing_b,
                    data["score"],
                    data["priority"],
                    data["status"],
                    data["decision"],
                    data["reviewer"],
                    data["resolution_notes"],
                    data["dismiss_reason"],
                    data["notes"],
                    data["created_at"],
                    data["closed_at"],
                ),
            )
            row = connection.execute(
                "SELECT * FROM review_items WHERE listing_a = ? AND listing_b = ?",
                (listing_a, listing_b),
            ).fetchone()
        return ReviewItem.from_dict(dict(row))

    def get_review_item(self, review_id: str) -> ReviewItem | None:
        """Review item by id, or None."""
        row = (
            self._connection()
            .execute("SELECT * FROM review_items WHERE id = ?", (review_id,))
            .fetchone()
        )
        return ReviewItem.from_dict(dict(row)) if row else None

    def get_review_for_pair(self, listing_id_a: str, listing_id_b: str) -> ReviewItem | None:
        """Review item for a pair (either order), or None."""
        listing_a, listing_b = canonical_pair(listing_id_a, listing_id_b)
        row = (
            self._connection()
            .execute(
                "SELECT * FROM review_items WHERE listing_a = ? AND listing_b = ?",
                (listing_a, listing_b),
            )
            .fetchone()
        )
        return ReviewItem.from_dict(dict(row)) if row else None

    def list_review_items(
        self,
        status: ReviewStatus | None = None,
        skip: int = 0,
        take: int | None = None,
    ) -> list[ReviewItem]:
        """Review queue ordered by priority, then score (both descending).

        Parameters
        ----------
        status : ReviewStatus | None, optional
            Restrict to one status.
        skip : int, optional
            Items to skip.
        take : int | None, optional
            Maximum items to return (all if None).
        """
        if skip < 0 or (take is not None and take < 0):
            raise ValueError("skip and take must be non-negative")

        query = "SELECT * FROM review_items"
        params: list[Any] = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(ReviewStatus(status).value)
        query += " ORDER BY priority DESC, score DESC, created_at, id LIMIT ? OFFSET ?"
        params.extend([take if take is not None else -1, skip])

        rows = self._connection().execute(query, params).fetchall()
        return [ReviewItem.from_dict(dict(row)) for row in rows]

    def count_review_items(self, status: ReviewStatus | None = None) -> int:
        """Number of review items (optionally with one status)."""
        if status is None:
            row = self._connection().execute("SELECT COUNT(*) FROM review_items").fetchone()
        else:
            row = (
                self._connection()
                .execute(
                    "SELECT COUNT(*) FROM review_items WHERE status = ?",
                    (ReviewStatus(status).value,),
                )
                .fetchone()
            )
        return int(row[0])

    def save_review_transition(self, item: ReviewItem) -> bool:
        """Persist a resolved/dismissed item if the stored row is still pending.

        A SameVehicle resolution also confirms the DuplicateMatch of the pair,
        in the same transaction.

        Returns
        -------
        bool
            False if the stored item was no longer pending (or unknown).
        """
        data = item.to_dict()
        with self._transaction() as connection:
            cursor = connection.execute(
                """
                UPDATE review_items SET
                    status = ?, decision = ?, reviewer = ?, resolution_notes = ?,
                    dismiss_reason = ?, notes = ?, closed_at = ?
                WHERE id = ? AND status = 'pending'
                """,
                (
                    data["status"],
                    data["decision"],
                    data["reviewer"],
                    data["resolution_notes"],
                    data["dismiss_reason"],
                    data["notes"],
                    data["closed_at"],
                    item.id,
                ),
            )
            if cursor.rowcount != 1:
                return False

            if item.decision is ResolutionDecision.SAME_VEHICLE:
                connection.execute(
                    """
                    UPDATE duplicate_matches SET is_confirmed = 1
                    WHERE listing_a = ? AND listing_b = ?
                    """,
                    (item.listing_a, item.listing_b),
                )
        return True

    def save_review_notes(self, item: ReviewItem) -> bool:
        """Persist the notes of a pending item; False if it is no longer pending."""
        cursor = self._connection().execute(
            "UPDATE review_items SET notes = ? WHERE id = ? AND status = 'pending'",
            (item.notes, item.id),
        )
        return cursor.rowcount == 1

    # -----------------------------------------------------------------------
    # Metrics
    # -----------------------------------------------------------------------

    def outcome_counts(self) -> dict[str, Any]:
        """Counts feeding accuracy metrics, read in one transaction.

        Returns
        -------
        dict[str, Any]
            ``duplicate_matches``, ``review_items``, ``pending_reviews``,
            ``same_vehicle``, ``different_vehicle``, ``confirmed_unreviewed``
            (confirmed matches without a SameVehicle review) and
            ``average_score`` (of duplicate matches, 0.0 if none).
        """
        with self._transaction("DEFERRED") as connection:
            matches, average_score = connection.execute(
                "SELECT COUNT(*), AVG(score) FROM duplicate_matches"
            ).fetchone()
            reviews = connection.execute(
                """
                SELECT
                    COUNT(*),
                    COALESCE(SUM(status = 'pending'), 0),
                    COALESCE(SUM(status = 'resolved' AND decision = 'same_vehicle'), 0),
                    COALESCE(SUM(status = 'resolved' AND decision = 'different_vehicle'), 0)
                FROM review_items
                """
            ).fetchone()
            confirmed_unreviewed = connection.execute(
                """
                SELECT COUNT(*) FROM duplicate_matches AS m
                WHERE m.is_confirmed = 1 AND NOT EXISTS (
                    SELECT 1 FROM review_items AS r
                    WHERE r.listing_a = m.listing_a AND r.listing_b = m.listing_b
                      AND r.status = 'resolved' AND r.decision = 'same_vehicle'
                )
                """
            ).fetchone()[0]

        return {
            "duplicate_matches": int(matches),
            "review_items": int(reviews[0]),
            "pending_reviews": int(reviews[1]),
            "same_vehicle": int(reviews[2]),
            "different_vehicle": int(reviews[3]),
            "confirmed_unreviewed": int(confirmed_unreviewed),
            "average_score": float(average_score) if average_score is not None else 0.0,
        }

    def labeled_scores(self) -> list[tuple[float, bool]]:
        """(score, is_same_vehicle) of every pair with a known outcome."""
        rows = self._connection().execute(
            """
            SELECT score, decision = 'same_vehicle' FROM review_items
            WHERE status = 'resolved'
            UNION ALL
            SELECT m.score, 1 FROM duplicate_matches AS m
            WHERE m.is_confirmed = 1 AND NOT EXISTS (
                SELECT 1 FROM review_items AS r
                WHERE r.listing_a = m.listing_a AND r.listing_b = m.listing_b
                  AND r.status = 'resolved'
            )
            """
        ).fetchall()
        return [(float(score), bool(is_same)) for score, is_same in rows]

    def insert_metrics_snapshot(self, metrics: AccuracyMetrics) -> AccuracyMetrics:
        """Record a snapshot; returns it with its id."""
        cursor = self._connection().execute(
            """
            INSERT INTO metrics_snapshots
                (calculated_at, total_matches, confirmed_duplicates, confirmed_not_duplicates,
                 pending_reviews, precision, recall, f1_score, average_score)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                get_iso_timestamp(metrics.calculated_at),
                metrics.total_matches,
                metrics.confirmed_duplicates,
                metrics.confirmed_not_duplicates,
                metrics.pending_reviews,
                metrics.precision,
                metrics.recall,
                metrics.f1_score,
                metrics.average_score,
            ),
        )
        return replace(metrics, id=cursor.lastrowid)

    def list_metrics_snapshots(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[AccuracyMetrics]:
        """Snapshots with start <= calculated_at <= end, oldest first."""
        query = "SELECT * FROM metrics_snapshots WHERE 1 = 1"
        params: list[Any] = []
        if start is not None:
            query += " AND calculated_at >= ?"
            params.append(get_iso_timestamp(start))
        if end is not None:
            query += " AND calculated_at <= ?"
            params.append(get_iso_timestamp(end))
        query += " ORDER BY calculated_at, id"
        rows = self._connection().execute(query, params).fetchall()
        return [AccuracyMetrics.from_dict(dict(row)) for row in rows]

    # -----------------------------------------------------------------------
    # Configuration registry
    # -----------------------------------------------------------------------

    def save_config(self, config: DeduplicationConfig) -> DeduplicationConfig:
        """Store a config as the next (inactive) version of its name."""
        with self._transaction() as connection:
            next_version = connection.execute(
                "SELECT COALESCE(MAX(version), 0) + 1 FROM dedup_configs WHERE name = ?",
                (config.name,),
            ).fetchone()[0]
            stored = replace(
                config,
                id=new_entity_id(),
                version=int(next_version),
                is_active=False,
                created_at=utc_now(),
            )
            _insert_config(connection, stored)
        return stored

    def get_config(self, config_id: str) -> DeduplicationConfig:
        """Config by id.

        Raises
        ------
        ConfigNotFoundError
            If the id is unknown.
        """
        row = (
            self._connection()
            .execute("SELECT * FROM dedup_configs WHERE id = ?", (config_id,))
            .fetchone()
        )
        if row is None:
            raise ConfigNotFoundError(f"Config not found: {config_id}")
        return _config_from_row(row)

    def list_configs(self) -> list[DeduplicationConfig]:
        """All configs, oldest first."""
        rows = (
            self._connection()
            .execute("SELECT * FROM dedup_configs ORDER BY created_at, name, version")
            .fetchall()
        )
        return [_config_from_row(row) for row in rows]

    def activate_config(self, config_id: str) -> DeduplicationConfig:
        """Make one config the only active one.

        Raises
        ------
        ConfigNotFoundError
            If the id is unknown.
        """
        with self._transaction() as connection:
            exists = connection.execute(
                "SELECT 1 FROM dedup_configs WHERE id = ?", (config_id,)
            ).fetchone()
            if exists is None:
                raise ConfigNotFoundError(f"Config not found: {config_id}")
            connection.execute("UPDATE dedup_configs SET is_active = 0 WHERE is_active = 1")
            connection.execute("UPDATE dedup_configs SET is_active = 1 WHERE id = ?", (config_id,))
        return self.get_config(config_id)

    def deactivate_config(self, config_id: str) -> DeduplicationConfig:
        """Clear the active flag of a config.

        Raises
        ------
        ConfigNotFoundError
            If the id is unknown.
        """
        cursor = self._connection().execute(
            "UPDATE dedup_configs SET is_active = 0 WHERE id = ?", (config_id,)
        )
        if cursor.rowcount != 1:
            raise ConfigNotFoundError(f"Config not found: {config_id}")
        return self.get_config(config_id)

    def get_active_config(self) -> DeduplicationConfig:
        """The active config; the default config is stored and activated if none is."""
        row = (
            self._connection()
            .execute("SELECT * FROM dedup_configs WHERE is_active = 1")
            .fetchone()
        )
        if row is not None:
            return _config_from_row(row)

        with self._transaction() as connection:
            row = connection.execute("SELECT * FROM dedup_configs WHERE is_active = 1").fetchone()
            if row is not None:
                return _config_from_row(row)

            next_version = connection.execute(
                "SELECT COALESCE(MAX(version), 0) + 1 FROM dedup_configs WHERE name = ?",
                (DeduplicationConfig().name,),
            ).fetchone()[0]
            seeded = replace(
                DeduplicationConfig.default(),
                id=new_entity_id(),
                version=int(next_version),
                is_active=True,
            )
            _insert_config(connection, seeded)
        return seeded


# ---------------------------------------------------------------------------
# Row conversion
# ---------------------------------------------------------------------------


def _match_from_row(row: sqlite3.Row) -> DuplicateMatch:
    data = dict(row)
    data["breakdown"] = json.loads(data["breakdown"])
    data["is_confirmed"] = bool(data["is_confirmed"])
    return DuplicateMatch.from_dict(data)


def _insert_config(connection: sqlite3.Connection, config: DeduplicationConfig) -> None:
    params = {
        key: value for key, value in config.to_dict().items() if key not in _CONFIG_IDENTITY_FIELDS
    }
    connection.execute(
        """
        INSERT INTO dedup_configs (id, name, version, is_active, created_at, params)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            config.id,
            config.name,
            config.version,
            int(config.is_active),
            get_iso_timestamp(config.created_at or utc_now()),
            json.dumps(params, sort_keys=True),
        ),
    )


def _config_from_row(row: sqlite3.Row) -> DeduplicationConfig:
    data = json.loads(row["params"])
    data.update(
        id=row["id"],
        name=row["name"],
        version=row["version"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
    )
    return DeduplicationConfig.from_dict(data)
