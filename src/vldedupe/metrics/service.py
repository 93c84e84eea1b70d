"""Accuracy metrics from persisted decisions and review outcomes.

Counting rules:
- total matches = DuplicateMatches + ReviewItems ever created
- confirmed duplicates = SameVehicle resolutions + confirmed DuplicateMatches
  whose pair has no SameVehicle resolution (so no pair counts twice)
- confirmed non-duplicates = DifferentVehicle resolutions
- pending reviews = open ReviewItems
"""

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from vldedupe.audit.logger import AuditLogger
from vldedupe.metrics.models import AccuracyMetrics, ThresholdPoint, safe_ratio

if TYPE_CHECKING:
    from vldedupe.storage.sqlite import SQLiteStore

__all__ = ["MetricsService", "DEFAULT_ANALYSIS_THRESHOLDS"]

DEFAULT_ANALYSIS_THRESHOLDS: tuple[float, ...] = tuple(round(0.5 + 0.05 * i, 2) for i in range(10))


class MetricsService:
    """Compute, record and analyse accuracy metrics.

    Parameters
    ----------
    store : SQLiteStore
        Source of outcome counts and snapshot storage.
    logger : AuditLogger | None, optional
        Audit logger for snapshot events.
    """

    def __init__(self, store: "SQLiteStore", logger: AuditLogger | None = None) -> None:
        self.store = store
        self.logger = logger

    def calculate_current(self) -> AccuracyMetrics:
        """Metrics over everything persisted so far (not recorded)."""
        counts = self.store.outcome_counts()
        return AccuracyMetrics.calculate(
            total_matches=counts["duplicate_matches"] + counts["review_items"],
            confirmed_duplicates=counts["same_vehicle"] + counts["confirmed_unreviewed"],
            confirmed_not_duplicates=counts["different_vehicle"],
            pending_reviews=counts["pending_reviews"],
            average_score=counts["average_score"],
        )

    def record_snapshot(self) -> AccuracyMetrics:
        """Calculate current metrics and store them as a snapshot."""
        snapshot = self.store.insert_metrics_snapshot(self.calculate_current())

        if self.logger:
            self.logger.event(
                "metrics_snapshot_recorded",
                data=snapshot.to_dict(),
                stage="metrics",
            )
        return snapshot

    def history(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[AccuracyMetrics]:
        """Recorded snapshots in [start, end], oldest first."""
        return self.store.list_metrics_snapshots(start=start, end=end)

    def threshold_analysis(
        self,
        thresholds: Sequence[float] = DEFAULT_ANALYSIS_THRESHOLDS,
    ) -> list[ThresholdPoint]:
        """Precision of labeled pairs at each score cut-off.

        Parameters
        ----------
        thresholds : Sequence[float], optional
            Cut-offs to evaluate (default 0.50, 0.55, ..., 0.95).

        Returns
        -------
        list[ThresholdPoint]
            One point per cut-off, ascending.
        """
        labeled = self.store.labeled_scores()
        points = []
        for threshold in sorted(thresholds):
            above = [is_same for score, is_same in labeled if score >= threshold]
            confirmed = sum(above)
            points.append(
                ThresholdPoint(
                    threshold=threshold,
                    labeled_pairs=len(above),
                    confirmed_duplicates=confirmed,
                    precision=safe_ratio(confirmed, len(above)),
                )
            )
        return points
