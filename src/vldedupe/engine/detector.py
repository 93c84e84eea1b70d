"""Duplicate detection orchestrator.

For each listing:
    1. Read the active config snapshot (once per run or batch).
    2. Score the listing against its candidates.
    3. Classify every result: duplicate -> upsert DuplicateMatch,
       review band -> upsert pending ReviewItem, otherwise discard.
    4. Aggregate into a DeduplicationResult.

A failure while processing one listing is captured into that listing's
result and never aborts sibling listings of a batch.
"""

import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from vldedupe.audit.helpers import format_error
from vldedupe.audit.logger import AuditLogger
from vldedupe.config import DeduplicationConfig
from vldedupe.decision import (
    Decision,
    build_duplicate_match,
    build_review_item,
    make_decision,
)
from vldedupe.engine.results import BatchSummary, DeduplicationResult
from vldedupe.models import ListingData
from vldedupe.scoring import MatchResult, find_potential_matches
from vldedupe.storage.listings import ListingSource
from vldedupe.storage.sqlite import SQLiteStore

__all__ = ["DuplicateDetector", "DEFAULT_BATCH_WORKERS"]

DEFAULT_BATCH_WORKERS = 4

_STAGE = "detection"


class DuplicateDetector:
    """Run the matching engine over candidate sets and persist decisions.

    Parameters
    ----------
    store : SQLiteStore
        Persistence for matches, review items and the active config.
    source : ListingSource | None, optional
        Listing lookup; required by ``process_batch``.
    logger : AuditLogger | None, optional
        Audit logger for detection events.
    max_workers : int, optional
        Listings processed concurrently by ``process_batch``.
    scoring_workers : int | None, optional
        Process pool size for scoring large candidate sets (1 disables it).
    """

    def __init__(
        self,
        store: SQLiteStore,
        source: ListingSource | None = None,
        logger: AuditLogger | None = None,
        max_workers: int = DEFAULT_BATCH_WORKERS,
        scoring_workers: int | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.store = store
        self.source = source
        self.logger = logger
        self.max_workers = max_workers
        self.scoring_workers = scoring_workers

    def detect_duplicates(
        self,
        listing: ListingData,
        candidates: Sequence[ListingData],
        config: DeduplicationConfig | None = None,
    ) -> DeduplicationResult:
        """Detect and persist duplicates of one listing among candidates.

        Parameters
        ----------
        listing : ListingData
            Listing being checked.
        candidates : Sequence[ListingData]
            Candidate listings from the external lookup.
        config : DeduplicationConfig | None, optional
            Config snapshot; the store's active config is read if None.

        Returns
        -------
        DeduplicationResult
            Stored matches and review items; ``success=False`` with the
            error message if anything raised.
        """
        start = time.perf_counter()
        try:
            snapshot = config if config is not None else self.store.get_active_config()
            return self._detect(listing, candidates, snapshot, start, self.scoring_workers)
        except Exception as e:
            return self._failed(listing.id, e, start)

    def process_batch(
        self,
        listing_ids: Sequence[str],
        timeout: float | None = None,
    ) -> list[DeduplicationResult]:
        """Run detection for many listings fetched from the listing source.

        Parameters
        ----------
        listing_ids : Sequence[str]
            Listings to process.
        timeout : float | None, optional
            Per-listing timeout passed to listing and candidate lookups.

        Returns
        -------
        list[DeduplicationResult]
            One result per listing id, in input order.

        Raises
        ------
        ValueError
            If the detector has no listing source.
        """
        if self.source is None:
            raise ValueError("process_batch requires a listing source")

        config = self.store.get_active_config()
        self._log("batch_started", {"listings": len(listing_ids), "config": _config_ref(config)})
        start = time.perf_counter()

        workers = max(1, min(self.max_workers, len(listing_ids)))
        scoring_workers = self.scoring_workers if workers == 1 else 1
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(
                executor.map(
                    lambda listing_id: self._process_one(
                        listing_id, config, timeout, scoring_workers
                    ),
                    listing_ids,
                )
            )

        summary = BatchSummary.from_results(results)
        self._log(
            "batch_finished",
            {**summary.to_dict(), "duration_seconds": time.perf_counter() - start},
        )
        return results

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    def _process_one(
        self,
        listing_id: str,
        config: DeduplicationConfig,
        timeout: float | None,
        scoring_workers: int | None,
    ) -> DeduplicationResult:
        start = time.perf_counter()
        try:
            listing = self.source.get_listing(listing_id, timeout=timeout)
            candidates = self.source.get_candidates(listing, timeout=timeout)
            return self._detect(listing, candidates, config, start, scoring_workers)
        except Exception as e:
            return self._failed(listing_id, e, start)

    def _detect(
        self,
        listing: ListingData,
        candidates: Sequence[ListingData],
        config: DeduplicationConfig,
        start: float,
        scoring_workers: int | None,
    ) -> DeduplicationResult:
        self._log(
            "detection_started",
            {"candidates": len(candidates), "config": _config_ref(config)},
            listing_id=listing.id,
        )

        results = find_potential_matches(
            listing, candidates, config, max_workers=scoring_workers
        )
        outcome = DeduplicationResult(listing_id=listing.id, candidates_checked=len(results))

        for result in results:
            decision = make_decision(result)
            if decision is Decision.DUPLICATE:
                self._record_duplicate(result, config, outcome)
            elif decision is Decision.REVIEW:
                self._record_review(result, outcome)

        outcome.duration_seconds = time.perf_counter() - start
        self._log(
            "detection_finished",
            {
                "candidates_checked": outcome.candidates_checked,
                "duplicates": len(outcome.duplicates),
                "review_items": len(outcome.review_items),
                "duration_seconds": outcome.duration_seconds,
            },
            listing_id=listing.id,
        )
        return outcome

    def _record_duplicate(
        self,
        result: MatchResult,
        config: DeduplicationConfig,
        outcome: DeduplicationResult,
    ) -> None:
        match = build_duplicate_match(result, config)
        stored = self.store.upsert_duplicate_match(match)
        outcome.duplicates.append(stored)
        self._log(
            "duplicate_found",
            {
                "match_id": stored.id,
                "target_id": result.target_id,
                "score": stored.score,
                "confidence": stored.confidence.value,
                "reasons": list(stored.breakdown.reasons),
                "created": stored.id == match.id,
            },
            listing_id=result.source_id,
        )

    def _record_review(self, result: MatchResult, outcome: DeduplicationResult) -> None:
        item = build_review_item(result)
        stored = self.store.upsert_review_item(item)
        data = {
            "review_id": stored.id,
            "target_id": result.target_id,
            "score": result.overall_score,
            "priority": stored.priority,
        }

        if not stored.is_pending:
            self._log(
                "review_already_closed",
                {**data, "status": stored.status.value},
                listing_id=result.source_id,
            )
            return

        outcome.review_items.append(stored)
        self._log(
            "review_required",
            {**data, "created": stored.id == item.id},
            listing_id=result.source_id,
        )

    def _failed(self, listing_id: str, error: Exception, start: float) -> DeduplicationResult:
        message = format_error(error)
        self._log("listing_failed", {"error": message}, level="ERROR", listing_id=listing_id)
        return DeduplicationResult.failed(
            listing_id, message, duration_seconds=time.perf_counter() - start
        )

    def _log(
        self,
        event_type: str,
        data: dict[str, Any],
        level: str = "INFO",
        listing_id: str | None = None,
    ) -> None:
        if not self.logger:
            return
        self.logger.event(event_type, data=data, level=level, stage=_STAGE, listing_id=listing_id)


def _config_ref(config: DeduplicationConfig) -> dict[str, Any]:
    return {"id": config.id, "name": config.name, "version": config.version}
