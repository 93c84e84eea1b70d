"""Public API for scoring and deduplicating vehicle listings.

This module provides the main public API for vldedupe, enabling:
- Reading listings from JSONL files
- Scoring a single listing pair
- Running batch duplicate detection into a SQLite store
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from vldedupe.config import DeduplicationConfig
from vldedupe.models import ListingData
from vldedupe.scoring import MatchResult, calculate_match_score

if TYPE_CHECKING:
    from vldedupe.engine.results import DeduplicationResult
    from vldedupe.storage.listings import CandidateFilter

__all__ = [
    "ListingParseError",
    "read_listings",
    "score_pair",
    "dedupe",
]


class ListingParseError(ValueError):
    """Raised when a listings file holds an invalid record."""

    def __init__(self, message: str, file: str | None = None, line: int | None = None) -> None:
        """Initialize parse error.

        Parameters
        ----------
        message : str
            Error message.
        file : str | None, optional
            File where the error occurred.
        line : int | None, optional
            1-based line number of the bad record.
        """
        super().__init__(message)
        self.file = file
        self.line = line


def read_listings(path: str | Path) -> list[ListingData]:
    """Read listings from a JSONL file (one listing object per line).

    Parameters
    ----------
    path : str | Path
        JSONL file. Blank lines are skipped; unknown keys are ignored.

    Returns
    -------
    list[ListingData]
        Listings in file order.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ListingParseError
        If a line is not valid JSON or not a valid listing.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Listings file not found: {path}")

    listings = []
    with path.open("r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                listings.append(ListingData.from_dict(json.loads(line)))
            except (json.JSONDecodeError, TypeError, ValueError) as e:
                raise ListingParseError(
                    f"{path}:{line_number}: invalid listing: {e}",
                    file=str(path),
                    line=line_number,
                ) from e
    return listings


def score_pair(
    source: ListingData,
    target: ListingData,
    config: DeduplicationConfig | None = None,
) -> MatchResult:
    """Score one listing pair (default configuration if none is given).

    Examples
    --------
    >>> from vldedupe import ListingData, score_pair
    >>> a = ListingData(id="1", title="2019 Honda Civic LX", source="a", vin="2HGFC2F59KH123456")
    >>> b = ListingData(id="2", title="Honda Civic 2019", source="b", vin="2HGFC2F59KH123456")
    >>> score_pair(a, b).is_above_threshold
    True
    """
    return calculate_match_score(source, target, config or DeduplicationConfig())


def dedupe(
    listings: Iterable[ListingData],
    db_path: str | Path,
    *,
    log_path: str | Path | None = None,
    candidate_filter: CandidateFilter | None = None,
    max_workers: int = 4,
    timeout: float | None = None,
) -> list[DeduplicationResult]:
    """Run duplicate detection for every listing against the others.

    Parameters
    ----------
    listings : Iterable[ListingData]
        Listings to deduplicate (ids must be unique).
    db_path : str | Path
        SQLite store receiving matches and review items.
    log_path : str | Path | None, optional
        JSONL audit log, by default None.
    candidate_filter : CandidateFilter | None, optional
        Predicate restricting candidates; all other listings if None.
    max_workers : int, optional
        Listings processed concurrently.
    timeout : float | None, optional
        Per-listing lookup timeout.

    Returns
    -------
    list[DeduplicationResult]
        One result per listing, in input order.
    """
    from vldedupe.audit import AuditLogger
    from vldedupe.engine import DuplicateDetector
    from vldedupe.storage import InMemoryListingSource, SQLiteStore

    source = InMemoryListingSource(listings, candidate_filter=candidate_filter)
    logger = AuditLogger(Path(log_path)) if log_path else None
    try:
        with SQLiteStore(db_path) as store:
            detector = DuplicateDetector(
                store, source=source, logger=logger, max_workers=max_workers
            )
            return detector.process_batch(source.listing_ids, timeout=timeout)
    finally:
        if logger:
            logger.close()
