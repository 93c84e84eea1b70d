"""Data models for the deduplication audit trail."""

from dataclasses import dataclass
from typing import Any

__all__ = ["LogEvent", "LOG_LEVELS"]

LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


@dataclass
class LogEvent:
    """Structured log event.

    Attributes
    ----------
    ts : str
        ISO8601 timestamp with microseconds (UTC).
    run_id : str
        Unique run identifier.
    level : str
        Log level ("DEBUG", "INFO", "WARN", "ERROR").
    event : str
        Event type identifier (e.g., "duplicate_found").
    data : dict[str, Any]
        Event-specific data payload.
    stage : str | None
        Pipeline stage ("detection", "review", "metrics", ...).
    listing_id : str | None
        Listing identifier if the event concerns a single listing.
    """

    ts: str
    run_id: str
    level: str
    event: str
    data: dict[str, Any]
    stage: str | None = None
    listing_id: str | None = None
