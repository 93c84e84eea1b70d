"""Timestamp utilities for vldedupe.

All timestamps are timezone-aware UTC. They are stored and logged as
ISO8601 strings with a trailing ``Z``.
"""

from datetime import UTC, datetime

__all__ = ["utc_now", "get_iso_timestamp", "parse_iso_timestamp"]


def utc_now() -> datetime:
    """Return the current timezone-aware UTC datetime."""
    return datetime.now(UTC)


def get_iso_timestamp(moment: datetime | None = None) -> str:
    """Format a datetime (default: now) as ISO8601 with microseconds.

    Parameters
    ----------
    moment : datetime | None, optional
        Timezone-aware datetime to format. Uses the current time if None.

    Returns
    -------
    str
        ISO8601 timestamp (e.g., "2026-02-03T12:34:56.123456Z").
    """
    if moment is None:
        moment = utc_now()
    return moment.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_iso_timestamp(iso_str: str) -> datetime:
    """Parse ISO8601 timestamp string to timezone-aware datetime.

    Handles both 'Z' and '+00:00' UTC suffixes. Naive timestamps are
    interpreted as UTC.

    Parameters
    ----------
    iso_str : str
        ISO8601 timestamp string.

    Returns
    -------
    datetime
        Timezone-aware UTC datetime.
    """
    parsed = datetime.fromisoformat(iso_str.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
