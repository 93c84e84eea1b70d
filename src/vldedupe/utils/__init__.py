"""Common utility functions for vldedupe."""

from vldedupe.utils.timestamps import get_iso_timestamp, parse_iso_timestamp, utc_now

__all__ = [
    "get_iso_timestamp",
    "parse_iso_timestamp",
    "utc_now",
]
