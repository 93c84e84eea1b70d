"""Helper utilities for audit logging."""

import secrets

from vldedupe.utils import get_iso_timestamp

__all__ = ["generate_run_id", "format_error"]


def generate_run_id() -> str:
    """Generate unique run identifier.

    Returns
    -------
    str
        Run ID in format: ISO8601_timestamp__random_suffix.
    """
    return f"{get_iso_timestamp()}__{secrets.token_hex(4)}"


def format_error(exc: BaseException) -> str:
    """Render an exception as ``"ClassName: message"``."""
    return f"{type(exc).__name__}: {exc}"
