"""Audit trail for vldedupe.

Main Components
---------------
- AuditLogger: JSONL event logger shared by detection, review and metrics
- LogEvent: Structured event record
"""

from vldedupe.audit.helpers import format_error, generate_run_id
from vldedupe.audit.logger import AuditLogger
from vldedupe.audit.models import LOG_LEVELS, LogEvent

__all__ = [
    "AuditLogger",
    "LogEvent",
    "LOG_LEVELS",
    "generate_run_id",
    "format_error",
]
