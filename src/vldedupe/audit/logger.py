"""Structured audit logger for JSONL event logging.

Provides append-only structured event logging to JSONL files with
a persistent file handle. Detection, review and metrics components
accept an optional logger and emit domain events through it.
"""

import json
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any

from vldedupe.audit.helpers import generate_run_id
from vldedupe.audit.models import LOG_LEVELS, LogEvent
from vldedupe.utils import get_iso_timestamp

__all__ = ["AuditLogger"]


class AuditLogger:
    """JSONL audit logger with persistent file handle.

    Writes structured log events to a JSONL file (one JSON object per line).
    Each event is serialized up front and written with a single call under a
    lock, so lines never interleave when workers log concurrently.

    Attributes
    ----------
    run_id : str
        Unique run identifier.
    log_path : Path
        Path to JSONL log file.
    """

    def __init__(self, log_path: Path, run_id: str | None = None) -> None:
        """Initialize audit logger and open file handle.

        Parameters
        ----------
        log_path : Path
            Path to JSONL log file.
        run_id : str | None, optional
            Unique run identifier. Generated if not provided.
        """
        self.run_id = run_id or generate_run_id()
        self.log_path = Path(log_path)

        self._lock = threading.Lock()
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.log_path.open("a", encoding="utf-8")

    def __enter__(self) -> "AuditLogger":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager and close file."""
        self.close()

    def close(self) -> None:
        """Flush and close the log file handle."""
        with self._lock:
            if not self._file.closed:
                self._file.flush()
                self._file.close()

    def event(
        self,
        event_type: str,
        data: dict[str, Any] | None = None,
        level: str = "INFO",
        stage: str | None = None,
        listing_id: str | None = None,
    ) -> None:
        """Write structured event to log.

        Parameters
        ----------
        event_type : str
            Event type identifier (e.g., "review_required").
        data : dict[str, Any] | None, optional
            Event-specific data payload.
        level : str, optional
            Log level ("DEBUG", "INFO", "WARN", "ERROR").
        stage : str | None, optional
            Stage identifier ("detection", "review", "metrics", ...).
        listing_id : str | None, optional
            Listing identifier if event is listing-specific.

        Raises
        ------
        ValueError
            If level is not a known log level.
        """
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {level}")

        log_event = LogEvent(
            ts=get_iso_timestamp(),
            run_id=self.run_id,
            level=level,
            event=event_type,
            data=data or {},
            stage=stage,
            listing_id=listing_id,
        )
        self._write_event(log_event)

    def _write_event(self, event: LogEvent) -> None:
        line = json.dumps(asdict(event), ensure_ascii=False, separators=(",", ":"), default=str)
        with self._lock:
            self._file.write(line + "\n")
            self._file.flush()

