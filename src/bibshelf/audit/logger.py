"""Append-only JSONL event log for a library run.

Every line of ``events.jsonl`` is one :class:`~bibshelf.audit.models.LogEvent`.
Placement and link workers share one logger, so writes are serialized.
"""

import json
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any

from bibshelf.audit.models import LogEvent
from bibshelf.utils import get_iso_timestamp

__all__ = ["AuditLogger"]


def _payload(**fields: Any) -> dict[str, Any]:
    """Build an event payload, leaving out fields that were not given."""
    return {name: value for name, value in fields.items() if value is not None}


class AuditLogger:
    """Writer for the event log of one run.

    Attributes
    ----------
    run_id : str
        Run the events belong to.
    log_path : Path
        The ``events.jsonl`` file; opened for append.
    current_stage : str | None
        Stage stamped on events that do not name one.
    """

    def __init__(self, run_id: str, log_path: Path) -> None:
        self.run_id = run_id
        self.log_path = log_path
        self.current_stage: str | None = None

        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._stream = log_path.open("a", encoding="utf-8")

    def __enter__(self) -> "AuditLogger":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the log; safe to call more than once."""
        with self._lock:
            if not self._stream.closed:
                self._stream.close()

    def set_stage(self, stage: str | None) -> None:
        self.current_stage = stage

    def event(
        self,
        event_type: str,
        data: dict[str, Any] | None = None,
        level: str = "INFO",
        stage: str | None = None,
        rid: str | None = None,
    ) -> None:
        """Append one event to the log.

        Parameters
        ----------
        event_type : str
            Event name, e.g. ``"file_placed"`` or ``"link_created"``.
        data : dict[str, Any] | None, optional
            Event payload.
        level : str, optional
            One of DEBUG, INFO, WARN, ERROR.
        stage : str | None, optional
            Stage name; defaults to :attr:`current_stage`.
        rid : str | None, optional
            Citation key of the record the event is about.
        """
        record = LogEvent(
            ts=get_iso_timestamp(),
            run_id=self.run_id,
            level=level,
            event=event_type,
            data=data or {},
            stage=stage or self.current_stage,
            rid=rid,
        )
        line = json.dumps(asdict(record), ensure_ascii=False, separators=(",", ":")) + "\n"
        with self._lock:
            self._stream.write(line)
            self._stream.flush()

    # Lifecycle events

    def run_started(self, command: list[str], parameters: dict[str, Any]) -> None:
        self.event("run_started", data={"command": command, "parameters": parameters})

    def run_finished(
        self,
        status: str,
        duration_seconds: float,
        records_processed: int | None = None,
    ) -> None:
        """Log the end of the run with its final status."""
        self.event(
            "run_finished",
            data=_payload(
                status=status,
                duration_seconds=duration_seconds,
                records_processed=records_processed,
            ),
        )

    def stage_started(self, stage: str, expected_records: int | None = None) -> None:
        """Log the start of ``stage`` and make it the current stage."""
        self.set_stage(stage)
        self.event("stage_started", data=_payload(expected_records=expected_records), stage=stage)

    def stage_finished(
        self,
        stage: str,
        duration_seconds: float,
        counters: dict[str, int] | None = None,
    ) -> None:
        """Log the end of ``stage`` with its counters and clear the current stage."""
        data = _payload(duration_seconds=duration_seconds, counters=counters or None)
        self.event("stage_finished", data=data, stage=stage)
        self.set_stage(None)

    # Record and file events

    def record_skipped(self, rid: str, reason: str, stage: str | None = None) -> None:
        """Log a record left alone, e.g. for ``"unmodified"`` or ``"duplicate_key"``."""
        self.event("record_skipped", data={"reason": reason}, stage=stage, rid=rid)

    def artifact_written(
        self,
        path: str,
        sha256: str,
        stage: str | None = None,
        bytes_written: int | None = None,
        record_count: int | None = None,
    ) -> None:
        """Log a file the run produced, such as the rewritten catalog."""
        data = _payload(path=path, sha256=sha256, bytes=bytes_written, record_count=record_count)
        self.event("artifact_written", data=data, stage=stage)

    def error(
        self,
        exception_class: str,
        message: str,
        stage: str | None = None,
        rid: str | None = None,
        path: str | None = None,
        traceback: str | None = None,
    ) -> None:
        """Log a failure at ERROR level.

        Parameters
        ----------
        exception_class : str
            Name of the exception type, e.g. ``"LinkCollisionError"``.
        message : str
            Exception message.
        stage : str | None, optional
            Stage that failed.
        rid : str | None, optional
            Citation key of the failing record.
        path : str | None, optional
            Stored file or link path the failure concerns.
        traceback : str | None, optional
            Formatted traceback for run-level failures.
        """
        data = _payload(
            exception_class=exception_class,
            message=message,
            path=path,
            traceback=traceback,
        )
        self.event("error", data=data, stage=stage, rid=rid, level="ERROR")
