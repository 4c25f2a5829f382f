"""
Structured JSON logging for lifecycle observability.

Provides structured logging with run IDs for correlating every log line of
a reclamation run, plus a context manager that times each run phase.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime

# Context variables for run correlation
run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)
phase_var: ContextVar[str | None] = ContextVar("phase", default=None)

# Extra fields copied from log records into the JSON payload
EXTRA_FIELDS = (
    "event",
    "duration_ms",
    "report_id",
    "owner_id",
    "stage",
    "reason",
    "initiated_by",
    "trigger",
    "batch",
    "batch_size",
    "soft_deleted",
    "hard_deleted",
    "skipped",
    "errors",
    "elapsed_ms",
    "dry_run",
)


# -----------------------------------------------------------------------------
# JSON Formatter
# -----------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "run_id": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = run_id_var.get()
        if run_id:
            log_data["run_id"] = run_id

        phase = phase_var.get()
        if phase:
            log_data["phase"] = phase

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure logging for deployed or local use.

    Args:
        json_format: If True, use JSON format. If False, use human-readable format.
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# -----------------------------------------------------------------------------
# Context Managers
# -----------------------------------------------------------------------------


@contextmanager
def run_context(run_id: str):
    """Tag every log line emitted inside the block with `run_id`."""
    token = run_id_var.set(run_id)
    try:
        yield
    finally:
        run_id_var.reset(token)


@contextmanager
def log_stage(phase: str):
    """
    Context manager for phase-level logging.

    Logs phase start and end with duration.

    Usage:
        with log_stage("stale_drafts"):
            # ... phase logic ...
    """
    token = phase_var.set(phase)
    start_time = time.time()
    logger = logging.getLogger("reclamation")

    logger.info(f"Phase {phase} started", extra={"event": "phase_start"})

    try:
        yield
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Phase {phase} completed",
            extra={"event": "phase_complete", "duration_ms": duration_ms},
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Phase {phase} failed: {e}",
            extra={"event": "phase_failed", "duration_ms": duration_ms},
            exc_info=True,
        )
        raise
    finally:
        phase_var.reset(token)


# -----------------------------------------------------------------------------
# Progress Tracking
# -----------------------------------------------------------------------------


@dataclass
class ProgressTracker:
    """
    Track per-batch progress of a reclamation phase.

    Usage:
        tracker = ProgressTracker(phase="stale_drafts", limit=1000)
        for page in pages:
            ...
            tracker.record_batch(evaluated=len(page), applied=3, skipped=1, failed=0)
        tracker.finish()
    """

    phase: str
    limit: int

    batches: int = field(default=0, init=False)
    evaluated: int = field(default=0, init=False)
    applied: int = field(default=0, init=False)
    skipped: int = field(default=0, init=False)
    failed: int = field(default=0, init=False)
    _start_time: float = field(default_factory=time.monotonic, init=False)
    _logger: logging.Logger = field(init=False)

    def __post_init__(self):
        self._logger = logging.getLogger("reclamation.progress")

    def record_batch(self, evaluated: int, applied: int, skipped: int, failed: int) -> None:
        self.batches += 1
        self.evaluated += evaluated
        self.applied += applied
        self.skipped += skipped
        self.failed += failed

        self._logger.info(
            f"{self.phase}: batch {self.batches} done, {self.evaluated}/{self.limit} evaluated "
            f"({self.applied} applied, {self.skipped} skipped, {self.failed} failed)",
            extra={
                "event": "batch_complete",
                "batch": self.batches,
                "batch_size": evaluated,
                "skipped": skipped,
                "errors": failed,
            },
        )

    def finish(self) -> dict:
        """Finalize progress tracking and return summary."""
        elapsed_ms = int((time.monotonic() - self._start_time) * 1000)
        self._logger.info(
            f"{self.phase}: {self.evaluated} evaluated in {self.batches} batches "
            f"({self.applied} applied, {self.skipped} skipped, {self.failed} failed)",
            extra={"event": "progress_complete", "elapsed_ms": elapsed_ms},
        )
        return {
            "batches": self.batches,
            "evaluated": self.evaluated,
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "elapsed_ms": elapsed_ms,
        }
