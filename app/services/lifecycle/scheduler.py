# app/services/lifecycle/scheduler.py
"""
In-process periodic runner for reclamation.

One daemon worker thread runs the job, then waits out the interval. The
next run is only scheduled after the current one returns, so runs never
overlap. A failing run is logged and the next tick runs again.

Deployments that use an external cron hitting
POST /v1/admin/reclamation/scheduled-run leave this disabled.
"""

import logging
import threading
from typing import Callable, Optional

from app.clock import Clock
from app.config import Settings, get_settings
from app.models import ReclamationTrigger
from app.services.lifecycle.reclamation_service import (
    ReclamationConfig,
    ReclamationResult,
    run_reclamation,
)
from app.store.base import ReportStore

logger = logging.getLogger(__name__)


class ReclamationScheduler:
    """
    Calls `run` every `interval_seconds` on a background thread.

    Usage:
        scheduler = ReclamationScheduler(run=lambda: run_reclamation(store), interval_seconds=86400)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        run: Callable[[], ReclamationResult],
        interval_seconds: float,
        run_on_start: bool = False,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than zero")
        self._run = run
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start

        self._stop = threading.Event()
        self._run_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

        self.runs = 0
        self.failures = 0
        self.last_result: Optional[ReclamationResult] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="reclamation-scheduler", daemon=True)
        self._thread.start()
        logger.info(
            f"Reclamation scheduler started (every {self.interval_seconds:.0f}s)",
            extra={"event": "scheduler_started"},
        )

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        """Signal the worker to exit and wait for an in-flight run to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Reclamation scheduler stopped", extra={"event": "scheduler_stopped"})

    def run_once(self) -> Optional[ReclamationResult]:
        """
        Execute one run now, unless one is already in flight.

        Returns None when skipped or when the run raised.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Reclamation run already in progress; skipping tick", extra={"event": "tick_skipped"})
            return None
        try:
            result = self._run()
            self.last_result = result
            return result
        except Exception as e:
            self.failures += 1
            logger.exception(f"Scheduled reclamation run failed: {e}")
            return None
        finally:
            self.runs += 1
            self._run_lock.release()

    def _loop(self) -> None:
        if self.run_on_start and not self._stop.is_set():
            self.run_once()
        while not self._stop.wait(self.interval_seconds):
            self.run_once()


def build_scheduler(
    store: ReportStore,
    clock: Optional[Clock] = None,
    settings: Optional[Settings] = None,
    run_on_start: bool = False,
) -> ReclamationScheduler:
    """Scheduler running reclamation against `store` with settings-derived config."""
    settings = settings or get_settings()
    config = ReclamationConfig.from_settings(settings)

    def run() -> ReclamationResult:
        return run_reclamation(store, clock=clock, config=config, trigger=ReclamationTrigger.SCHEDULED)

    return ReclamationScheduler(
        run=run,
        interval_seconds=settings.RECLAMATION_INTERVAL_HOURS * 3600,
        run_on_start=run_on_start,
    )
