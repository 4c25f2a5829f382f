# app/services/lifecycle/reclamation_service.py
"""
Scheduled reclamation of expired and abandoned reports.

One run has two phases, in this order:
1. expired_deletions: soft-deleted reports whose recovery window elapsed
   are hard-deleted (keyset-paginated by deleted_at)
2. stale_drafts: live reports still in stage1/stage2 that nobody edited
   for the stale age are soft-deleted as "stale-draft" (keyset-paginated
   by last_edited)

Hard deletes run first so a report soft-deleted by this run can never be
hard-deleted by the same run.

Each page of candidates is one batch; a run evaluates at most
max_per_run documents. Every decision re-reads the clock and every write
is conditional on the snapshot that was evaluated, so user actions that
land mid-run win (the write is skipped). Per-document failures are
counted, logged, and never abort the run; a failed candidate query does.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from app.clock import Clock, get_clock
from app.config import Settings, get_settings
from app.logging_config import ProgressTracker, log_stage, run_context
from app.models import ReclamationTrigger
from app.services.lifecycle.policy import (
    DEFAULT_POLICY,
    ExpirationAction,
    ExpirationPolicy,
    evaluate,
)
from app.services.lifecycle.recovery_service import hard_delete_op, soft_delete_op
from app.store.base import ReportStore
from app.store.types import PageCursor, ReportSnapshot, RunRecord, WriteOp, WriteOpKind

logger = logging.getLogger(__name__)

# Keep run summaries bounded even when a whole run fails
MAX_ERROR_DETAILS = 50

INITIATORS = {
    ReclamationTrigger.SCHEDULED: "scheduler",
    ReclamationTrigger.MANUAL: "operator",
    ReclamationTrigger.CLI: "cli",
}


@dataclass(frozen=True)
class ReclamationConfig:
    batch_size: int = 100
    max_per_run: int = 1000
    policy: ExpirationPolicy = DEFAULT_POLICY

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ReclamationConfig":
        settings = settings or get_settings()
        return cls(
            batch_size=settings.RECLAMATION_BATCH_SIZE,
            max_per_run=settings.RECLAMATION_MAX_PER_RUN,
            policy=ExpirationPolicy.from_settings(settings),
        )


@dataclass
class ReclamationResult:
    """Result of a reclamation run."""

    run_id: uuid.UUID
    trigger: ReclamationTrigger
    dry_run: bool = False
    soft_deleted: int = 0
    hard_deleted: int = 0
    skipped: int = 0
    errors: int = 0
    evaluated: int = 0
    batches: int = 0
    cap_reached: bool = False
    elapsed_ms: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error_details: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "partial" if self.errors else "completed"

    def add_error(self, message: str, count: int = 1) -> None:
        self.errors += count
        if len(self.error_details) < MAX_ERROR_DETAILS:
            self.error_details.append(message)

    def to_record(self) -> RunRecord:
        return RunRecord(
            id=self.run_id,
            trigger=self.trigger.value,
            started_at=self.started_at,
            finished_at=self.finished_at,
            elapsed_ms=self.elapsed_ms,
            soft_deleted=self.soft_deleted,
            hard_deleted=self.hard_deleted,
            skipped=self.skipped,
            errors=self.errors,
            batches=self.batches,
            cap_reached=self.cap_reached,
            status=self.status,
        )


@dataclass(frozen=True)
class Phase:
    name: str
    cursor_field: str
    query: Callable[[ReportStore, datetime, ExpirationPolicy, int, Optional[PageCursor]], list[ReportSnapshot]]


PHASES = (
    Phase(
        name="expired_deletions",
        cursor_field="deleted_at",
        query=lambda store, now, policy, limit, after: store.find_expired_deletions(
            now - policy.recovery_window, limit, after
        ),
    ),
    Phase(
        name="stale_drafts",
        cursor_field="last_edited",
        query=lambda store, now, policy, limit, after: store.find_stale_drafts(
            now - policy.stale_after, limit, after
        ),
    ),
)


def run_reclamation(
    store: ReportStore,
    clock: Optional[Clock] = None,
    config: Optional[ReclamationConfig] = None,
    trigger: ReclamationTrigger | str = ReclamationTrigger.SCHEDULED,
    dry_run: bool = False,
    initiated_by: Optional[str] = None,
) -> ReclamationResult:
    """
    Run one reclamation pass.

    Args:
        store: Report store to sweep
        clock: Time source (process clock by default)
        config: Batch size, per-run cap and policy (from settings by default)
        trigger: What started the run; recorded with the run
        dry_run: Evaluate and count without writing anything
        initiated_by: Actor written to lifecycle events (derived from trigger by default)

    Raises:
        Any candidate query error. The run is then incomplete and the next
        scheduled run picks up where it left off.
    """
    clock = clock or get_clock()
    config = config or ReclamationConfig.from_settings()
    trigger = ReclamationTrigger(trigger)
    initiated_by = initiated_by or INITIATORS[trigger]

    result = ReclamationResult(run_id=uuid.uuid4(), trigger=trigger, dry_run=dry_run, started_at=clock.now())
    start_time = time.monotonic()

    with run_context(str(result.run_id)):
        logger.info(
            f"Reclamation run started (trigger={trigger.value}, dry_run={dry_run})",
            extra={"event": "run_start", "trigger": trigger.value, "dry_run": dry_run},
        )

        remaining = config.max_per_run
        for phase in PHASES:
            with log_stage(phase.name):
                if remaining > 0:
                    remaining -= _sweep(store, clock, config, result, phase, remaining, initiated_by)
                elif not result.cap_reached:
                    result.cap_reached = bool(phase.query(store, clock.now(), config.policy, 1, None))

        result.elapsed_ms = int((time.monotonic() - start_time) * 1000)
        result.finished_at = clock.now()

        logger.info(
            f"Reclamation complete: {result.soft_deleted} soft deleted, "
            f"{result.hard_deleted} hard deleted, {result.skipped} skipped, "
            f"{result.errors} errors (dry_run={dry_run})",
            extra={
                "event": "run_complete",
                "trigger": trigger.value,
                "dry_run": dry_run,
                "soft_deleted": result.soft_deleted,
                "hard_deleted": result.hard_deleted,
                "skipped": result.skipped,
                "errors": result.errors,
                "elapsed_ms": result.elapsed_ms,
            },
        )
        if result.cap_reached:
            logger.warning(
                f"Per-run cap of {config.max_per_run} reached; remaining candidates wait for the next run",
                extra={"event": "cap_reached"},
            )

        if not dry_run:
            try:
                store.record_run(result.to_record())
            except Exception as e:
                logger.warning(f"Failed to record reclamation run {result.run_id}: {e}")

    return result


def _sweep(
    store: ReportStore,
    clock: Clock,
    config: ReclamationConfig,
    result: ReclamationResult,
    phase: Phase,
    budget: int,
    initiated_by: str,
) -> int:
    """
    Page through one phase's candidates.

    The cutoff is fixed when the phase starts so keyset pagination walks a
    stable range. Returns the number of documents evaluated.
    """
    query_now = clock.now()
    tracker = ProgressTracker(phase=phase.name, limit=budget)
    cursor: Optional[PageCursor] = None
    processed = 0

    while processed < budget:
        limit = min(config.batch_size, budget - processed)
        page = phase.query(store, query_now, config.policy, limit, cursor)
        if not page:
            break

        result.batches += 1
        processed += len(page)
        last = page[-1]
        cursor = (getattr(last, phase.cursor_field), last.id)

        applied, skipped, failed = _process_batch(store, clock, config, result, page, initiated_by)
        tracker.record_batch(evaluated=len(page), applied=applied, skipped=skipped, failed=failed)

        if len(page) < limit:
            break
    else:
        # Budget spent on a full page: anything left waits for the next run
        if phase.query(store, query_now, config.policy, 1, cursor):
            result.cap_reached = True

    tracker.finish()
    return processed


def _process_batch(
    store: ReportStore,
    clock: Clock,
    config: ReclamationConfig,
    result: ReclamationResult,
    page: list[ReportSnapshot],
    initiated_by: str,
) -> tuple[int, int, int]:
    """
    Evaluate one page and write its decisions as one batched write.

    Returns (applied, skipped, failed) for this batch.
    """
    ops: list[WriteOp] = []
    skipped = failed = 0

    for report in page:
        result.evaluated += 1
        try:
            now = clock.now()
            decision = evaluate(report, now, config.policy)
            if decision.action == ExpirationAction.NO_ACTION:
                skipped += 1
                continue
            if decision.action == ExpirationAction.HARD_DELETE:
                ops.append(hard_delete_op(report, now, initiated_by=initiated_by))
            else:
                ops.append(
                    soft_delete_op(report, now, reason=decision.reason, initiated_by=initiated_by, guard_edits=True)
                )
        except Exception as e:
            logger.error(f"Failed to evaluate report {report.id}: {e}", extra={"report_id": str(report.id)})
            result.add_error(f"Report {report.id}: {e}")
            failed += 1

    applied = 0
    if result.dry_run:
        for op in ops:
            _count_applied(result, op)
        applied = len(ops)
    elif ops:
        try:
            outcome = store.write_batch(ops)
        except Exception as e:
            logger.error(f"Batched write of {len(ops)} ops failed: {e}", extra={"batch_size": len(ops)})
            result.add_error(f"Batch write failed: {e}", count=len(ops))
            failed += len(ops)
        else:
            for o in outcome.outcomes:
                if o.failed:
                    logger.warning(f"Write failed for report {o.op.report_id}: {o.error}")
                    result.add_error(f"Report {o.op.report_id}: {o.error}")
                    failed += 1
                elif o.skipped:
                    # Preconditions changed since evaluation: recovered, edited or already gone
                    logger.debug(f"Skipped report {o.op.report_id}: changed since evaluation")
                    skipped += 1
                else:
                    _count_applied(result, o.op)
                    applied += 1

    result.skipped += skipped
    return applied, skipped, failed


def _count_applied(result: ReclamationResult, op: WriteOp) -> None:
    if op.kind == WriteOpKind.DELETE:
        result.hard_deleted += 1
    else:
        result.soft_deleted += 1
