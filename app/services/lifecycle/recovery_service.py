# app/services/lifecycle/recovery_service.py
"""
Soft-delete and recovery of reports.

Handles:
- User and system soft deletes (tombstone: is_deleted + deleted_at)
- Recovery inside the recovery window
- Conditional hard delete once the window has elapsed
- The "recently deleted" listing

The write-op builders are shared with the reclamation job so a batched
hard delete and a single-document hard delete test the same
preconditions.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.clock import Clock
from app.errors import LifecycleError, RecoveryWindowExpired, ReportNotFound
from app.models import ExpirationReason, LifecycleEventType
from app.services.lifecycle.policy import (
    DEFAULT_POLICY,
    ExpirationAction,
    ExpirationPolicy,
    evaluate,
    is_recoverable,
    recoverable_until,
)
from app.store.base import ReportStore
from app.store.types import LifecycleEventRecord, ReportSnapshot, WriteOp, WriteOpKind

logger = logging.getLogger(__name__)

# Conditional writes retried this many times when a concurrent writer wins
MAX_ATTEMPTS = 3


@dataclass
class DeletedReport:
    report: ReportSnapshot
    recoverable_until: datetime


# -----------------------------------------------------------------------------
# Write-op builders
# -----------------------------------------------------------------------------


def soft_delete_op(
    report: ReportSnapshot,
    now: datetime,
    reason: Optional[ExpirationReason] = None,
    initiated_by: str = "scheduler",
    guard_edits: bool = False,
) -> WriteOp:
    """
    Build a soft delete of `report`.

    With guard_edits the write also requires last_edited and stage to be
    unchanged since the snapshot was read, so an edit that lands after a
    stale-draft evaluation wins over the auto delete.
    """
    expect = {"is_deleted": False}
    if guard_edits:
        expect["last_edited"] = report.last_edited
        expect["stage"] = report.stage

    return WriteOp(
        kind=WriteOpKind.UPDATE,
        report_id=report.id,
        expect=expect,
        changes={"is_deleted": True, "deleted_at": now, "expiration_reason": reason},
        event=LifecycleEventRecord(
            report_id=report.id,
            event_type=LifecycleEventType.SOFT_DELETED,
            occurred_at=now,
            initiated_by=initiated_by,
            reason=reason.value if reason else None,
            metadata={"stage": report.stage.value},
        ),
    )


def hard_delete_op(report: ReportSnapshot, now: datetime, initiated_by: str = "scheduler") -> WriteOp:
    """Build a hard delete that only applies if the report is still deleted as of `report.deleted_at`."""
    return WriteOp(
        kind=WriteOpKind.DELETE,
        report_id=report.id,
        expect={"is_deleted": True, "deleted_at": report.deleted_at},
        event=LifecycleEventRecord(
            report_id=report.id,
            event_type=LifecycleEventType.HARD_DELETED,
            occurred_at=now,
            initiated_by=initiated_by,
            reason=ExpirationReason.RECOVERY_WINDOW_ELAPSED.value,
            metadata={
                "owner_id": report.owner_id,
                "stage": report.stage.value,
                "deleted_at": report.deleted_at.isoformat() if report.deleted_at else None,
            },
        ),
    )


# -----------------------------------------------------------------------------
# Single-document operations
# -----------------------------------------------------------------------------


def soft_delete(
    store: ReportStore,
    clock: Clock,
    report_id: uuid.UUID,
    reason: Optional[ExpirationReason] = None,
    initiated_by: str = "user",
) -> datetime:
    """
    Soft delete a report and return its deleted_at.

    Idempotent: an already-deleted report keeps (and returns) its original
    deleted_at.

    Raises:
        ReportNotFound
    """
    for _ in range(MAX_ATTEMPTS):
        report = store.get(report_id)
        if report is None:
            raise ReportNotFound(report_id)
        if report.is_deleted:
            return report.deleted_at

        now = clock.now()
        op = soft_delete_op(report, now, reason=reason, initiated_by=initiated_by)
        if store.conditional_update(report_id, op.expect, op.changes, op.event) is not None:
            logger.info(
                f"Soft deleted report {report_id}",
                extra={"event": "soft_deleted", "report_id": str(report_id), "initiated_by": initiated_by},
            )
            return now

    raise LifecycleError(f"Report {report_id} changed during soft delete; retry")


def recover(
    store: ReportStore,
    clock: Clock,
    report_id: uuid.UUID,
    initiated_by: str = "user",
    policy: ExpirationPolicy = DEFAULT_POLICY,
) -> ReportSnapshot:
    """
    Restore a soft-deleted report.

    Recovering a live report is a no-op that returns it unchanged.

    Raises:
        ReportNotFound: no such report and no record of it being hard-deleted
        RecoveryWindowExpired: window elapsed, or reclamation removed the
            report (before the call or between our read and our write)
    """
    seen_deleted = False
    for _ in range(MAX_ATTEMPTS):
        report = store.get(report_id)
        if report is None:
            if seen_deleted or _was_hard_deleted(store, report_id):
                raise RecoveryWindowExpired(report_id)
            raise ReportNotFound(report_id)
        if not report.is_deleted:
            return report

        seen_deleted = True
        now = clock.now()
        if not is_recoverable(report, now, policy):
            raise RecoveryWindowExpired(report_id)

        updated = store.conditional_update(
            report_id,
            expect={"is_deleted": True, "deleted_at": report.deleted_at},
            changes={
                "is_deleted": False,
                "deleted_at": None,
                "expiration_reason": None,
                "last_edited": now,
            },
            event=LifecycleEventRecord(
                report_id=report_id,
                event_type=LifecycleEventType.RECOVERED,
                occurred_at=now,
                initiated_by=initiated_by,
                metadata={"deleted_at": report.deleted_at.isoformat()},
            ),
        )
        if updated is not None:
            logger.info(
                f"Recovered report {report_id}",
                extra={"event": "recovered", "report_id": str(report_id), "initiated_by": initiated_by},
            )
            return updated

    raise LifecycleError(f"Report {report_id} changed during recovery; retry")


def _was_hard_deleted(store: ReportStore, report_id: uuid.UUID) -> bool:
    # The audit trail outlives the report
    return any(e.event_type == LifecycleEventType.HARD_DELETED for e in store.list_events(report_id))


def hard_delete(
    store: ReportStore,
    clock: Clock,
    report_id: uuid.UUID,
    initiated_by: str = "scheduler",
    policy: ExpirationPolicy = DEFAULT_POLICY,
) -> bool:
    """
    Permanently remove a soft-deleted report whose recovery window has elapsed.

    Internal only: never exposed to end users. Returns False (no-op) if the
    report is missing, live, still recoverable, or was recovered or
    re-deleted concurrently.
    """
    report = store.get(report_id)
    if report is None:
        return False

    now = clock.now()
    if evaluate(report, now, policy).action != ExpirationAction.HARD_DELETE:
        return False

    op = hard_delete_op(report, now, initiated_by=initiated_by)
    removed = store.conditional_delete(report_id, op.expect, op.event)
    if removed:
        logger.info(
            f"Hard deleted report {report_id}",
            extra={"event": "hard_deleted", "report_id": str(report_id), "initiated_by": initiated_by},
        )
    return removed


def list_deleted(
    store: ReportStore,
    owner_id: str,
    policy: ExpirationPolicy = DEFAULT_POLICY,
    limit: int = 100,
) -> list[DeletedReport]:
    """Owner's soft-deleted reports with the deadline for recovering each."""
    return [
        DeletedReport(report=r, recoverable_until=recoverable_until(r, policy))
        for r in store.list_for_owner(owner_id, deleted_only=True, limit=limit)
        if r.deleted_at is not None
    ]
