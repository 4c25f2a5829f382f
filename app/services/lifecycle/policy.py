# app/services/lifecycle/policy.py
"""
Expiration policy engine.

Pure decision logic: given a report snapshot and the current time, decide
whether the report should be left alone, auto soft-deleted as a stale
draft, or hard-deleted because its recovery window elapsed. No I/O, no
clock reads; callers pass `now`.

Rules, first match wins:
1. deleted and now - deleted_at > recovery window  -> HARD_DELETE
2. live, not stage3, now - last_edited > stale age -> SOFT_DELETE(stale-draft)
3. otherwise                                        -> NO_ACTION
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from app.config import Settings, get_settings
from app.models import ExpirationReason, ReportStage
from app.store.types import ReportSnapshot

RECOVERY_WINDOW = timedelta(hours=48)
STALE_DRAFT_AGE = timedelta(days=30)


@dataclass(frozen=True)
class ExpirationPolicy:
    recovery_window: timedelta = RECOVERY_WINDOW
    stale_after: timedelta = STALE_DRAFT_AGE

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ExpirationPolicy":
        settings = settings or get_settings()
        return cls(
            recovery_window=timedelta(hours=settings.RECOVERY_WINDOW_HOURS),
            stale_after=timedelta(days=settings.STALE_DRAFT_DAYS),
        )


class ExpirationAction(str, Enum):
    NO_ACTION = "no_action"
    SOFT_DELETE = "soft_delete"
    HARD_DELETE = "hard_delete"


@dataclass(frozen=True)
class ExpirationDecision:
    action: ExpirationAction
    reason: ExpirationReason | None = None


NO_ACTION = ExpirationDecision(ExpirationAction.NO_ACTION)
SOFT_DELETE_STALE = ExpirationDecision(ExpirationAction.SOFT_DELETE, ExpirationReason.STALE_DRAFT)
HARD_DELETE_EXPIRED = ExpirationDecision(ExpirationAction.HARD_DELETE, ExpirationReason.RECOVERY_WINDOW_ELAPSED)

DEFAULT_POLICY = ExpirationPolicy()


def evaluate(report: ReportSnapshot, now: datetime, policy: ExpirationPolicy = DEFAULT_POLICY) -> ExpirationDecision:
    """Decide what reclamation should do with `report` at `now`."""
    if report.is_deleted:
        if report.deleted_at is not None and now - report.deleted_at > policy.recovery_window:
            return HARD_DELETE_EXPIRED
        return NO_ACTION

    if report.stage != ReportStage.STAGE3 and now - report.last_edited > policy.stale_after:
        return SOFT_DELETE_STALE

    return NO_ACTION


def recoverable_until(report: ReportSnapshot, policy: ExpirationPolicy = DEFAULT_POLICY) -> datetime | None:
    """Last instant at which a soft-deleted report can still be recovered."""
    if not report.is_deleted or report.deleted_at is None:
        return None
    return report.deleted_at + policy.recovery_window


def is_recoverable(report: ReportSnapshot, now: datetime, policy: ExpirationPolicy = DEFAULT_POLICY) -> bool:
    """
    True while the recovery window is open.

    Exactly the complement of rule 1: at deleted_at + window the report is
    still recoverable, one instant later it is a hard-delete candidate.
    """
    deadline = recoverable_until(report, policy)
    return deadline is not None and now <= deadline
