# app/services/lifecycle/stages.py
"""
Report stage state machine and authoring operations.

State Flow:
    stage1 (on-site collection) -> stage2 (office annotation) -> stage3 (complete)

Terminal State: stage3. Stages never regress.

Leaving a stage requires that stage's mandatory content fields. The
completion timestamp of the stage being left is stamped once and never
overwritten.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

from app.clock import Clock
from app.errors import InvalidTransition, LifecycleError, ReportDeleted, ReportNotFound
from app.models import LifecycleEventType, ReportStage
from app.store.base import ReportStore
from app.store.types import LifecycleEventRecord, ReportSnapshot

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    ReportStage.STAGE1: [ReportStage.STAGE2],
    ReportStage.STAGE2: [ReportStage.STAGE3],
    ReportStage.STAGE3: [],  # Terminal state
}

# Content fields that must be present before a report may leave the stage
STAGE_REQUIRED_FIELDS = {
    ReportStage.STAGE1: ("customer_name", "customer_address", "inspection_date", "roof_type"),
    ReportStage.STAGE2: ("issues_found", "recommended_actions"),
    ReportStage.STAGE3: (),
}

COMPLETION_STAMPS = {
    ReportStage.STAGE1: "stage1_completed_at",
    ReportStage.STAGE2: "stage2_completed_at",
}

STAGE_ORDER = {stage: index for index, stage in enumerate(ReportStage)}

# Re-reads allowed when an edit loses a race with another write
MAX_ATTEMPTS = 3


def can_transition(current: ReportStage, target: ReportStage) -> bool:
    """Check if a stage transition is allowed without raising."""
    return target in ALLOWED_TRANSITIONS.get(current, [])


def validate_transition(current: ReportStage, target: ReportStage) -> None:
    """
    Validate that a stage transition is allowed.

    Raises:
        InvalidTransition: regression, same-stage, or skipped-stage attempt
    """
    if can_transition(current, target):
        return

    if STAGE_ORDER[target] <= STAGE_ORDER[current]:
        kind = "regression" if STAGE_ORDER[target] < STAGE_ORDER[current] else "no-op"
    else:
        kind = "skipped stage"
    allowed = [s.value for s in ALLOWED_TRANSITIONS.get(current, [])]
    raise InvalidTransition(
        f"Invalid transition ({kind}): {current.value} -> {target.value}. "
        f"Allowed transitions from {current.value}: {allowed}"
    )


def missing_fields(stage: ReportStage, content: dict[str, Any]) -> list[str]:
    """Mandatory fields of `stage` that are absent, None, or blank strings."""
    missing = []
    for name in STAGE_REQUIRED_FIELDS[stage]:
        value = content.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def _require(store: ReportStore, report_id: uuid.UUID) -> ReportSnapshot:
    report = store.get(report_id)
    if report is None:
        raise ReportNotFound(report_id)
    return report


def _edit_stamp(report: ReportSnapshot, now: datetime) -> datetime:
    """
    New last_edited for a write on top of `report`.

    Strictly later than the value read, so a guard on last_edited also
    catches two writes made within the same clock tick.
    """
    if now > report.last_edited:
        return now
    return report.last_edited + timedelta(microseconds=1)


def create_report(
    store: ReportStore,
    clock: Clock,
    owner_id: str,
    branch_id: Optional[str] = None,
    content: Optional[dict[str, Any]] = None,
    initiated_by: Optional[str] = None,
) -> ReportSnapshot:
    """Create a report at stage1."""
    now = clock.now()
    report = ReportSnapshot(
        id=uuid.uuid4(),
        owner_id=owner_id,
        branch_id=branch_id,
        stage=ReportStage.STAGE1,
        created_at=now,
        last_edited=now,
        content=dict(content or {}),
    )
    event = LifecycleEventRecord(
        report_id=report.id,
        event_type=LifecycleEventType.CREATED,
        occurred_at=now,
        initiated_by=initiated_by or f"user:{owner_id}",
    )
    created = store.create(report, event)
    logger.info(
        f"Created report {created.id}",
        extra={"event": "report_created", "report_id": str(created.id), "owner_id": owner_id},
    )
    return created


def edit_report(
    store: ReportStore,
    clock: Clock,
    report_id: uuid.UUID,
    changes: dict[str, Any],
    initiated_by: str,
) -> ReportSnapshot:
    """
    Merge `changes` into the report's content and stamp last_edited.

    Raises:
        ReportNotFound, ReportDeleted
        LifecycleError: the report kept changing under us
    """
    for _ in range(MAX_ATTEMPTS):
        report = _require(store, report_id)
        if report.is_deleted:
            raise ReportDeleted(report_id)

        now = clock.now()
        updated = store.conditional_update(
            report_id,
            expect={"is_deleted": False, "last_edited": report.last_edited},
            changes={"content": {**report.content, **changes}, "last_edited": _edit_stamp(report, now)},
            event=LifecycleEventRecord(
                report_id=report_id,
                event_type=LifecycleEventType.CONTENT_EDITED,
                occurred_at=now,
                initiated_by=initiated_by,
                metadata={"fields": sorted(changes)},
            ),
        )
        if updated is not None:
            return updated
        # Another write landed since our read: merge again onto the fresh content

    raise LifecycleError(f"Report {report_id} changed during edit; retry")


def advance_stage(
    store: ReportStore,
    clock: Clock,
    report_id: uuid.UUID,
    target: ReportStage | str,
    payload: Optional[dict[str, Any]] = None,
    initiated_by: str = "user",
) -> ReportSnapshot:
    """
    Move a report to the next stage.

    The payload is merged into content before the gate check, so the
    authoring flow can submit the last required fields with the advance.

    Raises:
        ReportNotFound, ReportDeleted
        InvalidTransition: bad target, missing gate fields, or the report
            changed stage concurrently (state unchanged in every case)
    """
    try:
        target = ReportStage(target)
    except ValueError:
        raise InvalidTransition(f"Unknown stage: {target}")

    report = _require(store, report_id)
    if report.is_deleted:
        raise ReportDeleted(report_id)

    validate_transition(report.stage, target)

    content = {**report.content, **(payload or {})}
    missing = missing_fields(report.stage, content)
    if missing:
        raise InvalidTransition(
            f"Cannot leave {report.stage.value}: missing required fields {missing}"
        )

    now = clock.now()
    changes: dict[str, Any] = {"stage": target, "content": content, "last_edited": _edit_stamp(report, now)}
    stamp = COMPLETION_STAMPS[report.stage]
    if getattr(report, stamp) is None:
        changes[stamp] = now

    updated = store.conditional_update(
        report_id,
        expect={"stage": report.stage, "is_deleted": False, "last_edited": report.last_edited},
        changes=changes,
        event=LifecycleEventRecord(
            report_id=report_id,
            event_type=LifecycleEventType.STAGE_ADVANCED,
            occurred_at=now,
            initiated_by=initiated_by,
            metadata={"from": report.stage.value, "to": target.value},
        ),
    )
    if updated is None:
        raise InvalidTransition(
            f"Report {report_id} changed while advancing from {report.stage.value}; reload and retry"
        )

    logger.info(
        f"Report {report_id} advanced {report.stage.value} -> {target.value}",
        extra={"event": "stage_advanced", "report_id": str(report_id), "stage": target.value},
    )
    return updated
