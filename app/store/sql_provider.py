# app/store/sql_provider.py
"""
SQLAlchemy report store (PostgreSQL in production, SQLite in tests).

Conditional writes are single UPDATE/DELETE statements whose WHERE clause
carries the preconditions, so a write that lost a race touches zero rows
instead of clobbering the newer state.
"""

import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.clock import ensure_utc
from app.errors import TransientWriteFailure
from app.models import (
    ExpirationReason,
    LifecycleEventType,
    ReclamationRun,
    Report,
    ReportLifecycleEvent,
    ReportStage,
)
from app.store.base import ReportStore
from app.store.types import (
    REPORT_FIELDS,
    BatchWriteResult,
    LifecycleEventRecord,
    PageCursor,
    ReportSnapshot,
    RunRecord,
    WriteOp,
    WriteOpKind,
    WriteOutcome,
)

logger = logging.getLogger(__name__)


def _to_column(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value is not None else None


def _to_snapshot(row: Report) -> ReportSnapshot:
    return ReportSnapshot(
        id=row.id,
        owner_id=row.owner_id,
        branch_id=row.branch_id,
        stage=ReportStage(row.stage),
        created_at=_utc(row.created_at),
        last_edited=_utc(row.last_edited),
        is_deleted=row.is_deleted,
        deleted_at=_utc(row.deleted_at),
        expiration_reason=ExpirationReason(row.expiration_reason) if row.expiration_reason else None,
        stage1_completed_at=_utc(row.stage1_completed_at),
        stage2_completed_at=_utc(row.stage2_completed_at),
        content=dict(row.content or {}),
    )


def _to_event(row: ReportLifecycleEvent) -> LifecycleEventRecord:
    return LifecycleEventRecord(
        id=row.id,
        report_id=row.report_id,
        event_type=LifecycleEventType(row.event_type),
        occurred_at=_utc(row.occurred_at),
        initiated_by=row.initiated_by,
        reason=row.reason,
        metadata=row.event_metadata,
    )


def _event_row(event: LifecycleEventRecord) -> ReportLifecycleEvent:
    return ReportLifecycleEvent(
        id=event.id,
        report_id=event.report_id,
        event_type=_to_column(event.event_type),
        occurred_at=event.occurred_at,
        initiated_by=event.initiated_by,
        reason=_to_column(event.reason),
        event_metadata=event.metadata,
    )


def _conditions(expect: dict[str, Any]) -> list:
    conditions = []
    for name, value in expect.items():
        if name not in REPORT_FIELDS:
            raise ValueError(f"Unknown report field: {name}")
        column = getattr(Report, name)
        value = _to_column(value)
        conditions.append(column.is_(None) if value is None else column == value)
    return conditions


def _values(changes: dict[str, Any]) -> dict[str, Any]:
    unknown = set(changes) - set(REPORT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown report fields: {sorted(unknown)}")
    return {name: _to_column(value) for name, value in changes.items()}


class SqlReportStore(ReportStore):
    """
    Report store backed by a SQLAlchemy session factory.

    Each call opens its own short-lived session, so one store instance can
    be shared across request threads and the scheduler thread.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @property
    def name(self) -> str:
        return "sql"

    def create(self, report: ReportSnapshot, event: Optional[LifecycleEventRecord] = None) -> ReportSnapshot:
        with self._session_factory() as db:
            row = Report(id=report.id, **_values({name: getattr(report, name) for name in REPORT_FIELDS}))
            db.add(row)
            if event:
                db.add(_event_row(event))
            db.commit()
            db.refresh(row)
            return _to_snapshot(row)

    def get(self, report_id: uuid.UUID) -> Optional[ReportSnapshot]:
        with self._session_factory() as db:
            row = db.get(Report, report_id)
            return _to_snapshot(row) if row else None

    def list_for_owner(
        self,
        owner_id: str,
        include_deleted: bool = False,
        deleted_only: bool = False,
        limit: int = 100,
    ) -> list[ReportSnapshot]:
        with self._session_factory() as db:
            query = db.query(Report).filter(Report.owner_id == owner_id)
            if deleted_only:
                query = query.filter(Report.is_deleted == True)
            elif not include_deleted:
                query = query.filter(Report.is_deleted == False)
            rows = query.order_by(Report.last_edited.desc()).limit(limit).all()
            return [_to_snapshot(r) for r in rows]

    def conditional_update(
        self,
        report_id: uuid.UUID,
        expect: dict[str, Any],
        changes: dict[str, Any],
        event: Optional[LifecycleEventRecord] = None,
    ) -> Optional[ReportSnapshot]:
        op = WriteOp(WriteOpKind.UPDATE, report_id, expect=expect, changes=changes, event=event)
        with self._session_factory() as db:
            if not self._apply_op(db, op):
                db.rollback()
                return None
            db.commit()
            row = db.get(Report, report_id)
            return _to_snapshot(row) if row else None

    def conditional_delete(
        self,
        report_id: uuid.UUID,
        expect: dict[str, Any],
        event: Optional[LifecycleEventRecord] = None,
    ) -> bool:
        op = WriteOp(WriteOpKind.DELETE, report_id, expect=expect, event=event)
        with self._session_factory() as db:
            if not self._apply_op(db, op):
                db.rollback()
                return False
            db.commit()
            return True

    def find_expired_deletions(
        self,
        deleted_before: datetime,
        limit: int,
        after: Optional[PageCursor] = None,
    ) -> list[ReportSnapshot]:
        with self._session_factory() as db:
            query = db.query(Report).filter(
                and_(
                    Report.is_deleted == True,
                    Report.deleted_at.isnot(None),
                    Report.deleted_at < deleted_before,
                )
            )
            if after is not None:
                query = query.filter(
                    or_(
                        Report.deleted_at > after[0],
                        and_(Report.deleted_at == after[0], Report.id > after[1]),
                    )
                )
            rows = query.order_by(Report.deleted_at, Report.id).limit(limit).all()
            return [_to_snapshot(r) for r in rows]

    def find_stale_drafts(
        self,
        edited_before: datetime,
        limit: int,
        after: Optional[PageCursor] = None,
    ) -> list[ReportSnapshot]:
        with self._session_factory() as db:
            query = db.query(Report).filter(
                and_(
                    Report.is_deleted == False,
                    Report.stage != ReportStage.STAGE3.value,
                    Report.last_edited < edited_before,
                )
            )
            if after is not None:
                query = query.filter(
                    or_(
                        Report.last_edited > after[0],
                        and_(Report.last_edited == after[0], Report.id > after[1]),
                    )
                )
            rows = query.order_by(Report.last_edited, Report.id).limit(limit).all()
            return [_to_snapshot(r) for r in rows]

    def write_batch(self, ops: list[WriteOp]) -> BatchWriteResult:
        """
        Apply ops in one transaction, each inside its own SAVEPOINT.

        A failing op rolls back only its savepoint. If the final commit
        fails, every op that looked applied is reported as failed.
        """
        result = BatchWriteResult()
        with self._session_factory() as db:
            for op in ops:
                try:
                    with db.begin_nested():
                        applied = self._apply_op(db, op)
                    result.outcomes.append(WriteOutcome(op=op, applied=applied))
                except SQLAlchemyError as e:
                    logger.warning(f"Batched write failed for report {op.report_id}: {e}")
                    result.outcomes.append(
                        WriteOutcome(op=op, applied=False, error=TransientWriteFailure(op.report_id, e))
                    )

            try:
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Batch commit failed ({len(ops)} ops): {e}")
                result.outcomes = [
                    WriteOutcome(op=o.op, applied=False, error=TransientWriteFailure(o.op.report_id, e))
                    if o.applied else o
                    for o in result.outcomes
                ]
        return result

    def list_events(self, report_id: uuid.UUID) -> list[LifecycleEventRecord]:
        with self._session_factory() as db:
            rows = (
                db.query(ReportLifecycleEvent)
                .filter(ReportLifecycleEvent.report_id == report_id)
                .order_by(ReportLifecycleEvent.occurred_at)
                .all()
            )
            return [_to_event(r) for r in rows]

    def record_run(self, run: RunRecord) -> RunRecord:
        with self._session_factory() as db:
            db.add(
                ReclamationRun(
                    id=run.id,
                    trigger=run.trigger,
                    started_at=run.started_at,
                    finished_at=run.finished_at,
                    elapsed_ms=run.elapsed_ms,
                    soft_deleted=run.soft_deleted,
                    hard_deleted=run.hard_deleted,
                    skipped=run.skipped,
                    errors=run.errors,
                    batches=run.batches,
                    cap_reached=run.cap_reached,
                    status=run.status,
                )
            )
            db.commit()
        return run

    def list_runs(self, limit: int = 20) -> list[RunRecord]:
        with self._session_factory() as db:
            rows = db.query(ReclamationRun).order_by(ReclamationRun.started_at.desc()).limit(limit).all()
            return [
                RunRecord(
                    id=r.id,
                    trigger=r.trigger,
                    started_at=_utc(r.started_at),
                    finished_at=_utc(r.finished_at),
                    elapsed_ms=r.elapsed_ms,
                    soft_deleted=r.soft_deleted,
                    hard_deleted=r.hard_deleted,
                    skipped=r.skipped,
                    errors=r.errors,
                    batches=r.batches,
                    cap_reached=r.cap_reached,
                    status=r.status,
                )
                for r in rows
            ]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _apply_op(db: Session, op: WriteOp) -> bool:
        query = db.query(Report).filter(Report.id == op.report_id, *_conditions(op.expect))
        if op.kind == WriteOpKind.DELETE:
            touched = query.delete(synchronize_session=False)
        else:
            touched = query.update(_values(op.changes), synchronize_session=False)

        if not touched:
            return False
        if op.event:
            db.add(_event_row(op.event))
        db.flush()
        return True
