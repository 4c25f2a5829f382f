# app/store/memory_provider.py
"""
In-memory report store for development and testing.

Mimics the SQL store's conditional-write semantics but keeps everything
in process memory. NOT for production use.
"""

import copy
import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Optional

from app.errors import TransientWriteFailure
from app.models import ReportStage
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
    matches,
)

logger = logging.getLogger(__name__)


class MemoryReportStore(ReportStore):
    """
    Thread-safe dict-backed store.

    Snapshots are deep-copied on the way in and out so callers can never
    mutate stored state behind the store's back.
    """

    def __init__(self):
        self._reports: dict[uuid.UUID, ReportSnapshot] = {}
        self._events: list[LifecycleEventRecord] = []
        self._runs: list[RunRecord] = []
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return "memory"

    def __len__(self) -> int:
        with self._lock:
            return len(self._reports)

    def create(self, report: ReportSnapshot, event: Optional[LifecycleEventRecord] = None) -> ReportSnapshot:
        with self._lock:
            if report.id in self._reports:
                raise ValueError(f"Report {report.id} already exists")
            self._reports[report.id] = copy.deepcopy(report)
            if event:
                self._events.append(copy.deepcopy(event))
            return copy.deepcopy(report)

    def get(self, report_id: uuid.UUID) -> Optional[ReportSnapshot]:
        with self._lock:
            report = self._reports.get(report_id)
            return copy.deepcopy(report) if report else None

    def list_for_owner(
        self,
        owner_id: str,
        include_deleted: bool = False,
        deleted_only: bool = False,
        limit: int = 100,
    ) -> list[ReportSnapshot]:
        with self._lock:
            rows = [r for r in self._reports.values() if r.owner_id == owner_id]
        if deleted_only:
            rows = [r for r in rows if r.is_deleted]
        elif not include_deleted:
            rows = [r for r in rows if not r.is_deleted]
        rows.sort(key=lambda r: r.last_edited, reverse=True)
        return [copy.deepcopy(r) for r in rows[:limit]]

    def conditional_update(
        self,
        report_id: uuid.UUID,
        expect: dict[str, Any],
        changes: dict[str, Any],
        event: Optional[LifecycleEventRecord] = None,
    ) -> Optional[ReportSnapshot]:
        op = WriteOp(WriteOpKind.UPDATE, report_id, expect=expect, changes=changes, event=event)
        with self._lock:
            if not self._apply_op(op):
                return None
            return copy.deepcopy(self._reports[report_id])

    def conditional_delete(
        self,
        report_id: uuid.UUID,
        expect: dict[str, Any],
        event: Optional[LifecycleEventRecord] = None,
    ) -> bool:
        op = WriteOp(WriteOpKind.DELETE, report_id, expect=expect, event=event)
        with self._lock:
            return self._apply_op(op)

    def find_expired_deletions(
        self,
        deleted_before: datetime,
        limit: int,
        after: Optional[PageCursor] = None,
    ) -> list[ReportSnapshot]:
        with self._lock:
            rows = [
                r for r in self._reports.values()
                if r.is_deleted and r.deleted_at is not None and r.deleted_at < deleted_before
            ]
            return self._page(rows, "deleted_at", limit, after)

    def find_stale_drafts(
        self,
        edited_before: datetime,
        limit: int,
        after: Optional[PageCursor] = None,
    ) -> list[ReportSnapshot]:
        with self._lock:
            rows = [
                r for r in self._reports.values()
                if not r.is_deleted and r.stage != ReportStage.STAGE3 and r.last_edited < edited_before
            ]
            return self._page(rows, "last_edited", limit, after)

    def write_batch(self, ops: list[WriteOp]) -> BatchWriteResult:
        result = BatchWriteResult()
        with self._lock:
            for op in ops:
                try:
                    applied = self._apply_op(op)
                    result.outcomes.append(WriteOutcome(op=op, applied=applied))
                except Exception as e:
                    logger.warning(f"Batched write failed for report {op.report_id}: {e}")
                    result.outcomes.append(
                        WriteOutcome(op=op, applied=False, error=TransientWriteFailure(op.report_id, e))
                    )
        return result

    def list_events(self, report_id: uuid.UUID) -> list[LifecycleEventRecord]:
        with self._lock:
            events = [e for e in self._events if e.report_id == report_id]
        events.sort(key=lambda e: e.occurred_at)
        return [copy.deepcopy(e) for e in events]

    def record_run(self, run: RunRecord) -> RunRecord:
        with self._lock:
            self._runs.append(copy.deepcopy(run))
        return run

    def list_runs(self, limit: int = 20) -> list[RunRecord]:
        with self._lock:
            runs = sorted(self._runs, key=lambda r: r.started_at, reverse=True)
        return [copy.deepcopy(r) for r in runs[:limit]]

    # -------------------------------------------------------------------------
    # Internals (caller holds the lock)
    # -------------------------------------------------------------------------

    def _apply_op(self, op: WriteOp) -> bool:
        current = self._reports.get(op.report_id)
        if current is None or not matches(current, op.expect):
            return False

        if op.kind == WriteOpKind.DELETE:
            del self._reports[op.report_id]
        else:
            unknown = set(op.changes) - set(REPORT_FIELDS)
            if unknown:
                raise ValueError(f"Unknown report fields: {sorted(unknown)}")
            for name, value in op.changes.items():
                setattr(current, name, copy.deepcopy(value))

        if op.event:
            self._events.append(copy.deepcopy(op.event))
        return True

    @staticmethod
    def _page(
        rows: list[ReportSnapshot],
        field: str,
        limit: int,
        after: Optional[PageCursor],
    ) -> list[ReportSnapshot]:
        def key(r: ReportSnapshot):
            return (getattr(r, field), r.id.hex)

        rows.sort(key=key)
        if after is not None:
            cursor = (after[0], after[1].hex)
            rows = [r for r in rows if key(r) > cursor]
        return [copy.deepcopy(r) for r in rows[:limit]]
