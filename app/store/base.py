# app/store/base.py
"""
Report store interface.

Design principles:
- The lifecycle subsystem talks to a generic document store, never to a
  session or connection directly; a store is injected into every service
- Mutations are single-document, field-level and conditional: each write
  names the field values it expects and is skipped if they changed
- Candidate queries are range queries on a timestamp with keyset
  pagination, so a run never holds more than one batch in memory
- Batched writes report per-document outcomes; one failure never hides
  or rolls back the others
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from app.store.types import (
    BatchWriteResult,
    LifecycleEventRecord,
    PageCursor,
    ReportSnapshot,
    RunRecord,
    WriteOp,
)


class ReportStore(ABC):
    """
    Abstract interface for report persistence.

    Implementations must be safe to call from several threads: the HTTP
    layer and the reclamation scheduler share one store.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'sql', 'memory')."""
        pass

    @abstractmethod
    def create(self, report: ReportSnapshot, event: Optional[LifecycleEventRecord] = None) -> ReportSnapshot:
        """Insert a new report (and its creation event)."""
        pass

    @abstractmethod
    def get(self, report_id: uuid.UUID) -> Optional[ReportSnapshot]:
        """Fetch a report, or None if it does not exist."""
        pass

    @abstractmethod
    def list_for_owner(
        self,
        owner_id: str,
        include_deleted: bool = False,
        deleted_only: bool = False,
        limit: int = 100,
    ) -> list[ReportSnapshot]:
        """Owner-scoped listing, most recently edited first."""
        pass

    @abstractmethod
    def conditional_update(
        self,
        report_id: uuid.UUID,
        expect: dict[str, Any],
        changes: dict[str, Any],
        event: Optional[LifecycleEventRecord] = None,
    ) -> Optional[ReportSnapshot]:
        """
        Apply `changes` only if the report still matches `expect`.

        Returns:
            The updated snapshot, or None if the report is missing or a
            precondition no longer holds (nothing is written in that case)
        """
        pass

    @abstractmethod
    def conditional_delete(
        self,
        report_id: uuid.UUID,
        expect: dict[str, Any],
        event: Optional[LifecycleEventRecord] = None,
    ) -> bool:
        """
        Remove the report only if it still matches `expect`.

        Returns:
            True if a report was removed
        """
        pass

    @abstractmethod
    def find_expired_deletions(
        self,
        deleted_before: datetime,
        limit: int,
        after: Optional[PageCursor] = None,
    ) -> list[ReportSnapshot]:
        """
        Soft-deleted reports with deleted_at < deleted_before.

        Ordered by (deleted_at, id); `after` resumes past the last row of
        the previous page.
        """
        pass

    @abstractmethod
    def find_stale_drafts(
        self,
        edited_before: datetime,
        limit: int,
        after: Optional[PageCursor] = None,
    ) -> list[ReportSnapshot]:
        """
        Live, unfinished reports (not deleted, stage != stage3) with
        last_edited < edited_before, ordered by (last_edited, id).
        """
        pass

    @abstractmethod
    def write_batch(self, ops: list[WriteOp]) -> BatchWriteResult:
        """
        Apply a batch of conditional writes.

        Every op gets an outcome: applied, skipped (precondition failed or
        document gone) or failed (error wrapped in TransientWriteFailure).
        """
        pass

    @abstractmethod
    def list_events(self, report_id: uuid.UUID) -> list[LifecycleEventRecord]:
        """Lifecycle events for a report, oldest first. Survives hard deletion."""
        pass

    @abstractmethod
    def record_run(self, run: RunRecord) -> RunRecord:
        """Persist a reclamation run summary."""
        pass

    @abstractmethod
    def list_runs(self, limit: int = 20) -> list[RunRecord]:
        """Most recent reclamation runs first."""
        pass
