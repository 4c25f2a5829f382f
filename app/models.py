# app/models.py
"""
Report lifecycle database models

Tables:
- Report: Staged inspection reports with soft-delete state
- ReportLifecycleEvent: Immutable audit trail of lifecycle mutations
- ReclamationRun: Summary of each reclamation run (scheduled, manual, cli)
"""

from datetime import UTC, datetime
from enum import Enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Uuid,
)

from app.database import Base


def utcnow() -> datetime:
    return datetime.now(UTC)


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class ReportStage(str, Enum):
    """Authoring stages, in order. STAGE3 is terminal (completed report)."""
    STAGE1 = "stage1"  # On-site data collection
    STAGE2 = "stage2"  # Office annotation and mapping
    STAGE3 = "stage3"  # Complete


class ExpirationReason(str, Enum):
    """Why the system (not a user) deleted a report."""
    STALE_DRAFT = "stale-draft"
    RECOVERY_WINDOW_ELAPSED = "recovery-window-elapsed"


class LifecycleEventType(str, Enum):
    CREATED = "created"
    CONTENT_EDITED = "content_edited"
    STAGE_ADVANCED = "stage_advanced"
    SOFT_DELETED = "soft_deleted"
    RECOVERED = "recovered"
    HARD_DELETED = "hard_deleted"


class ReclamationTrigger(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"
    CLI = "cli"


# -----------------------------------------------------------------------------
# Report
# -----------------------------------------------------------------------------

class Report(Base):
    """
    A staged report document.

    Lifecycle columns are owned by this service. `content` holds the
    authoring payload (customer, roof, checklist, issues, costs) and is
    never inspected by lifecycle logic except for stage gate presence checks.
    """
    __tablename__ = "reports"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(String(128), nullable=False)
    branch_id = Column(String(128), nullable=True)

    stage = Column(String(16), nullable=False, default=ReportStage.STAGE1.value)
    stage1_completed_at = Column(DateTime(timezone=True), nullable=True)
    stage2_completed_at = Column(DateTime(timezone=True), nullable=True)

    # Soft delete: is_deleted <=> deleted_at is set
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    expiration_reason = Column(String(32), nullable=True)  # ExpirationReason, system deletes only

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_edited = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    content = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_reports_owner_id", "owner_id"),
        Index("ix_reports_branch_id", "branch_id"),
        Index("ix_reports_deleted", "is_deleted", "deleted_at"),
        Index("ix_reports_stale", "is_deleted", "stage", "last_edited"),
    )


# -----------------------------------------------------------------------------
# ReportLifecycleEvent
# -----------------------------------------------------------------------------

class ReportLifecycleEvent(Base):
    """
    Audit trail for report lifecycle mutations.

    report_id is deliberately not a foreign key: events outlive the
    report they describe once it has been hard-deleted.
    """
    __tablename__ = "report_lifecycle_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_id = Column(Uuid(as_uuid=True), nullable=False)
    event_type = Column(String(32), nullable=False)  # LifecycleEventType
    occurred_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    initiated_by = Column(String(160), nullable=False)  # "user:<id>", "scheduler", "operator", "cli"
    reason = Column(String(32), nullable=True)
    event_metadata = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_report_lifecycle_events_report_id", "report_id"),
        Index("ix_report_lifecycle_events_occurred_at", "occurred_at"),
    )


# -----------------------------------------------------------------------------
# ReclamationRun
# -----------------------------------------------------------------------------

class ReclamationRun(Base):
    """Summary of one reclamation run."""
    __tablename__ = "reclamation_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    trigger = Column(String(16), nullable=False)  # ReclamationTrigger

    started_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=False)
    elapsed_ms = Column(Integer, nullable=False)

    soft_deleted = Column(Integer, default=0, nullable=False)
    hard_deleted = Column(Integer, default=0, nullable=False)
    skipped = Column(Integer, default=0, nullable=False)
    errors = Column(Integer, default=0, nullable=False)
    batches = Column(Integer, default=0, nullable=False)
    cap_reached = Column(Boolean, default=False, nullable=False)

    status = Column(String(16), nullable=False)  # "completed", "partial"

    __table_args__ = (
        Index("ix_reclamation_runs_started_at", "started_at"),
    )
