# app/schemas/reports.py
"""
Schemas for report endpoints.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.services.lifecycle.policy import ExpirationPolicy, recoverable_until
from app.store.types import LifecycleEventRecord, ReportSnapshot

# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------


class ReportCreateRequest(BaseModel):
    """Start a new report (stage1)."""

    branch_id: str | None = Field(None, description="Branch the report belongs to")
    content: dict[str, Any] = Field(default_factory=dict, description="Initial authoring payload")


class ReportEditRequest(BaseModel):
    """Fields to merge into the report content."""

    content: dict[str, Any] = Field(..., description="Content fields to set (merged, not replaced)")


class AdvanceStageRequest(BaseModel):
    """Move a report to its next stage."""

    target: str = Field(..., description="stage2|stage3 (must be the next stage)")
    payload: dict[str, Any] | None = Field(None, description="Content merged before the stage gate check")


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------


class ReportResponse(BaseModel):
    """
    A report with its lifecycle state.
    GET /v1/reports/{id}
    """

    id: str = Field(..., description="Report ID (UUID)")
    owner_id: str
    branch_id: str | None = None
    stage: str = Field(..., description="stage1|stage2|stage3")
    stage1_completed_at: datetime | None = None
    stage2_completed_at: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    expiration_reason: str | None = Field(None, description="stale-draft|recovery-window-elapsed when deleted by the system")
    recoverable_until: datetime | None = Field(None, description="Last moment a deleted report can be recovered")
    created_at: datetime
    last_edited: datetime
    content: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, report: ReportSnapshot, policy: ExpirationPolicy) -> "ReportResponse":
        return cls(
            id=str(report.id),
            owner_id=report.owner_id,
            branch_id=report.branch_id,
            stage=report.stage.value,
            stage1_completed_at=report.stage1_completed_at,
            stage2_completed_at=report.stage2_completed_at,
            is_deleted=report.is_deleted,
            deleted_at=report.deleted_at,
            expiration_reason=report.expiration_reason.value if report.expiration_reason else None,
            recoverable_until=recoverable_until(report, policy),
            created_at=report.created_at,
            last_edited=report.last_edited,
            content=report.content,
        )


class ReportListResponse(BaseModel):
    """GET /v1/reports"""

    items: list[ReportResponse]
    total: int


class SoftDeleteResponse(BaseModel):
    """Result of DELETE /v1/reports/{id}."""

    id: str
    deleted_at: datetime
    recoverable_until: datetime


class LifecycleEventResponse(BaseModel):
    """One entry of a report's audit trail."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    report_id: str
    event_type: str
    occurred_at: datetime
    initiated_by: str
    reason: str | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_record(cls, event: LifecycleEventRecord) -> "LifecycleEventResponse":
        return cls(
            id=str(event.id),
            report_id=str(event.report_id),
            event_type=event.event_type.value,
            occurred_at=event.occurred_at,
            initiated_by=event.initiated_by,
            reason=event.reason,
            metadata=event.metadata,
        )
