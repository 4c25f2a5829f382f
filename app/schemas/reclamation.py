# app/schemas/reclamation.py
"""
Schemas for admin reclamation endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.services.lifecycle.reclamation_service import ReclamationResult
from app.store.types import RunRecord


class ReclamationRunRequest(BaseModel):
    """Request to trigger reclamation by hand."""

    dry_run: bool = Field(False, description="Preview only, don't delete")
    confirm: bool = Field(False, description="Required confirmation for non-dry-run")


class ReclamationSummary(BaseModel):
    """
    Summary of one reclamation run.

    Serialized in camelCase: {softDeleted, hardDeleted, errors, elapsedMs, ...}
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    soft_deleted: int
    hard_deleted: int
    errors: int
    elapsed_ms: int
    skipped: int = 0
    batches: int = 0
    cap_reached: bool = False
    run_id: str
    trigger: str
    dry_run: bool = False
    status: str = Field(..., description="completed|partial")

    @classmethod
    def from_result(cls, result: ReclamationResult) -> "ReclamationSummary":
        return cls(
            soft_deleted=result.soft_deleted,
            hard_deleted=result.hard_deleted,
            errors=result.errors,
            elapsed_ms=result.elapsed_ms,
            skipped=result.skipped,
            batches=result.batches,
            cap_reached=result.cap_reached,
            run_id=str(result.run_id),
            trigger=result.trigger.value,
            dry_run=result.dry_run,
            status=result.status,
        )


class ReclamationRunResponse(BaseModel):
    """A persisted run from GET /v1/admin/reclamation/runs."""

    id: str
    trigger: str = Field(..., description="scheduled|manual|cli")
    status: str
    started_at: datetime
    finished_at: datetime
    elapsed_ms: int
    soft_deleted: int
    hard_deleted: int
    skipped: int
    errors: int
    batches: int
    cap_reached: bool

    @classmethod
    def from_record(cls, run: RunRecord) -> "ReclamationRunResponse":
        return cls(
            id=str(run.id),
            trigger=run.trigger,
            status=run.status,
            started_at=run.started_at,
            finished_at=run.finished_at,
            elapsed_ms=run.elapsed_ms,
            soft_deleted=run.soft_deleted,
            hard_deleted=run.hard_deleted,
            skipped=run.skipped,
            errors=run.errors,
            batches=run.batches,
            cap_reached=run.cap_reached,
        )
