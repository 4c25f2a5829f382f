# app/routers/reports.py
"""
Report authoring and lifecycle endpoints.

POST   /v1/reports                  - Create a report (stage1)
GET    /v1/reports                  - List the caller's reports
GET    /v1/reports/deleted          - Recently deleted reports, with recovery deadlines
GET    /v1/reports/{id}             - Get a report
PATCH  /v1/reports/{id}             - Edit report content
POST   /v1/reports/{id}/advance     - Advance to the next stage
DELETE /v1/reports/{id}             - Soft delete
POST   /v1/reports/{id}/recover     - Recover a soft-deleted report
GET    /v1/reports/{id}/events      - Lifecycle audit trail

Reports are owner-scoped: another user's report is reported as not found.
Superadmins can reach any report.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query

from app.auth import Principal, get_principal
from app.clock import Clock, get_clock
from app.errors import ReportNotFound
from app.schemas.reports import (
    AdvanceStageRequest,
    LifecycleEventResponse,
    ReportCreateRequest,
    ReportEditRequest,
    ReportListResponse,
    ReportResponse,
    SoftDeleteResponse,
)
from app.services.lifecycle import recovery_service, stages
from app.services.lifecycle.policy import ExpirationPolicy
from app.store import ReportStore, get_store
from app.store.types import ReportSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/reports", tags=["reports"])


def get_policy() -> ExpirationPolicy:
    return ExpirationPolicy.from_settings()


def _load_owned(store: ReportStore, principal: Principal, report_id: uuid.UUID) -> ReportSnapshot:
    report = store.get(report_id)
    if report is None or not (principal.is_superadmin or report.owner_id == principal.subject):
        raise ReportNotFound(report_id)
    return report


@router.post("", response_model=ReportResponse, status_code=201)
def create_report(
    request: ReportCreateRequest,
    principal: Principal = Depends(get_principal),
    store: ReportStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    policy: ExpirationPolicy = Depends(get_policy),
) -> ReportResponse:
    report = stages.create_report(
        store,
        clock,
        owner_id=principal.subject,
        branch_id=request.branch_id,
        content=request.content,
        initiated_by=principal.actor,
    )
    return ReportResponse.from_snapshot(report, policy)


@router.get("", response_model=ReportListResponse)
def list_reports(
    include_deleted: bool = Query(False, description="Include soft-deleted reports"),
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(get_principal),
    store: ReportStore = Depends(get_store),
    policy: ExpirationPolicy = Depends(get_policy),
) -> ReportListResponse:
    reports = store.list_for_owner(principal.subject, include_deleted=include_deleted, limit=limit)
    items = [ReportResponse.from_snapshot(r, policy) for r in reports]
    return ReportListResponse(items=items, total=len(items))


@router.get("/deleted", response_model=ReportListResponse)
def list_deleted_reports(
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(get_principal),
    store: ReportStore = Depends(get_store),
    policy: ExpirationPolicy = Depends(get_policy),
) -> ReportListResponse:
    """
    The "recently deleted" view.

    Each item carries recoverable_until; after that instant the report is
    eligible for permanent deletion.
    """
    deleted = recovery_service.list_deleted(store, principal.subject, policy=policy, limit=limit)
    items = [ReportResponse.from_snapshot(d.report, policy) for d in deleted]
    return ReportListResponse(items=items, total=len(items))


@router.get("/{report_id}", response_model=ReportResponse)
def get_report(
    report_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    store: ReportStore = Depends(get_store),
    policy: ExpirationPolicy = Depends(get_policy),
) -> ReportResponse:
    return ReportResponse.from_snapshot(_load_owned(store, principal, report_id), policy)


@router.patch("/{report_id}", response_model=ReportResponse)
def edit_report(
    report_id: uuid.UUID,
    request: ReportEditRequest,
    principal: Principal = Depends(get_principal),
    store: ReportStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    policy: ExpirationPolicy = Depends(get_policy),
) -> ReportResponse:
    _load_owned(store, principal, report_id)
    report = stages.edit_report(store, clock, report_id, request.content, initiated_by=principal.actor)
    return ReportResponse.from_snapshot(report, policy)


@router.post("/{report_id}/advance", response_model=ReportResponse)
def advance_report(
    report_id: uuid.UUID,
    request: AdvanceStageRequest,
    principal: Principal = Depends(get_principal),
    store: ReportStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    policy: ExpirationPolicy = Depends(get_policy),
) -> ReportResponse:
    _load_owned(store, principal, report_id)
    report = stages.advance_stage(
        store,
        clock,
        report_id,
        request.target,
        payload=request.payload,
        initiated_by=principal.actor,
    )
    return ReportResponse.from_snapshot(report, policy)


@router.delete("/{report_id}", response_model=SoftDeleteResponse)
def delete_report(
    report_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    store: ReportStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    policy: ExpirationPolicy = Depends(get_policy),
) -> SoftDeleteResponse:
    """Soft delete. The report stays recoverable for the recovery window."""
    _load_owned(store, principal, report_id)
    deleted_at = recovery_service.soft_delete(store, clock, report_id, initiated_by=principal.actor)
    return SoftDeleteResponse(
        id=str(report_id),
        deleted_at=deleted_at,
        recoverable_until=deleted_at + policy.recovery_window,
    )


@router.post("/{report_id}/recover", response_model=ReportResponse)
def recover_report(
    report_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    store: ReportStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    policy: ExpirationPolicy = Depends(get_policy),
) -> ReportResponse:
    """
    Recover a soft-deleted report.

    Returns 410 once the recovery window has elapsed or the report was
    already permanently deleted.
    """
    report = store.get(report_id)
    if report is not None and not (principal.is_superadmin or report.owner_id == principal.subject):
        raise ReportNotFound(report_id)
    recovered = recovery_service.recover(store, clock, report_id, initiated_by=principal.actor, policy=policy)
    return ReportResponse.from_snapshot(recovered, policy)


@router.get("/{report_id}/events", response_model=list[LifecycleEventResponse])
def list_report_events(
    report_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    store: ReportStore = Depends(get_store),
) -> list[LifecycleEventResponse]:
    """
    Audit trail of a report.

    Events outlive the report; once it is hard-deleted only superadmins
    can read them.
    """
    if not principal.is_superadmin:
        _load_owned(store, principal, report_id)
    events = store.list_events(report_id)
    if not events:
        raise ReportNotFound(report_id)
    return [LifecycleEventResponse.from_record(e) for e in events]
