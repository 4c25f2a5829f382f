# app/routers/admin_reclamation.py
"""
Admin endpoints for report reclamation.

POST /v1/admin/reclamation/run           - Manual run (superadmin)
GET  /v1/admin/reclamation/preview       - Dry run: what a run would delete now (or as of a given time)
GET  /v1/admin/reclamation/runs          - Recent run history
POST /v1/admin/reclamation/scheduled-run - Scheduled run (for an external cron)
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from app.auth import Principal, require_admin_key, require_superadmin
from app.clock import Clock, ManualClock, get_clock
from app.models import ReclamationTrigger
from app.schemas.reclamation import (
    ReclamationRunRequest,
    ReclamationRunResponse,
    ReclamationSummary,
)
from app.services.lifecycle.manual_trigger import run_manual_reclamation
from app.services.lifecycle.reclamation_service import ReclamationConfig, run_reclamation
from app.store import ReportStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin/reclamation", tags=["admin-reclamation"])


def get_reclamation_config() -> ReclamationConfig:
    return ReclamationConfig.from_settings()


@router.post("/run", response_model=ReclamationSummary)
def trigger_reclamation(
    request: ReclamationRunRequest = ReclamationRunRequest(),
    principal: Principal = Depends(require_superadmin),
    store: ReportStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    config: ReclamationConfig = Depends(get_reclamation_config),
) -> ReclamationSummary:
    """
    Run reclamation now.

    **WARNING**: Hard deletes are permanent.

    Requires the superadmin capability, and `confirm: true` unless
    `dry_run` is set.
    """
    if not request.dry_run and not request.confirm:
        raise HTTPException(
            status_code=400,
            detail="Reclamation requires 'confirm: true' for non-dry-run operations",
        )

    result = run_manual_reclamation(principal, store, clock=clock, config=config, dry_run=request.dry_run)
    return ReclamationSummary.from_result(result)


@router.get("/preview", response_model=ReclamationSummary)
def preview_reclamation(
    as_of: datetime | None = Query(None, description="Evaluate as if it were this time (default: now)"),
    principal: Principal = Depends(require_superadmin),
    store: ReportStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    config: ReclamationConfig = Depends(get_reclamation_config),
) -> ReclamationSummary:
    """
    Preview what a run would do without making changes.

    Counts are what a run would attempt; concurrent user actions can still
    turn some of them into skips at run time.
    """
    preview_clock = ManualClock(as_of) if as_of else clock
    result = run_manual_reclamation(principal, store, clock=preview_clock, config=config, dry_run=True)
    return ReclamationSummary.from_result(result)


@router.get("/runs", response_model=list[ReclamationRunResponse])
def list_reclamation_runs(
    limit: int = Query(20, ge=1, le=200),
    _: Principal = Depends(require_superadmin),
    store: ReportStore = Depends(get_store),
) -> list[ReclamationRunResponse]:
    """Most recent runs first."""
    return [ReclamationRunResponse.from_record(r) for r in store.list_runs(limit=limit)]


@router.post("/scheduled-run", response_model=ReclamationSummary)
def run_scheduled_reclamation(
    store: ReportStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    config: ReclamationConfig = Depends(get_reclamation_config),
    _: None = Depends(require_admin_key),
) -> ReclamationSummary:
    """
    Run reclamation for scheduled/cron execution.

    Designed to be called once a day by an external cron. A failed
    candidate query fails the whole run with 503 so the cron retries;
    per-report failures only show up in the `errors` count.
    """
    try:
        result = run_reclamation(store, clock=clock, config=config, trigger=ReclamationTrigger.SCHEDULED)
    except Exception as e:
        logger.exception(f"Scheduled reclamation failed: {e}")
        raise HTTPException(status_code=503, detail=f"Reclamation run failed: {e}")
    return ReclamationSummary.from_result(result)
