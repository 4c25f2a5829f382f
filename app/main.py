# app/main.py
"""
Report lifecycle service.

Mounts the report and admin reclamation routers, maps lifecycle errors to
HTTP responses, and optionally runs the reclamation scheduler in process.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.errors import (
    Forbidden,
    InvalidTransition,
    LifecycleError,
    RecoveryWindowExpired,
    ReportDeleted,
    ReportNotFound,
)
from app.logging_config import configure_logging
from app.routers import admin_reclamation_router, reports_router

logger = logging.getLogger(__name__)

# Most specific first; LifecycleError is the fallback
ERROR_STATUS = (
    (ReportNotFound, 404),
    (RecoveryWindowExpired, 410),
    (Forbidden, 403),
    (InvalidTransition, 409),
    (ReportDeleted, 409),
    (LifecycleError, 409),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)

    scheduler = None
    if settings.RECLAMATION_SCHEDULER_ENABLED:
        from app.services.lifecycle.scheduler import build_scheduler
        from app.store import get_report_store

        scheduler = build_scheduler(get_report_store(), settings=settings)
        scheduler.start()

    logger.info(f"Report lifecycle service started ({settings.ENVIRONMENT})")
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()


app = FastAPI(title="Report Lifecycle API", lifespan=lifespan)

app.include_router(reports_router)
app.include_router(admin_reclamation_router)


@app.exception_handler(LifecycleError)
def handle_lifecycle_error(request: Request, exc: LifecycleError) -> JSONResponse:
    status_code = next(code for error_type, code in ERROR_STATUS if isinstance(exc, error_type))
    detail = "This report is no longer recoverable" if isinstance(exc, RecoveryWindowExpired) else str(exc)
    return JSONResponse(status_code=status_code, content={"detail": detail})


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "report-lifecycle-api"}
