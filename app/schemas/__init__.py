# app/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.
"""

from app.schemas.reclamation import (
    ReclamationRunRequest,
    ReclamationRunResponse,
    ReclamationSummary,
)
from app.schemas.reports import (
    AdvanceStageRequest,
    LifecycleEventResponse,
    ReportCreateRequest,
    ReportEditRequest,
    ReportListResponse,
    ReportResponse,
    SoftDeleteResponse,
)

__all__ = [
    "AdvanceStageRequest",
    "LifecycleEventResponse",
    "ReportCreateRequest",
    "ReportEditRequest",
    "ReportListResponse",
    "ReportResponse",
    "SoftDeleteResponse",
    "ReclamationRunRequest",
    "ReclamationRunResponse",
    "ReclamationSummary",
]
