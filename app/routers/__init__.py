# app/routers/__init__.py
"""
API routers for v1 endpoints.
"""

from app.routers.admin_reclamation import router as admin_reclamation_router
from app.routers.reports import router as reports_router

__all__ = [
    "reports_router",
    "admin_reclamation_router",
]
