# app/store/factory.py
"""
Factory function for creating report stores.
"""

import logging
from typing import Optional

from app.config import get_settings
from app.store.base import ReportStore

logger = logging.getLogger(__name__)

# Global singleton instance
_report_store: Optional[ReportStore] = None


def get_report_store(provider_name: Optional[str] = None) -> ReportStore:
    """
    Get or create the report store instance.

    Args:
        provider_name: 'sql' or 'memory' (default from REPORT_STORE setting)

    Returns:
        ReportStore instance (singleton)
    """
    global _report_store

    if _report_store is not None:
        return _report_store

    name = (provider_name or get_settings().REPORT_STORE).lower().strip()

    if name == "sql":
        from app.database import get_session_factory, init_db
        from app.store.sql_provider import SqlReportStore

        init_db()
        _report_store = SqlReportStore(get_session_factory())
    elif name == "memory":
        from app.store.memory_provider import MemoryReportStore

        _report_store = MemoryReportStore()
    else:
        raise ValueError(f"Unknown report store: {name}. Available: sql, memory")

    logger.info(f"Report store initialized: {_report_store.name}")
    return _report_store


def set_report_store(store: ReportStore) -> None:
    """
    Set a custom report store (useful for testing).
    """
    global _report_store
    _report_store = store


def reset_report_store() -> None:
    """
    Reset the report store singleton (for testing).
    """
    global _report_store
    _report_store = None


def get_store() -> ReportStore:
    """FastAPI dependency returning the process report store."""
    return get_report_store()
