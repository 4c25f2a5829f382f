# app/store/__init__.py
"""
Report store abstraction.

Lifecycle services receive a ReportStore instead of a database session:
conditional single-document writes, keyset-paginated timestamp range
queries, and batched writes with per-document outcomes.
"""

from app.store.base import ReportStore
from app.store.factory import (
    get_report_store,
    get_store,
    reset_report_store,
    set_report_store,
)
from app.store.memory_provider import MemoryReportStore
from app.store.sql_provider import SqlReportStore
from app.store.types import (
    BatchWriteResult,
    LifecycleEventRecord,
    ReportSnapshot,
    RunRecord,
    WriteOp,
    WriteOpKind,
    WriteOutcome,
)

__all__ = [
    "ReportStore",
    "MemoryReportStore",
    "SqlReportStore",
    "ReportSnapshot",
    "LifecycleEventRecord",
    "RunRecord",
    "WriteOp",
    "WriteOpKind",
    "WriteOutcome",
    "BatchWriteResult",
    "get_report_store",
    "get_store",
    "set_report_store",
    "reset_report_store",
]
