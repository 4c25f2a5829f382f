# tests/conftest.py
"""
Pytest configuration and fixtures.
"""

import os
import uuid
from datetime import UTC, datetime, timedelta

import pytest

# Set test environment
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REPORT_STORE", "memory")

# 2 AM UTC, when the daily reclamation job runs
T0 = datetime(2026, 3, 1, 2, 0, tzinfo=UTC)

STAGE1_FIELDS = {
    "customer_name": "Dana Whitfield",
    "customer_address": "14 Larch Lane",
    "inspection_date": "2026-02-27",
    "roof_type": "asphalt shingle",
}
STAGE2_FIELDS = {
    "issues_found": [{"area": "north slope", "issue": "lifted shingles"}],
    "recommended_actions": ["reseal flashing"],
}


@pytest.fixture
def clock():
    """Manual clock pinned to T0."""
    from app.clock import ManualClock

    return ManualClock(T0)


@pytest.fixture
def memory_store():
    from app.store.memory_provider import MemoryReportStore

    return MemoryReportStore()


@pytest.fixture
def sql_store():
    """SQL store on a fresh in-memory SQLite database."""
    from sqlalchemy.orm import sessionmaker

    from app.database import build_engine, init_db
    from app.store.sql_provider import SqlReportStore

    engine = build_engine("sqlite:///:memory:")
    init_db(engine)
    yield SqlReportStore(sessionmaker(bind=engine, autoflush=False, future=True))
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Every store provider, so behaviour is checked against both."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def make_report(clock):
    """
    Insert a report relative to the clock.

    edited_ago: how long ago it was last edited
    deleted_ago: if set, the report is soft-deleted that long ago
    """
    from app.models import ReportStage
    from app.store.types import ReportSnapshot

    def _make(
        store,
        stage=ReportStage.STAGE1,
        edited_ago=timedelta(0),
        deleted_ago=None,
        owner_id="user-1",
        content=None,
        reason=None,
    ):
        now = clock.now()
        last_edited = now - edited_ago
        report = ReportSnapshot(
            id=uuid.uuid4(),
            owner_id=owner_id,
            branch_id="branch-1",
            stage=stage,
            created_at=last_edited,
            last_edited=last_edited,
            content=dict(content or {}),
        )
        if deleted_ago is not None:
            report.is_deleted = True
            report.deleted_at = now - deleted_ago
            report.expiration_reason = reason
        return store.create(report)

    return _make


@pytest.fixture
def stage1_fields():
    return dict(STAGE1_FIELDS)


@pytest.fixture
def stage2_fields():
    return dict(STAGE2_FIELDS)
