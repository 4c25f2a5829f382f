# app/store/types.py
"""
Data types exchanged with report store providers.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from app.models import ExpirationReason, LifecycleEventType, ReportStage

# Keyset pagination cursor: (timestamp of last row, id of last row)
PageCursor = tuple[datetime, uuid.UUID]


@dataclass
class ReportSnapshot:
    """Point-in-time copy of a report. Mutating it never touches the store."""

    id: uuid.UUID
    owner_id: str
    branch_id: str | None
    stage: ReportStage
    created_at: datetime
    last_edited: datetime
    is_deleted: bool = False
    deleted_at: datetime | None = None
    expiration_reason: ExpirationReason | None = None
    stage1_completed_at: datetime | None = None
    stage2_completed_at: datetime | None = None
    content: dict[str, Any] = field(default_factory=dict)


# Columns a conditional write may test or change
REPORT_FIELDS = (
    "owner_id",
    "branch_id",
    "stage",
    "created_at",
    "last_edited",
    "is_deleted",
    "deleted_at",
    "expiration_reason",
    "stage1_completed_at",
    "stage2_completed_at",
    "content",
)


@dataclass
class LifecycleEventRecord:
    report_id: uuid.UUID
    event_type: LifecycleEventType
    occurred_at: datetime
    initiated_by: str
    reason: str | None = None
    metadata: dict[str, Any] | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


class WriteOpKind(str, Enum):
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class WriteOp:
    """
    One conditional single-document write.

    `expect` maps field names to the values the document must still hold
    for the write to apply. A write whose preconditions no longer hold is
    skipped, not failed.
    """

    kind: WriteOpKind
    report_id: uuid.UUID
    expect: dict[str, Any] = field(default_factory=dict)
    changes: dict[str, Any] = field(default_factory=dict)
    event: LifecycleEventRecord | None = None


@dataclass
class WriteOutcome:
    op: WriteOp
    applied: bool
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def skipped(self) -> bool:
        return not self.applied and self.error is None


@dataclass
class BatchWriteResult:
    """Per-op results of a batched write. Failures never hide other ops' results."""

    outcomes: list[WriteOutcome] = field(default_factory=list)

    @property
    def applied(self) -> list[WriteOutcome]:
        return [o for o in self.outcomes if o.applied]

    @property
    def skipped(self) -> list[WriteOutcome]:
        return [o for o in self.outcomes if o.skipped]

    @property
    def failed(self) -> list[WriteOutcome]:
        return [o for o in self.outcomes if o.failed]


@dataclass
class RunRecord:
    """Persisted summary of a reclamation run."""

    trigger: str
    started_at: datetime
    finished_at: datetime
    elapsed_ms: int
    soft_deleted: int = 0
    hard_deleted: int = 0
    skipped: int = 0
    errors: int = 0
    batches: int = 0
    cap_reached: bool = False
    status: str = "completed"
    id: uuid.UUID = field(default_factory=uuid.uuid4)


def matches(snapshot: ReportSnapshot, expect: dict[str, Any]) -> bool:
    """True if every expected field still holds its expected value."""
    for name, expected in expect.items():
        actual = getattr(snapshot, name)
        if isinstance(expected, Enum):
            expected = expected.value
        if isinstance(actual, Enum):
            actual = actual.value
        if actual != expected:
            return False
    return True
