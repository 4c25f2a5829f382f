# tests/unit/test_store/test_report_stores.py
"""Contract tests run against every report store provider."""

import uuid
from datetime import timedelta

import pytest


def _event(report_id, now, event_type="content_edited"):
    from app.models import LifecycleEventType
    from app.store.types import LifecycleEventRecord

    return LifecycleEventRecord(
        report_id=report_id,
        event_type=LifecycleEventType(event_type),
        occurred_at=now,
        initiated_by="test",
    )


class TestCreateAndGet:
    """Tests for create() / get()."""

    def test_round_trip(self, store, clock, make_report):
        from app.models import ReportStage

        report = make_report(store, stage=ReportStage.STAGE2, content={"roof_type": "slate", "issues_found": []})

        loaded = store.get(report.id)

        assert loaded == report
        assert loaded.created_at.tzinfo is not None

    def test_missing_returns_none(self, store):
        assert store.get(uuid.uuid4()) is None

    def test_snapshots_are_copies(self, memory_store, make_report):
        report = make_report(memory_store, content={"roof_type": "slate"})

        loaded = memory_store.get(report.id)
        loaded.content["roof_type"] = "tile"
        loaded.is_deleted = True

        assert memory_store.get(report.id).content == {"roof_type": "slate"}
        assert memory_store.get(report.id).is_deleted is False


class TestListForOwner:
    """Tests for list_for_owner()."""

    def test_filters(self, store, make_report):
        live = make_report(store, edited_ago=timedelta(hours=1))
        newer = make_report(store)
        deleted = make_report(store, deleted_ago=timedelta(hours=1))
        make_report(store, owner_id="user-2")

        assert [r.id for r in store.list_for_owner("user-1")] == [newer.id, live.id]
        assert {r.id for r in store.list_for_owner("user-1", include_deleted=True)} == {live.id, newer.id, deleted.id}
        assert [r.id for r in store.list_for_owner("user-1", deleted_only=True)] == [deleted.id]


class TestConditionalWrites:
    """Tests for conditional_update() / conditional_delete()."""

    def test_update_applies_when_expectations_hold(self, store, clock, make_report):
        from app.models import ReportStage

        report = make_report(store)

        updated = store.conditional_update(
            report.id,
            expect={"stage": ReportStage.STAGE1, "is_deleted": False},
            changes={"stage": ReportStage.STAGE2},
            event=_event(report.id, clock.now(), "stage_advanced"),
        )

        assert updated.stage == ReportStage.STAGE2
        assert len(store.list_events(report.id)) == 1

    def test_update_skipped_when_expectation_fails(self, store, clock, make_report):
        from app.models import ReportStage

        report = make_report(store, stage=ReportStage.STAGE2)

        updated = store.conditional_update(
            report.id,
            expect={"stage": ReportStage.STAGE1},
            changes={"stage": ReportStage.STAGE3},
            event=_event(report.id, clock.now(), "stage_advanced"),
        )

        assert updated is None
        assert store.get(report.id).stage == ReportStage.STAGE2
        assert store.list_events(report.id) == []

    def test_expect_none_matches_null(self, store, clock, make_report):
        report = make_report(store)

        updated = store.conditional_update(report.id, {"deleted_at": None}, {"branch_id": "b-2"})

        assert updated.branch_id == "b-2"

    def test_expect_timestamp(self, store, clock, make_report):
        report = make_report(store, deleted_ago=timedelta(hours=3))

        assert store.conditional_delete(report.id, {"deleted_at": report.deleted_at - timedelta(seconds=1)}) is False
        assert store.conditional_delete(report.id, {"deleted_at": report.deleted_at}) is True
        assert store.get(report.id) is None

    def test_update_missing_report(self, store):
        assert store.conditional_update(uuid.uuid4(), {}, {"branch_id": "x"}) is None

    def test_unknown_field_rejected(self, store, make_report):
        report = make_report(store)

        with pytest.raises(ValueError):
            store.conditional_update(report.id, {}, {"colour": "red"})


class TestCandidateQueries:
    """Tests for find_expired_deletions() / find_stale_drafts()."""

    def test_stale_drafts_range(self, store, clock, make_report):
        from app.models import ReportStage

        stale1 = make_report(store, edited_ago=timedelta(days=40))
        stale2 = make_report(store, stage=ReportStage.STAGE2, edited_ago=timedelta(days=35))
        make_report(store, edited_ago=timedelta(days=10))
        make_report(store, stage=ReportStage.STAGE3, edited_ago=timedelta(days=90))
        make_report(store, edited_ago=timedelta(days=90), deleted_ago=timedelta(hours=1))

        found = store.find_stale_drafts(clock.now() - timedelta(days=30), limit=10)

        assert [r.id for r in found] == [stale1.id, stale2.id]

    def test_expired_deletions_range(self, store, clock, make_report):
        older = make_report(store, deleted_ago=timedelta(hours=90))
        old = make_report(store, deleted_ago=timedelta(hours=50))
        make_report(store, deleted_ago=timedelta(hours=10))
        make_report(store, edited_ago=timedelta(days=90))

        found = store.find_expired_deletions(clock.now() - timedelta(hours=48), limit=10)

        assert [r.id for r in found] == [older.id, old.id]

    def test_keyset_pagination_with_equal_timestamps(self, store, clock, make_report):
        """Rows sharing a timestamp are neither repeated nor skipped across pages."""
        created = {make_report(store, edited_ago=timedelta(days=31)).id for _ in range(7)}
        cutoff = clock.now() - timedelta(days=30)

        seen = []
        cursor = None
        while True:
            page = store.find_stale_drafts(cutoff, limit=3, after=cursor)
            seen.extend(r.id for r in page)
            if len(page) < 3:
                break
            cursor = (page[-1].last_edited, page[-1].id)

        assert len(seen) == 7
        assert set(seen) == created


class TestWriteBatch:
    """Tests for write_batch()."""

    def test_mixed_outcomes(self, store, clock, make_report):
        from app.store.types import WriteOp, WriteOpKind

        live = make_report(store)
        deleted = make_report(store, deleted_ago=timedelta(hours=50))
        ops = [
            WriteOp(WriteOpKind.UPDATE, live.id, expect={"is_deleted": False}, changes={"branch_id": "b-9"}),
            WriteOp(WriteOpKind.DELETE, deleted.id, expect={"is_deleted": True}, event=_event(deleted.id, clock.now(), "hard_deleted")),
            WriteOp(WriteOpKind.UPDATE, uuid.uuid4(), changes={"branch_id": "nowhere"}),
            WriteOp(WriteOpKind.UPDATE, live.id, expect={"is_deleted": True}, changes={"branch_id": "never"}),
        ]

        result = store.write_batch(ops)

        assert [o.applied for o in result.outcomes] == [True, True, False, False]
        assert len(result.applied) == 2
        assert len(result.skipped) == 2
        assert result.failed == []
        assert store.get(live.id).branch_id == "b-9"
        assert store.get(deleted.id) is None
        # Audit trail outlives the report
        assert len(store.list_events(deleted.id)) == 1

    def test_empty_batch(self, store):
        assert store.write_batch([]).outcomes == []

    def test_failure_wrapped_per_op(self, memory_store, make_report):
        from unittest.mock import patch

        from app.errors import TransientWriteFailure
        from app.store.types import WriteOp, WriteOpKind

        a = make_report(memory_store)
        b = make_report(memory_store)
        original_apply = memory_store._apply_op

        def flaky(op):
            if op.report_id == a.id:
                raise TimeoutError("slow disk")
            return original_apply(op)

        ops = [WriteOp(WriteOpKind.UPDATE, r.id, changes={"branch_id": "x"}) for r in (a, b)]
        with patch.object(memory_store, "_apply_op", side_effect=flaky):
            result = memory_store.write_batch(ops)

        assert isinstance(result.outcomes[0].error, TransientWriteFailure)
        assert result.outcomes[0].error.report_id == a.id
        assert result.outcomes[1].applied


class TestRunHistory:
    """Tests for record_run() / list_runs()."""

    def test_most_recent_first(self, store, clock):
        from app.store.types import RunRecord

        for hours in (48, 0, 24):
            started = clock.now() - timedelta(hours=hours)
            store.record_run(RunRecord(trigger="scheduled", started_at=started, finished_at=started, elapsed_ms=5))

        runs = store.list_runs(limit=2)

        assert [r.started_at for r in runs] == [clock.now(), clock.now() - timedelta(hours=24)]


class TestFactory:
    """Tests for get_report_store() / set_report_store()."""

    def test_memory_provider(self):
        from app.store.factory import get_report_store, reset_report_store
        from app.store.memory_provider import MemoryReportStore

        reset_report_store()
        try:
            store = get_report_store("memory")
            assert isinstance(store, MemoryReportStore)
            assert get_report_store() is store
        finally:
            reset_report_store()

    def test_unknown_provider(self):
        from app.store.factory import get_report_store, reset_report_store

        reset_report_store()
        with pytest.raises(ValueError, match="Unknown report store"):
            get_report_store("mongo")

    def test_set_custom_store(self, memory_store):
        from app.store.factory import get_store, reset_report_store, set_report_store

        set_report_store(memory_store)
        try:
            assert get_store() is memory_store
        finally:
            reset_report_store()
