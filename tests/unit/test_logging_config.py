# tests/unit/test_logging_config.py
"""Unit tests for structured logging helpers."""

import json
import logging

import pytest


def _record(message="hello", **extra):
    record = logging.LogRecord("reclamation", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_plain_record(self):
        from app.logging_config import JSONFormatter

        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "hello"
        assert "run_id" not in data

    def test_run_and_phase_context(self):
        from app.logging_config import JSONFormatter, phase_var, run_context

        with run_context("run-123"):
            token = phase_var.set("stale_drafts")
            try:
                data = json.loads(JSONFormatter().format(_record(event="batch_complete", soft_deleted=4)))
            finally:
                phase_var.reset(token)

        assert data["run_id"] == "run-123"
        assert data["phase"] == "stale_drafts"
        assert data["event"] == "batch_complete"
        assert data["soft_deleted"] == 4

    def test_context_cleared_after_run(self):
        from app.logging_config import JSONFormatter, run_context

        with run_context("run-123"):
            pass

        assert "run_id" not in json.loads(JSONFormatter().format(_record()))


class TestLogStage:
    """Tests for log_stage()."""

    def test_logs_start_and_complete(self, caplog):
        from app.logging_config import log_stage, phase_var

        with caplog.at_level(logging.INFO, logger="reclamation"):
            with log_stage("expired_deletions"):
                assert phase_var.get() == "expired_deletions"

        events = [r.event for r in caplog.records if hasattr(r, "event")]
        assert events == ["phase_start", "phase_complete"]
        assert phase_var.get() is None

    def test_failure_logged_and_reraised(self, caplog):
        from app.logging_config import log_stage

        with caplog.at_level(logging.INFO, logger="reclamation"):
            with pytest.raises(RuntimeError):
                with log_stage("stale_drafts"):
                    raise RuntimeError("query timed out")

        failed = [r for r in caplog.records if getattr(r, "event", None) == "phase_failed"]
        assert len(failed) == 1
        assert "query timed out" in failed[0].getMessage()


class TestProgressTracker:
    """Tests for ProgressTracker."""

    def test_accumulates_batches(self, caplog):
        from app.logging_config import ProgressTracker

        tracker = ProgressTracker(phase="stale_drafts", limit=250)
        with caplog.at_level(logging.INFO, logger="reclamation.progress"):
            tracker.record_batch(evaluated=100, applied=98, skipped=1, failed=1)
            tracker.record_batch(evaluated=50, applied=50, skipped=0, failed=0)
            summary = tracker.finish()

        assert summary["batches"] == 2
        assert summary["evaluated"] == 150
        assert summary["applied"] == 148
        assert summary["skipped"] == 1
        assert summary["failed"] == 1
        batch_events = [r for r in caplog.records if getattr(r, "event", None) == "batch_complete"]
        assert [r.batch for r in batch_events] == [1, 2]
