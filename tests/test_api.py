# tests/test_api.py
"""
Contract tests for API responses.
"""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from app.main import app

ADMIN_KEY = "test-admin-key"
USER = {"X-User-Id": "user-1"}
OTHER_USER = {"X-User-Id": "user-2"}
ADMIN = {"X-API-Key": ADMIN_KEY}


@pytest.fixture
def client(memory_store, clock, monkeypatch):
    """Test client wired to an in-memory store and a manual clock."""
    from app.clock import get_clock
    from app.store import get_store

    monkeypatch.setenv("ADMIN_API_KEY", ADMIN_KEY)
    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _create(client, content=None, headers=USER):
    response = client.post("/v1/reports", json={"branch_id": "branch-1", "content": content or {}}, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "report-lifecycle-api"


class TestAuthentication:
    """Caller identity."""

    def test_no_credentials(self, client):
        response = client.get("/v1/reports")
        assert response.status_code == 401

    def test_invalid_api_key(self, client):
        response = client.get("/v1/reports", headers={"X-API-Key": "wrong"})
        assert response.status_code == 401

    def test_unconfigured_api_key_fails_closed(self, client, monkeypatch):
        monkeypatch.delenv("ADMIN_API_KEY")
        response = client.get("/v1/reports", headers={"X-API-Key": "anything"})
        assert response.status_code == 500


class TestReportEndpoints:
    """Report authoring and lifecycle."""

    def test_create_and_get(self, client, clock):
        created = _create(client, {"roof_type": "slate"})

        assert created["stage"] == "stage1"
        assert created["owner_id"] == "user-1"
        assert created["is_deleted"] is False
        assert created["recoverable_until"] is None
        assert _parse(created["last_edited"]) == clock.now()

        response = client.get(f"/v1/reports/{created['id']}", headers=USER)
        assert response.status_code == 200
        assert response.json()["content"] == {"roof_type": "slate"}

    def test_other_users_report_not_found(self, client):
        created = _create(client)

        response = client.get(f"/v1/reports/{created['id']}", headers=OTHER_USER)
        assert response.status_code == 404

    def test_superadmin_can_read_any_report(self, client):
        created = _create(client)

        response = client.get(f"/v1/reports/{created['id']}", headers=ADMIN)
        assert response.status_code == 200

    def test_invalid_id(self, client):
        response = client.get("/v1/reports/not-a-uuid", headers=USER)
        assert response.status_code == 422

    def test_list_own_reports(self, client):
        _create(client)
        _create(client)
        _create(client, headers=OTHER_USER)

        data = client.get("/v1/reports", headers=USER).json()
        assert data["total"] == 2

    def test_edit_stamps_last_edited(self, client, clock):
        created = _create(client)
        clock.advance(hours=2)

        response = client.patch(f"/v1/reports/{created['id']}", json={"content": {"roof_type": "tile"}}, headers=USER)

        assert response.status_code == 200
        assert _parse(response.json()["last_edited"]) == clock.now()

    def test_advance_gate_rejects_missing_fields(self, client):
        created = _create(client, {"customer_name": "Dana"})

        response = client.post(f"/v1/reports/{created['id']}/advance", json={"target": "stage2"}, headers=USER)

        assert response.status_code == 409
        assert "roof_type" in response.json()["detail"]

    def test_advance_through_stages(self, client, stage1_fields, stage2_fields):
        created = _create(client, stage1_fields)

        response = client.post(f"/v1/reports/{created['id']}/advance", json={"target": "stage2"}, headers=USER)
        assert response.status_code == 200
        assert response.json()["stage"] == "stage2"
        assert response.json()["stage1_completed_at"] is not None

        response = client.post(
            f"/v1/reports/{created['id']}/advance",
            json={"target": "stage3", "payload": stage2_fields},
            headers=USER,
        )
        assert response.status_code == 200
        assert response.json()["stage"] == "stage3"

    def test_stage_skip_rejected(self, client, stage1_fields):
        created = _create(client, stage1_fields)

        response = client.post(f"/v1/reports/{created['id']}/advance", json={"target": "stage3"}, headers=USER)
        assert response.status_code == 409


class TestDeleteAndRecover:
    """Soft delete, the recovery window, and recovery."""

    def test_delete_returns_recovery_deadline(self, client, clock):
        created = _create(client)

        response = client.delete(f"/v1/reports/{created['id']}", headers=USER)

        assert response.status_code == 200
        data = response.json()
        assert _parse(data["deleted_at"]) == clock.now()
        assert _parse(data["recoverable_until"]) == clock.now() + timedelta(hours=48)

    def test_deleted_report_cannot_be_edited(self, client):
        created = _create(client)
        client.delete(f"/v1/reports/{created['id']}", headers=USER)

        response = client.patch(f"/v1/reports/{created['id']}", json={"content": {"roof_type": "tile"}}, headers=USER)
        assert response.status_code == 409

    def test_recover_inside_window(self, client, clock):
        created = _create(client)
        client.delete(f"/v1/reports/{created['id']}", headers=USER)
        clock.advance(hours=47)

        response = client.post(f"/v1/reports/{created['id']}/recover", headers=USER)

        assert response.status_code == 200
        assert response.json()["is_deleted"] is False
        assert response.json()["deleted_at"] is None

    def test_recover_after_window_is_gone(self, client, clock):
        created = _create(client)
        client.delete(f"/v1/reports/{created['id']}", headers=USER)
        clock.advance(hours=48, seconds=1)

        response = client.post(f"/v1/reports/{created['id']}/recover", headers=USER)

        assert response.status_code == 410
        assert response.json()["detail"] == "This report is no longer recoverable"

    def test_recover_other_users_report(self, client):
        created = _create(client)
        client.delete(f"/v1/reports/{created['id']}", headers=USER)

        response = client.post(f"/v1/reports/{created['id']}/recover", headers=OTHER_USER)
        assert response.status_code == 404

    def test_recently_deleted_view(self, client):
        kept = _create(client)
        gone = _create(client)
        client.delete(f"/v1/reports/{gone['id']}", headers=USER)

        data = client.get("/v1/reports/deleted", headers=USER).json()

        assert [item["id"] for item in data["items"]] == [gone["id"]]
        assert data["items"][0]["recoverable_until"] is not None
        assert kept["id"] not in [item["id"] for item in data["items"]]

    def test_event_trail(self, client):
        created = _create(client)
        client.delete(f"/v1/reports/{created['id']}", headers=USER)
        client.post(f"/v1/reports/{created['id']}/recover", headers=USER)

        response = client.get(f"/v1/reports/{created['id']}/events", headers=USER)

        assert response.status_code == 200
        assert [e["event_type"] for e in response.json()] == ["created", "soft_deleted", "recovered"]
        assert response.json()[0]["initiated_by"] == "user:user-1"


class TestAdminReclamation:
    """Admin reclamation endpoints."""

    def test_regular_user_forbidden(self, client):
        response = client.post("/v1/admin/reclamation/run", json={"confirm": True}, headers=USER)
        assert response.status_code == 403

    def test_regular_user_forbidden_before_confirm_check(self, client, memory_store, make_report):
        """Unprivileged callers are refused whatever the body says."""
        stale = make_report(memory_store, edited_ago=timedelta(days=31))

        response = client.post("/v1/admin/reclamation/run", json={}, headers=USER)

        assert response.status_code == 403
        assert memory_store.get(stale.id).is_deleted is False
        assert memory_store.list_runs() == []

    def test_requires_confirm(self, client):
        response = client.post("/v1/admin/reclamation/run", json={}, headers=ADMIN)
        assert response.status_code == 400

    def test_manual_run_summary(self, client, memory_store, make_report):
        stale = make_report(memory_store, edited_ago=timedelta(days=31))
        make_report(memory_store, deleted_ago=timedelta(hours=49))

        response = client.post("/v1/admin/reclamation/run", json={"confirm": True}, headers=ADMIN)

        assert response.status_code == 200
        data = response.json()
        assert data["softDeleted"] == 1
        assert data["hardDeleted"] == 1
        assert data["errors"] == 0
        assert data["elapsedMs"] >= 0
        assert data["trigger"] == "manual"
        assert data["status"] == "completed"
        assert memory_store.get(stale.id).expiration_reason.value == "stale-draft"

    def test_dry_run_changes_nothing(self, client, memory_store, make_report):
        stale = make_report(memory_store, edited_ago=timedelta(days=31))

        response = client.post("/v1/admin/reclamation/run", json={"dry_run": True}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["dryRun"] is True
        assert response.json()["softDeleted"] == 1
        assert memory_store.get(stale.id).is_deleted is False

    def test_preview_as_of(self, client, clock, memory_store, make_report):
        make_report(memory_store, edited_ago=timedelta(days=25))
        as_of = (clock.now() + timedelta(days=10)).isoformat()

        now_preview = client.get("/v1/admin/reclamation/preview", headers=ADMIN).json()
        later_preview = client.get("/v1/admin/reclamation/preview", params={"as_of": as_of}, headers=ADMIN).json()

        assert now_preview["softDeleted"] == 0
        assert later_preview["softDeleted"] == 1

    def test_preview_forbidden_for_users(self, client):
        response = client.get("/v1/admin/reclamation/preview", headers=USER)
        assert response.status_code == 403

    def test_run_history(self, client):
        client.post("/v1/admin/reclamation/run", json={"confirm": True}, headers=ADMIN)

        response = client.get("/v1/admin/reclamation/runs", headers=ADMIN)

        assert response.status_code == 200
        assert [r["trigger"] for r in response.json()] == ["manual"]

    def test_scheduled_run_requires_key(self, client):
        response = client.post("/v1/admin/reclamation/scheduled-run", headers=USER)
        assert response.status_code == 401

    def test_scheduled_run(self, client, memory_store, make_report):
        make_report(memory_store, edited_ago=timedelta(days=31))

        response = client.post("/v1/admin/reclamation/scheduled-run", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["trigger"] == "scheduled"
        assert response.json()["softDeleted"] == 1

    def test_scheduled_run_store_down(self, client, memory_store):
        from unittest.mock import patch

        with patch.object(memory_store, "find_expired_deletions", side_effect=ConnectionError("db down")):
            response = client.post("/v1/admin/reclamation/scheduled-run", headers=ADMIN)

        assert response.status_code == 503
