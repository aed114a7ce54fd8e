"""
Test Suite: Dashboard API

Tests the JWT endpoints end to end:
1. Registration and login
2. Dispute CRUD, throttle and progress over HTTP
3. Stage advance and escalation gating
4. Bulk creation, analytics and the checklist
5. Notifications, settings and the internal reminder scan
6. Default database driver
"""
import os
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from riseora import database
from riseora.auth import create_access_token
from riseora.main import app
from riseora.models.db_models import DisputeDB
from riseora.routers import scheduler as scheduler_router
from riseora.routers.disputes import get_escalation_generator
from riseora.services.workflow import EscalationLetterGenerator

DISPUTE = {
    "creditor_name": "Acme Collections",
    "bureau": "EXPERIAN",
    "dispute_reason": "Balance is wrong",
    "account_number": "ACCT-1",
}


def create_dispute(client, headers, **overrides):
    payload = dict(DISPUTE)
    payload.update(overrides)
    return client.post("/disputes", json=payload, headers=headers)


class TestAuth:

    def test_register_login_me(self, client):
        response = client.post("/auth/register", json={
            "email": "new@example.com", "username": "newbie", "password": "long-enough-pw",
        })
        assert response.status_code == 201

        response = client.post("/auth/login", json={"email": "new@example.com", "password": "long-enough-pw"})
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.json()["username"] == "newbie"

    def test_duplicate_email(self, client, user):
        response = client.post("/auth/register", json={
            "email": user.email, "username": "another", "password": "long-enough-pw",
        })
        assert response.status_code == 400

    def test_bad_password(self, client, user):
        response = client.post("/auth/login", json={"email": user.email, "password": "wrong"})
        assert response.status_code == 401

    def test_profile_update(self, client, auth_headers):
        response = client.put("/auth/profile", json={
            "first_name": "Janet", "state": "ca", "date_of_birth": "1990-02-03",
        }, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["first_name"] == "Janet"
        assert body["state"] == "CA"
        assert body["date_of_birth"] == "1990-02-03"

    def test_invalid_token(self, client):
        response = client.get("/disputes", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    def test_missing_token(self, client):
        assert client.get("/disputes").status_code in (401, 403)


class TestDisputeCrud:

    def test_create_and_list(self, client, auth_headers):
        response = create_dispute(client, auth_headers)
        assert response.status_code == 201
        assert response.json()["is_first_dispute"] is True

        body = client.get("/disputes", headers=auth_headers).json()
        assert body["count"] == 1
        assert body["disputes"][0]["status"] == "DRAFT"

    def test_bureau_throttle(self, client, auth_headers):
        for _ in range(3):
            assert create_dispute(client, auth_headers).status_code == 201

        response = create_dispute(client, auth_headers)
        assert response.status_code == 400
        assert "limit of 3 disputes per bureau" in response.json()["detail"]

    def test_list_filter_by_legacy_name(self, client, auth_headers, db_session):
        dispute_id = create_dispute(client, auth_headers).json()["id"]
        db_session.query(DisputeDB).filter(DisputeDB.id == dispute_id).update({"status": "MAILED"})
        db_session.commit()

        assert client.get("/disputes?status=SENT", headers=auth_headers).json()["count"] == 1
        assert client.get("/disputes?status=BOGUS", headers=auth_headers).status_code == 400

    def test_other_users_dispute(self, client, auth_headers, other_user):
        dispute_id = create_dispute(client, auth_headers).json()["id"]
        other_headers = {"Authorization": f"Bearer {create_access_token(other_user.id, other_user.email)}"}
        assert client.get(f"/disputes/{dispute_id}", headers=other_headers).status_code == 403

    def test_patch_status_rejected(self, client, auth_headers):
        dispute_id = create_dispute(client, auth_headers).json()["id"]
        response = client.patch(f"/disputes/{dispute_id}", json={"status": "RESOLVED"}, headers=auth_headers)
        assert response.status_code == 400

    def test_soft_delete(self, client, auth_headers, db_session):
        dispute_id = create_dispute(client, auth_headers).json()["id"]
        assert client.delete(f"/disputes/{dispute_id}", headers=auth_headers).status_code == 200
        assert client.get(f"/disputes/{dispute_id}", headers=auth_headers).status_code == 404
        assert db_session.query(DisputeDB).filter(DisputeDB.id == dispute_id).count() == 1


class TestProgressAndLetters:

    def test_progress_actions(self, client, auth_headers):
        dispute_id = create_dispute(client, auth_headers).json()["id"]

        response = client.post(f"/disputes/{dispute_id}/progress", json={"action": "mark_ready"}, headers=auth_headers)
        assert response.json()["status"] == "READY_TO_MAIL"

        response = client.post(f"/disputes/{dispute_id}/progress", json={"action": "mark_delivered"}, headers=auth_headers)
        assert response.status_code == 400

        response = client.post(f"/disputes/{dispute_id}/progress", json={"action": "warp"}, headers=auth_headers)
        assert response.status_code == 422

        response = client.post(
            f"/disputes/{dispute_id}/progress",
            json={"action": "mark_mailed", "tracking_number": "9400"},
            headers=auth_headers,
        )
        assert response.json()["status"] == "MAILED"

        progress = client.get(f"/disputes/{dispute_id}/progress", headers=auth_headers).json()
        assert progress["stage"] == 4
        assert progress["label"] == "Mailed"

    def test_generate_and_advance(self, client, auth_headers):
        dispute_id = create_dispute(client, auth_headers).json()["id"]

        response = client.post(f"/disputes/{dispute_id}/generate-letter", headers=auth_headers)
        assert response.status_code == 200
        assert "Investigation Request" in response.json()["letter_content"]

        response = client.post(f"/disputes/{dispute_id}/advance-stage", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["current_stage"] == "PERSONAL_INFO_REMOVER"

        stage = client.get(f"/disputes/{dispute_id}/stage", headers=auth_headers).json()
        assert stage["template_stage"] == "PERSONAL_INFO_REMOVER"
        assert stage["template_info"]["title"] == "Personal Information Removal Letter"

    def test_stale_version(self, client, auth_headers):
        created = create_dispute(client, auth_headers).json()
        url = f"/disputes/{created['id']}/advance-stage"

        assert client.post(url, json={"expected_version": created["version"]}, headers=auth_headers).status_code == 200
        assert client.post(url, json={"expected_version": created["version"]}, headers=auth_headers).status_code == 409

    def test_escalation_stage_gate(self, client, auth_headers, db_session):
        dispute_id = create_dispute(client, auth_headers).json()["id"]
        db_session.query(DisputeDB).filter(DisputeDB.id == dispute_id).update(
            {"template_stage": "TERMINATION_LETTER"}
        )
        db_session.commit()

        response = client.post(f"/disputes/{dispute_id}/advance-stage", headers=auth_headers)
        assert response.status_code == 403


class TestEscalationEndpoint:

    def prepare(self, client, auth_headers, db_session):
        dispute_id = create_dispute(client, auth_headers).json()["id"]
        db_session.query(DisputeDB).filter(DisputeDB.id == dispute_id).update({
            "status": "NO_RESPONSE",
            "template_stage": "AI_ESCALATION",
            "dv_sent": True,
            "dv_response_received": True,
            "dv_response_quality": "deficient",
        })
        db_session.commit()
        return dispute_id

    def test_not_configured(self, client, auth_headers, db_session):
        dispute_id = self.prepare(client, auth_headers, db_session)
        response = client.post(f"/disputes/{dispute_id}/escalation-letter", headers=auth_headers)
        assert response.status_code == 503

    def test_with_generator(self, client, auth_headers, db_session):
        dispute_id = self.prepare(client, auth_headers, db_session)
        generator = MagicMock(spec=EscalationLetterGenerator)
        generator.generate.return_value = "Escalation body"
        app.dependency_overrides[get_escalation_generator] = lambda: generator

        response = client.post(f"/disputes/{dispute_id}/escalation-letter", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["letter_content"] == "Escalation body"
        assert client.get(f"/disputes/{dispute_id}", headers=auth_headers).json()["status"] == "ESCALATED"


class TestNotifications:

    def test_first_dispute_notification_flow(self, client, auth_headers):
        create_dispute(client, auth_headers)

        unread = client.get("/notifications/unread", headers=auth_headers).json()
        assert unread["count"] == 1
        assert unread["notifications"][0]["type"] == "FIRST_DISPUTE"

        notification_id = unread["notifications"][0]["id"]
        response = client.post(f"/notifications/{notification_id}/read", headers=auth_headers)
        assert response.json()["read"] is True

        assert client.get("/notifications/unread", headers=auth_headers).json()["count"] == 0
        assert client.get("/notifications", headers=auth_headers).json()["count"] == 1

    def test_mark_all_read(self, client, auth_headers):
        dispute_id = create_dispute(client, auth_headers).json()["id"]
        client.post(f"/disputes/{dispute_id}/progress", json={"action": "mark_ready"}, headers=auth_headers)

        assert client.post("/notifications/read-all", headers=auth_headers).json()["updated"] == 2

    def test_unknown_notification(self, client, auth_headers):
        assert client.post("/notifications/missing/read", headers=auth_headers).status_code == 404


class TestDashboardEndpoints:

    def test_bulk_create(self, client, auth_headers):
        response = client.post("/disputes/bulk", json={"disputes": [
            DISPUTE,
            dict(DISPUTE, creditor_name="Beta Bank", bureau="EQUIFAX"),
        ]}, headers=auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["count"] == 2
        assert body["is_first_dispute"] is True

    def test_bulk_over_bureau_limit(self, client, auth_headers):
        create_dispute(client, auth_headers)
        create_dispute(client, auth_headers)

        response = client.post("/disputes/bulk", json={"disputes": [DISPUTE, DISPUTE]}, headers=auth_headers)

        assert response.status_code == 400
        assert "EXPERIAN" in response.json()["detail"]
        assert client.get("/disputes", headers=auth_headers).json()["count"] == 2

    def test_bulk_missing_body(self, client, auth_headers):
        response = client.post("/disputes/bulk", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Disputes array is required"

    def test_bulk_requires_login(self, client):
        assert client.post("/disputes/bulk", json={"disputes": [DISPUTE]}).status_code in (401, 403)

    def test_analytics(self, client, auth_headers):
        create_dispute(client, auth_headers)
        create_dispute(client, auth_headers, bureau="TRANSUNION")

        response = client.get("/disputes/analytics", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["summary"]["total"] == 2
        assert body["summary"]["in_progress"] == 2
        assert body["status_breakdown"] == [{"status": "DRAFT", "count": 2}]
        assert len(body["monthly_trend"]) == 6

    def test_checklist(self, client, auth_headers):
        dispute_id = create_dispute(client, auth_headers).json()["id"]

        checklist = client.get(f"/disputes/{dispute_id}/checklist", headers=auth_headers).json()
        item_id = checklist["items"][0]["id"]
        response = client.patch(f"/disputes/checklist/{item_id}", json={"completed": True}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["completed"] is True
        refreshed = client.get(f"/disputes/{dispute_id}/checklist", headers=auth_headers).json()
        assert refreshed["completed_count"] == 1
        assert refreshed["total_count"] == checklist["total_count"]

    def test_checklist_other_user(self, client, auth_headers, other_user):
        dispute_id = create_dispute(client, auth_headers).json()["id"]
        item_id = client.get(f"/disputes/{dispute_id}/checklist", headers=auth_headers).json()["items"][0]["id"]
        other_headers = {"Authorization": f"Bearer {create_access_token(other_user.id, other_user.email)}"}

        response = client.patch(f"/disputes/checklist/{item_id}", json={"completed": True}, headers=other_headers)

        assert response.status_code == 403

    def test_unknown_checklist_item(self, client, auth_headers):
        response = client.patch("/disputes/checklist/missing", json={"completed": True}, headers=auth_headers)
        assert response.status_code == 404


class TestNotificationSettings:

    def test_defaults(self, client, auth_headers):
        response = client.get("/notifications/settings", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["in_app_enabled"] is True
        assert body["reminder_lead_days"] == 5

    def test_update(self, client, auth_headers):
        response = client.patch("/notifications/settings", json={"reminder_lead_days": 10}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["reminder_lead_days"] == 10
        assert client.get("/notifications/settings", headers=auth_headers).json()["reminder_lead_days"] == 10

    def test_lead_days_out_of_range(self, client, auth_headers):
        response = client.patch("/notifications/settings", json={"reminder_lead_days": 0}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "reminder_lead_days must be between 1 and 30"


class TestInternalReminderCheck:

    def test_requires_internal_key(self, client):
        response = client.post("/internal/reminder-check", headers={"X-Internal-Key": "wrong"})
        assert response.status_code == 403

    def test_runs(self, client, auth_headers, db_session, monkeypatch):
        monkeypatch.setattr(scheduler_router, "INTERNAL_API_KEY", "cron-key")
        dispute_id = create_dispute(client, auth_headers).json()["id"]
        db_session.query(DisputeDB).filter(DisputeDB.id == dispute_id).update({
            "status": "IN_INVESTIGATION",
            "mailed_at": datetime.utcnow() - timedelta(days=28),
            "response_deadline": datetime.utcnow() + timedelta(days=2),
        })
        db_session.commit()

        response = client.post("/internal/reminder-check", headers={"X-Internal-Key": "cron-key"})

        assert response.status_code == 200
        assert response.json()["reminders_created"] == 1


class TestDatabaseConfig:

    @pytest.mark.skipif("DATABASE_URL" in os.environ, reason="explicit DATABASE_URL configured")
    def test_default_url_uses_psycopg2(self):
        assert database.DATABASE_URL.startswith("postgresql+psycopg2://")
        assert database.engine.dialect.driver == "psycopg2"
