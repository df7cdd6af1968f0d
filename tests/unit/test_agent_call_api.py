"""Unit tests for agent call endpoints."""
import pytest
from unittest.mock import AsyncMock
from sqlalchemy import select

from callbridge.db.models import AgentCallEvent
from callbridge.services.persistence.agent_calls import AgentCallPersistenceService


def initiate(test_client, to_user_id="callee-1", language="en"):
    response = test_client.post(
        "/api/agent-call-initiate",
        json={
            "toUserId": to_user_id,
            "toServiceId": "svc-callee",
            "callerUserId": "caller-1",
            "callerServiceId": "svc-caller",
            "audioFileIds": ["audio-1"],
            "language": language,
        },
    )
    assert response.status_code == 200
    return response.json()


class TestAgentCallInitiate:
    """Test POST /api/agent-call-initiate."""

    def test_initiate_in_mock_mode(self, test_client):
        """Test a mock call returns a generated sid used as the room id."""
        data = initiate(test_client)

        assert data["success"] is True
        assert data["mock"] is True
        assert data["sid"].startswith("mock-")
        assert data["roomId"] == data["sid"]

    def test_initiate_missing_callee(self, test_client):
        """Test a request without a callee is rejected."""
        response = test_client.post("/api/agent-call-initiate", json={"toServiceId": "svc"})

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "toUserId" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_initiate_retry_keeps_lineage(self, test_client, test_db):
        """Test a retry placed over HTTP is stored with its parent and attempt."""
        response = test_client.post(
            "/api/agent-call-initiate",
            json={
                "toUserId": "callee-1",
                "toServiceId": "svc-callee",
                "callerUserId": "caller-1",
                "audioFileIds": ["audio-1"],
                "isRetry": True,
                "parentSid": "orig-1",
                "retryAttempt": 2,
            },
        )

        assert response.status_code == 200
        session = await AgentCallPersistenceService(test_db).get_session_by_sid(response.json()["sid"])
        assert session.parent_sid == "orig-1"
        assert session.is_retry is True
        assert session.retry_attempt == 2


class TestAgentCallCallback:
    """Test the delivery result callback."""

    @pytest.mark.asyncio
    async def test_callback_sequence(self, test_client, test_db):
        """Test SUCCESS then FAIL leaves the call ringing then failed."""
        sid = initiate(test_client)["sid"]
        service = AgentCallPersistenceService(test_db)

        response = test_client.get(f"/api/agent-call-callback?sid={sid}&result=SUCCESS")
        assert response.status_code == 200
        assert (await service.get_session_by_sid(sid)).status == "ringing"

        response = test_client.post(
            "/api/agent-call-callback",
            json={"sid": sid, "result": "FAIL", "fail_reason": "REJECTED"},
        )
        assert response.status_code == 200
        session = await service.get_session_by_sid(sid)
        assert session.status == "failed"
        assert session.data["fail_reason"] == "REJECTED"

    def test_form_encoded_callback(self, test_client):
        """Test providers posting form bodies are accepted."""
        sid = initiate(test_client)["sid"]

        response = test_client.post(
            "/api/agent-call-callback", data={"sid": sid, "result": "SUCCESS"}
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_missing_sid_writes_nothing(self, test_client, test_db):
        """Test a callback without sid is rejected and stores no event."""
        response = test_client.get("/api/agent-call-callback?result=SUCCESS")

        assert response.status_code == 400
        assert response.json()["success"] is False
        events = (await test_db.execute(select(AgentCallEvent))).scalars().all()
        assert events == []


class TestNotifyCallback:
    """Test GET /api/notify-callback."""

    def test_sends_localized_link(self, test_client, fake_line_client):
        """Test the callee receives an auto-accept link in the call's language."""
        sid = initiate(test_client, language="en")["sid"]

        response = test_client.get(
            f"/api/notify-callback?sid={sid}&param=cc-xyz&to_user_id=callee-1"
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        to, messages = fake_line_client.push.await_args.args
        assert to == "callee-1"
        template = messages[0]["template"]
        assert template["text"].startswith("📞 Incoming call!")
        link = template["actions"][0]["uri"]
        assert link.startswith("https://liff.line.me/test-liff/agent-call-meeting?")
        assert f"sid={sid}" in link
        assert "cc_param=cc-xyz" in link
        assert "autoAccept=true" in link

    def test_line_failure_still_answers_200(self, test_client, fake_line_client):
        """Test a LINE error does not make the provider retry."""
        sid = initiate(test_client)["sid"]
        fake_line_client.push.side_effect = RuntimeError("LINE down")

        response = test_client.get(f"/api/notify-callback?sid={sid}&param=cc&to_user_id=callee-1")

        assert response.status_code == 200
        assert "failed" in response.json()["message"]

    def test_callee_lookup_failure_still_answers_200(self, test_client, fake_line_client, monkeypatch):
        """Test a database error while finding the callee is logged, not raised."""
        monkeypatch.setattr(
            AgentCallPersistenceService,
            "get_session_by_sid",
            AsyncMock(side_effect=RuntimeError("db down")),
        )

        response = test_client.get("/api/notify-callback?sid=sid-1&param=cc")

        assert response.status_code == 200
        assert "callee is unknown" in response.json()["message"]
        fake_line_client.push.assert_not_awaited()

    def test_missing_param(self, test_client):
        response = test_client.get("/api/notify-callback?sid=abc")

        assert response.status_code == 400


class TestOneToOneCallback:
    def test_dry_run_without_call_id(self, test_client):
        """Test a callback without any call id is acknowledged."""
        response = test_client.get("/api/one-to-one-call-callback")

        assert response.status_code == 200
        assert "dry run" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_connected_by_cc_call_id(self, test_client, test_db):
        sid = initiate(test_client)["sid"]
        test_client.get(f"/api/agent-call-callback?sid={sid}&result=SUCCESS")

        response = test_client.get(
            f"/api/one-to-one-call-callback?cc_call_id={sid}&event_type=CONNECTED"
        )

        assert response.status_code == 200
        session = await AgentCallPersistenceService(test_db).get_session_by_sid(sid)
        assert session.status == "answered"


class TestScheduleRetryAPI:
    """Test POST /api/schedule-retry error mapping."""

    def test_unknown_session(self, test_client):
        response = test_client.post("/api/schedule-retry", json={"sid": "nope", "userId": "u"})

        assert response.status_code == 404

    def test_wrong_user(self, test_client):
        sid = initiate(test_client)["sid"]
        test_client.get(f"/api/agent-call-callback?sid={sid}&result=FAIL")

        response = test_client.post("/api/schedule-retry", json={"sid": sid, "userId": "intruder"})

        assert response.status_code == 403

    def test_not_retryable_while_ringing(self, test_client):
        sid = initiate(test_client)["sid"]
        test_client.get(f"/api/agent-call-callback?sid={sid}&result=SUCCESS")

        response = test_client.post("/api/schedule-retry", json={"sid": sid, "userId": "callee-1"})

        assert response.status_code == 409

    def test_schedule_then_already_scheduled(self, test_client, fake_line_client):
        """Test a second request returns the pending entry instead of queueing again."""
        sid = initiate(test_client)["sid"]
        test_client.get(f"/api/agent-call-callback?sid={sid}&result=FAIL")

        first = test_client.post("/api/schedule-retry", json={"sid": sid, "userId": "callee-1"})
        second = test_client.post("/api/schedule-retry", json={"sid": sid, "userId": "callee-1"})

        assert first.status_code == 200
        assert first.json()["retryAttempt"] == 1
        assert "alreadyScheduled" not in first.json()
        assert second.status_code == 200
        assert second.json()["alreadyScheduled"] is True
        assert second.json()["queueId"] == first.json()["queueId"]
        fake_line_client.push_text.assert_awaited_once()

    def test_missing_sid(self, test_client):
        response = test_client.post("/api/schedule-retry", json={})

        assert response.status_code == 400


class TestExecuteRetryAPI:
    def test_unknown_queue_entry(self, test_client):
        response = test_client.post("/api/execute-retry", json={"queueId": 999})

        assert response.status_code == 404

    def test_execute_then_already_processed(self, test_client):
        """Test a queued retry runs once and is then reported as processed."""
        sid = initiate(test_client)["sid"]
        test_client.get(f"/api/agent-call-callback?sid={sid}&result=FAIL")
        queue_id = test_client.post(
            "/api/schedule-retry", json={"sid": sid, "userId": "callee-1"}
        ).json()["queueId"]

        first = test_client.post("/api/execute-retry", json={"queueId": queue_id})
        second = test_client.post("/api/execute-retry", json={"queueId": queue_id})

        assert first.status_code == 200
        assert first.json()["status"] == "completed"
        assert first.json()["retrySid"].startswith("mock-")
        assert second.json()["message"] == "Retry already processed"


class TestCronAuth:
    """Test the shared-secret guard on cron routes."""

    @pytest.mark.parametrize("path", ["/api/cron/execute-retries", "/api/cron/check-timeouts"])
    def test_rejects_missing_secret(self, test_client, path):
        response = test_client.get(path)

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized"}

    def test_rejects_wrong_secret(self, test_client):
        response = test_client.get(
            "/api/cron/check-timeouts", headers={"x-vercel-cron-secret": "wrong"}
        )

        assert response.status_code == 401

    def test_accepts_secret(self, test_client, cron_headers):
        response = test_client.post("/api/cron/check-timeouts", headers=cron_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["processed"] == 0

    def test_unconfigured_secret_rejects_everything(self, test_client, monkeypatch, cron_headers):
        from callbridge.core.config import settings
        monkeypatch.setattr(settings, "cron_secret", None)

        response = test_client.get("/api/cron/execute-retries", headers=cron_headers)

        assert response.status_code == 401
