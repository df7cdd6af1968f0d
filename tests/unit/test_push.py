"""Unit tests for browser push subscriptions and incoming-call pushes."""
import pytest
from sqlalchemy import select

from callbridge.db.models import CallNotification
from callbridge.services.notifications.web_push import SubscriptionGoneError, WebPushError
from callbridge.services.persistence.push_subscriptions import PushSubscriptionPersistenceService

SUBSCRIPTION = {
    "endpoint": "https://push.example.com/send/abc",
    "keys": {"p256dh": "p256dh-key", "auth": "auth-key"},
}


def save_subscription(test_client, user_id="callee-1", subscription=SUBSCRIPTION):
    return test_client.post(
        "/api/save-push-subscription",
        json={"userId": user_id, "subscription": subscription},
    )


def notify(test_client, target="callee-1", **extra):
    return test_client.post(
        "/api/notify-call",
        json={
            "targetUserId": target,
            "callerId": "caller-1",
            "callerName": "Alice",
            "roomId": "room-1",
            **extra,
        },
    )


class TestSavePushSubscription:
    """Test POST /api/save-push-subscription."""

    @pytest.mark.asyncio
    async def test_save_and_replace(self, test_client, test_db):
        """Test a second save overwrites the user's only subscription."""
        assert save_subscription(test_client).status_code == 200

        replacement = {"endpoint": "https://push.example.com/send/new", "keys": {"p256dh": "p2", "auth": "a2"}}
        response = save_subscription(test_client, subscription=replacement)

        assert response.status_code == 200
        assert response.json()["userId"] == "callee-1"
        stored = await PushSubscriptionPersistenceService(test_db).get_subscription("callee-1")
        assert stored.endpoint == "https://push.example.com/send/new"
        assert stored.p256dh_key == "p2"

    @pytest.mark.parametrize(
        "user_id,subscription,error",
        [
            (None, SUBSCRIPTION, "Missing userId"),
            ("u1", {"keys": {"p256dh": "x", "auth": "y"}}, "Invalid subscription object"),
            ("u1", {"endpoint": "https://push.example.com"}, "Invalid subscription object"),
            ("u1", {"endpoint": "https://push.example.com", "keys": {"p256dh": "x"}}, "Missing subscription keys"),
        ],
    )
    def test_invalid(self, test_client, user_id, subscription, error):
        response = save_subscription(test_client, user_id=user_id, subscription=subscription)

        assert response.status_code == 400
        assert response.json()["error"] == error


class TestNotifyCall:
    """Test POST /api/notify-call."""

    @pytest.mark.asyncio
    async def test_push_delivered_and_recorded(self, test_client, test_db, fake_push_sender):
        save_subscription(test_client)

        response = notify(test_client, callId="call-42")

        assert response.status_code == 200
        assert response.json()["callId"] == "call-42"

        endpoint, p256dh, auth, payload = fake_push_sender.send.await_args.args
        assert endpoint == SUBSCRIPTION["endpoint"]
        assert (p256dh, auth) == ("p256dh-key", "auth-key")
        assert payload["title"] == "📞 Incoming Call"
        assert payload["roomId"] == "room-1"
        assert payload["callerName"] == "Alice"

        rows = (await test_db.execute(select(CallNotification))).scalars().all()
        assert len(rows) == 1
        assert rows[0].call_id == "call-42"
        assert rows[0].callee_user_id == "callee-1"

    def test_generated_call_id(self, test_client):
        save_subscription(test_client)

        response = notify(test_client)

        assert response.json()["callId"].startswith("call-")

    def test_no_subscription(self, test_client):
        response = notify(test_client, target="nobody")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_gone_subscription_is_deleted(self, test_client, test_db, fake_push_sender):
        """Test a 410 from the push service removes the stored subscription."""
        save_subscription(test_client)
        fake_push_sender.send.side_effect = SubscriptionGoneError("gone", status_code=410)

        response = notify(test_client)

        assert response.status_code == 410
        assert await PushSubscriptionPersistenceService(test_db).get_subscription("callee-1") is None
        assert notify(test_client).status_code == 404

    def test_other_push_failure(self, test_client, fake_push_sender):
        save_subscription(test_client)
        fake_push_sender.send.side_effect = WebPushError("server error", status_code=500)

        response = notify(test_client)

        assert response.status_code == 500

    def test_missing_fields(self, test_client):
        response = test_client.post("/api/notify-call", json={"targetUserId": "u1"})

        assert response.status_code == 400


class TestVapidKey:
    def test_public_key(self, test_client, monkeypatch):
        from callbridge.core.config import settings
        monkeypatch.setattr(settings, "vapid_public_key", "public-key")

        response = test_client.get("/api/push/vapid-public-key")

        assert response.json() == {"success": True, "publicKey": "public-key"}

    def test_not_configured(self, test_client, monkeypatch):
        from callbridge.core.config import settings
        monkeypatch.setattr(settings, "vapid_public_key", None)

        assert test_client.get("/api/push/vapid-public-key").status_code == 500
