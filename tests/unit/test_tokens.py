"""Unit tests for conference tokens and LINE channel tokens."""
import logging
import pytest
from unittest.mock import AsyncMock

from jose import jwt

from callbridge.core.config import settings
from callbridge.core.dependencies import get_channel_token_client
from callbridge.main import app
from callbridge.services.notifications.line_messaging import LineApiError
from callbridge.services.tokens.conference import (
    TokenGenerationError,
    generate_conference_token,
    generate_livekit_token,
)
from callbridge.services.tokens.line_channel import ChannelAccessTokenClient, ChannelTokenError


class TestConferenceToken:
    """Test PlanetKit token signing."""

    def test_claims_are_minimal(self):
        """Test the token carries exactly sub, uid, iss and iat."""
        token = generate_conference_token("svc-1", "key-1", "user-1", "room-1", api_secret="secret-1")

        claims = jwt.decode(token, "secret-1", algorithms=["HS256"])
        assert set(claims) == {"sub", "uid", "iss", "iat"}
        assert claims["sub"] == "svc-1"
        assert claims["uid"] == "user-1"
        assert claims["iss"] == "key-1"
        assert jwt.get_unverified_header(token)["alg"] == "HS256"

    def test_falls_back_to_api_key_with_warning(self, caplog):
        """Test a missing secret signs with the API key and logs a warning."""
        caplog.set_level(logging.WARNING)

        token = generate_conference_token("svc-1", "key-1", "user-1", "room-1")

        assert jwt.decode(token, "key-1", algorithms=["HS256"])["uid"] == "user-1"
        assert any("No API secret configured" in r.getMessage() for r in caplog.records)

    def test_missing_fields(self):
        with pytest.raises(TokenGenerationError):
            generate_conference_token("", "key-1", "user-1", "room-1")


class TestLiveKitToken:
    def test_grants_room_join(self):
        token = generate_livekit_token("lk-key", "lk-secret-0123456789abcdef0123456789", "user-1", "room-1")

        claims = jwt.get_unverified_claims(token)
        assert claims["sub"] == "user-1"
        assert claims["iss"] == "lk-key"
        assert claims["video"]["room"] == "room-1"

    def test_requires_credentials(self):
        with pytest.raises(TokenGenerationError):
            generate_livekit_token("", "", "user-1", "room-1")


class TestConferenceTokenAPI:
    """Test POST /api/conference-token."""

    def test_planetkit_from_settings(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "planetkit_service_id", "svc-1")
        monkeypatch.setattr(settings, "planetkit_api_key", "key-1")
        monkeypatch.setattr(settings, "planetkit_api_secret", "secret-1")

        response = test_client.post(
            "/api/conference-token", json={"sdk": "planetkit", "userId": "user-1", "roomId": "room-1"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["sdk"] == "planetkit"
        assert jwt.decode(data["token"], "secret-1", algorithms=["HS256"])["sub"] == "svc-1"

    def test_planetkit_not_configured(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "planetkit_service_id", None)
        monkeypatch.setattr(settings, "planetkit_api_key", None)

        response = test_client.post(
            "/api/conference-token", json={"sdk": "planetkit", "userId": "user-1", "roomId": "room-1"}
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_livekit_returns_url(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "livekit_url", "wss://livekit.example.com")

        response = test_client.post(
            "/api/conference-token",
            json={
                "sdk": "livekit",
                "userId": "user-1",
                "roomId": "room-1",
                "apiKey": "lk-key",
                "apiSecret": "lk-secret-0123456789abcdef0123456789",
            },
        )

        assert response.status_code == 200
        assert response.json()["url"] == "wss://livekit.example.com"

    def test_unknown_sdk(self, test_client):
        response = test_client.post(
            "/api/conference-token", json={"sdk": "zoom", "userId": "user-1", "roomId": "room-1"}
        )

        assert response.status_code == 400


class TestChannelAssertion:
    def test_assertion_claims(self):
        client = ChannelAccessTokenClient("1234567890", "channel-secret", "https://api.line.me/oauth2/v2.1/token")

        assertion = client.build_assertion(now=1_700_000_000)

        claims = jwt.get_unverified_claims(assertion)
        assert claims == {
            "iss": "1234567890",
            "sub": "1234567890",
            "aud": "https://api.line.me/",
            "exp": 1_700_000_000 + 1800,
            "token_exp": 1800,
        }

    def test_not_configured(self):
        client = ChannelAccessTokenClient(None, None, "https://api.line.me/oauth2/v2.1/token")

        assert client.configured is False
        with pytest.raises(ChannelTokenError):
            client.build_assertion()


@pytest.fixture
def fake_token_client():
    client = AsyncMock(spec=ChannelAccessTokenClient)
    client.configured = True
    app.dependency_overrides[get_channel_token_client] = lambda: client
    return client


class TestLineAPI:
    """Test the LINE token and invite endpoints."""

    def test_get_line_token(self, test_client, fake_token_client):
        fake_token_client.issue_token.return_value = {
            "access_token": "token-1",
            "expires_in": 900,
            "token_type": "Bearer",
        }

        response = test_client.get("/api/get-line-token")

        assert response.json() == {
            "success": True,
            "access_token": "token-1",
            "expires_in": 900,
            "token_type": "Bearer",
        }

    def test_get_line_token_upstream_error(self, test_client, fake_token_client):
        fake_token_client.issue_token.side_effect = ChannelTokenError("invalid_client", status_code=401)

        response = test_client.get("/api/get-line-token")

        assert response.status_code == 401

    def test_get_line_token_not_configured(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "line_channel_id", None)

        response = test_client.get("/api/get-line-token")

        assert response.status_code == 500
        assert "not configured" in response.json()["error"]

    def test_send_invite(self, test_client, fake_line_client):
        response = test_client.post(
            "/api/send-invite",
            json={"toUserId": "u2", "fromUserName": "Alice", "roomId": "room-1", "liffId": "liff-1"},
        )

        assert response.status_code == 200
        assert response.json()["liffUrl"] == "https://liff.line.me/liff-1?room=room-1"
        to, text = fake_line_client.push_text.await_args.args
        assert to == "u2"
        assert "Alice invited you" in text

    def test_send_invite_line_error(self, test_client, fake_line_client):
        fake_line_client.push_text.side_effect = LineApiError(400, "bad request")

        response = test_client.post(
            "/api/send-invite",
            json={"toUserId": "u2", "fromUserName": "Alice", "roomId": "room-1", "liffId": "liff-1"},
        )

        assert response.status_code == 400
        assert "bad request" in response.json()["error"]

    def test_send_invite_missing_fields(self, test_client):
        response = test_client.post("/api/send-invite", json={"toUserId": "u2"})

        assert response.status_code == 400
