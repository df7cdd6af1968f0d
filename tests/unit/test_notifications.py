"""Unit tests for notification texts and the dispatcher."""
import pytest
from datetime import datetime

from callbridge.services.notifications.dispatcher import liff_url
from callbridge.services.notifications.line_messaging import LineApiError
from callbridge.services.notifications.messages import MESSAGES, format_clock, get_text


class TestMessages:
    def test_every_language_has_every_key(self):
        keys = set(MESSAGES["en"])
        for language, table in MESSAGES.items():
            assert set(table) == keys, language

    def test_unknown_language_falls_back_to_english(self):
        assert get_text("de", "accept_call") == "Accept Call"

    def test_retry_time_is_korea_time(self):
        """Test 03:30 UTC is shown as 12:30."""
        assert format_clock(datetime(2026, 1, 1, 3, 30)) == "12:30"
        assert "12:30" in get_text("en", "retry_scheduled", time="12:30")

    def test_liff_url_encodes_params(self):
        assert liff_url("liff-1", "/path", sid="a b") == "https://liff.line.me/liff-1/path?sid=a+b"


class TestDispatcher:
    """Test message composition in the dispatcher."""

    @pytest.mark.asyncio
    async def test_admin_notify_counts_successes(self, dispatcher, fake_line_client):
        """Test one failing admin does not stop the others."""
        fake_line_client.push_text.side_effect = [LineApiError(500, "boom"), None]

        sent = await dispatcher.notify_admins_room_started("room-1", "Alice", 1_700_000_000_000)

        assert sent == 1
        assert fake_line_client.push_text.await_count == 2

    @pytest.mark.asyncio
    async def test_admin_notify_without_admins(self, dispatcher, fake_line_client):
        dispatcher.admin_uids = []

        assert await dispatcher.notify_admins_room_started("room-1", "Alice", 1_700_000_000_000) == 0
        fake_line_client.push_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_agent_call_link_requires_liff_id(self, dispatcher):
        dispatcher.liff_id = None

        with pytest.raises(LineApiError) as exc_info:
            await dispatcher.send_agent_call_link("u1", "sid-1", "cc", "ko")

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_agent_call_link_localized(self, dispatcher, fake_line_client):
        link = await dispatcher.send_agent_call_link("u1", "sid-1", "cc-1", "ko")

        assert link == "https://liff.line.me/test-liff/agent-call-meeting?sid=sid-1&cc_param=cc-1&autoAccept=true"
        _, messages = fake_line_client.push.await_args.args
        assert messages[0]["template"]["actions"][0]["label"] == "전화 받기"
