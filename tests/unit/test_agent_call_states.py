"""Unit tests for the agent call state machine."""
import pytest

from callbridge.services.agent_call.states import (
    SOURCES,
    AgentCallStatus,
    can_transition,
    is_terminal,
    status_for_delivery_result,
)


class TestTransitions:
    """Test which status changes are legal."""

    @pytest.mark.parametrize(
        "current,new",
        [
            ("initiated", "ringing"),
            ("initiated", "failed"),
            ("initiated", "missed"),
            ("ringing", "answered"),
            ("ringing", "missed"),
            ("ringing", "failed"),
            ("answered", "ended"),
        ],
    )
    def test_legal(self, current, new):
        assert can_transition(current, new) is True

    @pytest.mark.parametrize(
        "current,new",
        [
            ("initiated", "answered"),
            ("initiated", "ended"),
            ("answered", "missed"),
            ("missed", "ringing"),
            ("failed", "ringing"),
            ("ended", "answered"),
            ("ringing", "ringing"),
        ],
    )
    def test_illegal(self, current, new):
        assert can_transition(current, new) is False

    def test_terminal_states(self):
        """Test missed, failed and ended accept no further transitions."""
        assert is_terminal("missed")
        assert is_terminal("failed")
        assert is_terminal("ended")
        assert not is_terminal("ringing")

    def test_sources_guard(self):
        """Test the UPDATE guard lists every state that may reach the target."""
        assert set(SOURCES[AgentCallStatus.MISSED]) == {"initiated", "ringing"}
        assert SOURCES[AgentCallStatus.ENDED] == ("answered",)
        assert SOURCES[AgentCallStatus.INITIATED] == ()


class TestDeliveryResult:
    def test_success_means_ringing(self):
        assert status_for_delivery_result("SUCCESS") == AgentCallStatus.RINGING

    @pytest.mark.parametrize("result", ["FAIL", "BUSY", "", "success"])
    def test_everything_else_means_failed(self, result):
        assert status_for_delivery_result(result) == AgentCallStatus.FAILED
