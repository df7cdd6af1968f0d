"""Agent call lifecycle states and legal transitions."""
from enum import Enum
from typing import Dict, FrozenSet


class AgentCallStatus(str, Enum):
    """Status of an agent call session."""

    INITIATED = "initiated"  # Outbound call requested from the provider
    RINGING = "ringing"  # Provider delivered the call to the callee
    ANSWERED = "answered"  # Callee connected
    MISSED = "missed"  # No answer before the timeout
    FAILED = "failed"  # Provider reported a delivery failure
    ENDED = "ended"  # Answered call hung up

    def __str__(self) -> str:
        """Return the string value of the status."""
        return self.value


class RetryStatus(str, Enum):
    """Status of a retry queue entry."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


TRANSITIONS: Dict[AgentCallStatus, FrozenSet[AgentCallStatus]] = {
    AgentCallStatus.INITIATED: frozenset(
        {AgentCallStatus.RINGING, AgentCallStatus.FAILED, AgentCallStatus.MISSED}
    ),
    AgentCallStatus.RINGING: frozenset(
        {AgentCallStatus.ANSWERED, AgentCallStatus.MISSED, AgentCallStatus.FAILED}
    ),
    AgentCallStatus.ANSWERED: frozenset({AgentCallStatus.ENDED}),
    AgentCallStatus.MISSED: frozenset(),
    AgentCallStatus.FAILED: frozenset(),
    AgentCallStatus.ENDED: frozenset(),
}

# Sessions in these states keep the callee busy
ACTIVE_STATUSES = (
    AgentCallStatus.INITIATED.value,
    AgentCallStatus.RINGING.value,
    AgentCallStatus.ANSWERED.value,
)

# Sessions in these states are candidates for the timeout scan
AWAITING_ANSWER_STATUSES = (
    AgentCallStatus.RINGING.value,
    AgentCallStatus.INITIATED.value,
)

# Only these outcomes may spawn a retry
RETRYABLE_STATUSES = (
    AgentCallStatus.MISSED.value,
    AgentCallStatus.FAILED.value,
)

# Statuses that can still be moved into each target, used as UPDATE guards
SOURCES: Dict[AgentCallStatus, tuple] = {
    target: tuple(
        source.value for source, targets in TRANSITIONS.items() if target in targets
    )
    for target in AgentCallStatus
}


def is_terminal(status: str) -> bool:
    return not TRANSITIONS[AgentCallStatus(status)]


def can_transition(current: str, new: str) -> bool:
    """Check whether ``current`` may move to ``new``. Re-applying the same status is not a transition."""
    return AgentCallStatus(new) in TRANSITIONS[AgentCallStatus(current)]


def status_for_delivery_result(result: str) -> AgentCallStatus:
    """
    Map the provider's delivery result to a session status.

    Only ``SUCCESS`` is known to mean delivered; every other code is treated
    as a failure.
    """
    if result == "SUCCESS":
        return AgentCallStatus.RINGING
    return AgentCallStatus.FAILED
