"""Group call callback parsing."""
import time
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel


class GroupCallEventType(str, Enum):
    """Group call event types as stored in the event log."""

    START = "GCALL_EVT_START"
    END = "GCALL_EVT_END"
    USER_JOIN = "GCALL_EVT_USER_JOIN"
    USER_LEAVE = "GCALL_EVT_USER_LEAVE"
    MEDIA_CHANGE = "GCALL_EVT_MEDIA_CHANGE"
    STATUS_CHANGE = "GCALL_EVT_STATUS_CHANGE"
    CALLBACK = "GCALL_EVT_CALLBACK"

    def __str__(self) -> str:
        return self.value


class GroupCallCallback(BaseModel):
    """A provider callback normalized to the event log columns."""

    event_type: str
    service_id: Optional[str] = None
    room_id: Optional[str] = None
    user_id: Optional[str] = None
    display_name: Optional[str] = None
    timestamp: int
    data: Dict[str, Any] = {}


def _first(params: Mapping[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        value = params.get(key)
        if value not in (None, ""):
            return value
    return None


def _is_set(value: Any) -> bool:
    return value not in (None, "", "0", 0)


def determine_event_type(params: Mapping[str, Any]) -> str:
    """
    Derive the event type of a group call callback.

    An explicit ``eventType``/``event_type`` wins. Otherwise the provider's
    short codes are inspected in order: session state (``sc``), member
    state (``msc``), start/end times, then ``ue_type``.
    """
    explicit = _first(params, "eventType", "event_type")
    if explicit:
        return str(explicit)

    sc = params.get("sc")
    msc = params.get("msc")
    ue_type = _first(params, "ue_type", "ueType")
    start_time = _first(params, "start_time", "startTime")
    end_time = _first(params, "end_time", "endTime")

    if sc == "E":
        return GroupCallEventType.END.value
    if sc == "S":
        return GroupCallEventType.START.value

    if msc == "C":
        return GroupCallEventType.USER_JOIN.value
    if msc in ("D", "T"):
        return GroupCallEventType.USER_LEAVE.value
    if msc == "M":
        return GroupCallEventType.MEDIA_CHANGE.value

    if _is_set(end_time):
        return GroupCallEventType.END.value
    if _is_set(start_time):
        return GroupCallEventType.START.value

    if ue_type == "JOIN":
        return GroupCallEventType.USER_JOIN.value
    if ue_type == "LEAVE":
        return GroupCallEventType.USER_LEAVE.value

    if sc == "C":
        return GroupCallEventType.STATUS_CHANGE.value

    return GroupCallEventType.CALLBACK.value


def _parse_timestamp(value: Any) -> int:
    now = int(time.time() * 1000)
    if value is None:
        return now
    try:
        parsed = int(float(str(value)))
    except ValueError:
        return now
    return parsed or now


def parse_group_call_callback(params: Mapping[str, Any]) -> GroupCallCallback:
    """Normalize query or body parameters of a group call callback."""
    service_id = _first(params, "svc_id", "service_id", "svcId", "serviceId")
    room_id = _first(params, "id", "room_id", "roomId")
    user_id = _first(params, "user_id", "userId")
    display_name = _first(params, "display_name", "displayName")

    return GroupCallCallback(
        event_type=determine_event_type(params),
        service_id=str(service_id) if service_id is not None else None,
        room_id=str(room_id) if room_id is not None else None,
        user_id=str(user_id) if user_id is not None else None,
        display_name=str(display_name) if display_name is not None else None,
        timestamp=_parse_timestamp(_first(params, "ts", "timestamp")),
        data=dict(params),
    )
