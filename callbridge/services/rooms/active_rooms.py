"""Derive currently active rooms by replaying group call events."""
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel

from callbridge.services.rooms.events import GroupCallEventType

RECENT_ACTIVITY_WINDOW = timedelta(minutes=5)


class RoomParticipant(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    joined_at: datetime


class ActiveRoom(BaseModel):
    room_id: str
    participant_count: int
    participants: List[RoomParticipant]
    last_activity: datetime
    call_start_time: Optional[datetime] = None


class _RoomState:
    def __init__(self, last_activity: datetime):
        self.participants: Dict[str, RoomParticipant] = {}
        self.last_activity = last_activity
        self.call_start_time: Optional[datetime] = None
        self.call_ended = False
        self.online_count = 0


def _online_count(data: Optional[Dict[str, Any]]) -> Optional[int]:
    if not data or data.get("online") in (None, ""):
        return None
    try:
        return int(str(data["online"]))
    except ValueError:
        return None


def build_active_rooms(events: Iterable[Any], now: Optional[datetime] = None) -> List[ActiveRoom]:
    """
    Replay events (oldest first) into per-room state and return the active rooms.

    Each event needs ``room_id``, ``event_type``, ``user_id``, ``display_name``,
    ``created_at`` and ``data`` attributes. A room is active when it has not
    ended and either has participants, reports a positive online count, or
    saw activity within the last five minutes.
    """
    now = now or datetime.utcnow()
    rooms: Dict[str, _RoomState] = {}

    for event in events:
        if not event.room_id:
            continue
        room = rooms.get(event.room_id)
        if room is None:
            room = rooms[event.room_id] = _RoomState(event.created_at)

        room.last_activity = event.created_at

        online = _online_count(event.data)
        if online is not None:
            room.online_count = online

        if event.event_type == GroupCallEventType.START.value:
            room.call_start_time = event.created_at
            room.call_ended = False
        elif event.event_type == GroupCallEventType.END.value:
            room.call_ended = True
            room.online_count = 0
            room.participants.clear()
        elif event.event_type == GroupCallEventType.USER_JOIN.value:
            if event.user_id and not room.call_ended:
                room.participants[event.user_id] = RoomParticipant(
                    user_id=event.user_id,
                    display_name=event.display_name,
                    joined_at=event.created_at,
                )
        elif event.event_type == GroupCallEventType.USER_LEAVE.value:
            if event.user_id:
                room.participants.pop(event.user_id, None)

    active_rooms = []
    for room_id, room in rooms.items():
        if room.call_ended:
            continue
        recently_active = now - room.last_activity <= RECENT_ACTIVITY_WINDOW
        if not (room.participants or room.online_count > 0 or recently_active):
            continue

        active_rooms.append(
            ActiveRoom(
                room_id=room_id,
                participant_count=(
                    room.online_count if room.online_count > 0 else len(room.participants)
                ),
                participants=list(room.participants.values()),
                last_activity=room.last_activity,
                call_start_time=room.call_start_time,
            )
        )

    active_rooms.sort(key=lambda r: r.last_activity, reverse=True)
    return active_rooms
