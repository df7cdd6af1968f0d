"""Call history and recent-user queries over the group call event log."""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.services.persistence.planetkit_events import PlanetKitEventPersistenceService
from callbridge.services.rooms.events import GroupCallEventType

logger = logging.getLogger(__name__)

# Other users count as co-participants when they joined within this window of the user
CO_PRESENCE_WINDOW = timedelta(minutes=10)
PRESENCE_EVENT_TYPES = (
    GroupCallEventType.USER_JOIN.value,
    GroupCallEventType.START.value,
)
MAX_FOLLOWERS = 100


class CallHistoryEntry(BaseModel):
    user_id: str
    display_name: str
    last_call_time: datetime
    call_count: int


class RecentUser(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    last_seen: datetime


def build_call_history(events: Iterable[Any], user_id: str) -> List[CallHistoryEntry]:
    """
    Distinct users who were present in the same room as ``user_id`` around the same time.

    ``events`` are presence events (join or start) with a room and a user.
    ``call_count`` is the number of distinct shared rooms.
    """
    events = list(events)
    own_sessions = [(e.room_id, e.created_at) for e in events if e.user_id == user_id]
    if not own_sessions:
        return []

    aggregated: Dict[Tuple[str, str], Dict[str, Any]] = {}
    for event in events:
        if event.user_id == user_id or not event.display_name:
            continue
        overlaps = any(
            room_id == event.room_id and abs(event.created_at - joined_at) <= CO_PRESENCE_WINDOW
            for room_id, joined_at in own_sessions
        )
        if not overlaps:
            continue

        key = (event.user_id, event.display_name)
        entry = aggregated.setdefault(key, {"last": event.created_at, "rooms": set()})
        entry["last"] = max(entry["last"], event.created_at)
        rooms: Set[str] = entry["rooms"]
        rooms.add(event.room_id)

    history = [
        CallHistoryEntry(
            user_id=uid,
            display_name=name,
            last_call_time=value["last"],
            call_count=len(value["rooms"]),
        )
        for (uid, name), value in aggregated.items()
    ]
    history.sort(key=lambda h: h.last_call_time, reverse=True)
    return history


def build_recent_users(events: Iterable[Any], limit: int = MAX_FOLLOWERS) -> List[RecentUser]:
    """Distinct users seen in ``events``, most recently seen first."""
    latest: Dict[str, RecentUser] = {}
    for event in events:
        current = latest.get(event.user_id)
        if current is None or event.created_at >= current.last_seen:
            latest[event.user_id] = RecentUser(
                user_id=event.user_id,
                display_name=event.display_name or (current.display_name if current else None),
                last_seen=event.created_at,
            )
    users = sorted(latest.values(), key=lambda u: u.last_seen, reverse=True)
    return users[:limit]


class RoomHistoryService:
    """Queries that read the group call event log."""

    def __init__(self, db: AsyncSession):
        self.events = PlanetKitEventPersistenceService(db)

    async def get_call_history(self, user_id: str, days: int = 30) -> List[CallHistoryEntry]:
        cutoff = datetime.utcnow() - timedelta(days=days)
        events = await self.events.get_presence_events_since(cutoff, PRESENCE_EVENT_TYPES)
        history = build_call_history(events, user_id)
        logger.info(
            f"[CALL HISTORY] Computed history - user_id: {user_id}, days: {days}, "
            f"entries: {len(history)}"
        )
        return history

    async def get_recent_users(self, days: int = 90) -> List[RecentUser]:
        cutoff = datetime.utcnow() - timedelta(days=days)
        events = await self.events.get_presence_events_since(cutoff, PRESENCE_EVENT_TYPES)
        return build_recent_users(events)
