"""Group call event persistence."""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.db.models import PlanetKitEvent


class PlanetKitEventPersistenceService:
    """Service for the group call event log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_event(
        self,
        event_type: str,
        service_id: Optional[str],
        room_id: Optional[str],
        user_id: Optional[str],
        display_name: Optional[str],
        timestamp: Optional[int],
        data: Optional[Dict[str, Any]] = None,
    ) -> PlanetKitEvent:
        event = PlanetKitEvent(
            event_type=event_type,
            service_id=service_id,
            room_id=room_id,
            user_id=user_id,
            display_name=display_name,
            timestamp=timestamp,
            data=data or {},
        )
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)
        return event

    async def get_room_events_since(self, since: datetime) -> List[PlanetKitEvent]:
        """Events with a room id created at or after ``since``, in chronological order."""
        result = await self.db.execute(
            select(PlanetKitEvent)
            .where(
                PlanetKitEvent.created_at >= since,
                PlanetKitEvent.room_id.is_not(None),
            )
            .order_by(PlanetKitEvent.created_at.asc(), PlanetKitEvent.id.asc())
        )
        return list(result.scalars().all())

    async def get_presence_events_since(
        self, since: datetime, event_types: Tuple[str, ...]
    ) -> List[PlanetKitEvent]:
        """Events of the given types that carry both a room and a user."""
        result = await self.db.execute(
            select(PlanetKitEvent)
            .where(
                PlanetKitEvent.created_at >= since,
                PlanetKitEvent.room_id.is_not(None),
                PlanetKitEvent.user_id.is_not(None),
                PlanetKitEvent.event_type.in_(event_types),
            )
            .order_by(PlanetKitEvent.created_at.asc(), PlanetKitEvent.id.asc())
        )
        return list(result.scalars().all())

    async def search_events(
        self,
        since: datetime,
        room_id: Optional[str] = None,
        event_type: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[PlanetKitEvent], int]:
        """
        Filtered, newest-first page of events.

        ``user_id`` is a case-insensitive substring match.

        Returns:
            The page of events and the total number of matching rows
        """
        conditions = [PlanetKitEvent.created_at >= since]
        if room_id:
            conditions.append(PlanetKitEvent.room_id == room_id)
        if event_type:
            conditions.append(PlanetKitEvent.event_type == event_type)
        if user_id:
            conditions.append(PlanetKitEvent.user_id.ilike(f"%{user_id}%"))

        total = await self.db.scalar(
            select(func.count()).select_from(PlanetKitEvent).where(*conditions)
        )
        result = await self.db.execute(
            select(PlanetKitEvent)
            .where(*conditions)
            .order_by(PlanetKitEvent.created_at.desc(), PlanetKitEvent.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), int(total or 0)
