"""Room lock store interface."""
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel


class RoomLockEntry(BaseModel):
    """Current holder of a room's AI agent controls."""

    user_id: str
    user_name: str
    acquired_at: int  # epoch millis
    last_heartbeat: int  # epoch millis


class RoomLockStore(ABC):
    """Keyed storage for room locks. Implementations need not be durable."""

    @abstractmethod
    async def get(self, room_id: str) -> Optional[RoomLockEntry]:
        """Get the stored entry, expired or not."""
        pass

    @abstractmethod
    async def set(self, room_id: str, entry: RoomLockEntry) -> None:
        """Store or replace the entry for a room."""
        pass

    @abstractmethod
    async def delete(self, room_id: str) -> None:
        """Remove the entry for a room if present."""
        pass
