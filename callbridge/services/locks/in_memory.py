"""Process-local room lock store."""
from typing import Dict, Optional

from callbridge.services.locks.base import RoomLockEntry, RoomLockStore


class InMemoryRoomLockStore(RoomLockStore):
    """Room locks held in a dict. Lost on restart, which the TTL makes harmless."""

    def __init__(self):
        self._locks: Dict[str, RoomLockEntry] = {}

    async def get(self, room_id: str) -> Optional[RoomLockEntry]:
        return self._locks.get(room_id)

    async def set(self, room_id: str, entry: RoomLockEntry) -> None:
        self._locks[room_id] = entry

    async def delete(self, room_id: str) -> None:
        self._locks.pop(room_id, None)

    def clear(self) -> None:
        self._locks.clear()
