"""Advisory lock over who may drive the AI agent in a room."""
import logging
import time
from typing import Callable, Optional

from pydantic import BaseModel

from callbridge.services.locks.base import RoomLockEntry, RoomLockStore

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_MS = 30_000


class LockHolder(BaseModel):
    userId: str
    userName: str


class LockStatus(BaseModel):
    locked: bool
    holder: Optional[LockHolder] = None


class AcquireResult(BaseModel):
    acquired: bool
    holder: Optional[LockHolder] = None


def _now_ms() -> int:
    return int(time.time() * 1000)


class RoomLockService:
    """
    Cooperative single-holder lock per room with heartbeat expiry.

    An entry whose last heartbeat is older than the TTL is treated as absent
    and purged the next time the room is looked at.
    """

    def __init__(
        self,
        store: RoomLockStore,
        ttl_ms: int = DEFAULT_LOCK_TTL_MS,
        clock: Callable[[], int] = _now_ms,
    ):
        self.store = store
        self.ttl_ms = ttl_ms
        self.clock = clock

    def _is_expired(self, entry: RoomLockEntry) -> bool:
        return self.clock() - entry.last_heartbeat > self.ttl_ms

    async def _get_active(self, room_id: str) -> Optional[RoomLockEntry]:
        entry = await self.store.get(room_id)
        if entry is None:
            return None
        if self._is_expired(entry):
            logger.info(
                f"[ROOM LOCK] Lock expired - room_id: {room_id}, holder: {entry.user_id}"
            )
            await self.store.delete(room_id)
            return None
        return entry

    @staticmethod
    def _holder(entry: RoomLockEntry) -> LockHolder:
        return LockHolder(userId=entry.user_id, userName=entry.user_name)

    async def status(self, room_id: str) -> LockStatus:
        entry = await self._get_active(room_id)
        if entry is None:
            return LockStatus(locked=False)
        return LockStatus(locked=True, holder=self._holder(entry))

    async def acquire(self, room_id: str, user_id: str, user_name: str) -> AcquireResult:
        """Take the lock, or refresh it when the caller already holds it."""
        existing = await self._get_active(room_id)
        now = self.clock()

        if existing is not None:
            if existing.user_id == user_id:
                existing.last_heartbeat = now
                await self.store.set(room_id, existing)
                return AcquireResult(acquired=True)

            logger.info(
                f"[ROOM LOCK] Acquire rejected - room_id: {room_id}, "
                f"requester: {user_id}, holder: {existing.user_id}"
            )
            return AcquireResult(acquired=False, holder=self._holder(existing))

        await self.store.set(
            room_id,
            RoomLockEntry(
                user_id=user_id,
                user_name=user_name,
                acquired_at=now,
                last_heartbeat=now,
            ),
        )
        logger.info(f"[ROOM LOCK] Lock acquired - room_id: {room_id}, holder: {user_id}")
        return AcquireResult(acquired=True)

    async def heartbeat(self, room_id: str, user_id: str) -> bool:
        """Refresh the lock for its holder. Returns whether the caller still holds it."""
        existing = await self._get_active(room_id)
        if existing is None or existing.user_id != user_id:
            return False
        existing.last_heartbeat = self.clock()
        await self.store.set(room_id, existing)
        return True

    async def release(self, room_id: str, user_id: str) -> None:
        existing = await self._get_active(room_id)
        if existing is not None and existing.user_id == user_id:
            await self.store.delete(room_id)
            logger.info(f"[ROOM LOCK] Lock released - room_id: {room_id}, holder: {user_id}")
