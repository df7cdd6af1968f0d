"""Retry queue persistence."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.db.models import AgentCallRetry
from callbridge.services.agent_call.states import RetryStatus


class RetryQueuePersistenceService:
    """Service for the agent call retry queue."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_entry(
        self,
        original_sid: str,
        callee_user_id: str,
        audio_file_ids: List[str],
        language: str,
        scheduled_at: datetime,
        retry_attempt: int,
        data: Optional[Dict[str, Any]] = None,
    ) -> AgentCallRetry:
        entry = AgentCallRetry(
            original_sid=original_sid,
            callee_user_id=callee_user_id,
            audio_file_ids=audio_file_ids,
            language=language,
            scheduled_at=scheduled_at,
            status=RetryStatus.PENDING.value,
            retry_attempt=retry_attempt,
            data=data or {},
        )
        self.db.add(entry)
        await self.db.commit()
        await self.db.refresh(entry)
        return entry

    async def get_entry(self, entry_id: int) -> Optional[AgentCallRetry]:
        result = await self.db.execute(
            select(AgentCallRetry)
            .where(AgentCallRetry.id == entry_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_entries_for_session(self, original_sid: str) -> List[AgentCallRetry]:
        """All queue entries spawned by a session, oldest first."""
        result = await self.db.execute(
            select(AgentCallRetry)
            .where(AgentCallRetry.original_sid == original_sid)
            .order_by(AgentCallRetry.created_at.asc(), AgentCallRetry.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_due_entries(self, now: datetime, limit: int = 10) -> List[AgentCallRetry]:
        """Pending entries whose scheduled time has passed, oldest schedule first."""
        result = await self.db.execute(
            select(AgentCallRetry)
            .where(
                AgentCallRetry.status == RetryStatus.PENDING.value,
                AgentCallRetry.scheduled_at <= now,
            )
            .order_by(AgentCallRetry.scheduled_at.asc(), AgentCallRetry.id.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _finish(self, entry_id: int, status: RetryStatus, **values: Any) -> bool:
        # Only a pending entry may reach a terminal state, and only once
        result = await self.db.execute(
            update(AgentCallRetry)
            .where(
                AgentCallRetry.id == entry_id,
                AgentCallRetry.status == RetryStatus.PENDING.value,
            )
            .values(status=status.value, executed_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def mark_completed(self, entry_id: int, retry_sid: str) -> bool:
        return await self._finish(entry_id, RetryStatus.COMPLETED, retry_sid=retry_sid)

    async def mark_failed(self, entry_id: int, error_message: str) -> bool:
        return await self._finish(entry_id, RetryStatus.FAILED, error_message=error_message)
