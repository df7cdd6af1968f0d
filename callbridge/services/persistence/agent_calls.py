"""Agent call session and event persistence."""
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.db.models import AgentCallEvent, AgentCallSession
from callbridge.services.agent_call.states import ACTIVE_STATUSES, AWAITING_ANSWER_STATUSES, AgentCallStatus


def now_ms() -> int:
    return int(time.time() * 1000)


class AgentCallPersistenceService:
    """Service for persisting agent call sessions and their event log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_session(
        self,
        sid: str,
        caller_user_id: str,
        callee_user_id: str,
        caller_service_id: Optional[str],
        callee_service_id: Optional[str],
        audio_file_ids: List[str],
        language: str,
        data: Optional[Dict[str, Any]] = None,
        parent_sid: Optional[str] = None,
        is_retry: bool = False,
        retry_attempt: int = 0,
    ) -> AgentCallSession:
        """Create a session in the initiated state. The sid doubles as the room id."""
        session = AgentCallSession(
            sid=sid,
            caller_user_id=caller_user_id,
            callee_user_id=callee_user_id,
            caller_service_id=caller_service_id,
            callee_service_id=callee_service_id,
            room_id=sid,
            status=AgentCallStatus.INITIATED.value,
            audio_file_ids=audio_file_ids,
            language=language,
            data=data or {},
            parent_sid=parent_sid,
            is_retry=is_retry,
            retry_attempt=retry_attempt,
        )
        self.db.add(session)
        await self.db.commit()
        await self.db.refresh(session)
        return session

    async def get_session_by_sid(self, sid: str) -> Optional[AgentCallSession]:
        """Get session by provider sid."""
        result = await self.db.execute(
            select(AgentCallSession)
            .where(AgentCallSession.sid == sid)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_session_by_call_id(self, call_id: str) -> Optional[AgentCallSession]:
        """Get session by 1:1 call id, which may be either the room id or the sid."""
        result = await self.db.execute(
            select(AgentCallSession)
            .where(or_(AgentCallSession.room_id == call_id, AgentCallSession.sid == call_id))
            .execution_options(populate_existing=True)
            .order_by(AgentCallSession.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def transition_status(
        self,
        sid: str,
        new_status: AgentCallStatus,
        allowed_from: Sequence[str],
        **values: Any,
    ) -> bool:
        """
        Move a session to ``new_status`` only if its current status is in ``allowed_from``.

        Returns:
            True when a row was updated
        """
        result = await self.db.execute(
            update(AgentCallSession)
            .where(
                AgentCallSession.sid == sid,
                AgentCallSession.status.in_(list(allowed_from)),
            )
            .values(status=new_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def mark_missed_if_unnotified(
        self, sid: str, metadata: Dict[str, Any], previous_data: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Mark a stale call as missed unless another scan already did.

        The update is conditioned on the call still awaiting an answer and on
        the timeout guard flag, so at most one concurrent caller sees True.
        """
        now = datetime.utcnow()
        result = await self.db.execute(
            update(AgentCallSession)
            .where(
                AgentCallSession.sid == sid,
                AgentCallSession.status.in_(list(AWAITING_ANSWER_STATUSES)),
                AgentCallSession.timeout_notification_sent.is_(False),
            )
            .values(
                status=AgentCallStatus.MISSED.value,
                timeout_at=now,
                ended_at=now,
                data={**(previous_data or {}), **metadata},
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def mark_timeout_notified(self, sid: str) -> None:
        await self.db.execute(
            update(AgentCallSession)
            .where(AgentCallSession.sid == sid)
            .values(timeout_notification_sent=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def merge_metadata(self, sid: str, metadata: Dict[str, Any]) -> bool:
        """Shallow-merge ``metadata`` into the session's JSON data. Returns False if no session."""
        session = await self.get_session_by_sid(sid)
        if session is None:
            return False
        session.data = {**(session.data or {}), **metadata}
        await self.db.commit()
        return True

    async def increment_retry_count(self, sid: str) -> None:
        await self.db.execute(
            update(AgentCallSession)
            .where(AgentCallSession.sid == sid)
            .values(retry_count=AgentCallSession.retry_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def claim_retry(
        self, sid: str, scheduled_at: datetime, allowed_from: Sequence[str]
    ) -> bool:
        """
        Reserve the single retry of a session.

        Only the first caller to stamp ``retry_scheduled_at`` on a session in
        ``allowed_from`` gets True; concurrent requests see the stamp and lose.
        """
        result = await self.db.execute(
            update(AgentCallSession)
            .where(
                AgentCallSession.sid == sid,
                AgentCallSession.status.in_(list(allowed_from)),
                AgentCallSession.retry_scheduled_at.is_(None),
            )
            .values(retry_scheduled_at=scheduled_at)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def set_retry_scheduled(self, sid: str, scheduled_at: datetime, metadata: Dict[str, Any]) -> None:
        session = await self.get_session_by_sid(sid)
        if session is None:
            return
        session.retry_scheduled_at = scheduled_at
        session.data = {**(session.data or {}), **metadata}
        await self.db.commit()

    async def find_active_session_for_callee(self, callee_user_id: str) -> Optional[AgentCallSession]:
        """Most recent session that keeps the callee busy, if any."""
        result = await self.db.execute(
            select(AgentCallSession)
            .where(
                AgentCallSession.callee_user_id == callee_user_id,
                AgentCallSession.status.in_(list(ACTIVE_STATUSES)),
            )
            .order_by(AgentCallSession.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_stale_sessions(self, older_than: datetime, limit: int = 20) -> List[AgentCallSession]:
        """Unanswered sessions created before ``older_than`` that were never timed out."""
        result = await self.db.execute(
            select(AgentCallSession)
            .where(
                AgentCallSession.status.in_(list(AWAITING_ANSWER_STATUSES)),
                AgentCallSession.created_at < older_than,
                AgentCallSession.timeout_notification_sent.is_(False),
            )
            .order_by(AgentCallSession.created_at.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def add_event(
        self,
        sid: str,
        event_type: str,
        status: Optional[str],
        timestamp: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> AgentCallEvent:
        """Append an event row. Events are never updated."""
        event = AgentCallEvent(
            sid=sid,
            event_type=event_type,
            status=status,
            timestamp=timestamp if timestamp is not None else now_ms(),
            data=data or {},
        )
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)
        return event

    async def list_events(self, sid: str) -> List[AgentCallEvent]:
        result = await self.db.execute(
            select(AgentCallEvent)
            .where(AgentCallEvent.sid == sid)
            .order_by(AgentCallEvent.id.asc())
        )
        return list(result.scalars().all())
