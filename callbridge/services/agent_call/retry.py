"""User-requested retries of missed or failed agent calls."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.services.agent_call.states import RETRYABLE_STATUSES, RetryStatus
from callbridge.services.notifications.dispatcher import NotificationDispatcher
from callbridge.services.persistence.agent_calls import AgentCallPersistenceService
from callbridge.services.persistence.retries import RetryQueuePersistenceService

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY_SECONDS = 300
DEFAULT_MAX_RETRY_ATTEMPTS = 3


class RetrySchedulingError(Exception):
    """Raised when a retry cannot be scheduled or executed."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class ScheduledRetry(BaseModel):
    queue_id: int
    scheduled_at: datetime
    retry_attempt: int
    already_scheduled: bool = False


class RetryService:
    """Queues a single retry for a call that went unanswered."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
        delay_seconds: int = DEFAULT_RETRY_DELAY_SECONDS,
        max_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS,
    ):
        self.sessions = AgentCallPersistenceService(db)
        self.queue = RetryQueuePersistenceService(db)
        self.dispatcher = dispatcher
        self.delay_seconds = delay_seconds
        self.max_attempts = max_attempts

    async def schedule_retry(self, sid: str, user_id: Optional[str] = None) -> ScheduledRetry:
        """
        Queue a retry of session ``sid`` after the configured delay.

        The session keeps its status; only ``retry_scheduled_at`` and the
        queue id are recorded on it. A pending entry for the session is
        returned as already scheduled instead of queueing a second one. The
        entry is only inserted by the request that wins the guarded claim on
        the session.

        Raises:
            RetrySchedulingError: 404 unknown session, 403 requester is not
                the callee, 409 session not retryable or already retried,
                400 attempt limit reached
        """
        session = await self.sessions.get_session_by_sid(sid)
        if session is None:
            raise RetrySchedulingError("Session not found", status_code=404)

        if user_id and user_id != session.callee_user_id:
            raise RetrySchedulingError("Unauthorized", status_code=403)

        entries = await self.queue.get_entries_for_session(sid)
        pending = [e for e in entries if e.status == RetryStatus.PENDING.value]
        if pending:
            existing = pending[-1]
            logger.info(f"[SCHEDULE RETRY] Retry already pending - sid: {sid}, queue_id: {existing.id}")
            return ScheduledRetry(
                queue_id=existing.id,
                scheduled_at=existing.scheduled_at,
                retry_attempt=existing.retry_attempt,
                already_scheduled=True,
            )

        if session.status not in RETRYABLE_STATUSES:
            raise RetrySchedulingError(
                f"Call cannot be retried in status '{session.status}'", status_code=409
            )

        retry_attempt = (session.retry_attempt or 0) + 1
        if retry_attempt > self.max_attempts:
            raise RetrySchedulingError("Maximum retry attempts reached", status_code=400)

        if entries:
            raise RetrySchedulingError("A retry was already made for this call", status_code=409)

        scheduled_at = datetime.utcnow() + timedelta(seconds=self.delay_seconds)
        if not await self.sessions.claim_retry(sid, scheduled_at, RETRYABLE_STATUSES):
            logger.info(f"[SCHEDULE RETRY] Lost retry claim - sid: {sid}")
            pending = [
                e for e in await self.queue.get_entries_for_session(sid)
                if e.status == RetryStatus.PENDING.value
            ]
            if pending:
                return ScheduledRetry(
                    queue_id=pending[-1].id,
                    scheduled_at=pending[-1].scheduled_at,
                    retry_attempt=pending[-1].retry_attempt,
                    already_scheduled=True,
                )
            raise RetrySchedulingError("A retry was already made for this call", status_code=409)

        entry = await self.queue.create_entry(
            original_sid=sid,
            callee_user_id=session.callee_user_id,
            audio_file_ids=session.audio_file_ids or [],
            language=session.language or "ko",
            scheduled_at=scheduled_at,
            retry_attempt=retry_attempt,
            data={
                "caller_user_id": session.caller_user_id,
                "caller_service_id": session.caller_service_id,
                "callee_service_id": session.callee_service_id,
                "scheduled_by": "user",
            },
        )
        await self.sessions.set_retry_scheduled(
            sid,
            scheduled_at,
            {"retry_queue_id": entry.id, "retry_scheduled_at": scheduled_at.isoformat() + "Z"},
        )
        logger.info(
            f"[SCHEDULE RETRY] Retry queued - sid: {sid}, queue_id: {entry.id}, "
            f"attempt: {retry_attempt}, scheduled_at: {scheduled_at.isoformat()}"
        )

        if self.dispatcher is not None:
            try:
                await self.dispatcher.send_retry_confirmation(
                    session.callee_user_id, scheduled_at, session.language or "ko"
                )
            except Exception as e:
                logger.error(
                    f"[SCHEDULE RETRY] Confirmation message failed - sid: {sid}, error: {e}",
                    exc_info=True,
                )

        return ScheduledRetry(
            queue_id=entry.id,
            scheduled_at=scheduled_at,
            retry_attempt=retry_attempt,
        )
