"""Timer-driven retry execution and timeout detection."""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.db.models import AgentCallRetry
from callbridge.services.agent_call.initiator import AgentCallInitiator
from callbridge.services.agent_call.lifecycle import AgentCallLifecycleService
from callbridge.services.agent_call.retry import RetrySchedulingError
from callbridge.services.agent_call.states import RetryStatus
from callbridge.services.persistence.agent_calls import AgentCallPersistenceService
from callbridge.services.persistence.retries import RetryQueuePersistenceService

logger = logging.getLogger(__name__)

RETRY_BATCH_SIZE = 10
TIMEOUT_BATCH_SIZE = 20
DEFAULT_STALE_AFTER_SECONDS = 65

OUTCOME_COMPLETED = "completed"
OUTCOME_FAILED = "failed"
OUTCOME_SKIPPED = "skipped"
OUTCOME_ALREADY_PROCESSED = "already_processed"


class RetryOutcome(BaseModel):
    queue_id: int
    outcome: str
    retry_sid: Optional[str] = None
    error: Optional[str] = None


class RetryBatchResult(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = []


class TimeoutScanResult(BaseModel):
    processed: int = 0
    notified: int = 0
    failed: int = 0
    errors: List[str] = []


class AgentCallScheduler:
    """
    Work run by the external timer.

    Retry entries and stale sessions are processed one at a time; a failure
    is recorded against its item and never aborts the rest of the batch.
    """

    def __init__(
        self,
        db: AsyncSession,
        initiator: AgentCallInitiator,
        lifecycle: AgentCallLifecycleService,
        stale_after_seconds: int = DEFAULT_STALE_AFTER_SECONDS,
    ):
        self.db = db
        self.initiator = initiator
        self.lifecycle = lifecycle
        self.sessions = AgentCallPersistenceService(db)
        self.queue = RetryQueuePersistenceService(db)
        self.stale_after_seconds = stale_after_seconds

    async def _run_entry(self, entry: AgentCallRetry, skip_when_busy: bool) -> RetryOutcome:
        entry_id = entry.id
        original_sid = entry.original_sid
        busy = await self.sessions.find_active_session_for_callee(entry.callee_user_id)
        if busy is not None:
            if skip_when_busy:
                logger.info(
                    f"[RETRY] Callee busy, leaving pending - queue_id: {entry_id}, "
                    f"callee: {entry.callee_user_id}, active_sid: {busy.sid}"
                )
                return RetryOutcome(queue_id=entry_id, outcome=OUTCOME_SKIPPED)
            error = f"Callee is busy with call {busy.sid}"
            await self.queue.mark_failed(entry_id, error)
            return RetryOutcome(queue_id=entry_id, outcome=OUTCOME_FAILED, error=error)

        original = await self.sessions.get_session_by_sid(original_sid)
        extra = entry.data or {}

        try:
            session = await self.initiator.initiate(
                to_user_id=entry.callee_user_id,
                to_service_id=original.callee_service_id if original else extra.get("callee_service_id"),
                caller_user_id=original.caller_user_id if original else extra.get("caller_user_id"),
                caller_service_id=original.caller_service_id if original else extra.get("caller_service_id"),
                audio_file_ids=entry.audio_file_ids or [],
                language=entry.language or "ko",
                parent_sid=original_sid,
                retry_attempt=entry.retry_attempt,
            )
        except Exception as e:
            await self.db.rollback()
            logger.error(f"[RETRY] Retry call failed - queue_id: {entry_id}, error: {e}", exc_info=True)
            await self.queue.mark_failed(entry_id, str(e))
            return RetryOutcome(queue_id=entry_id, outcome=OUTCOME_FAILED, error=str(e))

        retry_sid = session.sid
        if not await self.queue.mark_completed(entry_id, retry_sid):
            logger.warning(f"[RETRY] Entry was finished concurrently - queue_id: {entry_id}")
        await self.sessions.increment_retry_count(original_sid)
        logger.info(f"[RETRY] Retry call placed - queue_id: {entry_id}, retry_sid: {retry_sid}")
        return RetryOutcome(queue_id=entry_id, outcome=OUTCOME_COMPLETED, retry_sid=retry_sid)

    async def execute_due_retries(self, now: Optional[datetime] = None) -> RetryBatchResult:
        """Run due retry entries. An entry whose callee is on another call stays pending."""
        now = now or datetime.utcnow()
        entries = await self.queue.get_due_entries(now, limit=RETRY_BATCH_SIZE)
        result = RetryBatchResult(processed=len(entries))
        logger.info(f"[CRON RETRIES] Found {len(entries)} due retry entries")

        # A rollback expires loaded rows, so each entry is re-read by id
        for entry_id in [entry.id for entry in entries]:
            try:
                entry = await self.queue.get_entry(entry_id)
                outcome = await self._run_entry(entry, skip_when_busy=True)
            except Exception as e:
                await self.db.rollback()
                logger.error(f"[CRON RETRIES] Entry crashed - queue_id: {entry_id}, error: {e}", exc_info=True)
                outcome = RetryOutcome(queue_id=entry_id, outcome=OUTCOME_FAILED, error=str(e))

            if outcome.outcome == OUTCOME_COMPLETED:
                result.succeeded += 1
            elif outcome.outcome == OUTCOME_SKIPPED:
                result.skipped += 1
            else:
                result.failed += 1
                result.errors.append(f"Queue {entry_id}: {outcome.error}")

        logger.info(
            f"[CRON RETRIES] Batch done - processed: {result.processed}, succeeded: {result.succeeded}, "
            f"failed: {result.failed}, skipped: {result.skipped}"
        )
        return result

    async def execute_retry(self, queue_id: int) -> RetryOutcome:
        """
        Run one retry entry now, regardless of its schedule.

        Unlike the batch run, a busy callee fails the entry.

        Raises:
            RetrySchedulingError: 404 when the entry does not exist
        """
        entry = await self.queue.get_entry(queue_id)
        if entry is None:
            raise RetrySchedulingError("Retry queue entry not found", status_code=404)
        if entry.status != RetryStatus.PENDING.value:
            logger.info(f"[EXECUTE RETRY] Already processed - queue_id: {queue_id}, status: {entry.status}")
            return RetryOutcome(
                queue_id=queue_id,
                outcome=OUTCOME_ALREADY_PROCESSED,
                retry_sid=entry.retry_sid,
            )
        return await self._run_entry(entry, skip_when_busy=False)

    async def check_timeouts(self, now: Optional[datetime] = None) -> TimeoutScanResult:
        """Mark calls left unanswered past the timeout as missed and notify their callees."""
        now = now or datetime.utcnow()
        threshold = now - timedelta(seconds=self.stale_after_seconds)
        stale = await self.sessions.find_stale_sessions(threshold, limit=TIMEOUT_BATCH_SIZE)
        result = TimeoutScanResult(processed=len(stale))
        logger.info(f"[CRON TIMEOUTS] Found {len(stale)} stale calls")

        for sid in [session.sid for session in stale]:
            try:
                session = await self.sessions.get_session_by_sid(sid)
                if await self.lifecycle.mark_timed_out(session, {"timeout_source": "cron_backup"}):
                    result.notified += 1
            except Exception as e:
                await self.db.rollback()
                logger.error(f"[CRON TIMEOUTS] Timeout handling failed - sid: {sid}, error: {e}", exc_info=True)
                result.failed += 1
                result.errors.append(f"{sid}: {e}")

        logger.info(
            f"[CRON TIMEOUTS] Scan done - processed: {result.processed}, notified: {result.notified}, "
            f"failed: {result.failed}"
        )
        return result
