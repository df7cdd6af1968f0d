"""Provider callbacks and timeouts that move agent call sessions between states."""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.db.models import AgentCallSession
from callbridge.services.agent_call.states import (
    SOURCES,
    AgentCallStatus,
    can_transition,
    status_for_delivery_result,
)
from callbridge.services.notifications.dispatcher import NotificationDispatcher
from callbridge.services.persistence.agent_calls import AgentCallPersistenceService, now_ms

logger = logging.getLogger(__name__)

STATUS_EVENT_TYPE = "agent_call_status"
TIMEOUT_EVENT_TYPE = "TIMEOUT"
DEFAULT_LANGUAGE = "ko"

ONE_TO_ONE_TRANSITIONS = {
    "CONNECTED": (AgentCallStatus.ANSWERED, "answered_at", "connected_at"),
    "DISCONNECTED": (AgentCallStatus.ENDED, "ended_at", "disconnected_at"),
}


def is_no_answer_release(data: Dict[str, Any]) -> bool:
    """Whether a 1:1 call release means the callee never picked up."""
    return (
        str(data.get("terminate")) == "18"
        or data.get("rel_code_str") == "NO_ANSWER"
        or str(data.get("disconnect_reason")) == "1203"
    )


class AgentCallLifecycleService:
    """
    Applies provider signals to agent call sessions.

    Every status change is a guarded UPDATE; the affected row count decides
    whether anything depending on it happens. Session updates and event
    inserts are separate best-effort writes: a failure in one is rolled
    back and logged without blocking the other.
    """

    def __init__(self, db: AsyncSession, dispatcher: Optional[NotificationDispatcher] = None):
        self.db = db
        self.sessions = AgentCallPersistenceService(db)
        self.dispatcher = dispatcher

    async def _apply_transition(
        self,
        session: AgentCallSession,
        new_status: AgentCallStatus,
        **values: Any,
    ) -> bool:
        if session.status == new_status.value:
            logger.debug(f"[AGENT CALL] Status unchanged - sid: {session.sid}, status: {new_status}")
            return False
        if not can_transition(session.status, new_status.value):
            logger.warning(
                f"[AGENT CALL] Illegal transition skipped - sid: {session.sid}, "
                f"from: {session.status}, to: {new_status}"
            )
            return False

        applied = await self.sessions.transition_status(
            session.sid, new_status, SOURCES[new_status], **values
        )
        if applied:
            logger.info(
                f"[AGENT CALL] Status changed - sid: {session.sid}, "
                f"from: {session.status}, to: {new_status}"
            )
        else:
            logger.info(
                f"[AGENT CALL] Transition lost to a concurrent update - sid: {session.sid}, "
                f"to: {new_status}"
            )
        return applied

    async def _record_event(
        self,
        sid: str,
        event_type: str,
        status: Optional[str],
        timestamp: Optional[int],
        data: Dict[str, Any],
    ) -> None:
        try:
            await self.sessions.add_event(sid, event_type, status, timestamp, data)
        except Exception as e:
            await self.db.rollback()
            logger.error(
                f"[AGENT CALL] Failed to log event - sid: {sid}, event_type: {event_type}, error: {e}",
                exc_info=True,
            )

    async def handle_delivery_result(
        self,
        sid: str,
        result: str,
        fail_reason: Optional[str] = None,
        timestamp: Optional[int] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> AgentCallStatus:
        """
        Apply the provider's delivery result for ``sid``.

        ``SUCCESS`` moves the call to ringing, anything else to failed. The
        result is merged into the session metadata and an event is always
        appended, even when the session is unknown or the transition is
        illegal.

        Returns:
            The status the result maps to
        """
        new_status = status_for_delivery_result(result)
        metadata = {
            "result": result,
            "fail_reason": fail_reason,
            "timestamp": timestamp,
            "callback_received_at": now_ms(),
        }

        try:
            session = await self.sessions.get_session_by_sid(sid)
            if session is None:
                logger.warning(f"[AGENT CALL CALLBACK] Unknown session - sid: {sid}")
            else:
                await self._apply_transition(session, new_status)
                await self.sessions.merge_metadata(sid, metadata)
        except Exception as e:
            await self.db.rollback()
            logger.error(
                f"[AGENT CALL CALLBACK] Failed to update session - sid: {sid}, error: {e}",
                exc_info=True,
            )

        await self._record_event(
            sid,
            STATUS_EVENT_TYPE,
            result,
            timestamp,
            {"result": result, "fail_reason": fail_reason, **(extra or {})},
        )
        return new_status

    async def record_notify(self, sid: str, cc_param: str, details: Dict[str, Any]) -> str:
        """
        Store the provider's notify parameter on the session.

        Returns:
            The session language used to localize the callee's message
        """
        language = "en"
        try:
            session = await self.sessions.get_session_by_sid(sid)
            if session is None:
                logger.warning(f"[NOTIFY CALLBACK] Unknown session - sid: {sid}")
            else:
                language = session.language or language
                await self.sessions.merge_metadata(
                    sid,
                    {"cc_param": cc_param, **details, "notify_received_at": now_ms()},
                )
        except Exception as e:
            await self.db.rollback()
            logger.error(
                f"[NOTIFY CALLBACK] Failed to store cc_param - sid: {sid}, error: {e}",
                exc_info=True,
            )
        return language

    async def find_callee(self, sid: str) -> Optional[str]:
        """Callee of session ``sid``, or None when unknown or the lookup fails."""
        try:
            session = await self.sessions.get_session_by_sid(sid)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"[NOTIFY CALLBACK] Callee lookup failed - sid: {sid}, error: {e}", exc_info=True)
            return None
        return session.callee_user_id if session else None

    async def handle_one_to_one_event(
        self,
        call_id: str,
        event_type: Optional[str],
        timestamp: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Apply a 1:1 call lifecycle event (connected, disconnected or no-answer release)."""
        data = data or {}

        if is_no_answer_release(data):
            try:
                session = await self.sessions.get_session_by_call_id(call_id)
                if session is not None:
                    await self.mark_timed_out(
                        session,
                        {
                            "terminate": data.get("terminate"),
                            "rel_code": data.get("rel_code"),
                            "rel_code_str": data.get("rel_code_str"),
                            "disconnect_reason": data.get("disconnect_reason"),
                            "timeout_source": "planetkit_callback",
                        },
                        source="ONE_TO_ONE_CALLBACK",
                    )
                else:
                    logger.info(f"[ONE TO ONE CALLBACK] No session for no-answer release - call_id: {call_id}")
            except Exception as e:
                await self.db.rollback()
                logger.error(
                    f"[ONE TO ONE CALLBACK] Failed to process no-answer - call_id: {call_id}, error: {e}",
                    exc_info=True,
                )
            return

        mapping = ONE_TO_ONE_TRANSITIONS.get(event_type or "")
        if mapping is not None:
            new_status, time_column, metadata_key = mapping
            try:
                session = await self.sessions.get_session_by_call_id(call_id)
                if session is None:
                    logger.warning(f"[ONE TO ONE CALLBACK] Unknown call - call_id: {call_id}")
                else:
                    await self._apply_transition(
                        session, new_status, **{time_column: datetime.utcnow()}
                    )
                    await self.sessions.merge_metadata(
                        session.sid,
                        {metadata_key: now_ms(), "cc_call_id": data.get("cc_call_id"), "callId": call_id},
                    )
            except Exception as e:
                await self.db.rollback()
                logger.error(
                    f"[ONE TO ONE CALLBACK] Failed to update session - call_id: {call_id}, error: {e}",
                    exc_info=True,
                )
        else:
            logger.info(f"[ONE TO ONE CALLBACK] Unhandled event type - call_id: {call_id}, event_type: {event_type}")

        await self._record_event(
            call_id,
            event_type or "UNKNOWN",
            event_type or "UNKNOWN",
            timestamp,
            data,
        )

    async def mark_timed_out(
        self,
        session: AgentCallSession,
        metadata: Dict[str, Any],
        source: str = "BACKUP_CHECK",
    ) -> bool:
        """
        Move an unanswered call to missed and tell the callee, at most once.

        The notice is sent, the guard flag flipped and a TIMEOUT event appended
        only when this caller's guarded update affected the row. A failed
        notice is raised to the caller after the status change is committed.

        Returns:
            True when this call performed the transition
        """
        claimed = await self.sessions.mark_missed_if_unnotified(
            session.sid,
            {**metadata, "timeout_detected_at": now_ms()},
            previous_data=session.data,
        )
        if not claimed:
            logger.info(f"[TIMEOUT] Already handled elsewhere - sid: {session.sid}")
            return False

        logger.info(f"[TIMEOUT] Call marked missed - sid: {session.sid}, source: {source}")
        language = session.language or DEFAULT_LANGUAGE

        if self.dispatcher is not None:
            await self.dispatcher.send_timeout_notice(session.callee_user_id, session.sid, language)

        await self.sessions.mark_timeout_notified(session.sid)
        await self._record_event(
            session.sid,
            TIMEOUT_EVENT_TYPE,
            source,
            None,
            {"callee_user_id": session.callee_user_id, "language": language},
        )
        return True
