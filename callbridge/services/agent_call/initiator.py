"""Start agent calls and record their sessions."""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.db.models import AgentCallSession
from callbridge.services.agent_call.planetkit_client import AgentCallError, PlanetKitAgentCallClient
from callbridge.services.persistence.agent_calls import AgentCallPersistenceService

logger = logging.getLogger(__name__)


class AgentCallInitiator:
    """Places a call through the provider and stores it as an initiated session."""

    def __init__(self, db: AsyncSession, client: PlanetKitAgentCallClient):
        self.db = db
        self.client = client
        self.sessions = AgentCallPersistenceService(db)

    async def initiate(
        self,
        to_user_id: Optional[str],
        to_service_id: Optional[str],
        caller_user_id: Optional[str],
        caller_service_id: Optional[str],
        audio_file_ids: List[str],
        language: str = "ko",
        parent_sid: Optional[str] = None,
        retry_attempt: int = 0,
        is_retry: bool = False,
    ) -> AgentCallSession:
        """
        Place an agent call to ``to_user_id``.

        Retries pass the ``parent_sid`` of the session they repeat and their
        attempt number.

        Raises:
            AgentCallError: on invalid input, provider failure or when the
                session cannot be stored
        """
        if not to_user_id or not to_service_id:
            raise AgentCallError("Missing required fields: toUserId, toServiceId", status_code=400)

        placed = await self.client.place_call(
            to_user_id=to_user_id,
            to_service_id=to_service_id,
            caller_user_id=caller_user_id,
            caller_service_id=caller_service_id,
            audio_file_ids=audio_file_ids,
        )

        try:
            session = await self.sessions.create_session(
                sid=placed.sid,
                caller_user_id=caller_user_id or "",
                callee_user_id=to_user_id,
                caller_service_id=caller_service_id,
                callee_service_id=to_service_id,
                audio_file_ids=audio_file_ids,
                language=language,
                data={"mock": placed.mock, "planetKitResponse": placed.response},
                parent_sid=parent_sid,
                is_retry=is_retry or parent_sid is not None,
                retry_attempt=retry_attempt,
            )
        except Exception as e:
            await self.db.rollback()
            logger.error(f"[AGENT CALL] Failed to store session - sid: {placed.sid}, error: {e}", exc_info=True)
            raise AgentCallError(f"Failed to store session: {e}") from e

        logger.info(
            f"[AGENT CALL] Session initiated - sid: {session.sid}, callee: {to_user_id}, "
            f"retry_attempt: {retry_attempt}, mock: {placed.mock}"
        )
        return session
