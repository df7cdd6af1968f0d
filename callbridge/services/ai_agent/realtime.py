"""Ephemeral OpenAI Realtime sessions for browser voice agents."""
import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI, OpenAIError

logger = logging.getLogger(__name__)


class RealtimeSessionError(Exception):
    """Raised when an ephemeral realtime session cannot be created."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class RealtimeSessionService:
    """Mints short-lived client secrets so the browser never sees the API key."""

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key
        self.client = AsyncOpenAI(api_key=api_key) if api_key else None

    async def create_session(
        self,
        model: str,
        voice: str,
        instructions: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create an ephemeral session.

        Returns:
            The provider's session object, including ``client_secret``
        """
        if self.client is None:
            raise RealtimeSessionError("Missing OpenAI API key", status_code=400)

        kwargs: Dict[str, Any] = {"model": model, "voice": voice}
        if instructions:
            kwargs["instructions"] = instructions

        try:
            session = await self.client.beta.realtime.sessions.create(**kwargs)
        except OpenAIError as e:
            logger.error(f"[OPENAI REALTIME] Session creation failed: {e}", exc_info=True)
            raise RealtimeSessionError(f"Failed to create realtime session: {e}") from e

        logger.info(f"[OPENAI REALTIME] Session created - model: {model}, voice: {voice}")
        return session.model_dump()
