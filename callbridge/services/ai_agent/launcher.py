"""Client for the headless agent launcher service."""
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class AgentLauncherError(Exception):
    """Raised when the launcher is unavailable or rejects a request."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class HeadlessAgentClient:
    """
    Asks the launcher to put a headless voice agent into a room or take it out.

    The launcher is a black box that keeps at most one agent per room.
    """

    def __init__(self, base_url: Optional[str], timeout: float = 60.0):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not self.base_url:
            raise AgentLauncherError("Agent launcher URL not configured", status_code=503)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}{path}", json=body)
        except httpx.HTTPError as e:
            logger.error(f"[AGENT LAUNCHER] Request failed - path: {path}, error: {e}")
            raise AgentLauncherError(f"Agent launcher unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {"error": response.text}

        if response.status_code >= 400 or payload.get("success") is False:
            logger.error(
                f"[AGENT LAUNCHER] Launcher error - path: {path}, status: {response.status_code}, "
                f"error: {payload.get('error')}"
            )
            raise AgentLauncherError(payload.get("error") or f"Launcher returned {response.status_code}")

        return payload

    async def join(self, room_id: str, user_id: str, language: str, voice: str) -> Dict[str, Any]:
        logger.info(f"[AGENT LAUNCHER] Join - room_id: {room_id}, user_id: {user_id}, language: {language}")
        return await self._post(
            "/join-as-agent",
            {"roomId": room_id, "userId": user_id, "language": language, "voice": voice},
        )

    async def disconnect(self, room_id: str) -> Dict[str, Any]:
        logger.info(f"[AGENT LAUNCHER] Disconnect - room_id: {room_id}")
        return await self._post("/disconnect-agent", {"roomId": room_id})
