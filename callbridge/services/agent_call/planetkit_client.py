"""Client for the conferencing provider's outbound agent call API."""
import logging
import random
import string
import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class AgentCallError(Exception):
    """Raised when an agent call cannot be placed."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class PlacedCall(BaseModel):
    """Result of asking the provider to place a call."""

    sid: str
    mock: bool = False
    response: Optional[Dict[str, Any]] = None


def generate_mock_sid() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"mock-{int(time.time() * 1000)}-{suffix}"


class PlanetKitAgentCallClient:
    """
    Places an audio call from the agent to a user.

    The provider plays the stored audio sources to the callee and later
    reports the delivery result and notify parameter through callbacks.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        api_secret: Optional[str],
        mock_mode: bool = False,
        timeout: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.api_secret = api_secret
        self.mock_mode = mock_mode
        self.timeout = timeout

    @staticmethod
    def build_request_body(
        caller_user_id: Optional[str],
        caller_service_id: Optional[str],
        audio_file_ids: List[str],
    ) -> Dict[str, Any]:
        return {
            "requestContext": {
                "userId": caller_user_id,
                "serviceId": caller_service_id,
            },
            "mediaSourceType": "STORED_SOURCE",
            "storedSource": {
                "storedAudioSources": [{"contentId": content_id} for content_id in audio_file_ids],
                "playWaitTime": 1000,
                "playCount": 2,
            },
            "recordOnCloud": False,
            "useResponderPreparation": False,
        }

    async def place_call(
        self,
        to_user_id: str,
        to_service_id: str,
        caller_user_id: Optional[str],
        caller_service_id: Optional[str],
        audio_file_ids: List[str],
    ) -> PlacedCall:
        """
        Ask the provider to call ``to_user_id``.

        Raises:
            AgentCallError: on missing credentials, upstream errors or a missing sid
        """
        if self.mock_mode:
            sid = generate_mock_sid()
            logger.info(f"[AGENT CALL] Mock mode - generated sid: {sid}")
            return PlacedCall(sid=sid, mock=True)

        if not self.api_key or not self.api_secret:
            raise AgentCallError("PlanetKit API credentials not configured")

        url = f"{self.base_url}/tas/v2/agt_call/audio_caller/{to_service_id}/{to_user_id}"
        body = self.build_request_body(caller_user_id, caller_service_id, audio_file_ids)
        logger.info(f"[AGENT CALL] Placing call - to_user_id: {to_user_id}, url: {url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    url,
                    json=body,
                    auth=httpx.BasicAuth(self.api_key, self.api_secret),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise AgentCallError(f"Failed to call PlanetKit API: {e}") from e

        if response.status_code >= 400:
            logger.error(
                f"[AGENT CALL] Provider error - status: {response.status_code}, "
                f"body: {response.text[:200]}"
            )
            raise AgentCallError(
                f"PlanetKit API error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        payload = response.json()
        sid = payload.get("sid") or (payload.get("data") or {}).get("sid")
        if not sid:
            raise AgentCallError("No SID returned from PlanetKit API")

        logger.info(f"[AGENT CALL] Call placed - sid: {sid}")
        return PlacedCall(sid=sid, response=payload)
