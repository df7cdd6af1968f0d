"""LINE Messaging API push client."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from callbridge.services.tokens.line_channel import ChannelAccessTokenClient

logger = logging.getLogger(__name__)


class LineApiError(Exception):
    """Raised when the LINE API rejects a push."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"LINE API error ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


def text_message(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def uri_action(label: str, uri: str) -> Dict[str, str]:
    return {"type": "uri", "label": label, "uri": uri}


def buttons_message(text: str, actions: List[Dict[str, str]], alt_text: Optional[str] = None) -> Dict[str, Any]:
    return {
        "type": "template",
        "altText": alt_text or text,
        "template": {"type": "buttons", "text": text, "actions": actions},
    }


class LineMessagingClient:
    """Sends push messages; a fresh channel token is issued for every send."""

    def __init__(self, token_client: ChannelAccessTokenClient, push_url: str, timeout: float = 10.0):
        self.token_client = token_client
        self.push_url = push_url
        self.timeout = timeout

    async def push(self, to: str, messages: List[Dict[str, Any]]) -> None:
        """
        Push ``messages`` to one LINE user.

        Raises:
            ChannelTokenError: if no access token could be issued
            LineApiError: if the push endpoint answers with a non-2xx status
        """
        access_token = await self.token_client.get_access_token()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.push_url,
                    json={"to": to, "messages": messages},
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            raise LineApiError(502, str(e)) from e

        if response.status_code >= 300:
            logger.error(
                f"[LINE PUSH] Push rejected - to: {to}, status: {response.status_code}, "
                f"body: {response.text[:200]}"
            )
            raise LineApiError(response.status_code, response.text)

        logger.info(f"[LINE PUSH] Message sent - to: {to}, messages: {len(messages)}")

    async def push_text(self, to: str, text: str) -> None:
        await self.push(to, [text_message(text)])
