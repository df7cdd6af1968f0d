"""LINE channel access token issuance."""
import logging
import time
from typing import Any, Dict, Optional

import httpx
from jose import JWTError, jwt

logger = logging.getLogger(__name__)

ASSERTION_AUDIENCE = "https://api.line.me/"
ASSERTION_LIFETIME_SECONDS = 30 * 60
CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


class ChannelTokenError(Exception):
    """Raised when a channel access token cannot be issued."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class ChannelAccessTokenClient:
    """Exchanges a signed channel assertion for a bearer token. Nothing is cached."""

    def __init__(
        self,
        channel_id: Optional[str],
        channel_secret: Optional[str],
        token_url: str,
        timeout: float = 10.0,
    ):
        self.channel_id = channel_id
        self.channel_secret = channel_secret
        self.token_url = token_url
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.channel_id and self.channel_secret)

    def build_assertion(self, now: Optional[int] = None) -> str:
        """Sign the client assertion (iss = sub = channel id, 30 minute expiry)."""
        if not self.configured:
            raise ChannelTokenError(
                "LINE Channel credentials not configured. "
                "Set LINE_CHANNEL_ID and LINE_CHANNEL_SECRET."
            )
        issued_at = now if now is not None else int(time.time())
        claims = {
            "iss": self.channel_id,
            "sub": self.channel_id,
            "aud": ASSERTION_AUDIENCE,
            "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
            "token_exp": ASSERTION_LIFETIME_SECONDS,
        }
        try:
            return jwt.encode(claims, self.channel_secret, algorithm="HS256")
        except JWTError as e:
            raise ChannelTokenError(f"Failed to sign channel assertion: {e}") from e

    async def issue_token(self) -> Dict[str, Any]:
        """
        Issue a fresh channel access token.

        Returns:
            Provider payload with access_token, expires_in and token_type
        """
        assertion = self.build_assertion()
        logger.info("[LINE TOKEN] Requesting channel access token")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.token_url,
                    data={
                        "grant_type": "client_credentials",
                        "client_assertion_type": CLIENT_ASSERTION_TYPE,
                        "client_assertion": assertion,
                    },
                )
        except httpx.HTTPError as e:
            raise ChannelTokenError(f"LINE token request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                f"[LINE TOKEN] Token endpoint error - status: {response.status_code}, "
                f"body: {response.text[:200]}"
            )
            raise ChannelTokenError(
                f"Failed to get LINE token: {response.text}",
                status_code=response.status_code,
            )

        payload = response.json()
        if not payload.get("access_token"):
            raise ChannelTokenError("Invalid token response")

        logger.info(
            f"[LINE TOKEN] Token issued - expires_in: {payload.get('expires_in')}, "
            f"token_type: {payload.get('token_type')}"
        )
        return payload

    async def get_access_token(self) -> str:
        payload = await self.issue_token()
        return payload["access_token"]
