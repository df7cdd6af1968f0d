"""VAPID-signed browser push delivery."""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from pywebpush import WebPushException, webpush

logger = logging.getLogger(__name__)

GONE_STATUS_CODES = (404, 410)


class WebPushError(Exception):
    """Raised when the push service rejects a notification."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SubscriptionGoneError(WebPushError):
    """The push service reports the subscription as expired or unknown."""


class WebPushSender:
    """Sends JSON payloads to a single browser push subscription."""

    def __init__(
        self,
        vapid_private_key: Optional[str],
        vapid_subject: str,
        ttl: int = 60,
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl

    async def send(self, endpoint: str, p256dh_key: str, auth_key: str, payload: Dict[str, Any]) -> None:
        """
        Deliver ``payload`` to the subscription.

        Raises:
            SubscriptionGoneError: on 404/410 from the push service
            WebPushError: on any other delivery failure
        """
        if not self.vapid_private_key:
            raise WebPushError("VAPID keys not configured")

        subscription_info = {
            "endpoint": endpoint,
            "keys": {"p256dh": p256dh_key, "auth": auth_key},
        }

        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=subscription_info,
                data=json.dumps(payload),
                vapid_private_key=self.vapid_private_key,
                # webpush adds aud/exp to this dict, so build a new one per send
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            if status_code in GONE_STATUS_CODES:
                logger.info(f"[WEB PUSH] Subscription gone - status: {status_code}")
                raise SubscriptionGoneError(str(e), status_code=status_code) from e
            logger.error(f"[WEB PUSH] Push failed - status: {status_code}, error: {e}")
            raise WebPushError(str(e), status_code=status_code) from e
