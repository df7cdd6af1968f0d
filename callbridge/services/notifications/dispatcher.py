"""Outbound notifications over LINE and browser push."""
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.db.models import CallNotification
from callbridge.services.notifications.line_messaging import (
    LineApiError,
    LineMessagingClient,
    buttons_message,
    uri_action,
)
from callbridge.services.notifications.messages import (
    format_clock,
    get_text,
    invite_text,
    room_started_text,
)
from callbridge.services.notifications.web_push import SubscriptionGoneError, WebPushSender
from callbridge.services.persistence.push_subscriptions import PushSubscriptionPersistenceService

logger = logging.getLogger(__name__)

LIFF_BASE_URL = "https://liff.line.me"
# Tapping the "OK" button just closes the message
LINE_HOME_URI = "https://line.me/R/"


class SubscriptionNotFoundError(Exception):
    """Raised when a user has no push subscription."""


def liff_url(liff_id: str, path: str = "", **params: str) -> str:
    url = f"{LIFF_BASE_URL}/{liff_id}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


class NotificationDispatcher:
    """Composes user-facing notifications and hands them to the transports."""

    def __init__(
        self,
        db: AsyncSession,
        line_client: LineMessagingClient,
        push_sender: WebPushSender,
        liff_id: Optional[str] = None,
        admin_uids: Optional[List[str]] = None,
    ):
        self.subscriptions = PushSubscriptionPersistenceService(db)
        self.line_client = line_client
        self.push_sender = push_sender
        self.liff_id = liff_id
        self.admin_uids = admin_uids or []

    def _require_liff_id(self, liff_id: Optional[str] = None) -> str:
        resolved = liff_id or self.liff_id
        if not resolved:
            raise LineApiError(500, "LIFF ID not configured")
        return resolved

    async def notify_incoming_call(
        self,
        target_user_id: str,
        caller_id: str,
        caller_name: str,
        room_id: str,
        call_id: Optional[str] = None,
    ) -> CallNotification:
        """
        Push an incoming-call notification to the callee's browser.

        A subscription the push service reports as gone is deleted before
        the error is raised.

        Raises:
            SubscriptionNotFoundError: the callee never registered for push
            SubscriptionGoneError: the stored subscription expired
            WebPushError: any other push failure
        """
        subscription = await self.subscriptions.get_subscription(target_user_id)
        if subscription is None:
            raise SubscriptionNotFoundError(f"No push subscription for user {target_user_id}")

        call_id = call_id or f"call-{int(time.time() * 1000)}"
        payload = {
            "title": "📞 Incoming Call",
            "body": f"{caller_name} is calling you",
            "callId": call_id,
            "callerId": caller_id,
            "callerName": caller_name,
            "roomId": room_id,
        }

        try:
            await self.push_sender.send(
                subscription.endpoint,
                subscription.p256dh_key,
                subscription.auth_key,
                payload,
            )
        except SubscriptionGoneError:
            logger.info(
                f"[NOTIFY CALL] Removing expired subscription - user_id: {target_user_id}"
            )
            await self.subscriptions.delete_subscription(target_user_id)
            raise

        logger.info(
            f"[NOTIFY CALL] Push delivered - call_id: {call_id}, callee: {target_user_id}"
        )
        return await self.subscriptions.record_call_notification(
            call_id=call_id,
            caller_user_id=caller_id,
            callee_user_id=target_user_id,
            room_id=room_id,
            data={"callerName": caller_name},
        )

    async def send_invite(self, to_user_id: str, from_user_name: str, room_id: str, liff_id: str) -> str:
        """Send a room invite with a deep link. Returns the link."""
        link = liff_url(liff_id, room=room_id)
        await self.line_client.push_text(to_user_id, invite_text(from_user_name, room_id, link))
        return link

    async def send_agent_call_link(self, to_user_id: str, sid: str, cc_param: str, language: str) -> str:
        """Send the callee a button that opens the agent call page and auto-accepts."""
        link = liff_url(
            self._require_liff_id(),
            "/agent-call-meeting",
            sid=sid,
            cc_param=cc_param,
            autoAccept="true",
        )
        text = get_text(language, "incoming_call")
        await self.line_client.push(
            to_user_id,
            [buttons_message(text, [uri_action(get_text(language, "accept_call"), link)])],
        )
        return link

    async def send_timeout_notice(self, callee_user_id: str, sid: str, language: str) -> None:
        retry_link = liff_url(self._require_liff_id(), "/schedule-retry", sid=sid)
        text = get_text(language, "timeout")
        await self.line_client.push(
            callee_user_id,
            [
                buttons_message(
                    text,
                    [
                        uri_action(get_text(language, "timeout_ok"), LINE_HOME_URI),
                        uri_action(get_text(language, "timeout_retry"), retry_link),
                    ],
                )
            ],
        )

    async def send_retry_confirmation(self, callee_user_id: str, scheduled_at: datetime, language: str) -> None:
        text = get_text(language, "retry_scheduled", time=format_clock(scheduled_at))
        await self.line_client.push_text(callee_user_id, text)

    async def notify_admins_room_started(self, room_id: str, display_name: str, timestamp_ms: int) -> int:
        """Tell every admin that a room started. Per-admin failures are logged. Returns the number sent."""
        if not self.admin_uids:
            logger.info("[ADMIN NOTIFY] No admin UIDs configured")
            return 0

        started_at = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        text = room_started_text(room_id, display_name, started_at)
        sent = 0
        for admin_uid in self.admin_uids:
            try:
                await self.line_client.push_text(admin_uid, text)
                sent += 1
            except Exception as e:
                logger.error(
                    f"[ADMIN NOTIFY] Failed to notify admin - admin_uid: {admin_uid}, error: {e}",
                    exc_info=True,
                )
        return sent
