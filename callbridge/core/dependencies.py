"""FastAPI dependencies."""
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.core.config import settings
from callbridge.db.database import get_db
from callbridge.services.agent_call.initiator import AgentCallInitiator
from callbridge.services.agent_call.lifecycle import AgentCallLifecycleService
from callbridge.services.agent_call.planetkit_client import PlanetKitAgentCallClient
from callbridge.services.agent_call.retry import RetryService
from callbridge.services.agent_call.scheduler import AgentCallScheduler
from callbridge.services.ai_agent.launcher import HeadlessAgentClient
from callbridge.services.ai_agent.realtime import RealtimeSessionService
from callbridge.services.ai_agent.session_config import LanguagePresets
from callbridge.services.debug_logs import DebugLogBuffer
from callbridge.services.locks.base import RoomLockStore
from callbridge.services.locks.in_memory import InMemoryRoomLockStore
from callbridge.services.locks.service import RoomLockService
from callbridge.services.notifications.dispatcher import NotificationDispatcher
from callbridge.services.notifications.line_messaging import LineMessagingClient
from callbridge.services.notifications.web_push import WebPushSender
from callbridge.services.tokens.line_channel import ChannelAccessTokenClient

# Process-wide state. Swap these for shared stores when running more than one worker.
_room_lock_store: RoomLockStore = InMemoryRoomLockStore()
_debug_log_buffer = DebugLogBuffer()
_language_presets = LanguagePresets()


def get_room_lock_store() -> RoomLockStore:
    return _room_lock_store


def get_room_lock_service(store: RoomLockStore = Depends(get_room_lock_store)) -> RoomLockService:
    """Get room lock service instance."""
    return RoomLockService(store, ttl_ms=settings.room_lock_ttl_ms)


def get_debug_log_buffer() -> DebugLogBuffer:
    return _debug_log_buffer


def get_language_presets() -> LanguagePresets:
    return _language_presets


def get_channel_token_client() -> ChannelAccessTokenClient:
    return ChannelAccessTokenClient(
        channel_id=settings.line_channel_id,
        channel_secret=settings.line_channel_secret,
        token_url=settings.line_token_url,
    )


def get_line_client(
    token_client: ChannelAccessTokenClient = Depends(get_channel_token_client),
) -> LineMessagingClient:
    return LineMessagingClient(token_client, settings.line_push_url)


def get_push_sender() -> WebPushSender:
    return WebPushSender(settings.vapid_private_key, settings.vapid_subject)


def get_planetkit_client() -> PlanetKitAgentCallClient:
    return PlanetKitAgentCallClient(
        base_url=settings.planetkit_agent_call_base_url,
        api_key=settings.planetkit_api_key,
        api_secret=settings.planetkit_api_secret,
        mock_mode=settings.planetkit_agent_call_mock_mode,
    )


def get_agent_launcher() -> HeadlessAgentClient:
    return HeadlessAgentClient(settings.agent_launcher_url)


def get_realtime_service() -> RealtimeSessionService:
    return RealtimeSessionService(settings.openai_api_key)


def get_dispatcher(
    db: AsyncSession = Depends(get_db),
    line_client: LineMessagingClient = Depends(get_line_client),
    push_sender: WebPushSender = Depends(get_push_sender),
) -> NotificationDispatcher:
    """Get notification dispatcher."""
    return NotificationDispatcher(
        db,
        line_client,
        push_sender,
        liff_id=settings.liff_id,
        admin_uids=settings.admin_uid_list,
    )


def get_lifecycle_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AgentCallLifecycleService:
    return AgentCallLifecycleService(db, dispatcher)


def get_initiator(
    db: AsyncSession = Depends(get_db),
    client: PlanetKitAgentCallClient = Depends(get_planetkit_client),
) -> AgentCallInitiator:
    return AgentCallInitiator(db, client)


def get_retry_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> RetryService:
    return RetryService(
        db,
        dispatcher,
        delay_seconds=settings.retry_delay_seconds,
        max_attempts=settings.max_retry_attempts,
    )


def get_scheduler(
    db: AsyncSession = Depends(get_db),
    initiator: AgentCallInitiator = Depends(get_initiator),
    lifecycle: AgentCallLifecycleService = Depends(get_lifecycle_service),
) -> AgentCallScheduler:
    """Get the scheduler run by the cron routes."""
    return AgentCallScheduler(
        db,
        initiator,
        lifecycle,
        stale_after_seconds=settings.stale_call_threshold_seconds,
    )


def verify_cron_secret(
    x_vercel_cron_secret: Optional[str] = Header(default=None),
) -> None:
    """Reject timer calls without the shared secret. No configured secret rejects everything."""
    if not settings.cron_secret or x_vercel_cron_secret != settings.cron_secret:
        raise HTTPException(status_code=401, detail="Unauthorized")
