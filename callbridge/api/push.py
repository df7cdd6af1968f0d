"""Browser push subscription and incoming-call notification endpoints."""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.core.config import settings
from callbridge.core.dependencies import get_dispatcher
from callbridge.db.database import get_db
from callbridge.services.notifications.dispatcher import (
    NotificationDispatcher,
    SubscriptionNotFoundError,
)
from callbridge.services.notifications.web_push import SubscriptionGoneError, WebPushError
from callbridge.services.persistence.push_subscriptions import PushSubscriptionPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)


class SavePushSubscriptionRequest(BaseModel):
    """Push subscription as produced by the browser's PushManager."""
    userId: Optional[str] = None
    subscription: Optional[Dict[str, Any]] = None


class NotifyCallRequest(BaseModel):
    targetUserId: Optional[str] = None
    callerId: Optional[str] = None
    callerName: Optional[str] = None
    roomId: Optional[str] = None
    callId: Optional[str] = None


@router.post("/api/save-push-subscription")
async def save_push_subscription(
    request: Request,
    body: SavePushSubscriptionRequest,
    db: AsyncSession = Depends(get_db),
):
    """Store (or replace) a user's push subscription."""
    if not body.userId:
        raise HTTPException(status_code=400, detail="Missing userId")

    subscription = body.subscription or {}
    keys = subscription.get("keys")
    if not subscription.get("endpoint") or not isinstance(keys, dict):
        raise HTTPException(status_code=400, detail="Invalid subscription object")
    if not keys.get("p256dh") or not keys.get("auth"):
        raise HTTPException(status_code=400, detail="Missing subscription keys")

    await PushSubscriptionPersistenceService(db).upsert_subscription(
        user_id=body.userId,
        endpoint=subscription["endpoint"],
        p256dh_key=keys["p256dh"],
        auth_key=keys["auth"],
        user_agent=request.headers.get("user-agent", "unknown"),
    )
    logger.info(f"[PUSH SUBSCRIPTION] Saved - user_id: {body.userId}")
    return {"success": True, "message": "Push subscription saved successfully", "userId": body.userId}


@router.post("/api/notify-call")
async def notify_call(
    body: NotifyCallRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Push an incoming-call notification to the target user's browser."""
    if not (body.targetUserId and body.callerId and body.callerName and body.roomId):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: targetUserId, callerId, callerName, roomId",
        )

    try:
        notification = await dispatcher.notify_incoming_call(
            target_user_id=body.targetUserId,
            caller_id=body.callerId,
            caller_name=body.callerName,
            room_id=body.roomId,
            call_id=body.callId,
        )
    except SubscriptionNotFoundError:
        raise HTTPException(status_code=404, detail="User has not subscribed to push notifications")
    except SubscriptionGoneError:
        raise HTTPException(status_code=410, detail="Push subscription expired")
    except WebPushError as e:
        logger.error(f"[NOTIFY CALL] Push failed - target: {body.targetUserId}, error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to send push notification: {e}")

    return {"success": True, "message": "Push notification sent", "callId": notification.call_id}


@router.get("/api/push/vapid-public-key")
async def vapid_public_key():
    """Public VAPID key the browser needs to subscribe."""
    if not settings.vapid_public_key:
        raise HTTPException(status_code=500, detail="VAPID keys not configured")
    return {"success": True, "publicKey": settings.vapid_public_key}
