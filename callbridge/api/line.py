"""LINE channel token and invite endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from callbridge.core.dependencies import get_channel_token_client, get_dispatcher
from callbridge.services.notifications.dispatcher import NotificationDispatcher
from callbridge.services.notifications.line_messaging import LineApiError
from callbridge.services.tokens.line_channel import ChannelAccessTokenClient, ChannelTokenError

router = APIRouter()
logger = logging.getLogger(__name__)


class SendInviteRequest(BaseModel):
    toUserId: Optional[str] = None
    fromUserName: Optional[str] = None
    roomId: Optional[str] = None
    liffId: Optional[str] = None


@router.get("/api/get-line-token")
async def get_line_token(
    token_client: ChannelAccessTokenClient = Depends(get_channel_token_client),
):
    """Issue a fresh channel access token."""
    if not token_client.configured:
        raise HTTPException(
            status_code=500,
            detail="LINE Channel credentials not configured. Set LINE_CHANNEL_ID and LINE_CHANNEL_SECRET.",
        )

    try:
        payload = await token_client.issue_token()
    except ChannelTokenError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return {
        "success": True,
        "access_token": payload["access_token"],
        "expires_in": payload.get("expires_in"),
        "token_type": payload.get("token_type"),
    }


@router.post("/api/send-invite")
async def send_invite(
    body: SendInviteRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send a LINE message inviting a user into a room."""
    if not (body.toUserId and body.fromUserName and body.roomId and body.liffId):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: toUserId, fromUserName, roomId, liffId",
        )

    try:
        link = await dispatcher.send_invite(body.toUserId, body.fromUserName, body.roomId, body.liffId)
    except ChannelTokenError as e:
        raise HTTPException(status_code=500, detail=f"Failed to obtain LINE Channel Access Token: {e}")
    except LineApiError as e:
        raise HTTPException(status_code=e.status_code, detail=f"LINE API Error: {e.body}")

    logger.info(f"[SEND INVITE] Invite sent - to: {body.toUserId}, room_id: {body.roomId}")
    return {"success": True, "message": "Invite sent successfully", "liffUrl": link}
