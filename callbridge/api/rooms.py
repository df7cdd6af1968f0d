"""Group call event ingestion and room/history queries."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from callbridge.api.params import read_callback_params
from callbridge.core.config import settings
from callbridge.core.dependencies import get_dispatcher
from callbridge.db.database import get_db
from callbridge.services.notifications.dispatcher import NotificationDispatcher
from callbridge.services.persistence.planetkit_events import PlanetKitEventPersistenceService
from callbridge.services.rooms.active_rooms import build_active_rooms
from callbridge.services.rooms.events import GroupCallEventType, parse_group_call_callback
from callbridge.services.rooms.history import RoomHistoryService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.api_route("/api/planetkit-callback", methods=["GET", "POST"])
async def planetkit_callback(
    request: Request,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Store a group call event.

    Always answers 200 so the provider does not retry; storage and admin
    notification failures are only logged.
    """
    params = await read_callback_params(request)
    callback = parse_group_call_callback(params)
    logger.info(
        f"[PLANETKIT CALLBACK] Received - event_type: {callback.event_type}, "
        f"room_id: {callback.room_id}, user_id: {callback.user_id}, method: {request.method}"
    )

    event_id = None
    try:
        event = await PlanetKitEventPersistenceService(db).add_event(
            event_type=callback.event_type,
            service_id=callback.service_id,
            room_id=callback.room_id,
            user_id=callback.user_id,
            display_name=callback.display_name,
            timestamp=callback.timestamp,
            data=callback.data,
        )
        event_id = event.id
    except Exception as e:
        await db.rollback()
        logger.error(f"[PLANETKIT CALLBACK] Failed to store event - error: {e}", exc_info=True)

    if callback.event_type == GroupCallEventType.START.value:
        try:
            await dispatcher.notify_admins_room_started(
                callback.room_id or "Unknown",
                callback.display_name or "Unknown User",
                callback.timestamp,
            )
        except Exception as e:
            logger.error(f"[PLANETKIT CALLBACK] Admin notification failed - error: {e}", exc_info=True)

    return {"success": True, "message": "Event processed successfully", "eventId": event_id}


@router.get("/api/active-rooms")
async def active_rooms(
    minutes: int = Query(60, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """Rooms that currently look active, derived from recent events."""
    since = datetime.utcnow() - timedelta(minutes=minutes)
    events = await PlanetKitEventPersistenceService(db).get_room_events_since(since)
    rooms = build_active_rooms(events)
    logger.info(f"[ACTIVE ROOMS] Replayed {len(events)} events into {len(rooms)} active rooms")
    return {
        "success": True,
        "data": [room.model_dump(mode="json") for room in rooms],
        "total": len(rooms),
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }


@router.get("/api/call-history")
async def call_history(
    userId: Optional[str] = None,
    days: int = Query(30, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """Users who recently shared a room with ``userId``."""
    if not userId:
        raise HTTPException(status_code=400, detail="userId parameter is required")

    history = await RoomHistoryService(db).get_call_history(userId, days)
    return {"success": True, "data": [entry.model_dump(mode="json") for entry in history]}


@router.get("/api/followers")
async def followers(
    requesterId: Optional[str] = None,
    days: int = Query(90, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """Recently seen users. Admins only."""
    if not requesterId:
        raise HTTPException(status_code=400, detail="requesterId parameter is required")
    if requesterId not in settings.admin_uid_list:
        logger.warning(f"[FOLLOWERS] Access denied - requester_id: {requesterId}")
        raise HTTPException(status_code=403, detail="Access denied. Admin permission required.")

    users = await RoomHistoryService(db).get_recent_users(days)
    return {
        "success": True,
        "data": [user.model_dump(mode="json") for user in users],
        "total": len(users),
    }


@router.get("/api/logs")
async def logs(
    days: int = Query(7, ge=1),
    roomId: Optional[str] = None,
    eventType: Optional[str] = None,
    userId: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Paginated group call event log, newest first."""
    since = datetime.utcnow() - timedelta(days=days)
    events, total = await PlanetKitEventPersistenceService(db).search_events(
        since,
        room_id=roomId,
        event_type=eventType,
        user_id=userId,
        limit=limit,
        offset=offset,
    )
    return {
        "success": True,
        "data": [
            {
                "id": event.id,
                "event_type": event.event_type,
                "service_id": event.service_id,
                "room_id": event.room_id,
                "user_id": event.user_id,
                "display_name": event.display_name,
                "timestamp": event.timestamp,
                "created_at": event.created_at.isoformat() if event.created_at else None,
                "data": event.data,
            }
            for event in events
        ],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + limit < total,
        },
    }
