"""AI agent control endpoints: room lock, voice session config and headless agent."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from callbridge.core.config import settings
from callbridge.core.dependencies import (
    get_agent_launcher,
    get_language_presets,
    get_realtime_service,
    get_room_lock_service,
)
from callbridge.services.ai_agent.launcher import AgentLauncherError, HeadlessAgentClient
from callbridge.services.ai_agent.realtime import RealtimeSessionError, RealtimeSessionService
from callbridge.services.ai_agent.session_config import LanguagePresets, build_gemini_session
from callbridge.services.locks.service import RoomLockService

router = APIRouter()
logger = logging.getLogger(__name__)


class LockRequest(BaseModel):
    action: Optional[str] = None
    roomId: Optional[str] = None
    userId: Optional[str] = None
    userName: Optional[str] = None


class AgentSessionRequest(BaseModel):
    language: Optional[str] = None
    voice: Optional[str] = None
    systemPrompt: Optional[str] = None


class RealtimeSessionRequest(BaseModel):
    model: Optional[str] = None
    voice: Optional[str] = None
    instructions: Optional[str] = None


class AgentJoinRequest(BaseModel):
    roomId: Optional[str] = None
    userId: Optional[str] = None
    language: Optional[str] = None
    voice: Optional[str] = None


class AgentDisconnectRequest(BaseModel):
    roomId: Optional[str] = None


@router.post("/api/ai-agent-lock")
async def ai_agent_lock(
    body: LockRequest,
    locks: RoomLockService = Depends(get_room_lock_service),
):
    """
    Coordinate which participant drives the AI agent in a room.

    Actions: ``status``, ``acquire``, ``heartbeat`` and ``release``.
    """
    if not body.action or not body.roomId:
        raise HTTPException(status_code=400, detail="Missing action or roomId")

    if body.action == "status":
        status = await locks.status(body.roomId)
        return {"success": True, **status.model_dump()}

    if body.action == "acquire":
        if not body.userId or not body.userName:
            raise HTTPException(status_code=400, detail="Missing userId or userName")
        result = await locks.acquire(body.roomId, body.userId, body.userName)
        if not result.acquired:
            return JSONResponse(
                status_code=409,
                content={
                    "success": False,
                    "acquired": False,
                    "holder": result.holder.model_dump() if result.holder else None,
                },
            )
        return {"success": True, "acquired": True}

    if body.action == "heartbeat":
        if not body.userId:
            raise HTTPException(status_code=400, detail="Missing userId")
        alive = await locks.heartbeat(body.roomId, body.userId)
        return {"success": alive, "alive": alive}

    if body.action == "release":
        if not body.userId:
            raise HTTPException(status_code=400, detail="Missing userId")
        await locks.release(body.roomId, body.userId)
        return {"success": True, "released": True}

    raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")


@router.post("/api/ai-agent-session")
async def ai_agent_session(
    body: AgentSessionRequest,
    presets: LanguagePresets = Depends(get_language_presets),
):
    """Live voice session configuration for the browser."""
    session = build_gemini_session(
        presets,
        api_key=settings.gemini_api_key,
        model=settings.gemini_live_model,
        language=presets.resolve_language(body.language),
        voice=body.voice,
        system_prompt=body.systemPrompt,
    )
    if session["mockMode"]:
        logger.warning("[AI AGENT SESSION] GEMINI_API_KEY not set, returning mock configuration")
    return {"success": True, **session}


@router.post("/api/openai-realtime/session")
async def openai_realtime_session(
    body: RealtimeSessionRequest,
    realtime: RealtimeSessionService = Depends(get_realtime_service),
):
    try:
        session = await realtime.create_session(
            model=body.model or settings.openai_realtime_model,
            voice=body.voice or settings.openai_realtime_voice,
            instructions=body.instructions,
        )
    except RealtimeSessionError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"success": True, "session": session}


@router.post("/api/ai-agent/join")
async def ai_agent_join(
    body: AgentJoinRequest,
    launcher: HeadlessAgentClient = Depends(get_agent_launcher),
    presets: LanguagePresets = Depends(get_language_presets),
):
    """Put a headless voice agent into the room."""
    if not body.roomId or not body.userId:
        raise HTTPException(status_code=400, detail="Missing roomId or userId")

    language = presets.resolve_language(body.language)
    voice = body.voice or presets.get(language).voice
    try:
        result = await launcher.join(body.roomId, body.userId, language, voice)
    except AgentLauncherError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return {"success": True, "roomId": body.roomId, "language": language, "voice": voice, "agent": result}


@router.post("/api/ai-agent/disconnect")
async def ai_agent_disconnect(
    body: AgentDisconnectRequest,
    launcher: HeadlessAgentClient = Depends(get_agent_launcher),
):
    """Take the headless voice agent out of the room."""
    if not body.roomId:
        raise HTTPException(status_code=400, detail="Missing roomId")

    try:
        result = await launcher.disconnect(body.roomId)
    except AgentLauncherError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return {"success": True, "roomId": body.roomId, "agent": result}
