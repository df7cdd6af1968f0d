"""Client debug log sink."""
import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from callbridge.core.dependencies import get_debug_log_buffer
from callbridge.services.debug_logs import DebugLogBuffer, parse_since

router = APIRouter()
logger = logging.getLogger(__name__)


class DebugLogIn(BaseModel):
    ts: Optional[str] = None
    level: Optional[str] = None
    msg: Optional[str] = None


@router.post("/api/debug-logs")
async def store_debug_logs(
    body: Union[List[DebugLogIn], DebugLogIn],
    buffer: DebugLogBuffer = Depends(get_debug_log_buffer),
):
    """Store one entry or a batch. Entries without ``msg`` are dropped."""
    entries = body if isinstance(body, list) else [body]
    stored = 0
    for entry in entries:
        if not entry.msg:
            continue
        buffer.append(entry.msg, level=entry.level, ts=entry.ts)
        stored += 1
    return {"success": True, "stored": stored}


@router.get("/api/debug-logs")
async def read_debug_logs(
    since: Optional[str] = None,
    format: Optional[str] = None,
    buffer: DebugLogBuffer = Depends(get_debug_log_buffer),
):
    entries = buffer.entries(parse_since(since))
    if format == "text":
        return PlainTextResponse(DebugLogBuffer.format_text(entries))
    return {
        "success": True,
        "logs": [entry.model_dump() for entry in entries],
        "total": len(entries),
    }


@router.delete("/api/debug-logs")
async def clear_debug_logs(buffer: DebugLogBuffer = Depends(get_debug_log_buffer)):
    buffer.clear()
    logger.info("[DEBUG LOGS] Cleared")
    return {"success": True, "cleared": True}
