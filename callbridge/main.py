"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from callbridge.api import (
    agent_calls,
    ai_agent,
    cron,
    debug_logs,
    health,
    line,
    push,
    rooms,
    tokens,
)
from callbridge.core.logging import setup_logging
from callbridge.db.database import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    await init_db()
    yield


app = FastAPI(
    title="CallBridge",
    description="Call orchestration backend for group rooms, agent calls and notifications",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"[REQUEST] Invalid request - path: {request.url.path}, errors: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request body"},
    )


app.include_router(health.router, tags=["health"])
app.include_router(tokens.router, tags=["tokens"])
app.include_router(line.router, tags=["line"])
app.include_router(ai_agent.router, tags=["ai-agent"])
app.include_router(agent_calls.router, tags=["agent-calls"])
app.include_router(cron.router, tags=["cron"])
app.include_router(rooms.router, tags=["rooms"])
app.include_router(push.router, tags=["push"])
app.include_router(debug_logs.router, tags=["debug"])
