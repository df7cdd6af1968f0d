"""Health check endpoint."""
import logging
from fastapi import APIRouter, Request

from callbridge.api.params import client_host

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    logger.debug(f"[HEALTH] Health check requested - Client: {client_host(request)}")
    return {"status": "healthy"}
