"""Conference token endpoint."""
import logging
from typing import Annotated, Literal, Optional, Union

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, RootModel

from callbridge.core.config import settings
from callbridge.services.tokens.conference import (
    TokenGenerationError,
    generate_conference_token,
    generate_livekit_token,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class PlanetKitTokenRequest(BaseModel):
    sdk: Literal["planetkit"]
    userId: str
    roomId: str
    serviceId: Optional[str] = None
    apiKey: Optional[str] = None
    apiSecret: Optional[str] = None


class LiveKitTokenRequest(BaseModel):
    sdk: Literal["livekit"]
    userId: str
    roomId: str
    displayName: Optional[str] = None
    apiKey: Optional[str] = None
    apiSecret: Optional[str] = None


class ConferenceTokenRequest(RootModel):
    """Token request tagged by ``sdk``."""
    root: Annotated[
        Union[PlanetKitTokenRequest, LiveKitTokenRequest],
        Field(discriminator="sdk"),
    ]


class ConferenceTokenResponse(BaseModel):
    success: bool = True
    sdk: str
    token: str
    url: Optional[str] = None


@router.post("/api/conference-token", response_model=ConferenceTokenResponse)
async def conference_token(request_body: ConferenceTokenRequest):
    """Issue a join token for the selected conferencing SDK. Missing credentials come from settings."""
    body = request_body.root
    try:
        if isinstance(body, PlanetKitTokenRequest):
            token = generate_conference_token(
                service_id=body.serviceId or settings.planetkit_service_id,
                api_key=body.apiKey or settings.planetkit_api_key,
                user_id=body.userId,
                room_id=body.roomId,
                api_secret=body.apiSecret or settings.planetkit_api_secret,
            )
            return ConferenceTokenResponse(sdk=body.sdk, token=token)

        token = generate_livekit_token(
            api_key=body.apiKey or settings.livekit_api_key,
            api_secret=body.apiSecret or settings.livekit_api_secret,
            identity=body.userId,
            room_id=body.roomId,
            name=body.displayName,
        )
        return ConferenceTokenResponse(sdk=body.sdk, token=token, url=settings.livekit_url)
    except TokenGenerationError as e:
        logger.error(f"[CONFERENCE TOKEN] Token generation failed - sdk: {body.sdk}, error: {e}")
        raise HTTPException(status_code=400, detail=str(e))
