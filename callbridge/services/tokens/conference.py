"""Access tokens for the conferencing SDKs."""
import logging
import time
from typing import Optional

from jose import JWTError, jwt
from livekit import api as livekit_api

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"


class TokenGenerationError(Exception):
    """Raised when a conference token cannot be signed."""


def generate_conference_token(
    service_id: str,
    api_key: str,
    user_id: str,
    room_id: str,
    api_secret: Optional[str] = None,
) -> str:
    """
    Build a PlanetKit access token.

    The provider rejects oversized tokens, so the payload carries only
    sub/uid/iss/iat. The room is not part of the claims; ``room_id`` is
    accepted for logging and call-site symmetry with the other SDKs.

    Args:
        service_id: PlanetKit service id (``sub``)
        api_key: PlanetKit API key (``iss``)
        user_id: Joining user (``uid``)
        room_id: Room the user is about to join
        api_secret: Signing key; falls back to ``api_key`` when missing

    Returns:
        Compact HS256 JWT
    """
    if not service_id or not api_key or not user_id:
        raise TokenGenerationError("service_id, api_key and user_id are required")

    signing_key = api_secret
    if not signing_key:
        logger.warning(
            f"[TOKEN] No API secret configured, signing with API key (development only) - "
            f"service_id: {service_id}, room_id: {room_id}"
        )
        signing_key = api_key

    claims = {
        "sub": service_id,
        "uid": user_id,
        "iss": api_key,
        "iat": int(time.time()),
    }

    try:
        token = jwt.encode(claims, signing_key, algorithm=TOKEN_ALGORITHM)
    except JWTError as e:
        raise TokenGenerationError(f"Failed to sign PlanetKit token: {e}") from e

    logger.debug(f"[TOKEN] PlanetKit token generated - user_id: {user_id}, room_id: {room_id}")
    return token


def generate_livekit_token(
    api_key: str,
    api_secret: str,
    identity: str,
    room_id: str,
    name: Optional[str] = None,
) -> str:
    """Build a LiveKit room join token."""
    if not api_key or not api_secret:
        raise TokenGenerationError("LiveKit API key and secret are required")

    try:
        token = (
            livekit_api.AccessToken(api_key, api_secret)
            .with_identity(identity)
            .with_name(name or identity)
            .with_grants(livekit_api.VideoGrants(room_join=True, room=room_id))
            .to_jwt()
        )
    except Exception as e:
        raise TokenGenerationError(f"Failed to sign LiveKit token: {e}") from e

    logger.debug(f"[TOKEN] LiveKit token generated - identity: {identity}, room_id: {room_id}")
    return token
