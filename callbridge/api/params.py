"""Request parameter helpers for provider callbacks."""
import logging
from typing import Any, Dict, Optional

from fastapi import Request

logger = logging.getLogger(__name__)


async def read_callback_params(request: Request) -> Dict[str, Any]:
    """
    Collect callback parameters from the query string and, for POST, the body.

    Providers call the same endpoint with GET query parameters or with a
    JSON or form body. Body values win over query values.
    """
    params: Dict[str, Any] = dict(request.query_params)
    if request.method != "POST":
        return params

    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError:
            logger.warning("[CALLBACK] Ignoring malformed JSON body")
            body = None
        if isinstance(body, dict):
            params.update(body)
    elif "form" in content_type:
        form = await request.form()
        params.update({key: value for key, value in form.items()})
    return params


def parse_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(float(str(value)))
    except ValueError:
        return None


def client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"
