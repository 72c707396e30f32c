"""
API key guard for the order API.

Every `/api/v1` route (orders, steps, drafts, history, flows, products)
requires an `X-API-KEY` header matching one of the comma-separated keys in
`API_KEYS`. Only the paths in `PUBLIC_PATHS` are served without one.
"""

import hmac
import logging
import os
from typing import List, Optional

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-KEY"
PUBLIC_PATHS = frozenset({"/health"})

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def configured_api_keys() -> List[str]:
    """Keys are read from the environment on every request."""
    return [k.strip() for k in os.getenv("API_KEYS", "").split(",") if k.strip()]


def _matches(candidate: str, keys: List[str]) -> bool:
    matched = False
    for key in keys:
        matched |= hmac.compare_digest(candidate, key)
    return bool(candidate) and matched


async def require_api_key(request: Request, api_key: Optional[str] = Security(api_key_header)) -> None:
    if request.url.path in PUBLIC_PATHS:
        return

    keys = configured_api_keys()
    if not keys:
        logger.warning("[Auth] API_KEYS is not set; rejecting %s %s", request.method, request.url.path)
    elif _matches((api_key or "").strip(), keys):
        return
    else:
        logger.info("[Auth] rejected %s %s header_present=%s", request.method, request.url.path, bool(api_key))

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=f"Missing or invalid {API_KEY_HEADER} header",
    )
