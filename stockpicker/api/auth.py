"""API key authorization for admin write endpoints.

The admin claim is verified on every request from the X-API-Key header.
In development mode with no API key configured, auth is bypassed.
"""

import logging
import secrets

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from stockpicker.config import settings

logger = logging.getLogger(__name__)

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _verify_api_key(api_key: str | None) -> str:
    # If no API key is configured and we're in dev mode, allow access
    if not settings.api_key and settings.app_env == "development":
        return "dev-bypass"

    if not settings.api_key:
        logger.warning("API key not configured but app_env=%s, blocking request", settings.app_env)
        raise HTTPException(status_code=403, detail="API key not configured on server")

    if not api_key or not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")

    return api_key


async def require_api_key(api_key: str | None = Security(_api_key_header)) -> str:
    """Dependency that enforces admin authorization on write endpoints."""
    return _verify_api_key(api_key)


async def is_admin(api_key: str | None = Security(_api_key_header)) -> bool:
    """Non-raising variant: whether this request carries the admin claim."""
    try:
        _verify_api_key(api_key)
    except HTTPException:
        return False
    return True
