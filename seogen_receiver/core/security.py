"""
SEOgen Receiver - Admin Authentication

The /admin endpoints (duplicate scan/cleanup, pull import) are protected by
a static API key sent as X-Seogen-Admin-Key. Callback endpoints do NOT use
this; they are authenticated by HMAC signature.
"""

import secrets

from fastapi import Depends, Header, HTTPException, status
from loguru import logger

from ..container import ReceiverContainer, get_container


async def require_admin_key(
    x_seogen_admin_key: str | None = Header(default=None, alias="X-Seogen-Admin-Key"),
    container: ReceiverContainer = Depends(get_container),
) -> None:
    """
    FastAPI dependency for admin endpoints.

    Raises:
        HTTPException 401: If the key is missing, wrong, or not configured
    """
    configured_key = container.settings.SEOGEN_ADMIN_API_KEY
    if not configured_key:
        logger.warning("SEOGEN_ADMIN_API_KEY not set - admin endpoints are disabled")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin API is not configured",
        )

    if not x_seogen_admin_key or not secrets.compare_digest(
        x_seogen_admin_key.encode("utf-8"), configured_key.encode("utf-8")
    ):
        logger.warning("Invalid admin API key attempted")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin API key",
            headers={"WWW-Authenticate": "API-Key"},
        )

    logger.debug("Authenticated via admin API key")
