import asyncio
import logging
from typing import Awaitable, TypeVar

from fastapi import HTTPException, status

from carrier_match.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

T = TypeVar("T")


async def within_deadline(aw: Awaitable[T], what: str) -> T:
    """Bound a store-backed call by the request deadline. No retry: fail fast, let the caller retry."""
    try:
        return await asyncio.wait_for(aw, timeout=settings.request_timeout_seconds)
    except asyncio.TimeoutError:
        logger.error("%s exceeded %.1fs deadline", what, settings.request_timeout_seconds)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Request deadline exceeded",
        )
