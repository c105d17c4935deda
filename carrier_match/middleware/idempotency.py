import json
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from carrier_match.config import get_settings
from carrier_match.redis_client import get_redis

settings = get_settings()


def _cache_key(scope: str, user_id: str, key: str) -> str:
    # Keys are per user so one caller can never replay another's response.
    return f"idempotency:{scope}:{user_id}:{key}"


async def check_idempotency(request: Request, scope: str, user_id: str) -> Optional[Response]:
    """
    Returns a cached Response if the Idempotency-Key was already used by this
    user for this endpoint, otherwise None (proceed normally).
    """
    key = request.headers.get("Idempotency-Key")
    if not key:
        return None

    redis = await get_redis()
    cached = await redis.get(_cache_key(scope, user_id, key))

    if cached:
        data = json.loads(cached)
        return JSONResponse(
            content=data["body"],
            status_code=data["status_code"],
            headers={"X-Idempotency-Replay": "true"},
        )
    return None


async def store_idempotency_result(scope: str, user_id: str, key: str, status_code: int, body: dict) -> None:
    """Persist the response for the given idempotency key."""
    redis = await get_redis()
    await redis.setex(
        _cache_key(scope, user_id, key),
        settings.idempotency_ttl_seconds,
        json.dumps({"status_code": status_code, "body": body}),
    )
