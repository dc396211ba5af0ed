from typing import Optional
from redis import Redis
from redis.exceptions import RedisError
from fastapi import HTTPException
from backend.core.config import settings
from backend.utils.logger import get_logger

logger = get_logger("backend.core.rate_limit")

_redis: Optional[Redis] = None
_redis_checked = False

def get_redis() -> Optional[Redis]:
    """Connect once; None when Redis is unreachable (rate limiting disabled)."""
    global _redis, _redis_checked
    if _redis_checked:
        return _redis
    _redis_checked = True
    try:
        client = Redis.from_url(settings.REDIS_URL, decode_responses=True, socket_connect_timeout=1)
        client.ping()
        _redis = client
        logger.info("Redis connection established for rate limiting")
    except RedisError as e:
        _redis = None
        logger.warning(f"Redis not available - rate limiting disabled: {e}")
    return _redis

def rate_limit(key: str, limit: int = 100, window: int = 60) -> None:
    """
    Fixed-window counter per key. Raises 429 over the limit.
    Without Redis this is a no-op.
    """
    redis = get_redis()
    if redis is None:
        return

    try:
        redis_key = f"rate:{key}"
        count = redis.incr(redis_key)
        if count == 1:
            redis.expire(redis_key, window)
    except RedisError as e:
        logger.error(f"Rate limit check failed: {e}", extra={"key": key})
        return

    if count > limit:
        logger.warning("Rate limit exceeded", extra={"key": key, "count": count, "limit": limit})
        raise HTTPException(status_code=429, detail="Rate limit exceeded")
