import json
import redis
import structlog
from typing import Optional, Any
from ..config import settings

logger = structlog.get_logger(__name__)

_redis_client: Optional[redis.Redis] = None

def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True
        )
    return _redis_client

def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None

def get_cache(key: str) -> Optional[Any]:
    """Cached value for ``key``, or None on a miss or when Redis is unreachable."""
    if not settings.CACHE_ENABLED:
        return None
    try:
        client = get_redis()
        value = client.get(key)
        if value:
            return json.loads(value)
    except (redis.RedisError, ValueError) as e:
        logger.warning("cache_get_failed", key=key, error=str(e))
    return None

def set_cache(key: str, value: Any, ttl: int = None) -> bool:
    if not settings.CACHE_ENABLED:
        return False
    try:
        client = get_redis()
        ttl = ttl or settings.CACHE_TTL
        client.setex(key, ttl, json.dumps(value, ensure_ascii=False))
        return True
    except (redis.RedisError, TypeError) as e:
        logger.warning("cache_set_failed", key=key, error=str(e))
        return False

def delete_cache(key: str) -> bool:
    if not settings.CACHE_ENABLED:
        return False
    try:
        client = get_redis()
        client.delete(key)
        return True
    except redis.RedisError as e:
        logger.warning("cache_delete_failed", key=key, error=str(e))
        return False

def delete_cache_pattern(pattern: str) -> int:
    """Delete every key matching ``pattern``; returns how many were removed."""
    if not settings.CACHE_ENABLED:
        return 0
    try:
        client = get_redis()
        keys = list(client.scan_iter(match=pattern))
        if keys:
            return client.delete(*keys)
        return 0
    except redis.RedisError as e:
        logger.warning("cache_delete_failed", pattern=pattern, error=str(e))
        return 0
