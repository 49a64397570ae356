"""
Shared Redis client for the script `cache` helper.

All Redis access goes through this module so there is exactly one connection
pool per process. Returns None when caching is disabled or Redis is down.
"""

import logging
import threading

import redis

from notescript.core.config import settings

_LOG = logging.getLogger(__name__)

_lock = threading.Lock()
_client: "redis.Redis | None" = None
_tried = False


def get_redis() -> "redis.Redis | None":
    """Return the shared Redis client (decode_responses=True), or None.

    ``None`` when ``CACHE_ENABLED`` is ``False`` or the initial ping fails.
    The outcome of the first attempt is remembered for the process lifetime.
    """
    global _client, _tried
    if _tried:
        return _client
    with _lock:
        if _tried:
            return _client
        _tried = True
        _client = _create_client()
        return _client


def _create_client() -> "redis.Redis | None":
    if not settings.CACHE_ENABLED:
        return None
    try:
        r = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        r.ping()
        return r
    except redis.RedisError as e:
        _LOG.debug("Redis unavailable: %s", e)
        return None


def ping() -> bool:
    """Quick health check: True if the shared client can PING."""
    client = get_redis()
    if client is None:
        return False
    try:
        return bool(client.ping())
    except redis.RedisError:
        return False
