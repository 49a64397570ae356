"""
Cache helper for scripts: get, set, delete, exists, incr.

Backend: Redis. Keys are namespaced per note (``script:<note_id>:``) so two
scripts never clobber each other. Every call no-ops when Redis is unavailable.
"""

from types import SimpleNamespace
from typing import Any

CACHE_KEY_PREFIX = "script:"


def make_cache_module(*, note_id: str, cache_client: Any = None) -> Any:
    """Build the `cache` object for one note."""
    namespace = f"{CACHE_KEY_PREFIX}{note_id}:"

    def _key(k: str) -> str:
        return namespace + str(k)

    def get(key: str, default: Any = None) -> Any:
        if cache_client is None:
            return default
        v = cache_client.get(_key(key))
        if v is None:
            return default
        if isinstance(v, bytes):
            return v.decode("utf-8", errors="replace")
        return v

    def set(key: str, value: str | int | float, ttl_seconds: int | None = None) -> None:
        if cache_client is None:
            return
        if ttl_seconds is not None:
            cache_client.setex(_key(key), ttl_seconds, value)
        else:
            cache_client.set(_key(key), value)

    def delete(key: str) -> None:
        if cache_client is None:
            return
        cache_client.delete(_key(key))

    def exists(key: str) -> bool:
        if cache_client is None:
            return False
        return bool(cache_client.exists(_key(key)))

    def incr(key: str, amount: int = 1) -> int:
        if cache_client is None:
            return 0
        return int(cache_client.incrby(_key(key), amount))

    return SimpleNamespace(get=get, set=set, delete=delete, exists=exists, incr=incr)
