"""Redis caching utilities with in-memory fallback for read-heavy endpoints."""

import asyncio
import fnmatch
import json
import time
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError

from app.core.config import settings


# Global Redis client (initialized on startup)
_redis_client: Optional[redis.Redis] = None
_redis_available: bool = False  # Track if Redis is actually available
_redis_checked: bool = False

# In-memory cache fallback (when Redis is unavailable)
# Structure: {key: (value, expiry_timestamp)}
_memory_cache: Dict[str, Tuple[Any, float]] = {}
_memory_cache_max_size: int = 1000  # Limit memory usage

PROJECTS_KEY = "cache:/projects"


def project_key(project_id: str) -> str:
    return f"{PROJECTS_KEY}/{project_id}"


def project_slug_key(slug: str) -> str:
    return f"{PROJECTS_KEY}/slug/{slug}"


def user_projects_key(user_id: str) -> str:
    return f"{PROJECTS_KEY}/user/{user_id}"


async def get_redis_client() -> Optional[redis.Redis]:
    """Get or create the Redis client; ``None`` when Redis is off or down."""
    global _redis_client, _redis_available, _redis_checked

    if not settings.REDIS_ENABLED:
        return None

    # Only one connection attempt per process
    if not _redis_checked:
        _redis_checked = True
        client = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            password=settings.REDIS_PASSWORD,
            decode_responses=True,
            socket_connect_timeout=0.5,
            socket_timeout=0.5,
        )
        try:
            await asyncio.wait_for(client.ping(), timeout=0.5)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.bind(error=str(exc)).warning("redis_unavailable_memory_fallback")
            await client.aclose()
        else:
            _redis_client = client
            _redis_available = True
            logger.bind(host=settings.REDIS_HOST, port=settings.REDIS_PORT).info(
                "redis_connected"
            )

    return _redis_client if _redis_available else None


async def close_redis_client() -> None:
    """Close Redis client connection."""
    global _redis_client, _redis_available, _redis_checked
    if _redis_client is not None:
        await _redis_client.aclose()
    _redis_client = None
    _redis_available = False
    _redis_checked = False


def _get_memory_cache(key: str) -> Optional[Any]:
    """Get value from in-memory cache if not expired."""
    if key not in _memory_cache:
        return None

    value, expiry = _memory_cache[key]
    if expiry > 0 and time.time() > expiry:
        del _memory_cache[key]
        return None

    return value


def _set_memory_cache(key: str, value: Any, ttl: int) -> bool:
    expiry = time.time() + ttl if ttl > 0 else 0

    # If cache is too large, drop the oldest 10% of entries
    if len(_memory_cache) >= _memory_cache_max_size:
        for k in list(_memory_cache.keys())[: int(_memory_cache_max_size * 0.1)]:
            del _memory_cache[k]

    _memory_cache[key] = (value, expiry)
    return True


def clear_memory_cache() -> None:
    _memory_cache.clear()


async def get_cache(key: str) -> Optional[Any]:
    """Get value from cache.

    Redis is authoritative while it answers: a miss there is a miss, since
    another worker may have invalidated the key. The in-memory copy is only
    read without Redis or when the Redis call fails.
    """
    client = await get_redis_client()

    if client:
        try:
            value = await asyncio.wait_for(client.get(key), timeout=0.1)
        except (RedisError, asyncio.TimeoutError) as exc:
            logger.bind(key=key, error=str(exc)).warning("cache_get_failed")
        else:
            return json.loads(value) if value else None

    return _get_memory_cache(key)


async def set_cache(key: str, value: Any, ttl: int = 60) -> bool:
    """Set ``value`` under ``key`` for ``ttl`` seconds.

    Values must be JSON serialisable. A copy is always kept in memory so
    reads keep working if Redis drops out.
    """
    client = await get_redis_client()

    if client:
        try:
            await client.setex(key, ttl, json.dumps(value))
        except RedisError as exc:
            logger.bind(key=key, error=str(exc)).warning("cache_set_failed")

    return _set_memory_cache(key, value, ttl)


async def delete_cache(key: str) -> bool:
    """Delete a key from cache (Redis and/or in-memory)."""
    deleted = False

    client = await get_redis_client()
    if client:
        try:
            deleted = bool(await client.delete(key))
        except RedisError as exc:
            logger.bind(key=key, error=str(exc)).warning("cache_delete_failed")

    if key in _memory_cache:
        del _memory_cache[key]
        deleted = True

    return deleted


async def clear_cache_pattern(pattern: str) -> int:
    """Clear all cache keys matching a glob pattern (Redis and/or in-memory)."""
    deleted_count = 0

    client = await get_redis_client()
    if client:
        try:
            keys = [key async for key in client.scan_iter(match=pattern)]
            if keys:
                deleted_count += await client.delete(*keys)
        except RedisError as exc:
            logger.bind(pattern=pattern, error=str(exc)).warning("cache_clear_failed")

    for key in [k for k in _memory_cache if fnmatch.fnmatchcase(k, pattern)]:
        del _memory_cache[key]
        deleted_count += 1

    return deleted_count


async def invalidate_project_caches(
    project_id: Optional[str] = None,
    *,
    user_id: Optional[str] = None,
    slugs: tuple[str, ...] = (),
) -> None:
    """Drop every cached read that may include the given project."""

    keys = [PROJECTS_KEY]
    if project_id:
        keys.append(project_key(project_id))
    if user_id:
        keys.append(user_projects_key(user_id))
    keys.extend(project_slug_key(slug) for slug in slugs if slug)
    for key in keys:
        await delete_cache(key)
    logger.bind(keys=keys).debug("cache_invalidated")
