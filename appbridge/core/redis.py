"""Shared async Redis client.

Redis holds the only cross-request state in this service:

  install_state:{jti}         consumed install state nonces
  webhook_delivery:{id}       seen X-GitHub-Delivery IDs

Both are written with SET NX EX, so claims are atomic and expire on their own.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from appbridge.core.config import get_settings
from appbridge.github.exceptions import UpstreamUnreachable

logger = logging.getLogger(__name__)

_async_redis = None


def get_redis() -> aioredis.Redis:
    global _async_redis
    if _async_redis is None:
        _async_redis = aioredis.Redis.from_url(get_settings().redis_url, decode_responses=True)
    return _async_redis


async def claim_once(key: str, ttl_seconds: int) -> bool:
    """Atomically mark `key` as seen. Returns False if it was already claimed.

    Raises UpstreamUnreachable when Redis cannot be reached; callers decide
    whether that fails open or closed.
    """
    r = get_redis()
    try:
        claimed = await r.set(key, "1", nx=True, ex=max(1, int(ttl_seconds)))
    except RedisError as exc:
        logger.error("Redis claim failed for %s: %s", key.split(":", 1)[0], exc)
        raise UpstreamUnreachable("redis", str(exc)) from exc
    return bool(claimed)


async def release(key: str) -> None:
    """Drop a claim so the key can be claimed again."""
    try:
        await get_redis().delete(key)
    except RedisError as exc:
        logger.error("Redis release failed for %s: %s", key.split(":", 1)[0], exc)
        raise UpstreamUnreachable("redis", str(exc)) from exc


async def ping() -> bool:
    try:
        return bool(await get_redis().ping())
    except RedisError:
        logger.warning("Redis ping failed", exc_info=True)
        return False
