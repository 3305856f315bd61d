"""Shared Redis connection for throttle counters, sweeper locks and heartbeats."""
import logging

from redis import asyncio as aioredis

from .config import get_settings

log = logging.getLogger("adopsiak.redis")

_settings = get_settings()

redis = aioredis.from_url(
    _settings.REDIS_URL,
    encoding="utf-8",
    decode_responses=True,
    health_check_interval=30,
)


async def redis_health(client=None) -> bool:
    client = client or redis
    try:
        return bool(await client.ping())
    except Exception:
        log.warning("redis_health_failed", exc_info=True)
        return False


async def close_redis() -> None:
    await redis.aclose()
