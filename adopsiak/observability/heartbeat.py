from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from ..redis_client import redis

log = logging.getLogger("adopsiak.heartbeat")

async def beat(key: str, interval_sec: int = 5, ttl_sec: int = 20):
    while True:
        try:
            await redis.set(key, datetime.now(timezone.utc).isoformat(), ex=ttl_sec)
        except Exception as e:
            log.warning("heartbeat %s failed: %s", key, e)
        await asyncio.sleep(interval_sec)
