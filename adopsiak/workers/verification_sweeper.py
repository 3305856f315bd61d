from __future__ import annotations
import asyncio
import logging
import time

from ..config import get_settings
from ..db import SessionLocal
from ..redis_client import redis
from ..repos import verifications as verifications_repo
from ..observability.heartbeat import beat
from ..observability.logging import setup_logging
from ..observability.metrics import VERIFICATIONS_SWEPT

S = get_settings()
log = logging.getLogger("worker.verification_sweeper")

def _lock_key() -> str: return "lock:verification_sweeper"

async def _acquire_lock() -> bool:
    # Only one instance performs the sweep; others idle
    return await redis.set(_lock_key(), "1", ex=S.SWEEP_LOCK_TTL_SEC, nx=True) is True

async def sweep_expired(db, *, batch: int) -> int:
    """Delete expired verification rows until none are left. Returns total deleted."""
    total = 0
    while True:
        now_ms = int(time.time() * 1000)
        n = await verifications_repo.purge_expired(db, now_ms=now_ms, batch=batch)
        await db.commit()
        total += n
        if n < batch:
            break
    if total:
        VERIFICATIONS_SWEPT.inc(total)
    return total

async def run_once() -> int:
    # Acquire short lock; if taken, just skip this tick
    if not await _acquire_lock():
        return 0
    async with SessionLocal() as db:
        swept = await sweep_expired(db, batch=S.SWEEP_BATCH)
    if swept:
        log.info("purged %d expired verification rows", swept)
    return swept

async def run_forever():
    # heartbeat for ops
    hb = asyncio.create_task(beat("hb:verification_sweeper"))  # noqa: F841 (keep a ref)
    while True:
        try:
            await run_once()
        except Exception as e:
            log.exception("verification_sweeper error: %s", e)
        await asyncio.sleep(S.SWEEP_INTERVAL_SEC)

def main():
    setup_logging()
    asyncio.run(run_forever())

if __name__ == "__main__":
    main()
