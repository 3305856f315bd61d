from __future__ import annotations
import math
import time
from datetime import timedelta
from typing import Optional
from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from ..config import get_settings
from ..redis_client import redis
from ..repos import orders as orders_repo
from ..observability.metrics import ORDERS_THROTTLED

S = get_settings()

TOO_MANY_REQUESTS = "too many requests"

# ---- generic token counter (fixed window) ----
async def _hit(key: str, window_sec: int, limit: int) -> None:
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, window_sec)
    if count > limit:
        ttl = await redis.ttl(key)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=TOO_MANY_REQUESTS,
            headers={"Retry-After": str(max(ttl, 1)) if ttl and ttl > 0 else "10"},
        )

def _client_ip(req: Request) -> str:
    # first X-Forwarded-For hop only behind a trusted proxy; otherwise the socket peer
    if S.TRUST_PROXY_HEADERS:
        h = req.headers.get("x-forwarded-for")
        if h:
            return h.split(",")[0].strip()
    return req.client.host if req.client else "unknown"

# ---- per-IP throttles for the OTP endpoints ----
async def limit_otp_send(req: Request) -> None:
    ip = _client_ip(req)
    await _hit(f"rl:otp:send:ip:{ip}", window_sec=10, limit=S.RL_OTP_SEND_PER_IP_10S)

async def limit_otp_check(req: Request) -> None:
    ip = _client_ip(req)
    await _hit(f"rl:otp:check:ip:{ip}", window_sec=10, limit=S.RL_OTP_CHECK_PER_IP_10S)

# ---- per-identifier attempt cap, independent of caller address ----
async def limit_otp_attempts(identifier: str, *, window_sec: int) -> None:
    await _hit(f"rl:otp:check:id:{identifier}", window_sec=window_sec, limit=S.RL_OTP_CHECK_PER_IDENTIFIER)

# ---- per-email submission cooldown (last-write lookback) ----
async def check_submission_cooldown_or_429(
    db: AsyncSession,
    *,
    email: str,
    cooldown: timedelta,
    now_ms: Optional[int] = None,
) -> None:
    """Reject when the newest order for `email` is younger than `cooldown`."""
    now = int(time.time() * 1000) if now_ms is None else now_ms
    last = await orders_repo.last_created_at_for_email(db, email)
    if last is None:
        return
    cooldown_ms = int(cooldown.total_seconds() * 1000)
    remaining_ms = cooldown_ms - (now - last)
    if remaining_ms > 0:
        ORDERS_THROTTLED.inc()
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=TOO_MANY_REQUESTS,
            headers={"Retry-After": str(max(math.ceil(remaining_ms / 1000), 1))},
        )
