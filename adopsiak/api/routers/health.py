from fastapi import APIRouter
from ...db import db_health
from ...redis_client import redis_health
from ...services.background import pending_count

router = APIRouter(prefix="/health", tags=["health"])

@router.get("")
async def health():
    db_ok, redis_ok = await db_health(), await redis_health()
    status = "ok" if (db_ok and redis_ok) else "degraded"
    return {
        "status": status,
        "dependencies": {
            "database": db_ok,
            "redis": redis_ok,
        },
    }

@router.get("/readiness")
async def readiness():
    # the OTP endpoints cannot work without the database; redis only throttles
    db_ok, redis_ok = await db_health(), await redis_health()
    return {"ready": db_ok, "database": db_ok, "redis": redis_ok, "detached_tasks": pending_count()}

@router.get("/liveness")
async def liveness():
    return {"alive": True}
