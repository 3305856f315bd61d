from __future__ import annotations
import uuid
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, select
from ..models import Verification


async def get_by_identifier(db: AsyncSession, identifier: str) -> Optional[Verification]:
    res = await db.execute(select(Verification).where(Verification.identifier == identifier))
    return res.scalar_one_or_none()


async def delete_by_identifier(db: AsyncSession, identifier: str) -> int:
    res = await db.execute(delete(Verification).where(Verification.identifier == identifier))
    return res.rowcount or 0


async def delete_by_id(db: AsyncSession, verification_id: uuid.UUID) -> None:
    await db.execute(delete(Verification).where(Verification.id == verification_id))


async def insert(
    db: AsyncSession,
    *,
    identifier: str,
    value: str,
    expires_at: int,
    now_ms: int,
) -> Verification:
    row = Verification(
        identifier=identifier,
        value=value,
        expires_at=expires_at,
        created_at=now_ms,
        updated_at=now_ms,
    )
    db.add(row)
    # no commit here; caller’s transaction should commit
    await db.flush()
    return row


async def purge_expired(db: AsyncSession, *, now_ms: int, batch: int = 500) -> int:
    """Delete up to `batch` rows whose expiry has passed. Returns the number deleted."""
    ids = (
        await db.execute(
            select(Verification.id)
            .where(Verification.expires_at <= now_ms)
            .order_by(Verification.expires_at.asc())
            .limit(batch)
        )
    ).scalars().all()
    if not ids:
        return 0
    await db.execute(delete(Verification).where(Verification.id.in_(ids)))
    return len(ids)
