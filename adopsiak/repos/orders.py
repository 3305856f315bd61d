from __future__ import annotations
from typing import Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from ..models import AdopsiakOrder


async def last_created_at_for_email(db: AsyncSession, email: str) -> Optional[int]:
    """Epoch-ms timestamp of the newest order for `email`, or None."""
    res = await db.execute(
        select(AdopsiakOrder.created_at)
        .where(AdopsiakOrder.email == email)
        .order_by(AdopsiakOrder.created_at.desc())
        .limit(1)
    )
    return res.scalar_one_or_none()


async def add_order(db: AsyncSession, **fields) -> AdopsiakOrder:
    order = AdopsiakOrder(**fields)
    db.add(order)
    await db.flush()
    return order


async def list_orders(
    db: AsyncSession,
    *,
    limit: int = 50,
    before_id: Optional[int] = None,
) -> Sequence[AdopsiakOrder]:
    q = select(AdopsiakOrder).order_by(AdopsiakOrder.id.desc()).limit(limit)
    if before_id is not None:
        q = q.where(AdopsiakOrder.id < before_id)
    return (await db.execute(q)).scalars().all()
