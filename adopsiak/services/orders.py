from __future__ import annotations
import logging
import time
from datetime import timedelta
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.schemas.orders import OrderIn
from ..models import AdopsiakOrder
from ..repos import orders as orders_repo
from ..observability.metrics import ORDERS_CREATED
from .email_otp import normalize_email
from .rate_limit import check_submission_cooldown_or_429

log = logging.getLogger("adopsiak.orders")


def _now_ms() -> int:
    return int(time.time() * 1000)


def resolve_total(payload: OrderIn) -> int:
    # an explicit total wins; otherwise sum the institution counts
    if payload.total_institutions > 0:
        return payload.total_institutions
    return payload.libraries_count + payload.kindergartens_count


async def create_order(
    db: AsyncSession,
    *,
    payload: OrderIn,
    cooldown: timedelta,
    now_ms: Optional[int] = None,
) -> AdopsiakOrder:
    now = _now_ms() if now_ms is None else now_ms
    email = normalize_email(str(payload.email))

    await check_submission_cooldown_or_429(db, email=email, cooldown=cooldown, now_ms=now)

    order = await orders_repo.add_order(
        db,
        city_or_municipality=payload.city_or_municipality,
        shipping_address=payload.shipping_address,
        delegate_name=payload.delegate_name,
        delegate_phone1=payload.delegate_phone1,
        delegate_phone2=payload.delegate_phone2,
        libraries_count=payload.libraries_count,
        kindergartens_count=payload.kindergartens_count,
        total_institutions=resolve_total(payload),
        delivery_date=payload.delivery_date,
        protocol_text=payload.protocol_text,
        protocol_email_recipient=payload.protocol_email_recipient,
        email=email,
        created_at=now,
    )
    await db.commit()
    ORDERS_CREATED.inc()
    log.info("order_created", extra={"extra": f"order_id={order.id} total={order.total_institutions}"})
    return order
