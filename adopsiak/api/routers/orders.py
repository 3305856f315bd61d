from __future__ import annotations
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import conint
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.deps import get_verified_email, require_admin
from ...config import get_settings
from ...db import get_db
from ...domain.schemas.orders import OrderIn, OrderOut
from ...repos import orders as orders_repo
from ...services.email_otp import normalize_email
from ...services.orders import create_order

router = APIRouter(prefix="/api/v1/adopsiak", tags=["adopsiak"])

S = get_settings()


@router.post("/orders", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
async def submit_order(
    payload: OrderIn,
    verified_email: str = Depends(get_verified_email),
    db: AsyncSession = Depends(get_db),
):
    if normalize_email(str(payload.email)) != verified_email:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="email does not match verified email")

    order = await create_order(
        db,
        payload=payload,
        cooldown=timedelta(seconds=S.ORDER_COOLDOWN_SECONDS),
    )
    return OrderOut.from_model(order)


@router.get("/orders", response_model=List[OrderOut], dependencies=[Depends(require_admin)])
async def list_orders(
    db: AsyncSession = Depends(get_db),
    limit: conint(gt=0, le=200) = 50,
    before_id: Optional[int] = Query(default=None),
):
    rows = await orders_repo.list_orders(db, limit=limit, before_id=before_id)
    return [OrderOut.from_model(o) for o in rows]
