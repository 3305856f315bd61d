from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.deps import set_verified_email_cookie
from ...config import get_settings
from ...db import get_db
from ...domain.schemas.otp import CheckOtpIn, SendOtpIn, SuccessOut
from ...services.email_otp import OtpConfig, check_otp, make_identifier, normalize_email, send_otp
from ...services.mailer import HttpMailer, get_mailer
from ...services.rate_limit import limit_otp_attempts, limit_otp_check, limit_otp_send

router = APIRouter(prefix="/api/v1/email-otp", tags=["email-otp"])

S = get_settings()

INVALID_CODE = "invalid or expired code"


def get_otp_config() -> OtpConfig:
    return OtpConfig.from_settings(S)


@router.post("/send", response_model=SuccessOut)
async def send(
    payload: SendOtpIn,
    request: Request,
    db: AsyncSession = Depends(get_db),
    mailer: HttpMailer = Depends(get_mailer),
    config: OtpConfig = Depends(get_otp_config),
):
    await limit_otp_send(request)
    await send_otp(db, email=str(payload.email), config=config, mailer=mailer)
    # same answer whether or not this address was seen before
    return SuccessOut()


@router.post("/check", response_model=SuccessOut)
async def check(
    payload: CheckOtpIn,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    config: OtpConfig = Depends(get_otp_config),
):
    await limit_otp_check(request)
    await limit_otp_attempts(
        make_identifier(config.namespace, str(payload.email)),
        window_sec=config.expire_minutes * 60,
    )
    ok = await check_otp(db, email=str(payload.email), otp=payload.otp, config=config)
    if not ok:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_CODE)

    set_verified_email_cookie(response, normalize_email(str(payload.email)))
    return SuccessOut()
