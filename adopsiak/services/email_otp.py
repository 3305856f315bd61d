"""
Email one-time-passcode verification.

A code is bound to a normalized email under a namespaced identifier. Only
an HMAC of "email|code" is stored. Issuing replaces any previous code for
the identifier; a successful check consumes it.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..observability.metrics import OTP_CHECKED, OTP_ISSUED
from ..repos import verifications as verifications_repo
from .background import spawn_detached
from .mailer import HttpMailer

log = logging.getLogger("adopsiak.email_otp")

CODE_DIGITS = 6


@dataclass(frozen=True)
class OtpConfig:
    namespace: str
    expire_minutes: int
    hash_secret: str

    @property
    def expire_ms(self) -> int:
        return self.expire_minutes * 60 * 1000

    @classmethod
    def from_settings(cls, s: Settings) -> "OtpConfig":
        return cls(
            namespace=s.OTP_NAMESPACE,
            expire_minutes=s.OTP_EXPIRE_MINUTES,
            hash_secret=s.OTP_HASH_SECRET,
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def make_identifier(namespace: str, email: str) -> str:
    return f"{namespace}:{normalize_email(email)}"


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


def hash_code(secret: str, email: str, code: str) -> str:
    msg = f"{normalize_email(email)}|{code}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()


async def _replace(db: AsyncSession, *, identifier: str, value: str, config: OtpConfig, now: int) -> None:
    await verifications_repo.delete_by_identifier(db, identifier)
    await verifications_repo.insert(
        db,
        identifier=identifier,
        value=value,
        expires_at=now + config.expire_ms,
        now_ms=now,
    )
    await db.commit()


async def send_otp(
    db: AsyncSession,
    *,
    email: str,
    config: OtpConfig,
    mailer: HttpMailer,
) -> None:
    """Issue a fresh code for `email` and email it in the background."""
    norm = normalize_email(email)
    identifier = make_identifier(config.namespace, norm)
    code = generate_code()
    now = _now_ms()

    value = hash_code(config.hash_secret, norm, code)
    try:
        await _replace(db, identifier=identifier, value=value, config=config, now=now)
    except IntegrityError:
        # an overlapping send for the same identifier got its row in first; last writer wins
        await db.rollback()
        await _replace(db, identifier=identifier, value=value, config=config, now=now)
    OTP_ISSUED.inc()

    spawn_detached(
        mailer.send_otp_email(to=norm, code=code, expire_minutes=config.expire_minutes),
        name="otp-email",
    )


async def check_otp(
    db: AsyncSession,
    *,
    email: str,
    otp: str,
    config: OtpConfig,
    now_ms: Optional[int] = None,
) -> bool:
    """
    True iff a live record exists for `email` and `otp` matches it. The
    record is deleted on success. Missing, expired and mismatched all come
    back as the same False and run the same single SELECT; expired rows are
    left for the sweeper.
    """
    now = _now_ms() if now_ms is None else now_ms
    identifier = make_identifier(config.namespace, email)
    candidate = hash_code(config.hash_secret, email, otp)

    record = await verifications_repo.get_by_identifier(db, identifier)
    stored = record.value if record is not None else ""
    live = record is not None and now < record.expires_at
    matches = hmac.compare_digest(stored.encode("ascii"), candidate.encode("ascii"))
    ok = live and matches

    if ok:
        await verifications_repo.delete_by_id(db, record.id)
        await db.commit()

    OTP_CHECKED.labels(result="ok" if ok else "invalid").inc()
    log.info("otp_check", extra={"extra": f"identifier_ns={config.namespace} ok={ok}"})
    return ok
