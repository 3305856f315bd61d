from __future__ import annotations
import hmac
from typing import Optional
import jwt
from fastapi import Header, HTTPException, Request, Response
from fastapi import status
from ..config import get_settings
from .jwt import EMAIL_VERIFIED, create_email_proof, verify_jwt

S = get_settings()


def _cookie_opts():
    return {
        "key": S.VERIFIED_EMAIL_COOKIE_NAME,
        "httponly": True,
        "secure": S.COOKIE_SECURE,
        "samesite": "none" if S.COOKIE_SECURE else "lax",  # cross-site requires None (+Secure)
        "max_age": S.VERIFIED_EMAIL_TTL_MINUTES * 60,
        "path": "/",
    }


def set_verified_email_cookie(response: Response, email: str) -> None:
    response.set_cookie(value=create_email_proof(email), **_cookie_opts())


async def get_verified_email(request: Request) -> str:
    token: Optional[str] = request.cookies.get(S.VERIFIED_EMAIL_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="email not verified")

    try:
        claims = verify_jwt(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="email not verified")

    email = claims.get("sub")
    if not email or claims.get("purpose") != EMAIL_VERIFIED:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="email not verified")
    return email


async def require_admin(authorization: Optional[str] = Header(default=None)) -> None:
    expected = S.ADMIN_API_TOKEN
    if not expected:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin access disabled")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin required")
