from __future__ import annotations
import time
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional
import jwt  # PyJWT

from ..config import Settings

ALGO = "HS256"


class Unauthenticated(Exception):
    """Token missing, malformed, expired or signed with another key."""


def _now() -> int:
    return int(time.time())


def create_jwt(payload: Dict[str, Any], expires_in: timedelta, settings: Settings) -> str:
    iat = _now()
    exp = iat + int(expires_in.total_seconds())
    to_encode = {
        "iss": settings.APP_NAME,
        "aud": settings.APP_NAME,
        "iat": iat,
        "exp": exp,
        **payload,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=ALGO)


def verify_jwt(token: str, settings: Settings) -> Dict[str, Any]:
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[ALGO],
        audience=settings.APP_NAME,
        issuer=settings.APP_NAME,
    )


def issue_token(account_id: uuid.UUID, settings: Settings) -> str:
    return create_jwt(
        {"sub": str(account_id)},
        expires_in=timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
        settings=settings,
    )


def verify_token(token: Optional[str], settings: Settings) -> uuid.UUID:
    if not token:
        raise Unauthenticated("missing token")
    try:
        claims = verify_jwt(token, settings)
    except jwt.PyJWTError as e:
        raise Unauthenticated(str(e)) from e

    sub = claims.get("sub")
    if not sub:
        raise Unauthenticated("token has no subject")
    try:
        return uuid.UUID(str(sub))
    except ValueError as e:
        raise Unauthenticated("token subject is not an account id") from e
