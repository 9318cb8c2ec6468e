"""Operator token helpers."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from fundraiser.config import get_settings

settings = get_settings()

ADMIN_ROLES = {"admin", "superadmin"}


def create_admin_access_token(subject: str, role: str = "admin", expires_minutes: Optional[int] = None) -> str:
    expire_delta = timedelta(minutes=expires_minutes or settings.ADMIN_JWT_EXPIRE_MINUTES)
    exp = datetime.now(timezone.utc) + expire_delta
    payload = {"sub": str(subject), "role": role, "exp": exp}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
