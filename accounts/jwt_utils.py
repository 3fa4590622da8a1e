from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from django.conf import settings


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _issue(*, user_id: int, token_type: str, ttl: timedelta, extra: dict | None = None) -> str:
    now = _now()
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        **(extra or {}),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def issue_access_token(*, user_id: int, role: str = "") -> str:
    ttl = timedelta(minutes=int(settings.JWT_ACCESS_TTL_MINUTES))
    # Informational claim only; permission checks use User.role.
    return _issue(user_id=user_id, token_type="access", ttl=ttl, extra={"role": role} if role else None)


def issue_refresh_token(*, user_id: int) -> str:
    ttl = timedelta(days=int(settings.JWT_REFRESH_TTL_DAYS))
    return _issue(user_id=user_id, token_type="refresh", ttl=ttl)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
