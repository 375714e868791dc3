from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt

from timetable_engine.core.config import get_settings


def create_access_token(
    subject: str,
    *,
    school_id: str,
    role: str,
    teacher_id: str | None = None,
    expires_minutes: int = 60,
) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    claims: dict[str, Any] = {"sub": subject, "school_id": school_id, "role": role, "exp": expire}
    if teacher_id:
        claims["teacher_id"] = teacher_id
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
