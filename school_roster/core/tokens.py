# school_roster/core/tokens.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError
from school_roster.core.config import settings

def _now() -> datetime:
    return datetime.now(timezone.utc)

def create_access_token(*, sub: str, role: str, minutes: Optional[int] = None) -> str:
    """Signed access token; ``sub`` is the username."""
    expire_min = minutes if minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload: Dict[str, Any] = {
        "type": "access",
        "sub": sub,
        "role": role,
        "jti": uuid.uuid4().hex,
        "iat": int(_now().timestamp()),
        "exp": int((_now() + timedelta(minutes=expire_min)).timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_access(token: str) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload, dict):
        return None
    if payload.get("type") != "access" or not payload.get("sub"):
        return None
    return payload
