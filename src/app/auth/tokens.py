"""JWT access token creation."""

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from app.config import Settings, get_settings


def create_access_token(
    user_id: str,
    email: str = "",
    role: str = "user",
    settings: Settings | None = None,
    expires_delta: timedelta | None = None,
    additional_claims: dict[str, Any] | None = None,
) -> str:
    """Create a signed access token accepted by ``get_current_user``."""
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    expires = now + (expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))

    payload: dict[str, Any] = {
        "sub": str(user_id),
        "user_id": str(user_id),
        "email": email,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": expires,
    }
    if additional_claims:
        payload.update(additional_claims)

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
