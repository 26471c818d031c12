"""
Authentication dependency for JWT validation.

Identity is issued elsewhere; this module only verifies bearer access tokens
and exposes the caller as ``CurrentUser``.
"""

from __future__ import annotations

from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from app.config import Settings, get_settings
from app.shared.exceptions import InvalidTokenError, TokenExpiredError
from app.shared.logging import get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """Current authenticated user information."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="User ID")
    email: str = Field(default="", description="User email")
    role: str = Field(default="user", description="User role")


class JWTTokenValidator:
    """JWT access token validator."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def validate_access_token(self, token: str) -> dict:
        try:
            payload = jwt.decode(
                token,
                self._settings.jwt_secret_key,
                algorithms=[self._settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError()
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(details={"error": str(e)})

        if payload.get("type") != "access":
            raise InvalidTokenError(
                "Invalid token type",
                details={"expected": "access", "got": payload.get("type")},
            )
        return payload


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CurrentUser:
    """Extract and validate the current user from a bearer token."""
    if credentials is None:
        logger.warning(
            "Missing authentication credentials",
            extra={
                "endpoint": str(request.url.path),
                "method": request.method,
                "client_ip": request.client.host if request.client else "unknown",
            },
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "MISSING_CREDENTIALS",
                "message": "Authentication credentials required",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = JWTTokenValidator(settings).validate_access_token(credentials.credentials)

        user_id = payload.get("user_id") or payload.get("sub")
        if not user_id:
            raise InvalidTokenError(
                "Token missing user_id",
                details={"payload_keys": list(payload.keys())},
            )

        return CurrentUser(
            id=str(user_id),
            email=payload.get("email", "") or "",
            role=payload.get("role", "user") or "user",
        )

    except (TokenExpiredError, InvalidTokenError) as e:
        logger.warning(
            "Rejected access token",
            extra={
                "endpoint": str(request.url.path),
                "method": request.method,
                "error_code": e.code,
                "error": e.message,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": e.code, "message": e.message},
            headers={"WWW-Authenticate": "Bearer"},
        )


CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
