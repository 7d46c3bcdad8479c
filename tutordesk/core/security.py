"""Password hashing and JWT helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from tutordesk.core.config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/identity/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.api_prefix}/identity/auth/login",
    auto_error=False,
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def _encode(claims: dict[str, Any], expires_delta: timedelta) -> str:
    payload = dict(claims)
    payload["exp"] = datetime.now(UTC) + expires_delta
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def issue_token_pair(user_id: str, role: str, refresh_token_id: str) -> tuple[str, str]:
    """Issue (access, refresh) tokens for a user; the refresh token carries its persisted id as jti."""
    access = _encode(
        {"sub": user_id, "type": "access", "role": role},
        timedelta(minutes=settings.access_token_expire_minutes),
    )
    refresh = _encode(
        {"sub": user_id, "type": "refresh", "role": role, "jti": refresh_token_id},
        timedelta(days=settings.refresh_token_expire_days),
    )
    return access, refresh


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate JWT token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
