"""
hazardnet.api.deps — FastAPI dependency injection
==================================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from hazardnet.config import HazardNetConfig, load_config
from hazardnet.database.engine import create_db_engine
from hazardnet.database.models import UserRole
from hazardnet.errors import ForbiddenError
from hazardnet.services.realtime import ConnectionManager, manager

_WEAK_SECRETS = frozenset({
    "hazardnet-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> HazardNetConfig:
    return load_config()


def get_manager() -> ConnectionManager:
    return manager


def decode_token(token: str) -> dict:
    """Decode a bearer token; the ``sub`` claim becomes an integer ``id``.

    Raises :class:`InvalidTokenError` for bad signatures, expiry or a
    missing/non-numeric subject.
    """
    payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    try:
        payload["id"] = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError("Token subject is not a user id") from None
    payload.setdefault("role", UserRole.USER.value)
    return payload


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate the bearer token and return its claims. Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        return decode_token(token)
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token") from None


def get_current_admin(user: Annotated[dict, Depends(get_current_user)]) -> dict:
    if user.get("role") != UserRole.ADMIN.value:
        raise ForbiddenError("Admin access required")
    return user
