"""Authentication for web API: JWT bearer tokens and role checks.

Tokens are issued by the platform's auth service. ``sub`` carries the user id
(a Discord snowflake as a string) and ``role`` is ``player`` or ``admin``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config

http_bearer = HTTPBearer(auto_error=False)

ROLE_ADMIN = "admin"
ROLE_PLAYER = "player"


@dataclass
class CurrentUser:
    user_id: str
    role: str = ROLE_PLAYER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def create_access_token(user_id: str, role: str = ROLE_PLAYER, expires_in: timedelta = timedelta(days=7)) -> str:
    """Sign a token the same way the auth service does. Used by scripts and tests."""
    payload = {"sub": str(user_id), "role": role, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    x_auth_token: Optional[str] = Header(None, alias="X-Auth-Token"),
) -> Optional[CurrentUser]:
    """Caller identity from the bearer token (or X-Auth-Token behind proxies that strip Authorization). None if absent or invalid."""
    token = credentials.credentials if credentials else x_auth_token
    payload = decode_token(token) if token else None
    if not payload or not payload.get("sub"):
        return None
    return CurrentUser(user_id=str(payload["sub"]), role=payload.get("role") or ROLE_PLAYER)


async def require_user(
    user: Optional[CurrentUser] = Depends(get_current_user),
) -> CurrentUser:
    if user is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Sign in required", headers={"WWW-Authenticate": "Bearer"})
    return user


async def require_admin_user(
    user: CurrentUser = Depends(require_user),
) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admins only")
    return user
