#!/usr/bin/env python
#
#
# ----------------------------------------------------------------------------
"""
Security utilities
==================
- JWT access token creation/verification
- FastAPI dependencies resolving the calling user into a ``Caller``

Issuing tokens to end users is handled outside this service; tokens minted
with ``create_access_token`` carry the numeric user id as ``sub``.
"""
# ----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession


# -----------------------------------------------------------------------------

from .config import get_settings
from .context import Caller
from .database import get_db

# ----------------------------------------------------------------------------
# JWT tokens
# ----------------------------------------------------------------------------

_bearer_optional = HTTPBearer(auto_error=False)


# ----------------------------------------------------------------------------

def create_access_token(subject: str | int, extra: dict | None = None) -> str:
    s = get_settings()
    expire = datetime.now(tz=timezone.utc) + timedelta(minutes=s.access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": str(subject),
        "exp": expire,
        "type": "access",
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, s.secret_key, algorithm=s.algorithm)


# ----------------------------------------------------------------------------

def decode_token(token: str) -> dict[str, Any]:
    s = get_settings()
    try:
        payload = jwt.decode(token, s.secret_key, algorithms=[s.algorithm])
        if payload.get("sub") is None:
            raise _credentials_error()
        return payload
    except JWTError:
        raise _credentials_error()


# -----------------------------------------------------------------------------

def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


# ----------------------------------------------------------------------------
# FastAPI dependencies: bearer token to Caller
# ----------------------------------------------------------------------------

async def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_optional),
) -> int | None:
    if credentials is None:
        return None
    try:
        payload = decode_token(credentials.credentials)
        if payload.get("type") == "access":
            return int(payload["sub"])
    except (HTTPException, ValueError):
        pass
    return None


# ----------------------------------------------------------------------------

async def get_current_caller(
    user_id: int | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
) -> Caller:
    """Resolve the bearer token to a Caller; guests get an anonymous one."""
    if user_id is None:
        return Caller.anonymous()

    from app.services.users import get_user_by_id

    user = await get_user_by_id(db, user_id)
    if user is None or not user.is_active:
        return Caller.anonymous()
    return Caller.for_role(user.id, user.role)


# ----------------------------------------------------------------------------
