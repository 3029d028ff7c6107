#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
User service: look up and create accounts.  Roles map to capabilities in
``app.core.roles``.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import ROLE_CAPS
from app.models import User


# -----------------------------------------------------------------------------

async def create_user(
    db: AsyncSession,
    username: str,
    email: str,
    role: str = "subscriber",
    display_name: str | None = None,
) -> User:
    if role not in ROLE_CAPS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown role: {role}")

    existing = await db.execute(select(User).where(User.username == username))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")

    user = User(
        username=username,
        email=email,
        display_name=display_name or username,
        role=role,
    )
    db.add(user)
    await db.flush()
    return user


# -----------------------------------------------------------------------------

async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


# -----------------------------------------------------------------------------

async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


# -----------------------------------------------------------------------------
