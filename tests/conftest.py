#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pytest fixtures for the multiple post type API.
Uses an in-memory SQLite database so no external services are needed.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime, timedelta
from itertools import count

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import Settings
from app.core.context import Caller, QueryContext
from app.core.database import Base, get_db
from app.core.hooks import HookRegistry
from app.core.registry import default_registry
from app.core.security import create_access_token
from app.main import create_app
from app.models import Post, PostMeta, Term, User


# -----------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

ROUTE = "/wp-json/wp/v2/multiple-post-type"

BASE_DATE = datetime(2024, 1, 1, 12, 0, 0)


# -----------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session_factory(db_engine):
    """Shared sessionmaker — both client and db_session use this."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(db_session_factory):
    """Direct DB session for test setup."""
    async with db_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def app(db_engine, db_session_factory):
    async def override_get_db():
        async with db_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application = create_app()
    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest_asyncio.fixture(scope="function")
async def client(app):
    """HTTP test client wired to an isolated in-memory DB."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# -----------------------------------------------------------------------------
# Helper functions for tests
# -----------------------------------------------------------------------------

def make_context(caller: Caller | None = None, registry=None, hooks=None, **settings) -> QueryContext:
    return QueryContext(
        registry=registry or default_registry(),
        hooks=hooks or HookRegistry(),
        settings=Settings(**settings),
        caller=caller or Caller.anonymous(),
    )


_day = count()


async def make_user(db: AsyncSession, username: str, role: str = "subscriber") -> User:
    user = User(username=username, email=f"{username}@example.com", display_name=username, role=role)
    db.add(user)
    await db.commit()
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


async def make_term(db: AsyncSession, taxonomy: str, name: str, parent: int = 0) -> Term:
    term = Term(taxonomy=taxonomy, name=name, slug=name.lower().replace(" ", "-"), parent=parent)
    db.add(term)
    await db.commit()
    return term


async def make_post(
    db: AsyncSession,
    title: str,
    post_type: str = "post",
    status: str = "publish",
    terms: list[Term] | None = None,
    meta: dict[str, str] | None = None,
    **fields,
) -> Post:
    """Insert a post; each call is dated one day after the previous one."""
    fields.setdefault("date", BASE_DATE + timedelta(days=next(_day)))
    fields.setdefault("slug", title.lower().replace(" ", "-"))
    post = Post(title=title, post_type=post_type, status=status, **fields)
    for term in terms or []:
        post.terms.append(term)
    for key, value in (meta or {}).items():
        post.meta.append(PostMeta(meta_key=key, meta_value=value))
    db.add(post)
    await db.commit()
    return post


# -----------------------------------------------------------------------------
