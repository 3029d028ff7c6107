#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Multiple Post Type API — FastAPI application factory
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, select

from app.core.config import get_settings
from app.core.database import create_all_tables, get_session_factory, init_db
from app.core.errors import RestError
from app.core.hooks import HookRegistry
from app.core.registry import Registry, default_registry
from app.routes import multiple_post_type
from app.schemas import HealthResponse
from app.services.params import get_collection_params


# -----------------------------------------------------------------------------

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings = get_settings()
    init_db()
    await create_all_tables()   # safe: CREATE TABLE IF NOT EXISTS
    if settings.seed_defaults:
        await _seed_defaults()
    yield


# -----------------------------------------------------------------------------

async def _seed_defaults() -> None:
    """Create a first post, a sample page and the default category on an empty store."""
    from app.models import Post, Term

    factory = get_session_factory()

    async with factory() as session:
        try:
            existing = (await session.execute(select(func.count()).select_from(Post))).scalar_one()
            if existing:
                return

            uncategorized = Term(taxonomy="category", name="Uncategorized", slug="uncategorized")
            session.add(uncategorized)

            hello = Post(
                post_type="post",
                title="Hello world!",
                slug="hello-world",
                content=(
                    "<p>Welcome. This is your first post. Edit or delete it, "
                    "then start writing!</p>"
                ),
            )
            hello.terms.append(uncategorized)
            session.add(hello)

            session.add(Post(
                post_type="page",
                title="Sample Page",
                slug="sample-page",
                content=(
                    "<p>This is an example page. It is different from a post "
                    "because it stays in one place.</p>"
                ),
            ))
            await session.commit()
            log.info("seeded default post, page and category")
        except Exception:
            await session.rollback()
            log.exception("seeding default content failed")


# -----------------------------------------------------------------------------

def create_app(registry: Registry | None = None, hooks: HookRegistry | None = None) -> FastAPI:
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Lists posts of several post types in one paginated collection.",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # ── Registries ────────────────────────────────────────────────────────

    app.state.registry = registry or default_registry()
    app.state.hooks = hooks or HookRegistry()
    app.state.collection_params = get_collection_params(app.state.registry, settings)

    # ── CORS ──────────────────────────────────────────────────────────────

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            f"X-{settings.header_prefix}-Total",
            f"X-{settings.header_prefix}-TotalPages",
            "Link",
        ],
    )

    # ── API routers ───────────────────────────────────────────────────────

    app.include_router(multiple_post_type.router, prefix=settings.route_base)

    # ── Global exception handlers ─────────────────────────────────────────

    @app.exception_handler(RestError)
    async def rest_error(request: Request, exc: RestError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(404)
    async def not_found(request: Request, exc):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"code": "rest_no_route",
                     "message": "No route was found matching the URL and request method.",
                     "data": {"status": status.HTTP_404_NOT_FOUND}},
        )

    @app.exception_handler(500)
    async def server_error(request: Request, exc):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # ── Health check ──────────────────────────────────────────────────────

    @app.get("/api/health", tags=["system"], response_model=HealthResponse)
    async def health():
        return {"status": "ok", "version": settings.app_version, "app": settings.app_name}

    return app


# -----------------------------------------------------------------------------

app = create_app()


# -----------------------------------------------------------------------------
