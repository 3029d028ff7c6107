#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Multiple post type router
=========================
GET      {rest_prefix}/{namespace}/v2/multiple-post-type   — list items of several post types
OPTIONS  {rest_prefix}/{namespace}/v2/multiple-post-type   — parameter schema

Example::

    GET /wp-json/wp/v2/multiple-post-type?type[]=post&type[]=page&per_page=5
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.context import Caller, QueryContext
from app.core.database import get_db
from app.core.security import get_current_caller
from app.schemas import ErrorResponse, PostItem, RouteEndpoint, RouteSchemaResponse
from app.services.collection import ROUTE_NAME, assemble_response, execute_query
from app.services.params import parse_collection_params
from app.services.query_builder import build_query_args


# -----------------------------------------------------------------------------

router = APIRouter(tags=["posts"])


def _context(request: Request, caller: Caller) -> QueryContext:
    state = request.app.state
    return QueryContext(
        registry=state.registry,
        hooks=state.hooks,
        settings=get_settings(),
        caller=caller,
    )


# ── List ─────────────────────────────────────────────────────────────────────

@router.get(
    "/multiple-post-type",
    name=ROUTE_NAME,
    response_model=list[PostItem],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def list_multiple_post_types(
    request: Request,
    caller: Caller   = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    ctx = _context(request, caller)

    params = parse_collection_params(
        request.query_params.multi_items(),
        request.app.state.collection_params,
        ctx,
    )
    query_args = build_query_args(params, ctx)
    result = await execute_query(db, query_args, ctx)
    return await assemble_response(db, result, params, request, ctx)


# ── Schema ───────────────────────────────────────────────────────────────────

@router.options("/multiple-post-type", response_model=RouteSchemaResponse)
async def describe_multiple_post_types(request: Request) -> RouteSchemaResponse:
    settings = get_settings()
    args = {
        name: spec.to_schema()
        for name, spec in request.app.state.collection_params.items()
    }
    return RouteSchemaResponse(
        namespace=f"{settings.rest_namespace}/v2",
        methods=["GET"],
        endpoints=[RouteEndpoint(methods=["GET"], args=args)],
    )


# -----------------------------------------------------------------------------
