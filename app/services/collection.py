#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Collection service
==================
Runs a built query, fixes up the total when the requested page is past the
end, and assembles the HTTP response: serialised items, the total headers
and the ``Link`` relations for neighbouring pages.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.context import QueryContext
from app.models import Post
from app.services.post_query import PostQuery
from app.services.serializers import get_serializer


# -----------------------------------------------------------------------------

log = logging.getLogger(__name__)

ROUTE_NAME = "list_multiple_post_types"

_PAGINATION_OVERRIDES = ("filter[posts_per_page]", "filter[paged]")


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Execution
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class QueryResult:
    posts: list[Post] = field(default_factory=list)
    total: int = 0
    per_page: int = 10
    page: int = 1

    @property
    def max_pages(self) -> int:
        if self.total <= 0:
            return 0
        if self.per_page < 1:
            return 1
        return math.ceil(self.total / self.per_page)


async def execute_query(db: AsyncSession, query_args: dict[str, Any], ctx: QueryContext) -> QueryResult:
    """Run *query_args*; recount without ``paged`` when the page came back empty."""
    default_per_page = ctx.settings.posts_per_page

    engine = PostQuery(db, ctx.registry, default_per_page)
    posts = await engine.query(query_args)
    total = engine.found_posts

    if total < 1 and "paged" in query_args:
        count_args = {k: v for k, v in query_args.items() if k != "paged"}
        counter = PostQuery(db, ctx.registry, default_per_page)
        await counter.query(count_args)
        total = counter.found_posts
        log.info(
            "page %s of %s is out of range; total recounted as %d",
            query_args["paged"], query_args.get("post_type"), total,
        )

    return QueryResult(
        posts=posts,
        total=total,
        per_page=engine.per_page,
        page=_as_int(query_args.get("paged"), 1) or 1,
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Response
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def assemble_response(
    db: AsyncSession,
    result: QueryResult,
    params: dict[str, Any],
    request: Request,
    ctx: QueryContext,
) -> JSONResponse:
    context = params.get("context") or "view"
    fields = params.get("_fields") or []
    image_field = ctx.settings.primary_image_field

    items: list[dict[str, Any]] = []
    for post in result.posts:
        serializer = get_serializer(ctx.registry.get_post_type_object(post.post_type), db)
        if serializer is None or not await serializer.check_read_permission(post, ctx):
            continue
        item = serializer.prepare_item(post, context, ctx)
        item[image_field] = await primary_image(db, post, params, ctx)
        if fields:
            item = filter_fields(item, fields)
        items.append(item)

    response = JSONResponse(items)

    prefix = ctx.settings.header_prefix
    max_pages = result.max_pages
    response.headers[f"X-{prefix}-Total"] = str(result.total)
    response.headers[f"X-{prefix}-TotalPages"] = str(max_pages)

    base = pagination_params(request)
    url = str(request.url_for(ROUTE_NAME))
    page = result.page

    if page > 1:
        prev_page = min(page - 1, max_pages)
        response.headers.append("Link", f'<{page_link(url, base, prev_page)}>; rel="prev"')
    if max_pages > page:
        response.headers.append("Link", f'<{page_link(url, base, page + 1)}>; rel="next"')

    return response


# -----------------------------------------------------------------------------

def pagination_params(request: Request) -> list[tuple[str, str]]:
    """Original query params, minus per-request paging overrides."""
    pairs = list(request.query_params.multi_items())
    if any(key.startswith("filter[") for key, _ in pairs):
        pairs = [(k, v) for k, v in pairs if k not in _PAGINATION_OVERRIDES]
    return pairs


def page_link(url: str, pairs: list[tuple[str, str]], page: int) -> str:
    query: list[tuple[str, str]] = []
    replaced = False
    for key, value in pairs:
        if key == "page":
            if not replaced:
                query.append(("page", str(page)))
                replaced = True
            continue
        query.append((key, value))
    if not replaced:
        query.append(("page", str(page)))
    return f"{url}?{urlencode(query, safe='[]')}"


# -----------------------------------------------------------------------------

def filter_fields(item: dict[str, Any], fields: list[str]) -> dict[str, Any]:
    """Keep only the requested fields; ``a.b`` selects a nested key."""
    result: dict[str, Any] = {}
    for path in fields:
        parts = path.split(".")

        value: Any = item
        for part in parts:
            if not isinstance(value, dict) or part not in value:
                break
            value = value[part]
        else:
            target = result
            for part in parts[:-1]:
                child = target.get(part)
                if not isinstance(child, dict):
                    child = target[part] = {}
                target = child
            target[parts[-1]] = value
    return result


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Primary image
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def primary_image(
    db: AsyncSession,
    post: Post,
    params: dict[str, Any],
    ctx: QueryContext,
) -> Any:
    """The post's primary image: an attachment id, or a detail object
    when the client asked for ``acf_format=standard``."""
    raw = post.get_meta(ctx.settings.primary_image_meta_key)
    if raw is None or raw == "":
        return None
    image_id = _as_int(raw, 0)
    if not image_id:
        return raw
    if params.get("acf_format") != "standard":
        return image_id

    stmt = (
        select(Post)
        .where(Post.id == image_id)
        .options(selectinload(Post.meta))
        .execution_options(populate_existing=True)
    )
    attachment = (await db.execute(stmt)).scalar_one_or_none()
    if attachment is None or attachment.post_type != "attachment":
        return image_id
    return image_object(attachment, ctx)


def image_object(attachment: Post, ctx: QueryContext) -> dict[str, Any]:
    return {
        "id":          attachment.id,
        "title":       attachment.title,
        "filename":    os.path.basename(attachment.guid),
        "url":         attachment.guid,
        "link":        f"{ctx.settings.base_url.rstrip('/')}/?attachment_id={attachment.id}",
        "alt":         attachment.get_meta("_wp_attachment_image_alt") or "",
        "caption":     attachment.excerpt,
        "description": attachment.content,
        "mime_type":   attachment.mime_type,
    }


# -----------------------------------------------------------------------------
