#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Per-type item serialisers
=========================
Each post type names a serialiser through ``PostTypeObject.rest_controller``:

posts        — articles, pages and any custom type (the default)
attachments  — media items

A serialiser decides whether the caller may see an item and turns the ORM
row into the dict that goes out in the collection body.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import html
import logging
import re
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import QueryContext
from app.core.registry import PostTypeObject
from app.models import Post


# -----------------------------------------------------------------------------

log = logging.getLogger(__name__)

EXCERPT_LENGTH = 55
EXCERPT_MORE   = " [&hellip;]"

_TAG_RE = re.compile(r"<[^>]*>")

EMBED_FIELDS = ("id", "date", "slug", "type", "link", "title", "excerpt", "author")


def _rfc3339(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat()


def generate_excerpt(content: str) -> str:
    """First words of *content* with markup removed."""
    words = html.unescape(_TAG_RE.sub("", content)).split()
    if len(words) > EXCERPT_LENGTH:
        return " ".join(words[:EXCERPT_LENGTH]) + EXCERPT_MORE
    return " ".join(words)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# posts
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class PostsSerializer:

    embed_fields: tuple[str, ...] = EMBED_FIELDS

    def __init__(self, post_type: PostTypeObject, db: AsyncSession) -> None:
        self.post_type = post_type
        self.db = db

    # ── Visibility ───────────────────────────────────────────────────────────

    async def check_read_permission(
        self, post: Post, ctx: QueryContext, _seen: frozenset[int] = frozenset(),
    ) -> bool:
        if not self.post_type.show_in_rest:
            return False

        if post.status == "publish":
            return True

        if post.status == "inherit":
            if not post.parent_id:
                return True
            if post.parent_id == post.id or post.parent_id in _seen:
                log.warning("post %s has a cyclic parent chain; treating it as unreadable", post.id)
                return False
            parent = await self.db.get(Post, post.parent_id)
            if parent is None:
                return True
            serializer = get_serializer(ctx.registry.get_post_type_object(parent.post_type), self.db)
            if serializer is None:
                return False
            return await serializer.check_read_permission(parent, ctx, _seen | {post.id})

        if post.status == "private":
            return ctx.caller.can(self.post_type.cap.read_private_posts)

        return self._can_edit(post, ctx)

    def _can_edit(self, post: Post, ctx: QueryContext) -> bool:
        caps = self.post_type.cap
        if not ctx.caller.can(caps.edit_posts):
            return False
        if post.author_id is not None and post.author_id == ctx.caller.user_id:
            return True
        return ctx.caller.can(caps.edit_others_posts)

    # ── Shape ────────────────────────────────────────────────────────────────

    def link(self, post: Post, ctx: QueryContext) -> str:
        base = ctx.settings.base_url.rstrip("/")
        if post.post_type == "page":
            return f"{base}/?page_id={post.id}"
        if post.post_type == "post":
            return f"{base}/?p={post.id}"
        return f"{base}/?post_type={post.post_type}&p={post.id}"

    def prepare_item(self, post: Post, context: str, ctx: QueryContext) -> dict[str, Any]:
        edit = context == "edit"
        hooks = ctx.hooks
        link = self.link(post, ctx)

        title = {"rendered": hooks.apply_filters("the_title", post.title, post)}
        content = {
            "rendered": hooks.apply_filters("the_content", post.content, post),
            "protected": False,
        }
        raw_excerpt = post.excerpt or generate_excerpt(post.content)
        excerpt = {
            "rendered": hooks.apply_filters("the_excerpt", raw_excerpt, post),
            "protected": False,
        }
        guid = {"rendered": post.guid or link}
        if edit:
            title["raw"] = post.title
            content["raw"] = post.content
            excerpt["raw"] = post.excerpt
            guid["raw"] = post.guid

        item: dict[str, Any] = {
            "id":           post.id,
            "date":         _rfc3339(post.date),
            "date_gmt":     _rfc3339(post.date),
            "guid":         guid,
            "modified":     _rfc3339(post.modified),
            "modified_gmt": _rfc3339(post.modified),
            "slug":         post.slug,
            "status":       post.status,
            "type":         post.post_type,
            "link":         link,
            "title":        title,
            "content":      content,
            "excerpt":      excerpt,
            "author":       post.author_id or 0,
        }

        if self.post_type.hierarchical:
            item["parent"] = post.parent_id
        if self.post_type.supports_feature("page-attributes"):
            item["menu_order"] = post.menu_order
        if post.post_type == "post":
            item["sticky"] = post.sticky

        for taxonomy in ctx.registry.get_object_taxonomies(post.post_type, show_in_rest=True):
            item[taxonomy.base] = post.term_ids(taxonomy.name)

        item = self._extend(item, post, context)

        if context == "embed":
            item = {k: v for k, v in item.items() if k in self.embed_fields}

        return hooks.apply_filters(f"rest_prepare_{post.post_type}", item, post, context)

    def _extend(self, item: dict[str, Any], post: Post, context: str) -> dict[str, Any]:
        return item


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# attachments
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class AttachmentsSerializer(PostsSerializer):
    """Media items: no body fields, file details instead."""

    embed_fields = (
        "id", "date", "slug", "type", "link", "title", "author",
        "alt_text", "caption", "media_type", "mime_type", "source_url",
    )

    def link(self, post: Post, ctx: QueryContext) -> str:
        return f"{ctx.settings.base_url.rstrip('/')}/?attachment_id={post.id}"

    def _extend(self, item: dict[str, Any], post: Post, context: str) -> dict[str, Any]:
        caption = {"rendered": item["excerpt"]["rendered"]}
        description = {"rendered": item["content"]["rendered"]}
        if context == "edit":
            caption["raw"] = post.excerpt
            description["raw"] = post.content
        item.pop("content", None)
        item.pop("excerpt", None)

        item.update({
            "alt_text":    post.get_meta("_wp_attachment_image_alt") or "",
            "caption":     caption,
            "description": description,
            "media_type":  "image" if post.mime_type.startswith("image/") else "file",
            "mime_type":   post.mime_type,
            "source_url":  post.guid,
            "post":        post.parent_id or None,
        })
        return item


# -----------------------------------------------------------------------------

SERIALIZERS: dict[str, type[PostsSerializer]] = {
    "posts":       PostsSerializer,
    "attachments": AttachmentsSerializer,
}


def get_serializer(post_type: PostTypeObject | None, db: AsyncSession) -> PostsSerializer | None:
    """Serialiser for *post_type*, or None for unknown types."""
    if post_type is None:
        return None
    cls = SERIALIZERS.get(post_type.rest_controller, PostsSerializer)
    return cls(post_type, db)


# -----------------------------------------------------------------------------
