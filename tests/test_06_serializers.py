#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for item serialisation and read visibility."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from datetime import datetime

import pytest

from app.core.context import Caller
from app.core.registry import PostTypeObject, default_registry
from app.models import Post, Term
from app.services.serializers import (
    EXCERPT_MORE,
    AttachmentsSerializer,
    PostsSerializer,
    generate_excerpt,
    get_serializer,
)

from tests.conftest import make_context, make_post


# -----------------------------------------------------------------------------

REGISTRY = default_registry()


def _post(**fields) -> Post:
    values = {
        "id": 7,
        "post_type": "post",
        "status": "publish",
        "title": "Title",
        "slug": "title",
        "content": "<p>Body text</p>",
        "excerpt": "",
        "author_id": 3,
        "parent_id": 0,
        "menu_order": 0,
        "mime_type": "",
        "guid": "",
        "sticky": False,
        "date": datetime(2024, 5, 1, 10, 30, 0),
        "modified": datetime(2024, 5, 2, 11, 0, 0),
    }
    values.update(fields)
    return Post(**values)


def _serializer(post_type: str) -> PostsSerializer:
    return get_serializer(REGISTRY.get_post_type_object(post_type), None)


# ── Excerpts ─────────────────────────────────────────────────────────────────

def test_excerpt_is_trimmed_to_55_words():
    content = "<p>" + " ".join(f"w{n}" for n in range(60)) + "</p>"
    excerpt = generate_excerpt(content)
    assert excerpt.endswith(EXCERPT_MORE)
    assert excerpt.split(" [")[0].split() == [f"w{n}" for n in range(55)]


def test_short_excerpt_untouched():
    assert generate_excerpt("<b>Hello</b> there") == "Hello there"


# ── Shape ────────────────────────────────────────────────────────────────────

def test_post_item_view():
    post = _post(terms=[Term(id=4, taxonomy="category", name="News", slug="news")])
    item = _serializer("post").prepare_item(post, "view", make_context())
    assert item["id"] == 7
    assert item["date"] == "2024-05-01T10:30:00"
    assert item["title"] == {"rendered": "Title"}
    assert item["content"] == {"rendered": "<p>Body text</p>", "protected": False}
    assert item["excerpt"]["rendered"] == "Body text"
    assert item["link"] == "http://localhost:8000/?p=7"
    assert item["categories"] == [4]
    assert item["tags"] == []
    assert item["sticky"] is False
    assert "parent" not in item
    assert "raw" not in item["title"]


def test_page_item_has_hierarchy_fields():
    item = _serializer("page").prepare_item(_post(post_type="page", parent_id=2, menu_order=5), "view", make_context())
    assert item["parent"] == 2
    assert item["menu_order"] == 5
    assert "sticky" not in item
    assert "categories" not in item


def test_edit_context_adds_raw_values():
    item = _serializer("post").prepare_item(_post(excerpt="Short"), "edit", make_context())
    assert item["title"]["raw"] == "Title"
    assert item["content"]["raw"] == "<p>Body text</p>"
    assert item["excerpt"] == {"rendered": "Short", "raw": "Short", "protected": False}


def test_embed_context_is_reduced():
    item = _serializer("post").prepare_item(_post(), "embed", make_context())
    assert set(item) == {"id", "date", "slug", "type", "link", "title", "excerpt", "author"}


def test_content_hook():
    ctx = make_context()
    ctx.hooks.add_filter("the_content", lambda content, post: content.upper())
    item = _serializer("post").prepare_item(_post(), "view", ctx)
    assert item["content"]["rendered"] == "<P>BODY TEXT</P>"


def test_attachment_item():
    post = _post(post_type="attachment", status="inherit", mime_type="application/pdf",
                 guid="http://localhost:8000/uploads/manual.pdf", excerpt="Manual", parent_id=0)
    item = _serializer("attachment").prepare_item(post, "view", make_context())
    assert item["media_type"] == "file"
    assert item["caption"] == {"rendered": "Manual"}
    assert item["post"] is None
    assert item["link"] == "http://localhost:8000/?attachment_id=7"
    assert "content" not in item and "excerpt" not in item


# ── Dispatch ─────────────────────────────────────────────────────────────────

def test_get_serializer_dispatch():
    assert isinstance(_serializer("attachment"), AttachmentsSerializer)
    assert type(_serializer("page")) is PostsSerializer
    assert get_serializer(None, None) is None
    odd = PostTypeObject("odd", rest_controller="something-else")
    assert type(get_serializer(odd, None)) is PostsSerializer


# ── Visibility ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_published_is_public():
    assert await _serializer("post").check_read_permission(_post(), make_context())


@pytest.mark.asyncio
async def test_private_needs_capability():
    post = _post(status="private")
    serializer = _serializer("post")
    assert not await serializer.check_read_permission(post, make_context(Caller.for_role(3, "author")))
    assert await serializer.check_read_permission(post, make_context(Caller.for_role(9, "editor")))


@pytest.mark.asyncio
async def test_draft_visible_to_its_author_only():
    post = _post(status="draft", author_id=3)
    serializer = _serializer("post")
    assert await serializer.check_read_permission(post, make_context(Caller.for_role(3, "contributor")))
    assert not await serializer.check_read_permission(post, make_context(Caller.for_role(4, "contributor")))
    assert not await serializer.check_read_permission(post, make_context())


@pytest.mark.asyncio
async def test_hidden_type_is_never_visible():
    hidden = PostTypeObject("internal", show_in_rest=False)
    serializer = get_serializer(hidden, None)
    assert not await serializer.check_read_permission(_post(post_type="internal"), make_context())


@pytest.mark.asyncio
async def test_inherit_follows_parent(db_session):
    draft = await make_post(db_session, "Draft parent", status="draft")
    live = await make_post(db_session, "Live parent")
    serializer = get_serializer(REGISTRY.get_post_type_object("attachment"), db_session)
    ctx = make_context()

    assert not await serializer.check_read_permission(_post(post_type="attachment", status="inherit", parent_id=draft.id), ctx)
    assert await serializer.check_read_permission(_post(post_type="attachment", status="inherit", parent_id=live.id), ctx)
    assert await serializer.check_read_permission(_post(post_type="attachment", status="inherit", parent_id=0), ctx)


@pytest.mark.asyncio
async def test_cyclic_parent_chain_is_unreadable(db_session, caplog):
    first = await make_post(db_session, "First", post_type="attachment", status="inherit")
    second = await make_post(db_session, "Second", post_type="attachment", status="inherit", parent_id=first.id)
    first.parent_id = second.id
    looped = await make_post(db_session, "Looped", post_type="attachment", status="inherit")
    looped.parent_id = looped.id
    await db_session.commit()

    serializer = get_serializer(REGISTRY.get_post_type_object("attachment"), db_session)
    ctx = make_context()
    with caplog.at_level(logging.WARNING, logger="app.services.serializers"):
        assert not await serializer.check_read_permission(first, ctx)
        assert not await serializer.check_read_permission(looped, ctx)
    assert "cyclic parent chain" in caplog.text
