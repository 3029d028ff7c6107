#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for query execution, total reconciliation and response helpers."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging

import pytest

from app.services.collection import (
    QueryResult,
    execute_query,
    filter_fields,
    page_link,
)

from tests.conftest import make_context, make_post


# ── max_pages ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("total, per_page, expected", [
    (0, 10, 0),
    (1, 10, 1),
    (10, 10, 1),
    (11, 10, 2),
    (3, 2, 2),
    (7, -1, 1),
    (0, -1, 0),
])
def test_max_pages(total, per_page, expected):
    assert QueryResult(total=total, per_page=per_page).max_pages == expected


# ── Reconciliation ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_out_of_range_page_is_recounted(db_session, caplog):
    for n in range(5):
        await make_post(db_session, f"P{n}")

    args = {"post_type": ["post"], "posts_per_page": 10, "paged": 3}
    with caplog.at_level(logging.INFO, logger="app.services.collection"):
        result = await execute_query(db_session, args, make_context())

    assert result.posts == []
    assert result.total == 5
    assert result.page == 3
    assert result.max_pages == 1
    assert "out of range" in caplog.text


@pytest.mark.asyncio
async def test_in_range_page_uses_first_count(db_session, monkeypatch):
    for n in range(3):
        await make_post(db_session, f"P{n}")

    from app.services import collection
    calls = []
    original = collection.PostQuery.query

    async def counting(self, query_vars):
        calls.append(dict(query_vars))
        return await original(self, query_vars)

    monkeypatch.setattr(collection.PostQuery, "query", counting)
    result = await execute_query(
        db_session, {"post_type": ["post"], "posts_per_page": 2, "paged": 1}, make_context(),
    )
    assert len(calls) == 1
    assert result.total == 3
    assert result.max_pages == 2


@pytest.mark.asyncio
async def test_empty_store_without_paged_runs_once(db_session, monkeypatch):
    from app.services import collection
    calls = []
    original = collection.PostQuery.query

    async def counting(self, query_vars):
        calls.append(query_vars)
        return await original(self, query_vars)

    monkeypatch.setattr(collection.PostQuery, "query", counting)
    result = await execute_query(db_session, {"post_type": ["post"], "posts_per_page": 10}, make_context())
    assert len(calls) == 1
    assert result.total == 0
    assert result.page == 1


# ── Links ────────────────────────────────────────────────────────────────────

def test_page_link_replaces_existing_page():
    pairs = [("type[]", "post"), ("page", "1"), ("per_page", "2")]
    link = page_link("http://test/wp-json/wp/v2/multiple-post-type", pairs, 2)
    assert link == "http://test/wp-json/wp/v2/multiple-post-type?type[]=post&page=2&per_page=2"


def test_page_link_appends_page():
    link = page_link("http://x/r", [("type[]", "page")], 3)
    assert link == "http://x/r?type[]=page&page=3"


# ── _fields ──────────────────────────────────────────────────────────────────

def test_filter_fields_with_nested_paths():
    item = {"id": 1, "title": {"rendered": "Hi", "raw": "Hi"}, "slug": "hi"}
    assert filter_fields(item, ["id", "title.rendered"]) == {"id": 1, "title": {"rendered": "Hi"}}
    assert filter_fields(item, ["missing", "slug"]) == {"slug": "hi"}
    assert filter_fields(item, ["title", "title.rendered"])["title"] == {"rendered": "Hi", "raw": "Hi"}
