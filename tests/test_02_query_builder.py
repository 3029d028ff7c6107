#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for turning request params into query args."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from app.core.context import Caller
from app.core.errors import RestError
from app.core.hooks import HookRegistry
from app.core.registry import Registry
from app.services.query_builder import (
    TYPE_ERROR_MESSAGE,
    build_query_args,
    get_allowed_query_vars,
)

from tests.conftest import make_context


# -----------------------------------------------------------------------------

def _params(**overrides) -> dict:
    params = {
        "type": ["post"],
        "order": "desc",
        "orderby": "date",
        "status": "publish",
        "page": 1,
        "per_page": 10,
        "context": "view",
        "author": [],
        "author_exclude": [],
        "include": [],
        "exclude": [],
        "parent": [],
        "parent_exclude": [],
        "categories": [],
        "tags": [],
    }
    params.update(overrides)
    return params


EDITOR = Caller.for_role(2, "editor")


# ── type ─────────────────────────────────────────────────────────────────────

def test_missing_type_is_rejected():
    params = _params()
    del params["type"]
    with pytest.raises(RestError) as err:
        build_query_args(params, make_context())
    assert err.value.status_code == 422
    assert err.value.code == "type_need_to_be_array"
    assert err.value.message == TYPE_ERROR_MESSAGE


def test_scalar_type_is_rejected():
    with pytest.raises(RestError) as err:
        build_query_args(_params(type="post"), make_context())
    assert err.value.code == "type_need_to_be_array"


# ── Mapping ──────────────────────────────────────────────────────────────────

def test_params_are_mapped_to_query_vars():
    args = build_query_args(_params(type=["post", "page"], include=[4, 2], page=2, search="hello"),
                            make_context())
    assert args["post_type"] == ["post", "page"]
    assert args["post__in"] == [4, 2]
    assert args["paged"] == 2
    assert args["s"] == "hello"
    assert args["posts_per_page"] == 10


def test_orderby_include_becomes_post_in():
    args = build_query_args(_params(orderby="include", include=[3]), make_context())
    assert args["orderby"] == "post__in"


def test_date_query_clause():
    args = build_query_args(_params(after="2024-01-01T00:00:00"), make_context())
    assert args["date_query"] == [{"after": "2024-01-01T00:00:00"}]

    args = build_query_args(_params(), make_context())
    assert args["date_query"] == []


def test_none_values_never_survive():
    args = build_query_args(_params(), make_context())
    assert "menu_order" not in args
    assert "offset" not in args
    assert all(value is not None for value in args.values())


# ── Sticky posts ─────────────────────────────────────────────────────────────

def test_sticky_ignored_when_post_requested():
    args = build_query_args(_params(filter={"ignore_sticky_posts": "0"}), make_context())
    assert args["ignore_sticky_posts"] is True


def test_sticky_ignored_when_unset():
    args = build_query_args(_params(type=["page"]), make_context())
    assert args["ignore_sticky_posts"] is True


def test_sticky_opt_out_kept_without_post():
    args = build_query_args(_params(type=["page"], filter={"ignore_sticky_posts": "0"}), make_context())
    assert args["ignore_sticky_posts"] == "0"


# ── Allow-list ───────────────────────────────────────────────────────────────

def test_top_level_meta_key_never_reaches_query():
    args = build_query_args(_params(meta_key="colour"), make_context())
    assert "meta_key" not in args


def test_filter_extension_key_survives():
    args = build_query_args(_params(filter={"meta_key": "colour"}), make_context())
    assert args["meta_key"] == "colour"


def test_private_vars_dropped_for_guest():
    args = build_query_args(_params(filter={"post_status": "draft", "post_mime_type": "image"}),
                            make_context())
    assert "post_status" not in args
    assert "post_mime_type" not in args


def test_private_vars_kept_for_editor():
    args = build_query_args(_params(filter={"post_status": "draft"}), make_context(EDITOR))
    assert args["post_status"] == "draft"


def test_status_param_only_reaches_query_for_editors():
    assert "post_status" not in build_query_args(_params(), make_context())
    args = build_query_args(_params(status="draft"), make_context(EDITOR))
    assert args["post_status"] == "draft"


def test_private_vars_need_every_type_editable():
    contributor = Caller.for_role(3, "contributor")
    allowed = get_allowed_query_vars(["post"], make_context(contributor))
    assert "post_status" in allowed
    allowed = get_allowed_query_vars(["post", "page"], make_context(contributor))
    assert "post_status" not in allowed
    assert "author__in" in allowed


# ── Override policy ──────────────────────────────────────────────────────────

def test_allow_list_policy_filters_override():
    ctx = make_context(filter_override_policy="allow_list")
    args = build_query_args(_params(filter={"post_status": "draft", "posts_per_page": -1}), ctx)
    assert "post_status" not in args
    assert args["posts_per_page"] == -1


def test_bypass_policy_skips_allow_list_for_override():
    ctx = make_context(filter_override_policy="bypass")
    args = build_query_args(_params(filter={"post_status": "draft", "posts_per_page": -1}), ctx)
    assert args["post_status"] == "draft"
    assert args["posts_per_page"] == -1
    assert args["date_query"] == []


def test_bypass_policy_normalises_scalar_post_type():
    ctx = make_context(filter_override_policy="bypass")
    args = build_query_args(_params(filter={"post_type": "page"}), ctx)
    assert args["post_type"] == ["page"]


# ── Taxonomies ───────────────────────────────────────────────────────────────

def _shared_registry() -> Registry:
    registry = Registry()
    registry.register_post_type("post")
    registry.register_post_type("news")
    registry.register_taxonomy("category", ["post", "news"], rest_base="categories", hierarchical=True)
    registry.register_taxonomy("region", ["news"], show_in_rest=False)
    return registry


def test_shared_taxonomy_yields_one_clause():
    ctx = make_context(registry=_shared_registry())
    args = build_query_args(_params(type=["post", "news"], categories=[3]), ctx)
    assert args["tax_query"] == [{
        "taxonomy": "category",
        "field": "term_id",
        "terms": [3],
        "include_children": False,
    }]


def test_no_tax_query_without_terms():
    args = build_query_args(_params(), make_context())
    assert "tax_query" not in args


def test_tax_clause_appended_to_override_tax_query():
    ctx = make_context(filter_override_policy="bypass")
    params = _params(categories=[2], filter={"tax_query": [{"taxonomy": "post_tag", "terms": [1]}]})
    args = build_query_args(params, ctx)
    assert [c["taxonomy"] for c in args["tax_query"]] == ["post_tag", "category"]
    assert len(params["filter"]["tax_query"]) == 1


def test_tax_clause_appended_to_dict_tax_query():
    ctx = make_context(filter_override_policy="bypass")
    params = _params(tags=[9], filter={"tax_query": {"relation": "OR", "0": {"taxonomy": "category", "terms": [1]}}})
    args = build_query_args(params, ctx)
    assert args["tax_query"]["relation"] == "OR"
    assert args["tax_query"]["1"]["taxonomy"] == "post_tag"


# ── Hooks ────────────────────────────────────────────────────────────────────

def test_query_hook_runs_before_allow_list():
    hooks = HookRegistry()

    def add_vars(args, params):
        args["meta_key"] = "featured"
        args["post_mime_type"] = "image"
        return args

    hooks.add_filter("multiple_post_type_query", add_vars)
    args = build_query_args(_params(), make_context(hooks=hooks))
    assert args["meta_key"] == "featured"
    assert "post_mime_type" not in args


def test_query_var_hook_rewrites_value():
    hooks = HookRegistry()
    hooks.add_filter("query_var:posts_per_page", lambda value: min(value, 5))
    args = build_query_args(_params(per_page=50), make_context(hooks=hooks))
    assert args["posts_per_page"] == 5


def test_rest_query_vars_hook_can_restrict():
    hooks = HookRegistry()
    hooks.add_filter("rest_query_vars", lambda valid: [v for v in valid if v != "s"])
    args = build_query_args(_params(search="x"), make_context(hooks=hooks))
    assert "s" not in args


# ── Idempotence ──────────────────────────────────────────────────────────────

@pytest.mark.parametrize("policy", ["allow_list", "bypass"])
def test_build_is_idempotent(policy):
    ctx = make_context(filter_override_policy=policy)
    params = _params(categories=[2], filter={"meta_key": "colour", "tax_query": [{"taxonomy": "post_tag", "terms": [1]}]})
    assert build_query_args(params, ctx) == build_query_args(params, ctx)
