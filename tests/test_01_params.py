#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for query-string parsing, sanitisers and parameter validation."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from app.core.context import Caller
from app.core.errors import RestError
from app.core.registry import default_registry
from app.services.params import (
    absint,
    get_collection_params,
    parse_collection_params,
    parse_id_list,
    parse_query_string,
    sanitize_key,
    sanitize_text_field,
    validate_status,
)

from tests.conftest import make_context


# -----------------------------------------------------------------------------

def _parse(query: list[tuple[str, str]], caller: Caller | None = None) -> dict:
    ctx = make_context(caller)
    schema = get_collection_params(ctx.registry, ctx.settings)
    return parse_collection_params(query, schema, ctx)


# ── Query string ─────────────────────────────────────────────────────────────

def test_bracket_list():
    parsed = parse_query_string([("type[]", "post"), ("type[]", "page")])
    assert parsed == {"type": ["post", "page"]}


def test_bracket_dict_and_nested_list():
    parsed = parse_query_string([
        ("filter[meta_key]", "colour"),
        ("filter[post__in][]", "3"),
        ("filter[post__in][]", "4"),
    ])
    assert parsed == {"filter": {"meta_key": "colour", "post__in": ["3", "4"]}}


def test_plain_repeated_key_keeps_last():
    assert parse_query_string([("page", "1"), ("page", "2")]) == {"page": "2"}


def test_numeric_brackets_read_as_list():
    parsed = parse_query_string([("type[1]", "page"), ("type[0]", "post")])
    assert parsed == {"type": ["post", "page"]}


def test_numeric_brackets_nested_in_filter():
    parsed = parse_query_string([
        ("filter[tax_query][relation]", "OR"),
        ("filter[tax_query][0][taxonomy]", "category"),
        ("filter[tax_query][0][terms][0]", "4"),
        ("filter[post__in][0]", "9"),
    ])
    assert parsed == {"filter": {
        "tax_query": {"relation": "OR", "0": {"taxonomy": "category", "terms": ["4"]}},
        "post__in": ["9"],
    }}


# ── Sanitisers ───────────────────────────────────────────────────────────────

def test_parse_id_list_dedupes_and_keeps_order():
    assert parse_id_list("3, 1,3 -2") == [3, 1, 2]
    assert parse_id_list(["5", "5", "x"]) == [5, 0]


def test_absint():
    assert absint("12abc") == 12
    assert absint("abc") == 0
    assert absint(-4) == 4


def test_sanitize_key_and_text():
    assert sanitize_key("Draft!") == "draft"
    assert sanitize_text_field("  <b>hello</b>   world ") == "hello world"


# ── Schema ───────────────────────────────────────────────────────────────────

def test_schema_has_taxonomy_params():
    ctx = make_context()
    schema = get_collection_params(default_registry(), ctx.settings)
    assert "categories" in schema
    assert "tags" in schema
    assert schema["per_page"].to_schema()["maximum"] == 100


def test_defaults_applied():
    params = _parse([("type[]", "post")])
    assert params["order"] == "desc"
    assert params["orderby"] == "date"
    assert params["status"] == "publish"
    assert params["page"] == 1
    assert params["per_page"] == 10
    assert params["context"] == "view"
    assert params["type"] == ["post"]


def test_id_lists_are_sanitised():
    params = _parse([("type[]", "post"), ("include", "7,3"), ("author", "2")])
    assert params["include"] == [7, 3]
    assert params["author"] == [2]


def test_undeclared_params_pass_through():
    params = _parse([("type[]", "post"), ("filter[meta_key]", "colour")])
    assert params["filter"] == {"meta_key": "colour"}


# ── Validation ───────────────────────────────────────────────────────────────

def test_per_page_out_of_range():
    with pytest.raises(RestError) as err:
        _parse([("type[]", "post"), ("per_page", "0")])
    assert err.value.status_code == 400
    assert err.value.code == "rest_invalid_param"
    assert "per_page" in err.value.data["params"]
    assert err.value.data["params"]["per_page"].startswith("per_page: ")


def test_errors_are_collected():
    with pytest.raises(RestError) as err:
        _parse([("type[]", "post"), ("orderby", "bogus"), ("author", "abc"), ("after", "yesterday")])
    assert set(err.value.data["params"]) == {"orderby", "author", "after"}


def test_date_time_accepted():
    params = _parse([("type[]", "post"), ("after", "2024-01-01T00:00:00")])
    assert params["after"] == "2024-01-01T00:00:00"


def test_date_time_with_offset_is_normalised():
    params = _parse([("type[]", "post"), ("before", "2024-01-01T10:00:00Z")])
    assert params["before"] == "2024-01-01T10:00:00+00:00"


def test_integer_params_are_cast():
    params = _parse([("type[]", "post"), ("page", "3"), ("offset", "4"), ("order", "asc")])
    assert params["page"] == 3
    assert params["offset"] == 4
    assert params["order"] == "asc"


def test_search_must_be_a_string():
    with pytest.raises(RestError) as err:
        _parse([("type[]", "post"), ("search[x]", "y")])
    assert set(err.value.data["params"]) == {"search"}


# ── Status ───────────────────────────────────────────────────────────────────

def test_status_forbidden_for_guest():
    with pytest.raises(RestError) as err:
        _parse([("type[]", "post"), ("status", "draft")])
    assert err.value.status_code == 401
    assert err.value.code == "rest_forbidden_status"
    assert err.value.data["post_type"] == "post"


def test_status_forbidden_names_first_uneditable_type():
    contributor = Caller.for_role(5, "contributor")
    with pytest.raises(RestError) as err:
        _parse([("type[]", "post"), ("type[]", "page"), ("status", "draft")], contributor)
    assert err.value.status_code == 403
    assert err.value.data["post_type"] == "page"


def test_status_allowed_for_editor():
    editor = Caller.for_role(2, "editor")
    params = _parse([("type[]", "post"), ("type[]", "page"), ("status", "draft")], editor)
    assert params["status"] == "draft"


def test_unknown_type_is_not_editable():
    ctx = make_context(Caller.for_role(1, "administrator"))
    with pytest.raises(RestError) as err:
        validate_status("draft", ["post", "slideshow"], ctx)
    assert err.value.data["post_type"] == "slideshow"


def test_status_check_skipped_without_type_list():
    ctx = make_context()
    validate_status("draft", None, ctx)
    validate_status("draft", "post", ctx)
