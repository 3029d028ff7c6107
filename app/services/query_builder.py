#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Query builder
=============
Turns sanitised request params into the query-args dict handed to
``PostQuery``.

Only vars in the allowed set reach the query.  The set is recomputed for
every request from three lists:

* public vars — any caller;
* private vars — only when the caller may edit *every* requested post type;
* extension vars — vars this endpoint introduces itself, always allowed.

Taxonomy clauses are appended after allow-listing, one per REST-visible
taxonomy whose base param was supplied.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import copy
import logging
from typing import Any

from fastapi import status

from app.core.context import QueryContext
from app.core.errors import RestError


# -----------------------------------------------------------------------------

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Request param -> query var
# -----------------------------------------------------------------------------

QUERY_ARG_MAP: dict[str, str] = {
    "author":         "author__in",
    "author_exclude": "author__not_in",
    "menu_order":     "menu_order",
    "offset":         "offset",
    "order":          "order",
    "orderby":        "orderby",
    "page":           "paged",
    "include":        "post__in",
    "exclude":        "post__not_in",
    "per_page":       "posts_per_page",
    "slug":           "name",
    "type":           "post_type",
    "parent":         "post_parent__in",
    "parent_exclude": "post_parent__not_in",
    "status":         "post_status",
    "search":         "s",
    "_fields":        "_fields",
    "acf_format":     "acf_format",
}


# -----------------------------------------------------------------------------
# Allow-lists
# -----------------------------------------------------------------------------

PUBLIC_QUERY_VARS: tuple[str, ...] = (
    "m", "p", "posts", "w", "cat", "withcomments", "withoutcomments", "s",
    "search", "exact", "sentence", "calendar", "page", "paged", "more", "tb",
    "pb", "author", "order", "orderby", "year", "monthnum", "day", "hour",
    "minute", "second", "name", "category_name", "tag", "feed", "author_name",
    "pagename", "page_id", "error", "attachment", "attachment_id", "subpost",
    "subpost_id", "preview", "robots", "favicon", "taxonomy", "term", "cpage",
    "post_type", "embed",
)

PRIVATE_QUERY_VARS: tuple[str, ...] = (
    "offset", "posts_per_page", "posts_per_archive_page", "showposts",
    "nopaging", "post_type", "post_status", "category__in",
    "category__not_in", "category__and", "tag__in", "tag__not_in",
    "tag__and", "tag_slug__in", "tag_slug__and", "tag_id", "post_mime_type",
    "perm", "comments_per_page", "post__in", "post__not_in", "post_parent",
    "post_parent__in", "post_parent__not_in", "title", "fields",
)

EXTENSION_QUERY_VARS: tuple[str, ...] = (
    "author__in", "author__not_in", "ignore_sticky_posts", "menu_order",
    "offset", "post__in", "post__not_in", "post_parent", "post_parent__in",
    "post_parent__not_in", "posts_per_page", "date_query", "meta_query",
    "meta_key", "meta_value", "meta_compare", "_fields", "acf_format",
)

TYPE_ERROR_MESSAGE = (
    "Type Param is a required parameter and needs to be an array: "
    "&type[]=post&type[]=page&type[]=slideshow"
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Public API
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def build_query_args(params: dict[str, Any], ctx: QueryContext) -> dict[str, Any]:
    """Build the structured query for a collection request.

    Raises ``RestError`` (422) when ``type`` is missing or not a list.
    """
    args = {key: params.get(name) for name, key in QUERY_ARG_MAP.items()}

    post_types = args["post_type"]
    if not post_types or not isinstance(post_types, list):
        raise RestError(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "type_need_to_be_array",
            TYPE_ERROR_MESSAGE,
        )

    late = {"date_query": _date_query(params)}
    override = params.get("filter")
    if isinstance(override, dict):
        late.update(copy.deepcopy(override))
    late.pop("filter", None)

    bypass = ctx.settings.filter_override_policy == "bypass"
    if not bypass:
        args.update(late)

    _normalize_post_type(args)
    args = ctx.hooks.apply_filters("multiple_post_type_query", args, params)

    query_args = allow_query_vars(args, post_types, ctx)
    if bypass:
        query_args.update(late)
        _normalize_post_type(query_args)
    _finalize(query_args)

    _append_tax_query(query_args, params, ctx)

    log.debug("multiple-post-type query: %r", query_args)
    return query_args


# -----------------------------------------------------------------------------

def get_allowed_query_vars(post_types: list[str], ctx: QueryContext) -> set[str]:
    """Query vars this caller may set for a request on *post_types*."""
    valid = list(ctx.hooks.apply_filters("public_query_vars", list(PUBLIC_QUERY_VARS)))

    if ctx.can_edit_all(post_types):
        valid += ctx.hooks.apply_filters("private_query_vars", list(PRIVATE_QUERY_VARS))

    valid += EXTENSION_QUERY_VARS
    return set(ctx.hooks.apply_filters("rest_query_vars", valid))


# -----------------------------------------------------------------------------

def allow_query_vars(args: dict[str, Any], post_types: list[str], ctx: QueryContext) -> dict[str, Any]:
    """Keep allowed, non-None vars; each passes through ``query_var:<name>``."""
    valid = get_allowed_query_vars(post_types, ctx)
    query_args: dict[str, Any] = {}
    for var, value in args.items():
        if var not in valid or value is None:
            continue
        query_args[var] = ctx.hooks.apply_filters(f"query_var:{var}", value)

    dropped = sorted(k for k, v in args.items() if v is not None and k not in valid)
    if dropped:
        log.debug("dropped disallowed query vars: %s", ", ".join(dropped))
    return query_args


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _date_query(params: dict[str, Any]) -> list[dict[str, Any]]:
    clause = {}
    if params.get("before") is not None:
        clause["before"] = params["before"]
    if params.get("after") is not None:
        clause["after"] = params["after"]
    return [clause] if clause else []


def _normalize_post_type(args: dict[str, Any]) -> None:
    post_type = args.get("post_type")
    if post_type is not None and not isinstance(post_type, list):
        args["post_type"] = [post_type]


def _finalize(query_args: dict[str, Any]) -> None:
    # Sticky ordering only survives an explicit opt-out without "post".
    post_types = query_args.get("post_type") or []
    if "post" in post_types or "ignore_sticky_posts" not in query_args:
        query_args["ignore_sticky_posts"] = True

    if query_args.get("orderby") == "include":
        query_args["orderby"] = "post__in"


def _append_tax_query(query_args: dict[str, Any], params: dict[str, Any], ctx: QueryContext) -> None:
    taxonomies = ctx.registry.get_object_taxonomies(
        query_args.get("post_type") or [], show_in_rest=True,
    )
    for taxonomy in taxonomies:
        terms = params.get(taxonomy.base)
        if not terms:
            continue
        clause = {
            "taxonomy": taxonomy.name,
            "field": "term_id",
            "terms": terms,
            "include_children": False,
        }
        tax_query = query_args.get("tax_query")
        if isinstance(tax_query, dict):
            tax_query[_next_clause_key(tax_query)] = clause
        elif isinstance(tax_query, list):
            tax_query.append(clause)
        else:
            query_args["tax_query"] = [clause]


def _next_clause_key(tax_query: dict[str, Any]) -> str:
    numeric = [int(key) for key in tax_query if str(key).isdigit()]
    return str(max(numeric) + 1 if numeric else 0)


# -----------------------------------------------------------------------------
