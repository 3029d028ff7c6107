#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Post query engine
=================
Runs a query-args dict against the ``posts`` table and its metadata and
taxonomy tables.  All conditions are AND-combined; ``tax_query``,
``meta_query`` and ``date_query`` carry their own ``relation``.

Supported vars
--------------
post_type, post_status, p, post__in, post__not_in, post_parent,
post_parent__in, post_parent__not_in, author, author_name, author__in,
author__not_in, name, title, menu_order, post_mime_type, s, exact, sentence,
date_query, tax_query, cat, category_name, category__in, category__not_in,
category__and, tag, tag_id, tag__in, tag__not_in, tag__and, tag_slug__in,
tag_slug__and, taxonomy + term, meta_key, meta_value, meta_compare,
meta_query, orderby, order, posts_per_page, showposts, nopaging, paged,
offset, ignore_sticky_posts.

``found_posts`` is only counted when the requested window returned rows;
a page past the end therefore reports 0.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Float, and_, case, cast, exists, false, func, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.registry import Registry
from app.models import Post, PostMeta, Term, User, term_relationships


# -----------------------------------------------------------------------------

log = logging.getLogger(__name__)

HIDDEN_FROM_ANY = ("trash", "auto-draft")
NUMERIC_META_TYPES = {"NUMERIC", "SIGNED", "UNSIGNED", "DECIMAL"}

_RESPONSE_VARS = {"_fields", "acf_format", "fields"}

SUPPORTED_VARS = {
    "post_type", "post_status", "p", "post__in", "post__not_in",
    "post_parent", "post_parent__in", "post_parent__not_in", "author",
    "author_name", "author__in", "author__not_in", "name", "title",
    "menu_order", "post_mime_type", "s", "exact", "sentence", "date_query",
    "tax_query", "cat", "category_name", "category__in", "category__not_in",
    "category__and", "tag", "tag_id", "tag__in", "tag__not_in", "tag__and",
    "tag_slug__in", "tag_slug__and", "taxonomy", "term", "meta_key",
    "meta_value", "meta_compare", "meta_query", "orderby", "order",
    "posts_per_page", "showposts", "nopaging", "paged", "offset",
    "ignore_sticky_posts",
} | _RESPONSE_VARS


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Value coercion
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _int(value: Any, default: int | None = None) -> int | None:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _int_list(value: Any) -> list[int]:
    return [n for n in (_int(v) for v in _str_list(value)) if n is not None]


def _str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, dict):
        value = list(value.values())
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [v for v in re.split(r"[\s,]+", str(value)) if v]


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _clause_list(value: Any) -> tuple[list[dict[str, Any]], str]:
    """Split a list / dict clause container into (clauses, relation)."""
    relation = "AND"
    if isinstance(value, dict):
        relation = str(value.get("relation", "AND")).upper()
        items = [v for k, v in value.items() if k != "relation"]
        if items and not any(isinstance(v, dict) for v in items):
            items = [{k: v for k, v in value.items() if k != "relation"}]
    elif isinstance(value, list):
        items = value
    else:
        return [], relation
    return [item for item in items if isinstance(item, dict)], relation


def _combine(parts: list[Any], relation: str) -> Any:
    if not parts:
        return None
    return or_(*parts) if relation == "OR" else and_(*parts)


def _parse_date(value: Any) -> datetime | None:
    if isinstance(value, dict):
        year = _int(value.get("year"))
        if year is None:
            return None
        return datetime(year, _int(value.get("month"), 1), _int(value.get("day"), 1))
    try:
        parsed = datetime.fromisoformat(str(value).strip())
    except ValueError:
        log.warning("ignoring unparseable date in date_query: %r", value)
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _like_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PostQuery
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class PostQuery:
    """One query against the content store.

    After ``await query(args)``: ``posts`` holds the current page,
    ``found_posts`` the total across all pages, ``max_num_pages`` the
    page count and ``per_page`` the page size applied (-1 when unlimited).
    A ``posts_per_page`` of 0 returns every match on a single page.
    """

    def __init__(self, db: AsyncSession, registry: Registry, posts_per_page: int = 10) -> None:
        self.db = db
        self.registry = registry
        self.default_per_page = posts_per_page
        self.per_page = posts_per_page
        self.query_vars: dict[str, Any] = {}
        self.posts: list[Post] = []
        self.post_count = 0
        self.found_posts = 0
        self.max_num_pages = 0

    # ── Entry point ──────────────────────────────────────────────────────────

    async def query(self, query_vars: dict[str, Any]) -> list[Post]:
        self.query_vars = qv = dict(query_vars)

        unsupported = sorted(set(qv) - SUPPORTED_VARS)
        if unsupported:
            log.debug("ignoring unsupported query vars: %s", ", ".join(unsupported))

        conditions = await self._where(qv)
        self.per_page = per_page = self._per_page(qv)
        page = self._page(qv)

        stmt = (
            select(Post)
            .where(*conditions)
            .order_by(*self._order_by(qv))
            .options(selectinload(Post.terms), selectinload(Post.meta))
        )
        if per_page > 0:
            stmt = stmt.offset(self._start(qv, page, per_page)).limit(per_page)

        posts = list((await self.db.execute(stmt)).scalars().all())

        if not _truthy(qv.get("ignore_sticky_posts")) and page <= 1:
            posts.sort(key=lambda p: not p.sticky)

        self.posts = posts
        self.post_count = len(posts)
        self.found_posts = 0
        self.max_num_pages = 0

        if posts:
            if per_page > 0:
                count_stmt = select(func.count()).select_from(Post).where(*conditions)
                self.found_posts = (await self.db.execute(count_stmt)).scalar_one()
                self.max_num_pages = math.ceil(self.found_posts / per_page)
            else:
                self.found_posts = len(posts)
                self.max_num_pages = 1

        return posts

    # ── Pagination ───────────────────────────────────────────────────────────

    def _per_page(self, qv: dict[str, Any]) -> int:
        if _truthy(qv.get("nopaging")):
            return -1
        raw = qv.get("posts_per_page", qv.get("showposts"))
        value = _int(raw, self.default_per_page) if raw not in (None, "") else self.default_per_page
        if value == 0:
            return -1
        if value < -1:
            return abs(value)
        return value

    @staticmethod
    def _page(qv: dict[str, Any]) -> int:
        return max(1, _int(qv.get("paged"), 1) or 1)

    @staticmethod
    def _start(qv: dict[str, Any], page: int, per_page: int) -> int:
        offset = _int(qv.get("offset"))
        if offset is not None:
            return abs(offset)
        return (page - 1) * per_page

    # ── WHERE ────────────────────────────────────────────────────────────────

    def _post_types(self, qv: dict[str, Any]) -> list[str]:
        post_types = _str_list(qv.get("post_type")) or ["post"]
        if "any" in post_types:
            return self.registry.get_post_types(exclude_from_search=False)
        return post_types

    async def _where(self, qv: dict[str, Any]) -> list[Any]:
        post_types = self._post_types(qv)
        conditions: list[Any] = [
            Post.post_type.in_(post_types),
            self._status_condition(qv, post_types),
        ]

        p = _int(qv.get("p"))
        if p:
            conditions.append(Post.id == p)
        if ids := _int_list(qv.get("post__in")):
            conditions.append(Post.id.in_(ids))
        if ids := _int_list(qv.get("post__not_in")):
            conditions.append(Post.id.not_in(ids))

        parent = _int(qv.get("post_parent"))
        if parent is not None:
            conditions.append(Post.parent_id == parent)
        if ids := _int_list(qv.get("post_parent__in")):
            conditions.append(Post.parent_id.in_(ids))
        if ids := _int_list(qv.get("post_parent__not_in")):
            conditions.append(Post.parent_id.not_in(ids))

        conditions.extend(self._author_conditions(qv))

        if qv.get("name"):
            conditions.append(Post.slug == str(qv["name"]))
        if qv.get("title"):
            conditions.append(Post.title == str(qv["title"]))

        menu_order = _int(qv.get("menu_order"))
        if menu_order is not None:
            conditions.append(Post.menu_order == menu_order)

        if qv.get("post_mime_type"):
            conditions.append(self._mime_condition(qv["post_mime_type"]))

        if qv.get("s"):
            conditions.extend(self._search_conditions(qv))

        date_condition = self._date_condition(qv.get("date_query"))
        if date_condition is not None:
            conditions.append(date_condition)

        conditions.extend(await self._tax_conditions(qv))

        meta_condition = self._meta_condition(qv)
        if meta_condition is not None:
            conditions.append(meta_condition)

        return conditions

    # -------------------------------------------------------------------------

    @staticmethod
    def _status_condition(qv: dict[str, Any], post_types: list[str]) -> Any:
        statuses = _str_list(qv.get("post_status"))
        if not statuses:
            statuses = ["publish"]
            if "attachment" in post_types:
                statuses.append("inherit")
        if "any" in statuses:
            return Post.status.not_in(HIDDEN_FROM_ANY)
        return Post.status.in_(statuses)

    @staticmethod
    def _author_conditions(qv: dict[str, Any]) -> list[Any]:
        conditions = []
        authors = _int_list(qv.get("author"))
        include = [a for a in authors if a > 0]
        exclude = [-a for a in authors if a < 0]
        if include:
            conditions.append(Post.author_id.in_(include))
        if exclude:
            conditions.append(Post.author_id.not_in(exclude))
        if qv.get("author_name"):
            conditions.append(Post.author_id.in_(
                select(User.id).where(User.username == str(qv["author_name"]))
            ))
        if ids := _int_list(qv.get("author__in")):
            conditions.append(Post.author_id.in_(ids))
        if ids := _int_list(qv.get("author__not_in")):
            conditions.append(Post.author_id.not_in(ids))
        return conditions

    @staticmethod
    def _mime_condition(value: Any) -> Any:
        parts = []
        for mime in _str_list(value):
            if "/" in mime:
                parts.append(Post.mime_type == mime)
            else:
                parts.append(Post.mime_type.like(f"{_like_escape(mime)}/%", escape="\\"))
        return or_(*parts) if parts else false()

    @staticmethod
    def _search_conditions(qv: dict[str, Any]) -> list[Any]:
        text = str(qv["s"]).strip()
        if _truthy(qv.get("sentence")):
            terms = [text]
        else:
            terms = [t.strip('"') for t in re.findall(r'"[^"]+"|\S+', text)]

        exact = _truthy(qv.get("exact"))
        conditions = []
        for term in terms:
            negate = term.startswith("-") and len(term) > 1
            if negate:
                term = term[1:]
            pattern = _like_escape(term) if exact else f"%{_like_escape(term)}%"
            match = or_(
                Post.title.ilike(pattern, escape="\\"),
                Post.excerpt.ilike(pattern, escape="\\"),
                Post.content.ilike(pattern, escape="\\"),
            )
            conditions.append(not_(match) if negate else match)
        return conditions

    # ── date_query ───────────────────────────────────────────────────────────

    _DATE_COLUMNS = {
        "date": Post.date,
        "post_date": Post.date,
        "modified": Post.modified,
        "post_modified": Post.modified,
    }

    def _date_condition(self, date_query: Any) -> Any:
        clauses, relation = _clause_list(date_query)
        parts = []
        for clause in clauses:
            column = self._DATE_COLUMNS.get(str(clause.get("column", "date")), Post.date)
            inclusive = _truthy(clause.get("inclusive"))
            bounds = []
            if clause.get("after") is not None:
                after = _parse_date(clause["after"])
                if after is not None:
                    bounds.append(column >= after if inclusive else column > after)
            if clause.get("before") is not None:
                before = _parse_date(clause["before"])
                if before is not None:
                    bounds.append(column <= before if inclusive else column < before)
            if bounds:
                parts.append(and_(*bounds))
        return _combine(parts, relation)

    # ── Taxonomies ───────────────────────────────────────────────────────────

    async def _tax_conditions(self, qv: dict[str, Any]) -> list[Any]:
        conditions = []

        clauses, relation = _clause_list(qv.get("tax_query"))
        parts = [await self._tax_clause(c) for c in clauses]
        combined = _combine([p for p in parts if p is not None], relation)
        if combined is not None:
            conditions.append(combined)

        for clause in self._shorthand_tax_clauses(qv):
            condition = await self._tax_clause(clause)
            if condition is not None:
                conditions.append(condition)
        return conditions

    @staticmethod
    def _shorthand_tax_clauses(qv: dict[str, Any]) -> list[dict[str, Any]]:
        clauses: list[dict[str, Any]] = []

        def add(taxonomy: str, terms: list, field: str = "term_id",
                operator: str = "IN", include_children: bool = True) -> None:
            if terms:
                clauses.append({
                    "taxonomy": taxonomy, "terms": terms, "field": field,
                    "operator": operator, "include_children": include_children,
                })

        cats = _int_list(qv.get("cat"))
        add("category", [c for c in cats if c > 0])
        add("category", [-c for c in cats if c < 0], operator="NOT IN")
        add("category", _str_list(qv.get("category_name")), field="slug")
        add("category", _int_list(qv.get("category__in")), include_children=False)
        add("category", _int_list(qv.get("category__not_in")), operator="NOT IN", include_children=False)
        add("category", _int_list(qv.get("category__and")), operator="AND", include_children=False)

        tag = str(qv.get("tag") or "")
        if "+" in tag:
            add("post_tag", [t for t in tag.split("+") if t], field="slug", operator="AND")
        else:
            add("post_tag", _str_list(tag), field="slug")
        add("post_tag", _int_list(qv.get("tag_id")))
        add("post_tag", _int_list(qv.get("tag__in")))
        add("post_tag", _int_list(qv.get("tag__not_in")), operator="NOT IN")
        add("post_tag", _int_list(qv.get("tag__and")), operator="AND")
        add("post_tag", _str_list(qv.get("tag_slug__in")), field="slug")
        add("post_tag", _str_list(qv.get("tag_slug__and")), field="slug", operator="AND")

        if qv.get("taxonomy") and qv.get("term"):
            add(str(qv["taxonomy"]), _str_list(qv["term"]), field="slug")
        return clauses

    async def _tax_clause(self, clause: dict[str, Any]) -> Any:
        taxonomy = clause.get("taxonomy")
        if not taxonomy:
            return None
        operator = str(clause.get("operator", "IN")).upper()

        if operator in ("EXISTS", "NOT EXISTS"):
            has_term = exists().where(
                term_relationships.c.post_id == Post.id,
                term_relationships.c.term_id == Term.id,
                Term.taxonomy == taxonomy,
            )
            return has_term if operator == "EXISTS" else ~has_term

        term_ids = await self._term_ids(
            str(taxonomy),
            str(clause.get("field", "term_id")),
            clause.get("terms"),
            _truthy(clause.get("include_children", True)),
        )

        if operator == "NOT IN":
            return ~self._has_any_term(term_ids) if term_ids else None
        if operator == "AND":
            if not term_ids:
                return false()
            return and_(*(self._has_any_term([tid]) for tid in term_ids))
        if not term_ids:
            return false()
        return self._has_any_term(term_ids)

    @staticmethod
    def _has_any_term(term_ids: list[int]) -> Any:
        return exists().where(
            term_relationships.c.post_id == Post.id,
            term_relationships.c.term_id.in_(term_ids),
        )

    async def _term_ids(self, taxonomy: str, field: str, terms: Any, include_children: bool) -> list[int]:
        if field in ("slug", "name"):
            column = Term.slug if field == "slug" else Term.name
            values = _str_list(terms)
            if not values:
                return []
            result = await self.db.execute(
                select(Term.id).where(Term.taxonomy == taxonomy, column.in_(values))
            )
            ids = list(result.scalars().all())
        else:
            ids = _int_list(terms)

        tax = self.registry.get_taxonomy(taxonomy)
        if include_children and ids and tax is not None and tax.hierarchical:
            ids = await self._with_descendants(taxonomy, ids)
        return ids

    async def _with_descendants(self, taxonomy: str, ids: list[int]) -> list[int]:
        result = await self.db.execute(
            select(Term.id, Term.parent).where(Term.taxonomy == taxonomy)
        )
        children: dict[int, list[int]] = {}
        for term_id, parent in result.all():
            children.setdefault(parent, []).append(term_id)

        found = list(ids)
        queue = list(ids)
        while queue:
            for child in children.get(queue.pop(), []):
                if child not in found:
                    found.append(child)
                    queue.append(child)
        return found

    # ── Metadata ─────────────────────────────────────────────────────────────

    def _meta_condition(self, qv: dict[str, Any]) -> Any:
        clauses, relation = _clause_list(qv.get("meta_query"))
        parts = [c for c in (self._meta_clause(clause) for clause in clauses) if c is not None]
        combined = _combine(parts, relation)

        if qv.get("meta_key") not in (None, ""):
            primary: dict[str, Any] = {"key": qv["meta_key"]}
            if qv.get("meta_value") is not None:
                primary["value"] = qv["meta_value"]
            if qv.get("meta_compare"):
                primary["compare"] = qv["meta_compare"]
            condition = self._meta_clause(primary)
            combined = condition if combined is None else and_(condition, combined)
        return combined

    @staticmethod
    def _meta_clause(clause: dict[str, Any]) -> Any:
        key = clause.get("key")
        value = clause.get("value")
        default_compare = "IN" if isinstance(value, (list, dict)) else "="
        compare = str(clause.get("compare", default_compare)).upper()
        numeric = str(clause.get("type", "CHAR")).upper() in NUMERIC_META_TYPES

        base = [PostMeta.post_id == Post.id]
        if key:
            base.append(PostMeta.meta_key == str(key))

        if compare == "NOT EXISTS":
            return ~exists().where(*base)
        if compare == "EXISTS" or value is None:
            return exists().where(*base)

        column = cast(PostMeta.meta_value, Float) if numeric else PostMeta.meta_value

        def conv(v: Any) -> Any:
            if not numeric:
                return str(v)
            try:
                return float(v)
            except (TypeError, ValueError):
                return 0.0

        values = [conv(v) for v in _str_list(value)] if isinstance(value, (list, dict)) else None
        single = conv(value) if values is None else (values[0] if values else None)

        if compare in ("IN", "NOT IN"):
            items = values if values is not None else [conv(v) for v in _str_list(value)]
            condition = column.in_(items) if compare == "IN" else column.not_in(items)
        elif compare in ("BETWEEN", "NOT BETWEEN"):
            items = values if values is not None else [conv(v) for v in _str_list(value)]
            if len(items) < 2:
                return None
            condition = column.between(items[0], items[1])
            if compare == "NOT BETWEEN":
                condition = not_(condition)
        elif compare == "LIKE":
            condition = PostMeta.meta_value.like(f"%{_like_escape(str(value))}%", escape="\\")
        elif compare == "NOT LIKE":
            condition = not_(PostMeta.meta_value.like(f"%{_like_escape(str(value))}%", escape="\\"))
        elif compare == "!=":
            condition = column != single
        elif compare == ">":
            condition = column > single
        elif compare == ">=":
            condition = column >= single
        elif compare == "<":
            condition = column < single
        elif compare == "<=":
            condition = column <= single
        else:
            condition = column == single

        return exists().where(*base, condition)

    # ── ORDER BY ─────────────────────────────────────────────────────────────

    _ORDER_COLUMNS = {
        "date": Post.date, "post_date": Post.date,
        "id": Post.id, "ID": Post.id,
        "title": Post.title, "post_title": Post.title,
        "name": Post.slug, "post_name": Post.slug, "slug": Post.slug,
        "menu_order": Post.menu_order,
        "modified": Post.modified, "post_modified": Post.modified,
        "parent": Post.parent_id, "post_parent": Post.parent_id,
        "author": Post.author_id, "post_author": Post.author_id,
        "type": Post.post_type, "post_type": Post.post_type,
        "relevance": Post.date,
    }

    def _order_by(self, qv: dict[str, Any]) -> list[Any]:
        default_dir = "ASC" if str(qv.get("order", "DESC")).upper() == "ASC" else "DESC"
        raw = qv.get("orderby") or "date"
        if isinstance(raw, dict):
            fields = [(k, "ASC" if str(v).upper() == "ASC" else "DESC") for k, v in raw.items()]
        else:
            fields = [(f, default_dir) for f in str(raw).replace(",", " ").split()]

        clauses: list[Any] = []
        for field, direction in fields:
            if field == "none":
                continue
            if field == "rand":
                return [func.random()]
            if field == "post__in":
                ids = _int_list(qv.get("post__in"))
                if ids:
                    clauses.append(case(
                        {post_id: index for index, post_id in enumerate(ids)},
                        value=Post.id,
                        else_=len(ids),
                    ))
                continue
            column = self._order_column(field, qv)
            if column is None:
                log.debug("ignoring unknown orderby field %r", field)
                continue
            clauses.append(column.asc() if direction == "ASC" else column.desc())

        if not clauses and raw != "none":
            clauses.append(Post.date.asc() if default_dir == "ASC" else Post.date.desc())
        clauses.append(Post.id.asc() if default_dir == "ASC" else Post.id.desc())
        return clauses

    def _order_column(self, field: str, qv: dict[str, Any]) -> Any:
        if field in ("meta_value", "meta_value_num"):
            if not qv.get("meta_key"):
                return None
            value = (
                select(PostMeta.meta_value)
                .where(PostMeta.post_id == Post.id, PostMeta.meta_key == str(qv["meta_key"]))
                .limit(1)
                .scalar_subquery()
            )
            return cast(value, Float) if field == "meta_value_num" else value
        return self._ORDER_COLUMNS.get(field)


# -----------------------------------------------------------------------------
