#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Collection parameter schema
===========================
Declares the query parameters accepted by the multiple-post-type endpoint,
turns a raw query string into sanitised values, and validates them.

Query strings use bracket syntax for structured values::

    type[]=post&type[]=page          -> {"type": ["post", "page"]}
    type[0]=post&type[1]=page        -> {"type": ["post", "page"]}
    filter[meta_key]=colour          -> {"filter": {"meta_key": "colour"}}
    filter[post__in][]=3             -> {"filter": {"post__in": ["3"]}}

Plain repeated keys keep the last value.  A bracketed group whose keys are
all numeric is read as a list ordered by index.

Each declared parameter is checked by a pydantic ``TypeAdapter`` built
from its declaration; the same adapter produces the JSON schema served by
OPTIONS.  Validation runs before sanitisation and collects every failing
parameter into a single ``rest_invalid_param`` error.  The status check
runs last because it depends on the requested post types.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from functools import cached_property
from typing import Annotated, Any, Literal

from fastapi import status
from pydantic import BeforeValidator, Field, TypeAdapter, ValidationError

from app.core.config import Settings
from app.core.context import QueryContext
from app.core.errors import RestError, authorization_required_code
from app.core.registry import Registry


# -----------------------------------------------------------------------------

_MISSING = object()

_KEY_RE      = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])+)$")
_SEGMENT_RE  = re.compile(r"\[([^\[\]]*)\]")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_TAG_RE      = re.compile(r"<[^>]*>")

PUBLISH = "publish"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Query string parsing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def parse_query_string(items: Iterable[tuple[str, str]]) -> dict[str, Any]:
    """Fold ``(key, value)`` pairs into nested dicts and lists."""
    result: dict[str, Any] = {}
    for raw_key, value in items:
        match = _KEY_RE.match(raw_key)
        if not match:
            result[raw_key] = value
            continue
        name = match.group(1)
        path = _SEGMENT_RE.findall(match.group(2))
        _assign(result, name, path, value)
    return {key: _fold_indexed(value) for key, value in result.items()}


def _assign(container: dict[str, Any], key: str, path: list[str], value: str) -> None:
    if not path:
        container[key] = value
        return

    head, rest = path[0], path[1:]
    if head == "":
        node = container.get(key)
        if not isinstance(node, list):
            node = container[key] = []
        if rest:
            child: dict[str, Any] = {}
            node.append(child)
            _assign(child, rest[0], rest[1:], value)
        else:
            node.append(value)
        return

    node = container.get(key)
    if not isinstance(node, dict):
        node = container[key] = {}
    _assign(node, head, rest, value)


def _fold_indexed(node: Any) -> Any:
    if isinstance(node, list):
        return [_fold_indexed(item) for item in node]
    if not isinstance(node, dict):
        return node
    folded = {key: _fold_indexed(value) for key, value in node.items()}
    if folded and all(key.isdigit() for key in folded):
        return [folded[key] for key in sorted(folded, key=int)]
    return folded


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Sanitisers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def parse_list(value: Any) -> list[str]:
    """Split a comma/space separated string; lists pass through."""
    if isinstance(value, dict):
        value = list(value.values())
    if isinstance(value, list):
        items = [str(v).strip() for v in value]
    else:
        items = re.split(r"[\s,]+", str(value))
    return [item for item in items if item]


def absint(value: Any) -> int:
    """Non-negative integer; anything without a leading number becomes 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return abs(value)
    match = _LEADING_INT.match(str(value))
    return abs(int(match.group(1))) if match else 0


def parse_id_list(value: Any) -> list[int]:
    """List of unique non-negative ids, first occurrence order kept."""
    ids: list[int] = []
    for item in parse_list(value):
        number = absint(item)
        if number not in ids:
            ids.append(number)
    return ids


def sanitize_key(value: Any) -> str:
    return re.sub(r"[^a-z0-9_\-]", "", str(value).lower())


def sanitize_text_field(value: Any) -> str:
    text = _TAG_RE.sub("", str(value))
    return re.sub(r"\s+", " ", text).strip()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Parameter declaration
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class ParamSpec:
    name: str
    description: str = ""
    type: str | None = None
    default: Any = _MISSING
    enum: tuple[str, ...] | None = None
    items: str | None = None
    format: str | None = None
    minimum: int | None = None
    maximum: int | None = None
    sanitize: Callable[[Any], Any] | None = None
    validate: bool = True

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING

    @cached_property
    def adapter(self) -> TypeAdapter | None:
        if self.type is None:
            return None
        return TypeAdapter(self._annotation())

    def _annotation(self) -> Any:
        if self.type == "integer":
            return Annotated[int, Field(ge=self.minimum, le=self.maximum)]
        if self.type == "array":
            item = int if self.items == "integer" else str
            return Annotated[list[item], BeforeValidator(parse_list)]
        if self.enum:
            return Literal[self.enum]
        if self.format == "date-time":
            return datetime
        return str

    def to_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"description": self.description}
        if self.adapter is not None:
            schema.update(self.adapter.json_schema())
        if self.has_default:
            schema["default"] = self.default
        return schema

    def check(self, value: Any) -> Any:
        """Validate and cast *value*; raises ``pydantic.ValidationError``."""
        if self.adapter is None:
            return value
        checked = self.adapter.validate_python(value)
        if isinstance(checked, datetime):
            return checked.isoformat()
        return checked


def _error_message(name: str, exc: ValidationError) -> str:
    return f"{name}: " + "; ".join(error["msg"] for error in exc.errors())


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# The endpoint's parameters
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

ORDERBY_VALUES = ("date", "id", "include", "title", "slug", "menu_order")


def get_collection_params(registry: Registry, settings: Settings) -> dict[str, ParamSpec]:
    """Build the parameter table.

    One id-list parameter is added for every REST-visible taxonomy attached
    to any registered post type, named by the taxonomy's base.
    """
    specs = [
        ParamSpec("context", "Scope under which the request is made; determines fields present in response.",
                  type="string", default="view", enum=("view", "embed", "edit"), sanitize=sanitize_key),
        ParamSpec("page", "Current page of the collection.",
                  type="integer", default=1, minimum=1, sanitize=absint),
        ParamSpec("per_page", "Maximum number of items to be returned in result set.",
                  type="integer", default=settings.posts_per_page, minimum=1,
                  maximum=settings.max_per_page, sanitize=absint),
        ParamSpec("search", "Limit results to those matching a string.",
                  type="string", sanitize=sanitize_text_field),
        ParamSpec("type", "Post types to include, passed as an array: type[]=post&type[]=page.",
                  validate=False),
        ParamSpec("after", "Limit response to resources published after a given ISO8601 compliant date.",
                  type="string", format="date-time"),
        ParamSpec("author", "Limit result set to posts assigned to specific authors.",
                  type="array", items="integer", default=[], sanitize=parse_id_list),
        ParamSpec("author_exclude", "Ensure result set excludes posts assigned to specific authors.",
                  type="array", items="integer", default=[], sanitize=parse_id_list),
        ParamSpec("before", "Limit response to resources published before a given ISO8601 compliant date.",
                  type="string", format="date-time"),
        ParamSpec("exclude", "Ensure result set excludes specific ids.",
                  type="array", items="integer", default=[], sanitize=parse_id_list, validate=False),
        ParamSpec("include", "Limit result set to specific ids.",
                  type="array", items="integer", default=[], sanitize=parse_id_list, validate=False),
        ParamSpec("menu_order", "Limit result set to resources with a specific menu_order value.",
                  type="integer", sanitize=absint),
        ParamSpec("offset", "Offset the result set by a specific number of items.",
                  type="integer", sanitize=absint),
        ParamSpec("order", "Order sort attribute ascending or descending.",
                  type="string", default="desc", enum=("asc", "desc")),
        ParamSpec("orderby", "Sort collection by object attribute.",
                  type="string", default="date", enum=ORDERBY_VALUES),
        ParamSpec("parent", "Limit result set to those of particular parent ids.",
                  type="array", items="integer", default=[], sanitize=parse_id_list, validate=False),
        ParamSpec("parent_exclude", "Limit result set to all items except those of a particular parent id.",
                  type="array", items="integer", default=[], sanitize=parse_id_list, validate=False),
        ParamSpec("slug", "Limit result set to posts with a specific slug.",
                  type="string"),
        ParamSpec("status", "Limit result set to posts assigned a specific status.",
                  type="string", default=PUBLISH, sanitize=sanitize_key),
        ParamSpec("filter", "Use query arguments to modify the response; private query vars "
                            "require appropriate authorization.",
                  validate=False),
        ParamSpec("_fields", "Limit response to specific fields.",
                  type="array", items="string", sanitize=parse_list, validate=False),
        ParamSpec("acf_format", "Format of custom field values in the response.",
                  type="string", enum=("light", "standard")),
    ]

    taxonomies = registry.get_object_taxonomies(registry.get_post_types(), show_in_rest=True)
    for taxonomy in taxonomies:
        specs.append(ParamSpec(
            taxonomy.base,
            f"Limit result set to all items that have the specified term assigned "
            f"in the {taxonomy.base} taxonomy.",
            type="array", items="integer", default=[], sanitize=parse_id_list, validate=False,
        ))

    return {spec.name: spec for spec in specs}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Request parsing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def parse_collection_params(
    items: Iterable[tuple[str, str]],
    schema: dict[str, ParamSpec],
    ctx: QueryContext,
) -> dict[str, Any]:
    """Return sanitised request params; undeclared params are kept raw."""
    raw = parse_query_string(items)
    params = dict(raw)
    errors: dict[str, str] = {}

    for name, spec in schema.items():
        if name in raw:
            value = raw[name]
            if spec.validate:
                try:
                    value = spec.check(value)
                except ValidationError as exc:
                    errors[name] = _error_message(name, exc)
                    continue
            params[name] = spec.sanitize(value) if spec.sanitize else value
        elif spec.has_default:
            params[name] = copy.deepcopy(spec.default)

    if errors:
        raise RestError(
            status.HTTP_400_BAD_REQUEST,
            "rest_invalid_param",
            f"Invalid parameter(s): {', '.join(errors)}",
            params=errors,
        )

    validate_status(params.get("status", PUBLISH), params.get("type"), ctx)
    return params


# -----------------------------------------------------------------------------

def validate_status(value: str, post_types: Any, ctx: QueryContext) -> None:
    """Only editors of every requested type may ask for non-published posts.

    When ``type`` is missing or malformed the check is left to the query
    builder, which rejects the request anyway.
    """
    if value == PUBLISH:
        return
    if not isinstance(post_types, list):
        return

    offending = ctx.first_uneditable_type(post_types)
    if offending is not None:
        raise RestError(
            authorization_required_code(ctx.caller),
            "rest_forbidden_status",
            "Status is forbidden",
            post_type=offending,
        )


# -----------------------------------------------------------------------------
