#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pydantic v2 schemas for response documentation and serialisation.

Collection items are assembled as plain dicts (their shape depends on the
post type, the context and ``_fields``); the models here describe the
common shape for the OpenAPI document.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Shared
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    app: str


# -----------------------------------------------------------------------------

class ErrorResponse(BaseModel):
    code: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Posts
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class RenderedField(BaseModel):
    rendered: str
    raw: Optional[str] = None
    protected: Optional[bool] = None


# -----------------------------------------------------------------------------

class PostItem(BaseModel):
    """One collection item.  Taxonomy term lists are added per post type."""
    model_config = ConfigDict(extra="allow")

    id: int
    date: Optional[str] = None
    date_gmt: Optional[str] = None
    modified: Optional[str] = None
    modified_gmt: Optional[str] = None
    slug: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None
    link: Optional[str] = None
    title: Optional[RenderedField] = None
    content: Optional[RenderedField] = None
    excerpt: Optional[RenderedField] = None
    author: Optional[int] = None
    primary_image: Any = None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Route discovery
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class RouteEndpoint(BaseModel):
    methods: list[str]
    args: dict[str, dict[str, Any]]


class RouteSchemaResponse(BaseModel):
    namespace: str
    methods: list[str]
    endpoints: list[RouteEndpoint]
