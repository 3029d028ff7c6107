#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Post type and taxonomy registry
===============================

Post types and taxonomies are declared in code, not stored in the database.
The registry is built once when the application is created and is only read
while a request is being served.

Default registrations
---------------------
post        — articles; taxonomies category, post_tag
page        — hierarchical pages with page attributes
attachment  — uploaded media, serialised by the ``attachments`` controller
category    — hierarchical, exposed as ``categories``
post_tag    — flat, exposed as ``tags``
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class PostTypeCaps:
    edit_posts: str
    edit_others_posts: str
    edit_published_posts: str
    read_private_posts: str
    read: str = "read"

    @classmethod
    def from_capability_type(cls, capability_type: str) -> "PostTypeCaps":
        plural = f"{capability_type}s"
        return cls(
            edit_posts=f"edit_{plural}",
            edit_others_posts=f"edit_others_{plural}",
            edit_published_posts=f"edit_published_{plural}",
            read_private_posts=f"read_private_{plural}",
        )


# -----------------------------------------------------------------------------

@dataclass
class PostTypeObject:
    name: str
    label: str = ""
    public: bool = True
    show_in_rest: bool = True
    hierarchical: bool = False
    exclude_from_search: bool = False
    supports: frozenset[str] = frozenset({"title", "editor", "author"})
    rest_base: str | None = None
    rest_controller: str = "posts"
    capability_type: str = "post"
    cap: PostTypeCaps = field(init=False)

    def __post_init__(self) -> None:
        self.label = self.label or self.name.replace("_", " ").title()
        self.cap = PostTypeCaps.from_capability_type(self.capability_type)

    def supports_feature(self, feature: str) -> bool:
        return feature in self.supports


# -----------------------------------------------------------------------------

@dataclass
class TaxonomyObject:
    name: str
    object_types: tuple[str, ...] = ()
    label: str = ""
    show_in_rest: bool = True
    hierarchical: bool = False
    rest_base: str | None = None

    @property
    def base(self) -> str:
        """Name under which the taxonomy is exposed to API clients."""
        return self.rest_base or self.name


# -----------------------------------------------------------------------------

class Registry:

    def __init__(self) -> None:
        self._post_types: dict[str, PostTypeObject] = {}
        self._taxonomies: dict[str, TaxonomyObject] = {}

    # ── Post types ───────────────────────────────────────────────────────────

    def register_post_type(self, name: str, **kwargs) -> PostTypeObject:
        obj = PostTypeObject(name=name, **kwargs)
        self._post_types[name] = obj
        return obj

    def get_post_type_object(self, name: str) -> PostTypeObject | None:
        return self._post_types.get(name)

    def get_post_types(self, **filters) -> list[str]:
        """Names of registered post types whose attributes match *filters*."""
        return [
            name for name, obj in self._post_types.items()
            if all(getattr(obj, attr) == value for attr, value in filters.items())
        ]

    # ── Taxonomies ───────────────────────────────────────────────────────────

    def register_taxonomy(self, name: str, object_types: Iterable[str], **kwargs) -> TaxonomyObject:
        obj = TaxonomyObject(name=name, object_types=tuple(object_types), **kwargs)
        self._taxonomies[name] = obj
        return obj

    def get_taxonomy(self, name: str) -> TaxonomyObject | None:
        return self._taxonomies.get(name)

    def get_object_taxonomies(
        self,
        post_types: str | Iterable[str],
        show_in_rest: bool | None = None,
    ) -> list[TaxonomyObject]:
        """Taxonomies attached to any of *post_types*, each listed once."""
        if isinstance(post_types, str):
            post_types = [post_types]
        wanted = set(post_types)
        found = []
        for tax in self._taxonomies.values():
            if show_in_rest is not None and tax.show_in_rest != show_in_rest:
                continue
            if wanted.intersection(tax.object_types):
                found.append(tax)
        return found


# -----------------------------------------------------------------------------

def default_registry() -> Registry:
    registry = Registry()

    registry.register_post_type(
        "post",
        label="Posts",
        supports=frozenset({"title", "editor", "author", "excerpt", "thumbnail"}),
        rest_base="posts",
    )
    registry.register_post_type(
        "page",
        label="Pages",
        hierarchical=True,
        supports=frozenset({"title", "editor", "author", "page-attributes"}),
        rest_base="pages",
        capability_type="page",
    )
    registry.register_post_type(
        "attachment",
        label="Media",
        supports=frozenset({"title", "author"}),
        rest_base="media",
        rest_controller="attachments",
    )

    registry.register_taxonomy(
        "category", ["post"],
        label="Categories", hierarchical=True, rest_base="categories",
    )
    registry.register_taxonomy(
        "post_tag", ["post"],
        label="Tags", rest_base="tags",
    )
    return registry


# -----------------------------------------------------------------------------
