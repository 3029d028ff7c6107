#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Per-request query context.

The registry, the hook table, the resolved caller and the settings travel
together through the parameter schema, the query builder, the executor and
the serializers instead of being looked up as globals.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .roles import capabilities_for

if TYPE_CHECKING:
    from .config import Settings
    from .hooks import HookRegistry
    from .registry import Registry


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Caller:
    """Identity of whoever sent the request.  ``user_id`` is None for guests."""
    user_id: int | None = None
    role: str | None = None
    caps: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def anonymous(cls) -> "Caller":
        return cls()

    @classmethod
    def for_role(cls, user_id: int, role: str | None) -> "Caller":
        return cls(user_id=user_id, role=role, caps=capabilities_for(role))

    @property
    def is_logged_in(self) -> bool:
        return self.user_id is not None

    def can(self, capability: str) -> bool:
        return capability in self.caps


# -----------------------------------------------------------------------------

@dataclass
class QueryContext:
    registry: "Registry"
    hooks: "HookRegistry"
    settings: "Settings"
    caller: Caller = field(default_factory=Caller.anonymous)

    def can_edit_type(self, post_type: str) -> bool:
        obj = self.registry.get_post_type_object(post_type)
        if obj is None:
            return False
        return self.caller.can(obj.cap.edit_posts)

    def first_uneditable_type(self, post_types: Iterable[str]) -> str | None:
        """Return the first type the caller may not edit, or None."""
        for post_type in post_types:
            if not self.can_edit_type(post_type):
                return post_type
        return None

    def can_edit_all(self, post_types: Iterable[str]) -> bool:
        return self.first_uneditable_type(post_types) is None


# -----------------------------------------------------------------------------
