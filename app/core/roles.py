#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Roles and the capabilities they grant.

Capabilities are plain strings.  Post types name the capability they require
for each primitive action (see ``PostTypeObject.cap``), so a role only needs
to list the concrete capability names.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations


# -----------------------------------------------------------------------------

_SUBSCRIBER = frozenset({"read"})

_CONTRIBUTOR = _SUBSCRIBER | {"edit_posts"}

_AUTHOR = _CONTRIBUTOR | {
    "edit_published_posts",
    "publish_posts",
    "upload_files",
}

_EDITOR = _AUTHOR | {
    "edit_others_posts",
    "edit_private_posts",
    "read_private_posts",
    "edit_pages",
    "edit_others_pages",
    "edit_published_pages",
    "edit_private_pages",
    "publish_pages",
    "read_private_pages",
}

_ADMINISTRATOR = _EDITOR | {"manage_options", "list_users"}


ROLE_CAPS: dict[str, frozenset[str]] = {
    "administrator": _ADMINISTRATOR,
    "editor":        _EDITOR,
    "author":        _AUTHOR,
    "contributor":   _CONTRIBUTOR,
    "subscriber":    _SUBSCRIBER,
}

DEFAULT_ROLE = "subscriber"


# -----------------------------------------------------------------------------

def capabilities_for(role: str | None) -> frozenset[str]:
    if not role:
        return frozenset()
    return ROLE_CAPS.get(role, frozenset())


# -----------------------------------------------------------------------------
