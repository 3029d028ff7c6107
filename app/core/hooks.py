#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Filter hooks
============
Named extension points that let deployments rewrite values while a query is
being built.  Each callback receives the current value plus any extra
arguments and returns the new value.  Callbacks run in ascending priority,
then in registration order.

Tags used by the collection endpoint
------------------------------------
multiple_post_type_query   (query_args, params)  — the query before allow-listing
query_var:<name>           (value)               — each allowed query var
public_query_vars          (list[str])           — publicly allowed vars
private_query_vars         (list[str])           — vars unlocked for editors
rest_query_vars            (list[str])           — the final allow-list
the_title                  (title, post)         — rendered title
the_content                (content, post)       — rendered body
the_excerpt                (excerpt, post)       — rendered excerpt
rest_prepare_<post_type>   (item, post, context) — a serialised item
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from itertools import count
from typing import Any


# -----------------------------------------------------------------------------

FilterCallback = Callable[..., Any]


class HookRegistry:

    def __init__(self) -> None:
        self._filters: dict[str, list[tuple[int, int, FilterCallback]]] = defaultdict(list)
        self._seq = count()

    def add_filter(self, tag: str, callback: FilterCallback, priority: int = 10) -> None:
        entries = self._filters[tag]
        entries.append((priority, next(self._seq), callback))
        entries.sort(key=lambda e: (e[0], e[1]))

    def remove_filter(self, tag: str, callback: FilterCallback) -> bool:
        entries = self._filters.get(tag, [])
        kept = [e for e in entries if e[2] is not callback]
        self._filters[tag] = kept
        return len(kept) != len(entries)

    def has_filter(self, tag: str) -> bool:
        return bool(self._filters.get(tag))

    def apply_filters(self, tag: str, value: Any, *args: Any) -> Any:
        for _priority, _seq, callback in self._filters.get(tag, ()):
            value = callback(value, *args)
        return value


# -----------------------------------------------------------------------------
