#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
REST error type.

Errors leave the API as ``{"code": ..., "message": ..., "data": {...}}`` so
clients can branch on a machine-readable code.  ``data.status`` always
mirrors the HTTP status.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status

from .context import Caller


# -----------------------------------------------------------------------------

class RestError(HTTPException):

    def __init__(self, status_code: int, code: str, message: str, **data: Any) -> None:
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.data: dict[str, Any] = {"status": status_code, **data}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "data": self.data}


# -----------------------------------------------------------------------------

def authorization_required_code(caller: Caller) -> int:
    """401 for anonymous callers, 403 once the caller is known."""
    if caller.is_logged_in:
        return status.HTTP_403_FORBIDDEN
    return status.HTTP_401_UNAUTHORIZED


# -----------------------------------------------------------------------------
