"""Caller identity dependency.

Authentication itself happens upstream (gateway / auth middleware); by the
time a request reaches this service the authenticated user id travels in
the ``X-User-Id`` header.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header

from app.core.errors import AuthRequiredError


def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """Return the authenticated caller id or raise ``AUTH_REQUIRED``."""
    if x_user_id is None or not x_user_id.strip():
        raise AuthRequiredError("Authentication required")
    return x_user_id.strip()
