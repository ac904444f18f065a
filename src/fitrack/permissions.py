# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from fitrack.auth.session import SessionRecord
from fitrack.errors import AuthenticationError, NotFoundError

LOGIN_REQUIRED = "Please log in to access this page"

# Messages the login page may show, keyed by the ?reason= code in redirects.
LOGIN_REASONS: Dict[str, str] = {"login_required": LOGIN_REQUIRED}


def session_token(request: Request) -> Optional[str]:
    """The verified session token carried by the request cookie, if any."""
    st = request.app.state
    return st.signer.unsign(request.cookies.get(st.settings.cookie_name, ""))


def load_user_from_request(request: Request) -> Optional[SessionRecord]:
    return request.app.state.sessions.resolve(session_token(request))


def current_user_optional(request: Request) -> Optional[SessionRecord]:
    u = getattr(request.state, "user", None)
    if u is not None:
        return u
    return load_user_from_request(request)


def require_user(request: Request) -> SessionRecord:
    u = current_user_optional(request)
    if u:
        return u
    raise AuthenticationError(LOGIN_REQUIRED)


def require_anonymous(request: Request) -> None:
    """Login and register pages are only for visitors without a session."""
    if current_user_optional(request):
        raise HTTPException(status_code=303, headers={"Location": "/"})


def owns(user: SessionRecord, owner_id: Any) -> bool:
    if user is None or owner_id is None:
        return False
    try:
        return int(owner_id) == int(user.user_id)
    except (TypeError, ValueError):
        return False


def ensure_owned(user: SessionRecord, row: Optional[Dict[str, Any]], label: str) -> Dict[str, Any]:
    """Return row if it exists and belongs to user.

    Missing and foreign rows raise the same NotFoundError.
    """
    if row is None or not owns(user, row.get("user_id")):
        raise NotFoundError(f"{label} not found")
    return row
