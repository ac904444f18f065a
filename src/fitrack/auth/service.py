# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Registration, login and logout.

Each operation returns an AuthOutcome decision instead of raising: the routes
only decide how to present it (redirect, or redisplay the form with errors).
Only StorageFault escapes from here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from fitrack.auth import users
from fitrack.auth.passwords import burn_verification, hash_password, verify_password
from fitrack.auth.policy import validate_password
from fitrack.auth.session import SessionRecord, SessionStore
from fitrack.errors import AuthenticationError, ConflictError, FitrackError, ValidationError
from fitrack.infra.db import Database

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"
MISSING_CREDENTIALS = "Please enter both username and password"
MIN_USERNAME_LENGTH = 3


@dataclass
class AuthOutcome:
    success: bool
    errors: List[str] = field(default_factory=list)
    form_data: Dict[str, str] = field(default_factory=dict)
    session: Optional[SessionRecord] = None
    token: Optional[str] = None
    redirect_to: Optional[str] = None
    error: Optional[FitrackError] = None

    @classmethod
    def ok(cls, session: SessionRecord, token: str, redirect_to: str = "/") -> "AuthOutcome":
        return cls(success=True, session=session, token=token, redirect_to=redirect_to)

    @classmethod
    def failed(cls, error: FitrackError, form_data: Optional[Dict[str, str]] = None) -> "AuthOutcome":
        return cls(success=False, errors=error.messages, form_data=dict(form_data or {}), error=error)


def registration_errors(*, username: str, email: str, password: str, confirm_password: str) -> List[str]:
    """All problems with a registration form, in display order."""
    errors: List[str] = []
    if len(username or "") < MIN_USERNAME_LENGTH:
        errors.append(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
    if "@" not in (email or ""):
        errors.append("Please enter a valid email address")
    errors.extend(validate_password(password).messages)
    if (password or "") != (confirm_password or ""):
        errors.append("Passwords do not match")
    return errors


class AuthService:
    def __init__(self, db: Database, sessions: SessionStore):
        self.db = db
        self.sessions = sessions

    def register(
        self,
        *,
        username: str,
        email: str,
        password: str,
        confirm_password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> AuthOutcome:
        username = (username or "").strip()
        email = (email or "").strip()
        form_data = {
            "username": username,
            "email": email,
            "first_name": first_name or "",
            "last_name": last_name or "",
        }
        try:
            errors = registration_errors(
                username=username, email=email, password=password, confirm_password=confirm_password
            )
            if errors:
                raise ValidationError(errors)

            with self.db.begin() as conn:
                conflict = users.find_conflict(conn, username, email)
            if conflict:
                raise conflict

            password_hash = hash_password(password)
            with self.db.begin() as conn:
                user_id = users.create_user(conn, username=username, email=email, password_hash=password_hash)
                users.create_profile(conn, user_id=user_id, first_name=first_name, last_name=last_name)
        except (ValidationError, ConflictError) as e:
            return AuthOutcome.failed(e, form_data)

        record = SessionRecord(
            user_id=user_id,
            username=username,
            email=email,
            profile={"first_name": first_name or None, "last_name": last_name or None},
        )
        token = self.sessions.create(record)
        logger.info("Registered user %s (id=%s)", username, user_id)
        return AuthOutcome.ok(record, token)

    def login(self, username: str, password: str) -> AuthOutcome:
        login = (username or "").strip()
        form_data = {"username": login}
        if not login or not password:
            return AuthOutcome.failed(ValidationError([MISSING_CREDENTIALS]), form_data)

        with self.db.begin() as conn:
            user = users.get_user_by_login(conn, login)
            profile = users.get_profile(conn, user.id) if user else None

        if user is None:
            burn_verification(password)
            logger.info("Failed login for unknown account")
            return AuthOutcome.failed(AuthenticationError(INVALID_CREDENTIALS), form_data)
        if not verify_password(user.password_hash, password):
            logger.info("Failed login for user id=%s", user.id)
            return AuthOutcome.failed(AuthenticationError(INVALID_CREDENTIALS), form_data)

        record = SessionRecord(
            user_id=user.id,
            username=user.username,
            email=user.email,
            profile=users.profile_summary(profile),
        )
        token = self.sessions.create(record)
        logger.info("User %s logged in", user.username)
        return AuthOutcome.ok(record, token)

    def logout(self, token: Optional[str]) -> None:
        self.sessions.destroy(token)
