# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Credential store: the users and user_profiles tables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from fitrack.errors import ConflictError
from fitrack.infra.db import fetch_one, insert_row, user_profiles, users

USERNAME_TAKEN = "Username already taken"
EMAIL_TAKEN = "Email already registered"


@dataclass(frozen=True)
class UserRecord:
    id: int
    username: str
    email: str
    password_hash: str


def _to_record(row: Optional[Dict[str, Any]]) -> Optional[UserRecord]:
    if not row:
        return None
    return UserRecord(
        id=int(row["id"]),
        username=str(row["username"]),
        email=str(row["email"]),
        password_hash=str(row["password_hash"] or ""),
    )


def get_user_by_id(conn: Connection, user_id: int) -> Optional[UserRecord]:
    return _to_record(
        fetch_one(conn, "SELECT id, username, email, password_hash FROM users WHERE id = :id", {"id": user_id})
    )


def get_user_by_login(conn: Connection, login: str) -> Optional[UserRecord]:
    """Look a user up by username, falling back to email."""
    u = (login or "").strip()
    if not u:
        return None
    row = fetch_one(
        conn, "SELECT id, username, email, password_hash FROM users WHERE username = :u", {"u": u}
    )
    if row is None and "@" in u:
        row = fetch_one(
            conn, "SELECT id, username, email, password_hash FROM users WHERE email = :e", {"e": u}
        )
    return _to_record(row)


def find_conflict(conn: Connection, username: str, email: str) -> Optional[ConflictError]:
    row = fetch_one(
        conn,
        "SELECT username, email FROM users WHERE username = :u OR email = :e "
        "ORDER BY CASE WHEN username = :u THEN 0 ELSE 1 END",
        {"u": username, "e": email},
    )
    if row is None:
        return None
    if row["username"] == username:
        return ConflictError(USERNAME_TAKEN, "username")
    return ConflictError(EMAIL_TAKEN, "email")


def create_user(conn: Connection, *, username: str, email: str, password_hash: str) -> int:
    try:
        return insert_row(conn, users, {"username": username, "email": email, "password_hash": password_hash})
    except IntegrityError as e:
        # lost a race with a concurrent registration
        if "username" in str(e.orig).lower():
            raise ConflictError(USERNAME_TAKEN, "username") from e
        raise ConflictError(EMAIL_TAKEN, "email") from e


def create_profile(conn: Connection, *, user_id: int, first_name: Optional[str], last_name: Optional[str]) -> int:
    return insert_row(
        conn,
        user_profiles,
        {"user_id": user_id, "first_name": first_name or None, "last_name": last_name or None},
    )


def get_profile(conn: Connection, user_id: int) -> Optional[Dict[str, Any]]:
    return fetch_one(conn, "SELECT * FROM user_profiles WHERE user_id = :uid", {"uid": user_id})


def profile_summary(profile: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """The part of a profile that is cached in the session."""
    if not profile:
        return None
    return {"first_name": profile.get("first_name"), "last_name": profile.get("last_name")}
