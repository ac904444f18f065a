# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Runtime settings, read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

TRUTHY = {"1", "true", "yes", "y"}


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in TRUTHY


def normalize_database_url(url: str) -> str:
    # Heroku-style URLs: SQLAlchemy only knows the postgresql:// scheme
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///data/fitrack.db"
    secret_key: str = ""
    session_salt: str = "fitrack.session.v1"
    cookie_name: str = "fitrack_session"
    session_max_age: int = 24 * 60 * 60
    cookie_secure: bool = False
    seed_catalog: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=normalize_database_url(
                os.getenv("FITRACK_DATABASE_URL", cls.database_url)
            ),
            secret_key=os.getenv("SECRET_KEY") or os.getenv("FITRACK_SECRET_KEY") or "",
            session_salt=os.getenv("FITRACK_SESSION_SALT", cls.session_salt),
            cookie_name=os.getenv("FITRACK_COOKIE_NAME", cls.cookie_name),
            session_max_age=int(os.getenv("FITRACK_SESSION_MAX_AGE", str(cls.session_max_age))),
            cookie_secure=_flag("FITRACK_COOKIE_SECURE", "false"),
            seed_catalog=_flag("FITRACK_SEED", "true"),
        )

    def cookie_settings(self) -> dict:
        return {
            "httponly": True,
            "samesite": "lax",
            "secure": self.cookie_secure,
            "max_age": self.session_max_age,
        }
