# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""One-way password hashing (argon2id).

Cost parameters come from the environment so that deployments can tune
them; the defaults are argon2-cffi's.
"""

from __future__ import annotations

import os
from functools import lru_cache

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


@lru_cache(maxsize=1)
def hasher() -> PasswordHasher:
    base = PasswordHasher()
    return PasswordHasher(
        time_cost=_env_int("FITRACK_ARGON2_TIME_COST", base.time_cost),
        memory_cost=_env_int("FITRACK_ARGON2_MEMORY_COST", base.memory_cost),
        parallelism=_env_int("FITRACK_ARGON2_PARALLELISM", base.parallelism),
    )


def hash_password(plain: str) -> str:
    if not plain:
        raise ValueError("Empty password")
    return hasher().hash(plain)


def verify_password(hash_value: str, plain: str) -> bool:
    """Constant-time check of plain against hash_value. Never raises."""
    if not hash_value or not plain:
        return False
    try:
        return hasher().verify(hash_value, plain)
    except (VerificationError, InvalidHashError):
        return False


@lru_cache(maxsize=1)
def _placeholder_hash() -> str:
    return hash_password("fitrack-placeholder")


def burn_verification(plain: str) -> None:
    """Spend the same work as a real verification.

    Used when there is no account to check against, so that a login for an
    unknown user takes about as long as one with a wrong password.
    """
    verify_password(_placeholder_hash(), plain or "-")
