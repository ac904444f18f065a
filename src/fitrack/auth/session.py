# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Server-side sessions.

The browser only ever sees an opaque random token, signed with itsdangerous so
that a tampered cookie is rejected before the store is consulted. The store
maps tokens to a small identity projection and never holds password material.
"""

from __future__ import annotations

import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

DEFAULT_MAX_AGE_SECONDS = 24 * 60 * 60  # 24 hours
TOKEN_BYTES = 32


@dataclass(frozen=True)
class SessionRecord:
    user_id: int
    username: str
    email: str
    profile: Optional[Dict[str, Any]] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.user_id,
            "username": self.username,
            "email": self.email,
            "profile": dict(self.profile) if self.profile else None,
        }


class SessionBackend(Protocol):
    def get(self, token: str) -> Optional[Tuple[SessionRecord, float]]: ...

    def set(self, token: str, record: SessionRecord, expires_at: float) -> None: ...

    def replace(self, token: str, record: SessionRecord, now: float) -> bool: ...

    def delete(self, token: str) -> None: ...

    def purge(self, now: float) -> int: ...


class MemorySessionBackend:
    """Dict guarded by a lock. Suitable for a single process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[SessionRecord, float]] = {}

    def get(self, token: str) -> Optional[Tuple[SessionRecord, float]]:
        with self._lock:
            return self._entries.get(token)

    def set(self, token: str, record: SessionRecord, expires_at: float) -> None:
        with self._lock:
            self._entries[token] = (record, expires_at)

    def replace(self, token: str, record: SessionRecord, now: float) -> bool:
        """Swap the record of a live entry, keeping its expiry. False if gone or expired."""
        with self._lock:
            hit = self._entries.get(token)
            if hit is None or hit[1] <= now:
                return False
            self._entries[token] = (record, hit[1])
            return True

    def delete(self, token: str) -> None:
        with self._lock:
            self._entries.pop(token, None)

    def purge(self, now: float) -> int:
        with self._lock:
            stale = [t for t, (_, exp) in self._entries.items() if exp <= now]
            for t in stale:
                del self._entries[t]
            return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SessionStore:
    def __init__(
        self,
        backend: Optional[SessionBackend] = None,
        *,
        max_age: int = DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend if backend is not None else MemorySessionBackend()
        self.max_age = max_age
        self._clock = clock

    def create(self, record: SessionRecord) -> str:
        token = secrets.token_urlsafe(TOKEN_BYTES)
        self.backend.set(token, record, self._clock() + self.max_age)
        return token

    def resolve(self, token: Optional[str]) -> Optional[SessionRecord]:
        if not token:
            return None
        hit = self.backend.get(token)
        if hit is None:
            return None
        record, expires_at = hit
        if expires_at <= self._clock():
            self.backend.delete(token)
            return None
        return record

    def update(self, token: str, record: SessionRecord) -> bool:
        """Replace the record behind a live token, keeping its expiry."""
        if not token:
            return False
        return self.backend.replace(token, record, self._clock())

    def destroy(self, token: Optional[str]) -> None:
        if token:
            self.backend.delete(token)

    def purge_expired(self) -> int:
        return self.backend.purge(self._clock())


class CookieSigner:
    """Signs session tokens for the cookie and checks them on the way back."""

    def __init__(self, secret_key: str, *, salt: str = "fitrack.session.v1", max_age: int = DEFAULT_MAX_AGE_SECONDS):
        self.secret_key = secret_key
        self.salt = salt
        self.max_age = max_age

    def _serializer(self) -> URLSafeTimedSerializer:
        if not self.secret_key:
            raise RuntimeError("SECRET_KEY (or FITRACK_SECRET_KEY) is not set")
        return URLSafeTimedSerializer(secret_key=self.secret_key, salt=self.salt)

    def sign(self, token: str) -> str:
        return self._serializer().dumps({"t": token})

    def unsign(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        try:
            data = self._serializer().loads(value, max_age=self.max_age)
        except (BadSignature, BadTimeSignature):
            return None
        t = str((data or {}).get("t") or "").strip() if isinstance(data, dict) else ""
        return t or None
