# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy.

Everything except StorageFault is an expected outcome: it is caught where it
is raised and turned into a user-facing message. StorageFault is the only
error allowed to reach the application-level handler.
"""

from __future__ import annotations

from typing import Iterable, List


class FitrackError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    @property
    def messages(self) -> List[str]:
        return [self.message] if self.message else []


class ValidationError(FitrackError):
    """Malformed input or password policy violation. Nothing was written."""

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))

    @property
    def messages(self) -> List[str]:
        return list(self.errors)


class ConflictError(FitrackError):
    """Duplicate username or email on registration."""

    def __init__(self, message: str, field: str):
        super().__init__(message)
        self.field = field


class AuthenticationError(FitrackError):
    """Bad credentials, or a missing/expired session.

    The message never says which factor failed.
    """


class AuthorizationError(FitrackError):
    """Valid session, but the resource belongs to someone else."""


class NotFoundError(AuthorizationError):
    """Owned resource absent *or* not owned by the caller.

    Both cases raise this same error so that non-owners cannot tell them apart.
    """


class StorageFault(FitrackError):
    """The database is unreachable or returned an unexpected error."""
