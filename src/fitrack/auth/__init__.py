# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication and session authorisation.

This package provides:
- Password policy checks
- Password hashing/verification (argon2)
- The credential store (users and user_profiles tables)
- Server-side sessions behind a signed cookie (itsdangerous)
- Registration, login and logout
"""
