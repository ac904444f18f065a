# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Password strength rules.

Every rule is checked on its own so that the caller can show all of the
problems at once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

MIN_LENGTH = 8
SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

_SPECIAL_RE = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")

# (rule id, check, message)
RULES: List[Tuple[str, Callable[[str], bool], str]] = [
    ("min_length", lambda p: len(p) >= MIN_LENGTH, f"Password must be at least {MIN_LENGTH} characters long"),
    ("lowercase", lambda p: re.search(r"[a-z]", p) is not None, "Password must contain at least one lowercase letter"),
    ("uppercase", lambda p: re.search(r"[A-Z]", p) is not None, "Password must contain at least one uppercase letter"),
    ("digit", lambda p: re.search(r"[0-9]", p) is not None, "Password must contain at least one number"),
    ("special", lambda p: _SPECIAL_RE.search(p) is not None, "Password must contain at least one special character"),
]

RULE_MESSAGES = {rule_id: message for rule_id, _, message in RULES}


@dataclass(frozen=True)
class PolicyResult:
    valid: bool
    violations: Tuple[str, ...]

    @property
    def messages(self) -> List[str]:
        return [RULE_MESSAGES[v] for v in self.violations]


def validate_password(password: Optional[str]) -> PolicyResult:
    p = password or ""
    violations = tuple(rule_id for rule_id, check, _ in RULES if not check(p))
    return PolicyResult(valid=not violations, violations=violations)
