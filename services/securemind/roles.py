"""The closed role enumeration.

Every role string that reaches a claim or a profile passes through
normalize_role first, so storage never holds a value outside Role.
"""

from enum import StrEnum
from typing import Any


class Role(StrEnum):
    ADMIN = "admin"
    TRAINER = "trainer"
    SECURITY = "security"
    ACCOUNTING = "accounting"
    MARKETING = "marketing"
    DEVELOPER = "developer"
    DESIGN = "design"
    USER = "user"


ROLE_NAMES: frozenset[str] = frozenset(r.value for r in Role)


def is_valid_role(value: Any) -> bool:
    """Return True if value names a role (case-insensitive)."""
    return str(value or "").strip().lower() in ROLE_NAMES


def normalize_role(value: Any, fallback: Role = Role.USER) -> Role:
    """Coerce arbitrary input to a Role, returning fallback when it matches none."""
    candidate = str(value or "").strip().lower()
    if candidate in ROLE_NAMES:
        return Role(candidate)
    return fallback


def claims_for_role(role: Role, *, legacy_flag: bool = False) -> dict[str, Any]:
    """Build the custom claim set for a role.

    With legacy_flag the claim also carries a boolean named after the role
    (e.g. {"role": "trainer", "trainer": True}) for older claim consumers.
    """
    claims: dict[str, Any] = {"role": role.value}
    if legacy_flag:
        claims[role.value] = True
    return claims
