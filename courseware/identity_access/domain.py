"""
Identity domain constants and helpers.

Why:
- Centralize allowed roles to avoid drift between services, tools and the web
  layer.
- Keep one normalization function for the (first name, last name, uid)
  identity triple. Whitelist entries and acting users are compared through
  the same function so case differences never cause false negatives.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"student", "teacher", "admin"})

IdentityKey = Tuple[str, str, str]


def normalize_name(value: object) -> str:
    return str(value or "").strip().lower()


def normalize_uid(value: object) -> str:
    # uids are institution identifiers; case is significant.
    return str(value or "").strip()


def identity_key(first_name: object, last_name: object, uid: object) -> IdentityKey:
    """Return the normalized identity triple used for whitelist matching."""
    return (normalize_name(first_name), normalize_name(last_name), normalize_uid(uid))


@dataclass(frozen=True)
class Identity:
    """Caller identity as supplied by the authentication layer (trusted as-is)."""

    id: str
    uid: str
    first_name: str
    last_name: str
    role: str
    email: Optional[str] = None

    def __post_init__(self) -> None:
        if self.role not in ALLOWED_ROLES:
            raise ValueError("invalid_role")

    @property
    def key(self) -> IdentityKey:
        return identity_key(self.first_name, self.last_name, self.uid)

    def has_role(self, *roles: str) -> bool:
        return self.role in roles


__all__ = ["ALLOWED_ROLES", "Identity", "IdentityKey", "identity_key", "normalize_name", "normalize_uid"]


@dataclass
class User:
    """Registered account. Courses reference users by id and never own them."""

    id: str
    uid: str
    first_name: str
    last_name: str
    role: str = "student"
    email: Optional[str] = None

    @property
    def key(self) -> IdentityKey:
        return identity_key(self.first_name, self.last_name, self.uid)


__all__ += ["User"]
