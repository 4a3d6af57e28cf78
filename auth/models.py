"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: frozen data classes. Records are values: an update builds a new User
with dataclasses.replace() and hands it to the store, nothing is mutated in
place.

Layer rule: no imports from api/, results/, or services/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

ROLE_USER = "ROLE_USER"
ROLE_ADMIN = "ROLE_ADMIN"


def effective_roles(stored: Iterable[str]) -> frozenset[str]:
    """Return the stored roles plus the base role every user holds.

    The base role is added at read time only. Stores persist `stored_roles`
    exactly as assigned.
    """
    return frozenset(stored) | {ROLE_USER}


@dataclass(frozen=True)
class User:
    """A registered identity.

    password_hash is an Argon2id digest. It is excluded from repr() and is
    never part of any outward representation.
    """

    email: str
    password_hash: str = field(repr=False)
    stored_roles: frozenset[str] = frozenset()
    id: int | None = None

    @property
    def roles(self) -> frozenset[str]:
        return effective_roles(self.stored_roles)

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of one request, rebuilt from a verified token."""

    user_id: int
    email: str
    roles: frozenset[str]

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles
