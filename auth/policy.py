"""
auth/policy.py -- Authorization decisions for the Users and Results resources.

Every function here is pure: the outcome depends only on the arguments. No
store lookups, no request state, no cached decisions. The Principal is rebuilt
from the token on every request, so a role change takes effect with the next
token the user obtains.

Rules:
  list / get     -- any authenticated principal
  create/delete  -- ROLE_ADMIN
  update user    -- the user themselves, or ROLE_ADMIN
  update result  -- ROLE_ADMIN
  assigning ROLE_ADMIN (check_role_assignment) -- ROLE_ADMIN, even on self-edit
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from auth.models import ROLE_ADMIN, Principal
from core.errors import Forbidden


class Action(str, Enum):
    LIST = "list"
    GET = "get"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Resource(str, Enum):
    USERS = "users"
    RESULTS = "results"


_READ_ACTIONS = frozenset({Action.LIST, Action.GET})


def is_allowed(principal: Principal, action: Action, resource: Resource, target_id: int | None = None) -> bool:
    """Return True if `principal` may perform `action` on `resource`.

    target_id is the id of the user being acted upon; it only matters for
    Action.UPDATE on Resource.USERS (the self-edit exception).
    """
    if action in _READ_ACTIONS:
        return True
    if principal.is_admin:
        return True
    if resource is Resource.USERS and action is Action.UPDATE:
        return target_id is not None and principal.user_id == target_id
    return False


def authorize(principal: Principal, action: Action, resource: Resource, target_id: int | None = None) -> None:
    """Raise Forbidden unless is_allowed() grants the request."""
    if not is_allowed(principal, action, resource, target_id):
        raise Forbidden(f"{action.value} on {resource.value} denied for user {principal.user_id}")


def check_role_assignment(principal: Principal, roles: Iterable[str]) -> None:
    """Raise Forbidden when a non-admin tries to grant ROLE_ADMIN."""
    if ROLE_ADMIN in set(roles) and not principal.is_admin:
        raise Forbidden(f"user {principal.user_id} may not assign {ROLE_ADMIN}")
