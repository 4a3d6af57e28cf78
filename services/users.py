"""
services/users.py -- Business rules for the Users resource.

UsersService sits between the route handlers and UserStore. It owns:
  - required-field checks (UnprocessableEntity)
  - email uniqueness (Conflict, surfaced as 400)
  - existence checks (NotFound)
  - the ROLE_ADMIN assignment rule on update (Forbidden)
  - password hashing whenever a password is set

Coarse authorization (who may call create/update/delete at all) is decided in
the route layer through auth/policy.py before the service is reached.

Records are immutable: update() builds the new value with dataclasses.replace()
and writes it back in a single statement.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from auth.models import Principal, User
from auth.policy import check_role_assignment
from auth.store import UserStore
from auth.tokens import hash_password
from core.errors import Conflict, NotFound, UnprocessableEntity

logger = logging.getLogger("resultsapi.users")


class UsersService:
    def __init__(self, store: UserStore) -> None:
        self.store = store

    def list(self, sort: str = "id") -> list[User]:
        """Return all users ascending by `sort`. An empty store is NotFound, not an empty list."""
        users = self.store.list_users(sort)
        if not users:
            raise NotFound("no users")
        return users

    def get(self, user_id: int) -> User:
        user = self.store.get_by_id(user_id)
        if user is None:
            raise NotFound(f"user {user_id}")
        return user

    def create(self, email: str | None, password: str | None, roles: Iterable[str] | None = None) -> User:
        """Register a user. The base role is implied on read and never stored."""
        if not email or not email.strip() or not password:
            raise UnprocessableEntity("email and password are required")
        if self.store.get_by_email(email) is not None:
            raise Conflict(f"email already registered: {email}")

        user = User(
            email=email,
            password_hash=hash_password(password),
            stored_roles=frozenset(roles or ()),
        )
        user_id = self.store.create_user(user)
        logger.info("Created user %s (%s)", user_id, email)
        return replace(user, id=user_id)

    def update(
        self,
        user_id: int,
        principal: Principal,
        *,
        email: str | None = None,
        password: str | None = None,
        roles: Iterable[str] | None = None,
    ) -> User:
        """Apply a partial update. Arguments left as None are not changed.

        Checks run in order: existence, blank fields, email uniqueness, role
        assignment. Nothing is written unless every check passes.
        """
        user = self.get(user_id)

        if email is not None and not email.strip():
            raise UnprocessableEntity("email may not be blank")
        if password is not None and not password:
            raise UnprocessableEntity("password may not be blank")

        changes: dict = {}
        if email is not None:
            holder = self.store.get_by_email(email)
            if holder is not None and holder.id != user_id:
                raise Conflict(f"email already registered: {email}")
            changes["email"] = email
        if password is not None:
            changes["password_hash"] = hash_password(password)
        if roles is not None:
            roles = frozenset(roles)
            check_role_assignment(principal, roles)
            changes["stored_roles"] = roles

        if changes:
            user = replace(user, **changes)
            self.store.update_user(user)
            logger.info(
                "Updated user %s (fields: %s) by user %s",
                user_id,
                ", ".join(sorted(changes)),
                principal.user_id,
            )
        return user

    def delete(self, user_id: int) -> None:
        if not self.store.delete_user(user_id):
            raise NotFound(f"user {user_id}")
        logger.info("Deleted user %s", user_id)
