"""
services/results.py -- Business rules for the Results resource.

Shape mirrors services/users.py. A result value is unique across all results:
create() rejects a value that already exists, update() rejects a value held
by a *different* result (re-submitting a result's own value is a no-op, not a
conflict). A result must reference an existing user.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone

from auth.store import UserStore
from core.errors import BadRequest, NotFound, UnprocessableEntity
from results.models import Result
from results.store import ResultStore

logger = logging.getLogger("resultsapi.results")


class ResultsService:
    def __init__(self, store: ResultStore, users: UserStore) -> None:
        self.store = store
        self.users = users

    def list(self, sort: str = "id") -> list[Result]:
        """Return all results ascending by `sort`; an empty store is NotFound."""
        results = self.store.list_results(sort)
        if not results:
            raise NotFound("no results")
        return results

    def get(self, result_id: int) -> Result:
        result = self.store.get_by_id(result_id)
        if result is None:
            raise NotFound(f"result {result_id}")
        return result

    def create(self, value: int | None, user_id: int | None, time: datetime | None = None) -> Result:
        if value is None or user_id is None:
            raise UnprocessableEntity("result and user are required")
        owner = self.users.get_by_id(user_id)
        if owner is None:
            raise BadRequest(f"user {user_id} does not exist")
        if self.store.get_by_value(value) is not None:
            raise BadRequest(f"result value already recorded: {value}")

        result = Result(
            value=value,
            user_id=user_id,
            time=time or datetime.now(timezone.utc),
        )
        result_id = self.store.create_result(result)
        logger.info("Created result %s (value=%s, user=%s)", result_id, value, user_id)
        return self.get(result_id)

    def update(
        self,
        result_id: int,
        *,
        value: int | None = None,
        user_id: int | None = None,
        time: datetime | None = None,
    ) -> Result:
        """Apply a partial update. Arguments left as None are not changed."""
        result = self.get(result_id)

        changes: dict = {}
        if value is not None:
            holder = self.store.get_by_value(value)
            if holder is not None and holder.id != result_id:
                raise BadRequest(f"result value already recorded: {value}")
            changes["value"] = value
        if user_id is not None:
            if self.users.get_by_id(user_id) is None:
                raise BadRequest(f"user {user_id} does not exist")
            changes["user_id"] = user_id
        if time is not None:
            changes["time"] = time

        if not changes:
            return result
        self.store.update_result(replace(result, **changes))
        logger.info("Updated result %s (fields: %s)", result_id, ", ".join(sorted(changes)))
        return self.get(result_id)

    def delete(self, result_id: int) -> None:
        if not self.store.delete_result(result_id):
            raise NotFound(f"result {result_id}")
        logger.info("Deleted result %s", result_id)
