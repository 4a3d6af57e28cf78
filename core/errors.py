"""
core/errors.py -- Business error taxonomy for the Results API.

Services and the auth layer raise these; api/main.py registers one exception
handler for ApiError that renders the {code, message} envelope in the
negotiated format. Nothing below knows about HTTP responses beyond the
status code each error maps to.

Invariants:
  - message is always the standard reason phrase of status_code. Internal
    detail goes to the log via `detail`, never to the client.
  - Conflict and InvalidSortKey are BadRequest subclasses: both surface as 400.
"""

from __future__ import annotations

from http import HTTPStatus


class ApiError(Exception):
    """Base class for every recoverable business error."""

    status_code: int = 500

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.message)
        self.detail = detail

    @property
    def message(self) -> str:
        return HTTPStatus(self.status_code).phrase


class BadRequest(ApiError):
    status_code = 400


class Conflict(BadRequest):
    """A uniqueness rule was violated (duplicate email, duplicate result)."""


class InvalidSortKey(BadRequest):
    """The requested sort key is not in the repository's allow-list."""

    def __init__(self, key: str, allowed) -> None:
        super().__init__(f"sort key {key!r} not in {sorted(allowed)}")
        self.key = key


class Unauthenticated(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class UnprocessableEntity(ApiError):
    status_code = 422
