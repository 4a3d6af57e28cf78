"""
API request and response models for the Results API REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the frozen dataclasses in auth/models.py and
results/models.py, which own the internal domain representation. Route
handlers map between the two.

Every request field is optional at the schema level: a missing required field
is a business error (422 envelope raised by the service), not a schema error,
so callers get the same {code, message} answer whichever field they omitted.
Type errors (e.g. "result": "abc") are still rejected by Pydantic and rendered
as 422 by the RequestValidationError handler.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users."""

    email: Optional[str] = Field(default=None, max_length=180)
    password: Optional[str] = Field(default=None, max_length=255)
    roles: Optional[list[str]] = None

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        """Trim the email only. Passwords are hashed exactly as sent."""
        return value.strip() if isinstance(value, str) else value


class UserUpdate(UserCreate):
    """Request body for PUT /api/v1/users/{id}. Omitted fields are left unchanged."""


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ResultCreate(BaseModel):
    """Request body for POST /api/v1/results.

    `user` is the owner's id. `time` defaults to the moment of creation.
    """

    result: Optional[int] = None
    user: Optional[int] = None
    time: Optional[datetime] = None


class ResultUpdate(BaseModel):
    """Request body for PUT /api/v1/results/{id}. Omitted fields are left unchanged."""

    result: Optional[int] = None
    user: Optional[int] = None
    time: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Login and health
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Body of a successful POST /api/v1/login_check. The token is also sent as X-Token."""

    model_config = ConfigDict(frozen=True)

    token: str


class HealthResponse(BaseModel):
    """Response body for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
