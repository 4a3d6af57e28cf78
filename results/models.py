"""
results/models.py -- Domain dataclass for a recorded score.

Pure data container, frozen like auth.models.User: updates go through
dataclasses.replace() in services/results.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from auth.models import User


@dataclass(frozen=True)
class Result:
    """A score recorded for a user.

    `user` is filled in by ResultStore on reads (joined from the users table)
    so the representation can embed the owner. It is ignored on writes; the
    owner is always identified by user_id.

    id is None before the record is written to the database.
    """

    value: int
    user_id: int
    time: datetime
    id: int | None = None
    user: User | None = field(default=None, compare=False)
