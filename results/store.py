"""
results/store.py -- SQLAlchemy Core persistence layer for results.

Pattern: Repository + Data Mapper (same as auth/store.py). Every read joins
the owning user so Result.user is populated; the route layer never issues a
second query to render the embedded owner.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.engine import Engine

from auth.models import User
from core.database import results as _results
from core.database import users as _users
from core.errors import InvalidSortKey
from results.models import Result

_SORT_COLUMNS = {
    "id": _results.c.id,
    "result": _results.c.result,
    "user": _results.c.user_id,
    "time": _results.c.time,
}

# Result columns plus the owner's columns under distinct labels.
_JOINED = select(
    _results.c.id,
    _results.c.result,
    _results.c.user_id,
    _results.c.time,
    _users.c.email.label("user_email"),
    _users.c.password.label("user_password"),
    _users.c.roles.label("user_roles"),
).select_from(_results.join(_users, _results.c.user_id == _users.c.id))


class ResultStore:
    """Repository for Result entities.

    Usage:
        store = ResultStore(engine)
        result_id = store.create_result(Result(value=2020, user_id=1, time=datetime.now(timezone.utc)))
        store.list_results(sort="time")
    """

    SORT_KEYS = frozenset(_SORT_COLUMNS)

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, result_id: int) -> Result | None:
        with self.engine.connect() as conn:
            row = conn.execute(_JOINED.where(_results.c.id == result_id)).fetchone()
        return _row_to_result(row) if row is not None else None

    def get_by_value(self, value: int) -> Result | None:
        """Return the result holding `value`, or None. Values are unique."""
        with self.engine.connect() as conn:
            row = conn.execute(_JOINED.where(_results.c.result == value)).fetchone()
        return _row_to_result(row) if row is not None else None

    def list_results(self, sort: str = "id") -> list[Result]:
        """Return every result ordered ascending by `sort`.

        Raises InvalidSortKey when `sort` is not one of SORT_KEYS.
        """
        column = _SORT_COLUMNS.get(sort)
        if column is None:
            raise InvalidSortKey(sort, self.SORT_KEYS)
        with self.engine.connect() as conn:
            rows = conn.execute(_JOINED.order_by(column.asc(), _results.c.id.asc())).fetchall()
        return [_row_to_result(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_result(self, result: Result) -> int:
        """Insert a new result and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError on a duplicate value or a
        dangling user_id that slipped past the service pre-checks.
        """
        with self.engine.connect() as conn:
            inserted = conn.execute(
                _results.insert().values(
                    result=result.value,
                    user_id=result.user_id,
                    time=_to_iso(result.time),
                )
            )
            conn.commit()
            return inserted.inserted_primary_key[0]

    def update_result(self, result: Result) -> bool:
        """Persist every field of `result` onto the row with the same id."""
        with self.engine.connect() as conn:
            updated = conn.execute(
                _results.update()
                .where(_results.c.id == result.id)
                .values(
                    result=result.value,
                    user_id=result.user_id,
                    time=_to_iso(result.time),
                )
            )
            conn.commit()
        return updated.rowcount > 0

    def delete_result(self, result_id: int) -> bool:
        """Delete one result. The owning user is never touched."""
        with self.engine.connect() as conn:
            deleted = conn.execute(_results.delete().where(_results.c.id == result_id))
            conn.commit()
        return deleted.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(moment: datetime) -> str:
    # Naive datetimes are taken to be UTC so stored strings sort chronologically.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _row_to_result(row) -> Result:
    return Result(
        id=row.id,
        value=row.result,
        user_id=row.user_id,
        time=datetime.fromisoformat(row.time),
        user=User(
            id=row.user_id,
            email=row.user_email,
            password_hash=row.user_password,
            stored_roles=frozenset(row.user_roles or ()),
        ),
    )
