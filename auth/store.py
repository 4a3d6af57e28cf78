"""
auth/store.py -- SQLAlchemy Core persistence layer for users (the credential store).

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Services and route code never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL. Sort columns are
  looked up in a fixed allow-list, never taken from raw user input.

Layer rule: no imports from api/, results/, or services/.
"""

from __future__ import annotations

from sqlalchemy import String, cast, func, select
from sqlalchemy.engine import Engine

from auth.models import User
from core.database import users as _users
from core.errors import InvalidSortKey

_SORT_COLUMNS = {
    "id": _users.c.id,
    "email": _users.c.email,
    # JSON is not orderable on every backend; sort its serialized text.
    "roles": cast(_users.c.roles, String),
}


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(create_db_engine("sqlite:///users.db"))
        user_id = store.create_user(User(email="a@x.com", password_hash=hash_password("p")))
        user = store.get_by_email("a@x.com")
    """

    SORT_KEYS = frozenset(_SORT_COLUMNS)

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self, sort: str = "id") -> list[User]:
        """Return every user ordered ascending by `sort`.

        Raises InvalidSortKey when `sort` is not one of SORT_KEYS. No
        pagination: all rows are returned.
        """
        column = _SORT_COLUMNS.get(sort)
        if column is None:
            raise InvalidSortKey(sort, self.SORT_KEYS)
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(column.asc(), _users.c.id.asc())).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        UsersService checks first; the UNIQUE column is the backstop for
        concurrent duplicate submissions.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=user.email,
                    password=user.password_hash,
                    roles=sorted(user.stored_roles),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_user(self, user: User) -> bool:
        """Persist every field of `user` onto the row with the same id.

        Returns True if a row was updated, False if user.id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user.id)
                .values(
                    email=user.email,
                    password=user.password_hash,
                    roles=sorted(user.stored_roles),
                )
            )
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        The user's results go with it (ON DELETE CASCADE on results.user_id).
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password,
        stored_roles=frozenset(row.roles or ()),
    )
