"""
core/database.py -- Shared SQLAlchemy Core schema and engine factory.

Users and results live in one database because results reference users by
foreign key. The tables are declared once here; auth/store.py and
results/store.py are the repositories that read and write them.

SQLAlchemy Core (not ORM) keeps the frozen dataclasses in auth/models.py and
results/models.py as the authoritative domain representation. Nothing in the
schema is SQLite specific: the PRAGMA listener only attaches to SQLite URLs,
and the JSON roles column is ordered on its text form (auth/store.py).

Security: all repository queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from sqlalchemy import JSON, Column, ForeignKey, Integer, MetaData, String, Table, create_engine, event
from sqlalchemy.engine import Engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(180), nullable=False, unique=True),
    Column("password", String(255), nullable=False),  # Argon2id digest
    Column("roles", JSON, nullable=False),  # stored roles only, never the implicit base role
)

results = Table(
    "results",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("result", Integer, nullable=False, unique=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("time", String(32), nullable=False),  # ISO 8601, UTC
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. Without foreign_keys=ON the CASCADE on
    results.user_id is silently ignored.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_url: str) -> Engine:
    """Create an engine for db_url and make sure every table exists."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _configure_sqlite)
    metadata.create_all(engine)
    return engine
