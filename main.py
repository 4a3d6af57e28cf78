#!/usr/bin/env python3
"""
Results API -- console tooling.

Usage:
  python main.py create-user admin1@example.com "*MyPa44w0r6*" --admin
  python main.py create-user player@example.com secret

Environment variables:
  DATABASE_URL  Database to write to (defaults to the API's SQLite file).
  SECRET_KEY    Required unless DEBUG=true; read because importing the auth
                layer loads the application settings.
"""

import argparse
import sys
from typing import Optional

from auth.models import ROLE_ADMIN
from auth.store import UserStore
from core.config import get_settings
from core.database import create_db_engine
from core.errors import ApiError
from services.users import UsersService


def create_user(email: str, password: str, admin: bool = False, db_url: Optional[str] = None) -> int:
    """Create one user and return its id. Raises ApiError on a business rule violation."""
    engine = create_db_engine(db_url or get_settings().database_url)
    try:
        service = UsersService(UserStore(engine))
        user = service.create(email, password, [ROLE_ADMIN] if admin else [])
    finally:
        engine.dispose()
    return user.id


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="main.py",
        description="Results API console tooling.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser(
        "create-user",
        help="Create a new user",
        description="Add a new user. The base role is always granted; --admin adds ROLE_ADMIN.",
    )
    create.add_argument("email", help="User e-mail")
    create.add_argument("password", help="User password")
    create.add_argument("--admin", action="store_true", help="Grant ROLE_ADMIN")

    args = parser.parse_args(argv)

    if args.command == "create-user":
        try:
            user_id = create_user(args.email, args.password, admin=args.admin)
        except ApiError as exc:
            print(f"  [!] {exc.message}: {exc.detail}", file=sys.stderr)
            return 1
        print("User Creator")
        print("============")
        print(f"Created user '{args.email}' with id: {user_id}")
        return 0
    return 2


if __name__ == "__main__":
    sys.exit(main())
