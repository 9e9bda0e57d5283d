#!/usr/bin/env python3
"""
Warden -- management commands.

Usage:
  python main.py create-admin --email admin@example.com --password s3cretpass
  python main.py create-admin --email admin@example.com --password s3cretpass --name Ada --last-name Lovelace
  python main.py purge-tokens

Both commands use DATABASE_URL (and the rest of Settings) exactly as the API does.
"""

import argparse
import logging
from typing import Optional

from pydantic import ValidationError

from api.models import RoleEnum, UserCreate
from auth.store import TokenStore, UserStore, create_db_engine
from auth.users import UserService
from core.config import get_settings
from core.errors import AppError

logger = logging.getLogger("warden.cli")


def _create_admin(args: argparse.Namespace, users: UserService) -> int:
    try:
        body = UserCreate(
            email=args.email,
            password=args.password,
            name=args.name,
            last_name=args.last_name,
            role=RoleEnum.admin,
        )
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"]) or "input"
            print(f"  [!] {field}: {err['msg']}")
        return 1

    try:
        user = users.create_user(
            email=body.email,
            password=body.password,
            name=body.name,
            last_name=body.last_name,
            role=body.role.value,
        )
    except AppError as e:
        print(f"  [!] {e.message}")
        return 1

    logger.info("Admin %s created from the command line", user.id)
    print(f"  Admin {user.email} created (id {user.id}).")
    return 0


def _purge_tokens(tokens: TokenStore) -> int:
    purged = tokens.purge_expired()
    print(f"  {purged} expired token record(s) removed.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="warden",
        description="Management commands for the Warden auth service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --email admin@example.com --password s3cretpass
  DATABASE_URL=sqlite:////var/lib/warden/warden.db python main.py purge-tokens
        """,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin = subparsers.add_parser("create-admin", help="Create a user with the admin role")
    admin.add_argument("--email", required=True, help="Login email for the new admin")
    admin.add_argument(
        "--password",
        required=True,
        help="At least 8 characters with at least one letter and one number",
    )
    admin.add_argument("--name", default="Admin", help="First name (default: Admin)")
    admin.add_argument("--last-name", default="User", help="Last name (default: User)")

    subparsers.add_parser("purge-tokens", help="Delete expired refresh/reset/verify token records")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)-5s %(name)s %(message)s")

    engine = create_db_engine(settings.database_url)
    try:
        if args.command == "create-admin":
            return _create_admin(args, UserService(UserStore(engine)))
        return _purge_tokens(TokenStore(engine))
    finally:
        engine.dispose()


if __name__ == "__main__":
    raise SystemExit(main())
