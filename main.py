#!/usr/bin/env python3
"""
Roster -- user registration, password login and role-based access control.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000
  python main.py create-user admin 'a-strong-password' --role admin
  python main.py list-users

Environment variables:
  SECRET_KEY     Required. At least 32 characters. Signs session tokens.
  DATABASE_URL   Required. e.g. sqlite:///roster.db or postgresql://user:pw@host/db
  TOKEN_EXPIRE_SECONDS, BCRYPT_ROUNDS, LOG_LEVEL  Optional.

Registration through the API always creates role "user". create-user is the
way to bootstrap the first admin.
"""

import argparse
import sys
from datetime import timedelta
from typing import Optional

from pydantic import ValidationError

from auth.accounts import AccountService
from auth.errors import AccountError
from auth.models import Role
from auth.passwords import PasswordHasher
from auth.policy import AccessPolicy
from auth.store import UserStore
from auth.tokens import TokenAuthority
from core.config import Settings, get_settings


def _load_settings() -> Optional[Settings]:
    try:
        return get_settings()
    except ValidationError as e:
        for err in e.errors():
            print(f"  [!] {err['msg']}", file=sys.stderr)
        return None


def _build_accounts(settings: Settings) -> AccountService:
    store = UserStore(settings.database_url)
    return AccountService(
        store,
        PasswordHasher(rounds=settings.bcrypt_rounds),
        TokenAuthority(
            settings.secret_key.get_secret_value(),
            ttl=timedelta(seconds=settings.token_expire_seconds),
        ),
        AccessPolicy(),
    )


def _create_user(args: argparse.Namespace, settings: Settings) -> int:
    accounts = _build_accounts(settings)
    try:
        identity = accounts.create_identity(args.username.strip(), args.password, args.role)
    except AccountError as e:
        print(f"  [!] {e.message}", file=sys.stderr)
        return 1
    finally:
        accounts.store.close()
    print(f"Created user '{identity.username}' (id={identity.id}) with role '{identity.role.value}'.")
    return 0


def _list_users(settings: Settings) -> int:
    accounts = _build_accounts(settings)
    try:
        identities = accounts.list_identities()
    finally:
        accounts.store.close()
    if not identities:
        print("No users yet. Create the first admin with: python main.py create-user NAME PASSWORD --role admin")
        return 0
    for identity in identities:
        print(f"{identity.id:>5}  {identity.username:<32}  {identity.role.value:<5}  {identity.created_at}")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="roster",
        description="User registration, login and role-based access control service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --port 5000
  python main.py create-user admin 'a-strong-password' --role admin
  python main.py list-users
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=5000, help="Bind port (default: 5000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")

    create = sub.add_parser("create-user", help="Create a user directly in the store")
    create.add_argument("username", help="Username (3-32 chars)")
    create.add_argument("password", help="Password (8-32 chars)")
    create.add_argument("--role", choices=[r.value for r in Role], default=Role.USER.value)

    sub.add_parser("list-users", help="List all users, oldest first")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    # Fail fast: every command needs a complete configuration, serve included.
    settings = _load_settings()
    if settings is None:
        return 1

    if args.command == "serve":
        return _serve(args)
    if args.command == "create-user":
        return _create_user(args, settings)
    return _list_users(settings)


if __name__ == "__main__":
    sys.exit(main())
