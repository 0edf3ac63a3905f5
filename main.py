#!/usr/bin/env python3
"""
ReadShelf -- operator commands.

Self-registration always creates plain users, so the first admin (and any
later role change) is made from the command line against the configured
database.

Usage:
  python main.py create-admin --name "Site Admin" --email admin@example.com --password 'S3cretPass'
  python main.py set-role --email alice@example.com --role admin
  python main.py set-role --email alice@example.com --role user

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the ReadShelf database (see core/config.py).
  SECRET_KEY     Required unless DEBUG=true, as for the API server.
"""

import argparse
import sys

from auth.credentials import CredentialStore
from auth.models import ROLE_ADMIN, ROLES
from auth.store import UserStore
from core.config import get_settings
from core.errors import EmailInUseError


def _create_admin(store: UserStore, args: argparse.Namespace) -> int:
    settings = get_settings()
    credentials = CredentialStore(store, bcrypt_rounds=settings.bcrypt_rounds)
    try:
        user = credentials.register(args.name, args.email, args.password)
    except EmailInUseError:
        print(f"  [!] An account for {args.email} already exists. Use set-role instead.")
        return 1
    store.update_user(user.id, role=ROLE_ADMIN)
    print(f"  [+] Created admin {user.email} (id {user.id})")
    return 0


def _set_role(store: UserStore, args: argparse.Namespace) -> int:
    user = store.get_by_email(args.email)
    if user is None:
        print(f"  [!] No account for {args.email}.")
        return 1
    store.update_user(user.id, role=args.role)
    print(f"  [+] {user.email}: {user.role} -> {args.role}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="readshelf", description="ReadShelf operator commands.")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-admin", help="Create an administrator account.")
    create.add_argument("--name", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--password", required=True)
    create.set_defaults(handler=_create_admin)

    role = sub.add_parser("set-role", help="Change the role of an existing account.")
    role.add_argument("--email", required=True)
    role.add_argument("--role", required=True, choices=ROLES)
    role.set_defaults(handler=_set_role)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    store = UserStore(get_settings().database_url)
    try:
        return args.handler(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
