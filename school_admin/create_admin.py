"""Create the first administrator account.

Usage:
    python -m school_admin.create_admin --username admin --email admin@school.test --full-name "School Admin"

The password is read from the ADMIN_PASSWORD environment variable or
prompted for, so it never appears in shell history.
"""
import argparse
import getpass
import os
import sys

from school_admin.core.exceptions import SchoolAdminError
from school_admin.core.logging_config import setup_logging
from school_admin.database import ConnectionManager, init_schema
from school_admin.store.user_store import UserStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an administrator account.")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--full-name", default="Administrator")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, db: ConnectionManager | None = None) -> int:
    setup_logging()
    args = parse_args(argv)
    password = os.getenv("ADMIN_PASSWORD") or getpass.getpass("Password: ")
    if not password:
        print("A password is required.", file=sys.stderr)
        return 1

    db = db or ConnectionManager.from_config()
    init_schema(db.engine)
    users = UserStore(db)

    if users.username_exists(args.username) or users.email_exists(args.email):
        print(f"User {args.username} or email {args.email} already exists.", file=sys.stderr)
        return 1

    try:
        user = users.create({
            "username": args.username,
            "email": args.email,
            "full_name": args.full_name,
            "role": "admin",
            "is_active": True,
            "password": password,
        })
    except SchoolAdminError as exc:
        print(f"Could not create administrator: {exc.message}", file=sys.stderr)
        return 1

    print(f"Created administrator {user['username']} ({user['id']})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
