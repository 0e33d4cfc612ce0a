#!/usr/bin/env python3
"""Register a bridge user so it can log in and obtain a bearer token."""
from __future__ import annotations

import argparse
import getpass
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from bridge.services.auth_service import UserAuthManager  # noqa: E402
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler  # noqa: E402
from infrastructure.logging.audit import AuditLogger  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a user for the greenhouse bridge.")
    parser.add_argument("username", help="Login name")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=os.getenv("BRIDGE_DATABASE_PATH", "database/bridge.db"),
        help="Path to SQLite database (default: $BRIDGE_DATABASE_PATH or database/bridge.db)",
    )
    parser.add_argument(
        "--password",
        help="Password (prompted for when omitted; avoid passing it on shared machines)",
    )
    args = parser.parse_args(argv)

    username = args.username.strip()
    if not username:
        print("Username must not be blank.")
        return 1

    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Repeat password: "):
            print("Passwords do not match.")
            return 1
    if not password:
        print("Password must not be empty.")
        return 1

    database = SQLiteDatabaseHandler(args.db_path)
    database.create_tables()
    audit = AuditLogger(os.getenv("BRIDGE_AUDIT_LOG_PATH", "logs/audit.log"))
    manager = UserAuthManager(database, audit)
    try:
        if not manager.register_user(username, password):
            print(f"Could not create user '{username}' (already exists?).")
            return 1
    finally:
        database.close_db()

    print(f"User '{username}' created in {args.db_path}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
