import argparse
import os
import sys
from pathlib import Path
from typing import Sequence

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.database import Database, EmailAlreadyExistsError, UserStoreError, resolve_database_path


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Add a user to the directory database")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to USERS_DB_PATH or data/users.sqlite3)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    name = args.name.strip()
    email = args.email.strip()
    if not name or not email:
        print("Error: name and email are required", file=sys.stderr)
        return 2

    db_env = args.db_path or os.getenv("USERS_DB_PATH")
    database = Database(resolve_database_path(db_env))
    database.initialize()

    try:
        user = database.create_user(name, email)
    except EmailAlreadyExistsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except UserStoreError as exc:
        print(f"Error: failed to create user: {exc}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
