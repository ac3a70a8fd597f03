import argparse
import getpass
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from autocall.api import PASSWORD_MIN_LENGTH
from autocall.config import resolve_database_path
from autocall.database import Database, DuplicateUserError


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an autocall administration user")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument("--name", default=None, help="Optional display name")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to AUTOCALL_DB_PATH or data/autocall.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < PASSWORD_MIN_LENGTH:
            print(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    db_path = resolve_database_path(args.db_path or os.getenv("AUTOCALL_DB_PATH"))

    database = Database(db_path)
    database.initialize()

    try:
        user = database.create_user(args.email.strip(), password, args.name)
    except DuplicateUserError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user {user.id}: {user.name or '-'} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
