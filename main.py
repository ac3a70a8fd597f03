"""Command-line interface for the autocall administration service."""

from __future__ import annotations

import argparse
import logging
import sys
from getpass import getpass
from typing import Sequence

from autocall.api import PASSWORD_MIN_LENGTH
from autocall.config import ConfigurationError, Settings, load_settings
from autocall.database import Database, DuplicateUserError

logger = logging.getLogger("autocall.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Autocall administration utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the user database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )

    subparsers.add_parser("admin", help="Launch the interactive user administration console")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "admin", "init-db"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, settings: Settings, database: Database, host: str, port: int) -> None:
    from autocall.service import create_app
    import uvicorn

    logger.info("Starting autocall API on http://%s:%s", host, port)
    app = create_app(settings=settings, database=database)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _run_admin_cli(database: Database) -> None:
    """Provide an interactive user management console."""

    print("Autocall Administration Console")
    print("Press Ctrl+C at any time to exit.\n")

    try:
        while True:
            print("Select an option:")
            print("  1) List all users")
            print("  2) Add a new user")
            print("  3) Delete a user")
            print("  4) Exit")

            choice = input("Enter choice [1-4]: ").strip()

            if choice == "1":
                _list_users(database)
            elif choice == "2":
                _add_user(database)
            elif choice == "3":
                _delete_user(database)
            elif choice == "4":
                print("Goodbye!")
                return
            else:
                print("Invalid selection. Please choose a number from the menu.\n")

            print()
    except KeyboardInterrupt:
        print("\nExiting administration console.")


def _list_users(database: Database) -> None:
    users = database.list_users()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<24}  {'Name':<24}  {'Email':<32}  Created")
    print("-" * 100)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{user.id:<24}  {(user.name or '-'):<24}  {user.email:<32}  {created}")


def _add_user(database: Database) -> None:
    print("\nCreate a new user (leave the email blank to cancel).")
    email = input("Email address: ").strip()
    if not email:
        print("User creation cancelled.")
        return

    name = input("Name (optional): ").strip() or None

    password = _prompt_for_password()
    if password is None:
        print("Aborted creating user.")
        return

    try:
        user = database.create_user(email, password, name)
    except DuplicateUserError as exc:
        print(f"Failed to create user: {exc}")
        return

    print(f"Created user {user.id}: {user.name or '-'} <{user.email}>")


def _delete_user(database: Database) -> None:
    email = input("Email of the user to delete: ").strip()
    if not email:
        print("Deletion cancelled.")
        return

    user = database.get_user_by_email(email)
    if user is None:
        print(f"No user is registered with {email}.")
        return

    confirmation = input(f"Type the email again to delete {user.id}: ").strip()
    if confirmation != email:
        print("Confirmation did not match. Nothing was deleted.")
        return

    if database.delete_user(user.id):
        print(f"Deleted user {user.id}.")
    else:
        print("User was already removed.")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {PASSWORD_MIN_LENGTH} characters): ")
        if len(password) < PASSWORD_MIN_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(settings=settings, database=database, host=args.host, port=args.port)
    elif args.command == "admin":
        _run_admin_cli(database)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
