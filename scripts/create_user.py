import argparse
import getpass
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rentify.database import PASSWORD_MIN_LENGTH, Database, resolve_database_path
from rentify.errors import AuthError
from rentify.identity import validate_signup
from rentify.models import Role


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a Rentify user account")
    parser.add_argument("name", help="Full name for the user")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--role",
        choices=[role.value for role in Role],
        default=Role.TENANT.value,
        help="Account type (default: tenant)",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to RENTIFY_DB_PATH or data/rentify.sqlite3)",
    )
    return parser.parse_args(argv)


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


def main(argv=None) -> int:
    args = parse_args(argv)
    password = prompt_for_password()

    try:
        role = validate_signup(args.email, password, args.name, args.role)
    except AuthError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    db_env = args.db_path or os.getenv("RENTIFY_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()

    try:
        user = database.create_user(args.name.strip(), args.email.strip().lower(), password, role)
    except ValueError as exc:  # duplicates, etc.
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created {user.role.value} {user.id}: {user.full_name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
