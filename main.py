"""Command-line interface for the Rentify service."""

from __future__ import annotations
import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

from rentify.config import load_seed_data, resolve_seed_path
from rentify.database import Database, resolve_database_path
from rentify.models import Snapshot

logger = logging.getLogger("rentify.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rentify apartment rental utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the local database")

    serve_parser = subparsers.add_parser("serve", help="Start the web application")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the web server")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the web server (default: 8000)",
    )
    serve_parser.add_argument(
        "--ssl-certfile",
        default=None,
        help="Path to the TLS certificate chain in PEM format",
    )
    serve_parser.add_argument(
        "--ssl-keyfile",
        default=None,
        help="Path to the TLS private key in PEM format",
    )

    seed_parser = subparsers.add_parser("seed", help="Load demo records into the local database")
    seed_parser.add_argument(
        "--file",
        dest="seed_file",
        default=None,
        help="YAML file with demo records (defaults to RENTIFY_SEED_FILE or config/seed.yaml)",
    )

    subparsers.add_parser("stats", help="Print dashboard statistics for the local database")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "seed", "stats"}

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


def _initialise_database() -> Database:
    db_path = resolve_database_path(os.getenv("RENTIFY_DB_PATH"))
    database = Database(db_path)
    database.initialize()
    logger.info("Database initialised at %s", db_path)
    return database


def _serve(
    *,
    host: str,
    port: int,
    ssl_certfile: str | None,
    ssl_keyfile: str | None,
) -> None:
    from rentify.application import create_application
    import uvicorn

    if bool(ssl_certfile) ^ bool(ssl_keyfile):
        raise SystemExit("Both --ssl-certfile and --ssl-keyfile must be provided together.")

    protocol = "https" if ssl_certfile and ssl_keyfile else "http"
    logger.info("Starting Rentify on %s://%s:%s", protocol, host, port)

    try:
        app = create_application()
    except (RuntimeError, ValueError) as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
        ssl_certfile=ssl_certfile,
        ssl_keyfile=ssl_keyfile,
    )


def _seed(database: Database, seed_file: str | None) -> int:
    seed_path = resolve_seed_path(seed_file or os.getenv("RENTIFY_SEED_FILE"))
    if not seed_path.exists():
        print(f"Seed file not found: {seed_path}")
        return 1
    try:
        seed = load_seed_data(seed_path)
        counts = database.apply_seed(seed)
    except ValueError as exc:
        print(f"Failed to load seed data: {exc}")
        return 1

    print(
        "Seeded {users} user(s), {apartments} apartment(s), "
        "{applications} application(s) and {complaints} complaint(s).".format(**counts)
    )
    return 0


def _load_stats(database: Database) -> Snapshot:
    from rentify.dashboard import DashboardAggregator
    from rentify.notifications import MemoryNotifier
    from rentify.sessions import SessionContext

    notifier = MemoryNotifier()
    aggregator = DashboardAggregator(database, SessionContext(), notifier)
    snapshot = asyncio.run(aggregator.load_snapshot())
    for item in notifier.messages:
        print(f"[{item.category}] {item.message}")
    return snapshot


def _print_stats(snapshot: Snapshot) -> None:
    stats = snapshot.stats
    print("Dashboard statistics:")
    print(f"  Users:        {stats.total_users}")
    print(f"  Landlords:    {stats.total_landlords}")
    print(f"  Tenants:      {stats.total_tenants}")
    print(f"  Apartments:   {stats.total_apartments}")
    print(f"  Applications: {stats.total_applications}")
    print(f"  Complaints:   {stats.total_complaints}")
    print()
    _list_users(snapshot)


def _list_users(snapshot: Snapshot) -> None:
    users = snapshot.users
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'Name':<24}  {'Email':<32}  {'Role':<9}  {'Status':<8}  Created")
    print("-" * 96)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z") if user.created_at else "unknown"
        status = "active" if user.is_active else "inactive"
        print(f"{user.full_name:<24}  {user.email:<32}  {user.role.value:<9}  {status:<8}  {created}")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "serve":
        _serve(
            host=args.host,
            port=args.port,
            ssl_certfile=args.ssl_certfile,
            ssl_keyfile=args.ssl_keyfile,
        )
        return 0

    database = _initialise_database()
    if args.command == "init-db":
        print("Database initialisation complete.")
    elif args.command == "seed":
        return _seed(database, args.seed_file)
    elif args.command == "stats":
        _print_stats(_load_stats(database))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
