#!/usr/bin/env python3
"""
Conlang Studio -- operator command line.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 3000
  python main.py create-user alice
  echo "s3cret" | python main.py create-user alice --password-stdin
  python main.py purge-sessions

Environment variables (see core/config.py):
  SECRET_KEY    Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL  SQLAlchemy URL. Defaults to sqlite:///studio.db beside the code.
"""

import argparse
import getpass
import sys

from core.config import get_settings
from core.database import Database
from core.errors import StudioError
from tracker.service import build_service


def _read_password(from_stdin: bool) -> str:
    """Read a password without echo, or from stdin for scripted use."""
    if from_stdin:
        return sys.stdin.readline().rstrip("\n")
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return first


def _create_user(args: argparse.Namespace) -> int:
    settings = get_settings()
    db = Database(settings.database_url)
    try:
        tracker = build_service(db, session_ttl_seconds=settings.session_ttl_seconds)
        password = _read_password(args.password_stdin)
        try:
            result = tracker.register(args.username, password)
        except StudioError as exc:
            print(f"  [!] {exc.message}")
            return 1
        # Registration logs the account in; the CLI has no use for that session.
        tracker.logout(result.token)
        print(f"  Created user {result.username!r} (id={result.user_id}).")
        return 0
    finally:
        db.close()


def _purge_sessions(args: argparse.Namespace) -> int:
    settings = get_settings()
    db = Database(settings.database_url)
    try:
        tracker = build_service(db, session_ttl_seconds=settings.session_ttl_seconds)
        removed = tracker.sessions.purge_expired()
    finally:
        db.close()
    print(f"  Removed {removed} expired session(s).")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="conlang-studio",
        description="Multi-user project tracker for constructed languages.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py create-user alice
  python main.py purge-sessions
        """,
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the web UI and API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=3000, help="Port (default: 3000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Register an account from the shell")
    create.add_argument("username", help="Username for the new account")
    create.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )
    create.set_defaults(func=_create_user)

    purge = sub.add_parser("purge-sessions", help="Delete expired sessions")
    purge.set_defaults(func=_purge_sessions)

    args = parser.parse_args()
    if not getattr(args, "func", None):
        parser.print_help()
        return
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
