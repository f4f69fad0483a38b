#!/usr/bin/env python3
"""
E-Learning API -- server launcher and account administration.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload
  python main.py create-admin admin@example.com "Site Admin"
  python main.py revoke-session 42

Environment variables:
  ACTIVATION_SECRET, ACCESS_TOKEN_SECRET, REFRESH_TOKEN_SECRET
      Required. At least 32 characters each and all different.
  DATABASE_URL, SESSION_DB_PATH, REDIS_URL
      Where users and sessions live (see core/config.py for defaults).
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.passwords import MAX_PASSWORD_BYTES, hash_password
from auth.store import UserStore
from cache.store import build_session_cache
from core.config import Settings, get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    # Fail here, not inside the worker, when secrets are missing.
    get_settings()
    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _create_admin(args: argparse.Namespace, settings: Settings) -> int:
    """Create a verified admin, or promote the existing account with that email."""
    email = args.email.strip().lower()
    store = UserStore(db_url=settings.database_url)
    try:
        existing = store.get_by_email(email)
        if existing is not None:
            store.update_user(existing.id, role="admin")
            print(f"  User {existing.id} ({email}) promoted to admin.")
            print("  The new role applies from the user's next login.")
            return 0

        password = getpass.getpass("  Password: ")
        if not password or password != getpass.getpass("  Repeat password: "):
            print("  [!] Passwords are empty or do not match.")
            return 1
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes.")
            return 1

        try:
            user_id = store.create_user(
                User(
                    name=args.name,
                    email=email,
                    role="admin",
                    hashed_password=hash_password(password),
                    is_verified=True,
                )
            )
        except IntegrityError:
            print(f"  [!] {email} was registered concurrently; run the command again to promote it.")
            return 1
        print(f"  Admin {user_id} ({email}) created.")
        return 0
    finally:
        store.close()


def _revoke_session(args: argparse.Namespace, settings: Settings) -> int:
    """Delete a user's session record; their refresh token stops working at once."""
    cache = build_session_cache(settings)
    try:
        cache.delete(args.user_id)
    finally:
        cache.close()
    print(f"  Session for user {args.user_id} revoked.")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="main.py",
        description="E-Learning API -- server launcher and account administration.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the API with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development).")

    admin = sub.add_parser("create-admin", help="Create an admin account or promote an existing one.")
    admin.add_argument("email")
    admin.add_argument("name")

    revoke = sub.add_parser("revoke-session", help="Force-logout a user by deleting their session.")
    revoke.add_argument("user_id", type=int)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.command == "serve":
        return _serve(args)

    try:
        settings = get_settings()
    except ValueError as exc:
        print(f"  [!] Configuration error: {exc}")
        return 2

    if args.command == "create-admin":
        return _create_admin(args, settings)
    return _revoke_session(args, settings)


if __name__ == "__main__":
    sys.exit(main())
