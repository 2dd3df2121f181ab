"""
Create the admin user for the portfolio dashboard.

Runs once against the Supabase auth admin API with the service role key; the
created user is confirmed immediately and carries the ``admin`` role.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portfolio.auth import ADMIN_ROLE, AuthError, SupabaseAuthClient
from portfolio.config import get_settings

logger = logging.getLogger(__name__)


def build_client() -> SupabaseAuthClient:
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise SystemExit("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    return SupabaseAuthClient(
        base_url=settings.supabase_url,
        api_key=settings.supabase_service_role_key,
        service_role_key=settings.supabase_service_role_key,
    )


def main(argv: list[str] | None = None, client: SupabaseAuthClient | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create the portfolio admin user")
    parser.add_argument("--email", required=True, help="Admin email address")
    parser.add_argument(
        "--password",
        default=None,
        help="Admin password (defaults to $ADMIN_PASSWORD, then a prompt)",
    )
    parser.add_argument(
        "--role",
        default=ADMIN_ROLE,
        help="Role stored in the app metadata",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    password = args.password or os.environ.get("ADMIN_PASSWORD")
    if not password:
        password = getpass.getpass("Admin password: ")
    if not password:
        logger.error("A password is required")
        return 1

    client = client or build_client()
    try:
        user = client.create_user(args.email, password, role=args.role)
    except AuthError as exc:
        logger.error("Error creating admin user: %s", exc)
        return 1

    logger.info("Admin user created: email=%s id=%s", user.email, user.id)
    logger.info("Sign in at /admin with these credentials")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
