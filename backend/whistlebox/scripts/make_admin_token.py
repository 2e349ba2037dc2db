"""
Mint an admin bearer token signed with ADMIN_TOKEN_SECRET.

Usage:
    python -m whistlebox.scripts.make_admin_token reviewer@example.org
"""

import argparse
import sys
from datetime import timedelta

from whistlebox.core.config import get_settings
from whistlebox.services.auth import create_access_token


def main() -> int:
    parser = argparse.ArgumentParser(description="Mint an admin bearer token")
    parser.add_argument("subject")
    parser.add_argument("--minutes", type=int, default=None)
    args = parser.parse_args()

    settings = get_settings()
    if not settings.ADMIN_TOKEN_SECRET:
        print("ADMIN_TOKEN_SECRET is not set", file=sys.stderr)
        return 1

    minutes = args.minutes or settings.ADMIN_TOKEN_EXPIRE_MINUTES
    print(create_access_token(args.subject, settings.ADMIN_TOKEN_SECRET, timedelta(minutes=minutes)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
