"""
Mint Admin Token

Prints a signed access token with the admin role, for operators calling the
approval API directly (login is handled outside this service).

Usage:
    python scripts/mint_admin_token.py admin@academy.dev
    python scripts/mint_admin_token.py admin@academy.dev --name "Ops" --minutes 60
"""

import argparse
import sys
import uuid
from datetime import timedelta
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from academy.core.auth import ADMIN_ROLE  # noqa: E402
from academy.core.security import create_access_token  # noqa: E402


def mint_admin_token(email: str, name: str | None = None, minutes: int = 30) -> str:
    """Create an admin access token whose subject is derived from the email."""
    admin_id = uuid.uuid5(uuid.NAMESPACE_URL, f"mailto:{email.strip().lower()}")
    claims = {"sub": str(admin_id), "email": email, "role": ADMIN_ROLE}
    if name:
        claims["name"] = name
    return create_access_token(claims, expires_delta=timedelta(minutes=minutes))


def main() -> None:
    parser = argparse.ArgumentParser(description="Mint an admin access token")
    parser.add_argument("email", help="Admin email (recorded as approved_by)")
    parser.add_argument("--name", default=None, help="Admin display name")
    parser.add_argument("--minutes", type=int, default=30, help="Token lifetime in minutes")
    args = parser.parse_args()

    print(mint_admin_token(args.email, args.name, args.minutes))


if __name__ == "__main__":
    main()
