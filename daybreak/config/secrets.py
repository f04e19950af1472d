"""
Mail credentials for the check-mail pass.

Usage:
    from daybreak.config.secrets import get_mail_credentials

    # Will raise if user or password is missing
    user, password = get_mail_credentials()

CLI check:
    python -m daybreak.config.secrets --check
"""

import os
import sys
from pathlib import Path
from typing import Dict, Tuple

from dotenv import load_dotenv

# Find .env file - walk up from this file to repo root
_current = Path(__file__).resolve()
_repo_root = _current.parent.parent.parent  # daybreak/config/secrets.py -> repo root
_env_path = _repo_root / ".env"

if _env_path.exists():
    load_dotenv(_env_path)
else:
    # Also try current working directory
    load_dotenv()


HOST_ENV = "CHECKMAIL_HOST"
USER_ENV = "CHECKMAIL_USER"
PASS_ENV = "CHECKMAIL_PASS"


class MissingCredentialError(Exception):
    """Raised when a required mail credential is not configured."""
    pass


def get_mail_host(default: str = "") -> str:
    """Mail host from CHECKMAIL_HOST, falling back to default."""
    return os.environ.get(HOST_ENV, "").strip() or default


def get_mail_credentials() -> Tuple[str, str]:
    """
    Get mailbox user and password from environment.

    Returns:
        Tuple of (user, password)

    Raises:
        MissingCredentialError: If CHECKMAIL_USER or CHECKMAIL_PASS is not set
    """
    user = os.environ.get(USER_ENV, "").strip()
    password = os.environ.get(PASS_ENV, "")
    missing = [name for name, value in ((USER_ENV, user), (PASS_ENV, password)) if not value]
    if missing:
        raise MissingCredentialError(
            f"{', '.join(missing)} not found. "
            "Copy .env.example to .env and add the mailbox credentials."
        )
    return user, password


def check_credentials() -> Dict[str, str]:
    """Status ("OK" or "MISSING") of each mail environment variable."""
    return {
        name: "OK" if os.environ.get(name, "").strip() else "MISSING"
        for name in (HOST_ENV, USER_ENV, PASS_ENV)
    }


def _cli_check():
    """CLI entry point for --check flag."""
    status = check_credentials()
    for key_name, key_status in status.items():
        print(f"{key_name}: {key_status}")

    if status[USER_ENV] == "MISSING" or status[PASS_ENV] == "MISSING":
        print("\nTo configure credentials:")
        print("  1. Copy .env.example to .env")
        print("  2. Add CHECKMAIL_USER and CHECKMAIL_PASS to .env")
        sys.exit(1)

    print("\nMail credentials configured.")
    sys.exit(0)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="Check mailbox credential configuration"
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Check if mail credentials are configured"
    )

    args = parser.parse_args()

    if args.check:
        _cli_check()
    else:
        parser.print_help()
