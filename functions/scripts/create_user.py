"""
CLI helper to register a portal user in the configured storage backend.
"""

from __future__ import annotations

import argparse
import logging
import sys
from getpass import getpass
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pydantic import ValidationError

from portal.config import get_settings
from portal.dependencies import build_storage
from portal.errors import UsernameExistsError
from portal.schemas import CreateUserRequest


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a portal user")
    parser.add_argument("username", help="Login name for the new user")
    parser.add_argument(
        "-p",
        "--password",
        default=None,
        help="Password (prompted for when omitted)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    password = args.password
    if password is None:
        password = getpass("Password: ")
        if password != getpass("Repeat password: "):
            print("Passwords do not match", file=sys.stderr)
            return 1
    try:
        request = CreateUserRequest(username=args.username, password=password)
    except ValidationError as exc:
        print(f"Invalid user: {exc}", file=sys.stderr)
        return 1

    storage = build_storage(get_settings())
    try:
        user = storage.create_user(request.username, request.password)
    except UsernameExistsError:
        print(f"Username {args.username!r} already exists", file=sys.stderr)
        return 1
    print(user.id)
    return 0


if __name__ == "__main__":
    sys.exit(main())
