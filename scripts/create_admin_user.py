"""
Create an admin account that can sign in to the storefront admin panel.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storefront.auth import create_admin_user
from storefront.dependencies import get_db_client
from storefront.errors import CatalogError

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a storefront admin user")
    parser.add_argument("email", help="Email used to sign in")
    parser.add_argument(
        "--password",
        type=str,
        default=None,
        help="Password (prompted for when omitted)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )

    password = args.password or getpass.getpass("Password: ")
    try:
        user = create_admin_user(get_db_client(), args.email, password)
    except CatalogError as exc:
        logger.error("Could not create admin: %s", exc.message)
        return 1
    logger.info("Created admin %s (id=%s)", user.email, user.id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
