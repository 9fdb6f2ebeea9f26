"""Bootstrap an admin account.

Reads ADMIN_EMAIL, ADMIN_PASSWORD and ADMIN_NAME. An existing account
with that address is promoted and its password replaced.

Run via: python -m taskcred.jobs.create_admin
"""

import asyncio
import os

import structlog

from taskcred.core.auth.service import AuthService
from taskcred.entrypoints.api.deps import build_database, build_notifier, settings

logger = structlog.get_logger()


async def main() -> None:
    """Create or promote the admin account."""
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    name = os.getenv("ADMIN_NAME", "Administrator")
    if not email or not password:
        logger.error("ADMIN_EMAIL and ADMIN_PASSWORD must be set")
        return

    db = build_database(settings)
    await db.connect()

    try:
        service = AuthService(db.accounts, build_notifier(settings), settings.org_email_domain)
        account = await service.create_admin(name, email, password)
        logger.info(f"Admin account ready: {account.email} ({account.id})")
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
