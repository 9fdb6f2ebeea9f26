"""Expired one-time token cleanup job.

Clears verification and password reset tokens whose expiry has passed.

Run via: python -m taskcred.jobs.token_cleanup
"""

import asyncio
from datetime import UTC, datetime

import structlog

from taskcred.entrypoints.api.deps import build_database, settings

logger = structlog.get_logger()


async def main() -> None:
    """Run expired token cleanup."""
    db = build_database(settings)
    await db.connect()

    try:
        count = await db.accounts.purge_expired_tokens(datetime.now(UTC))
        logger.info(f"Cleared {count} expired tokens")
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
