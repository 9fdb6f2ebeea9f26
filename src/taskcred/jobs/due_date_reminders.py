"""One due-date reminder sweep, for running from cron instead of the API.

Run via: python -m taskcred.jobs.due_date_reminders
"""

import asyncio
from datetime import timedelta

import structlog

from taskcred.entrypoints.api.deps import build_database, build_notifier, settings
from taskcred.services.reminders import ReminderService

logger = structlog.get_logger()


async def main() -> None:
    """Run one reminder sweep."""
    db = build_database(settings)
    await db.connect()

    try:
        service = ReminderService(
            db.tasks,
            db.accounts,
            build_notifier(settings),
            window=timedelta(hours=settings.reminder_window_hours),
        )
        sent = await service.sweep()
        logger.info(f"Sent {sent} due-date reminders")
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
