"""Due-date reminder sweep.

Finds open tasks that become due within the reminder window and e-mails
their owner plus every account the task is explicitly shared with.
Delivery is best-effort. Each task remembers when it was last reminded,
so a task inside the window is reminded once per window, not on every
sweep.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import structlog

from taskcred.core.auth.repository import AccountRepository
from taskcred.core.domain_types import OPEN_STATUSES
from taskcred.core.interfaces import Notifier, TaskRepository
from taskcred.core.overdue import (
    DEFAULT_REMINDER_WINDOW,
    needs_reminder,
    reminder_recipients,
)
from taskcred.services.tasks import Clock, utcnow

logger = structlog.get_logger()

DEFAULT_INTERVAL_SECONDS = 3600


class ReminderService:
    """Sends due-date reminder e-mails."""

    def __init__(
        self,
        tasks: TaskRepository,
        accounts: AccountRepository,
        notifier: Notifier,
        window: timedelta = DEFAULT_REMINDER_WINDOW,
        clock: Clock = utcnow,
    ) -> None:
        """Initialize the reminder service.

        Args:
            tasks: Task repository.
            accounts: Account repository, to resolve recipient addresses.
            notifier: Delivers the reminders.
            window: How far ahead of the due date to remind.
            clock: Returns the current time.
        """
        self._tasks = tasks
        self._accounts = accounts
        self._notifier = notifier
        self._window = window
        self._clock = clock

    async def sweep(self) -> int:
        """Run one sweep.

        Tasks reminded less than one window ago are skipped. A task is
        marked as reminded once at least one of its reminders went out.

        Returns:
            Number of reminders delivered successfully.
        """
        now = self._clock()
        due = await self._tasks.list_due_between(now, now + self._window, OPEN_STATUSES)
        tasks = [task for task in due if needs_reminder(task, now, self._window)]
        sent = 0

        for task in tasks:
            if task.due_date is None:
                continue
            delivered = 0
            for account_id in reminder_recipients(task):
                account = await self._accounts.get_by_id(account_id)
                if account is None:
                    logger.warning(
                        "reminder_recipient_missing", task_id=task.id, account_id=account_id
                    )
                    continue
                if await self._notifier.send_reminder(account.email, task.title, task.due_date):
                    delivered += 1
            if delivered:
                await self._tasks.mark_reminded(task.id, now)
            sent += delivered

        logger.info(
            "reminder_sweep_completed",
            tasks=len(tasks),
            skipped=len(due) - len(tasks),
            reminders_sent=sent,
        )
        return sent


async def run_reminder_loop(
    service: ReminderService,
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
) -> None:
    """Sweep forever, once per interval, until cancelled.

    A failed sweep is logged and retried on the next tick.
    """
    logger.info("reminder_loop_started", interval_seconds=interval_seconds)
    while True:
        try:
            await service.sweep()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("reminder_sweep_failed")
        await asyncio.sleep(interval_seconds)
