"""Application services - orchestrate the core against the adapters."""

from taskcred.services.accounts import AccountService, Rank
from taskcred.services.reminders import ReminderService, run_reminder_loop
from taskcred.services.tasks import TaskService

__all__ = [
    "AccountService",
    "Rank",
    "ReminderService",
    "TaskService",
    "run_reminder_loop",
]
