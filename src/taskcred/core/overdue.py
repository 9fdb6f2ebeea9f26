"""Overdue detection.

Tasks whose due date passes while they are still pending or in progress
are reclassified to ``behind-schedule``. Detection is lazy (run whenever a
task is read, listed or updated) and goes through the transition engine,
so the owner's overdue penalty is applied exactly as for an explicit
status change. Unowned tasks are reclassified without a penalty.

The periodic sweep in ``taskcred.services.reminders`` only sends reminders
for tasks that are about to become due. It does not reclassify.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from taskcred.core.domain_types import OPEN_STATUSES, Task, TaskStatus
from taskcred.core.transitions import TaskChanges, TransitionResult, apply_transition

DEFAULT_REMINDER_WINDOW = timedelta(hours=24)


def is_overdue(task: Task, now: datetime) -> bool:
    """Whether the task's due date passed while it is still open."""
    return task.due_date is not None and task.due_date < now and task.status in OPEN_STATUSES


def detect_overdue(task: Task, now: datetime) -> TransitionResult | None:
    """Reclassify an overdue task to behind-schedule.

    Idempotent: tasks that are not open or not yet due, including tasks
    already behind schedule, yield None.

    Args:
        task: Task as currently stored.
        now: Current time.

    Returns:
        The transition result, or None when nothing changes.
    """
    if not is_overdue(task, now):
        return None
    return apply_transition(
        task,
        TaskChanges(status=TaskStatus.BEHIND_SCHEDULE),
        actor_id=None,
        now=now,
    )


def needs_reminder(
    task: Task,
    now: datetime,
    window: timedelta = DEFAULT_REMINDER_WINDOW,
) -> bool:
    """Whether an open task due within ``window`` should be reminded now.

    A task already reminded less than ``window`` ago is skipped, so each
    recipient gets one reminder per task unless the due date moves and
    the task comes due again.
    """
    if task.due_date is None or task.status not in OPEN_STATUSES:
        return False
    if not now <= task.due_date <= now + window:
        return False
    return task.last_reminded_at is None or task.last_reminded_at <= now - window


def reminder_recipients(task: Task) -> list[str]:
    """Accounts to remind about a task: the owner, then explicit viewers."""
    recipients: list[str] = []
    if task.owner_id:
        recipients.append(task.owner_id)
    for account_id in task.visible_to:
        if account_id not in recipients:
            recipients.append(account_id)
    return recipients
