"""Status/credit transition engine.

Every change to a task's status or owner goes through ``apply_transition``.
It is a pure function: given the task as stored, the requested changes, the
acting account and the current time, it returns the new task state, the
credit delta for the owner and the history entries that were appended.
Persisting the task and applying the delta is the caller's job.

Credit rules:

- entering ``completed``: +2 when finished two or more (ceil) days before the
  due date, +1 when finished earlier than that but still before it, 0 when
  late or when there is no due date;
- entering ``behind-schedule`` from an open status: -2 when the latest
  assignment was made by someone other than the owner, otherwise -1;
- entering ``cancelled`` from ``behind-schedule``: +1 refund.

Credit rules only fire for owned tasks and at most one fires per update.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Final, TypeVar

from taskcred.core.domain_types import (
    HistoryAction,
    HistoryEntry,
    Task,
    TaskStatus,
    Visibility,
    latest_assignment,
)

EARLY_COMPLETION_BONUS: Final = 2
ON_TIME_COMPLETION_BONUS: Final = 1
EARLY_COMPLETION_DAYS: Final = 2
ASSIGNED_BY_OTHER_PENALTY: Final = -2
SELF_ASSIGNED_PENALTY: Final = -1
CANCELLATION_REFUND: Final = 1

_ONE_DAY = timedelta(days=1)

T = TypeVar("T")


class Unset:
    """Marker for a field the request does not touch."""

    _instance: Unset | None = None

    def __new__(cls) -> Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = Unset()


@dataclass(frozen=True)
class TaskChanges:
    """Validated set of field changes for one update.

    Fields left as ``UNSET`` are not touched. ``owner_id=None`` and
    ``due_date=None`` explicitly clear the value.
    """

    title: str | Unset = UNSET
    description: str | Unset = UNSET
    status: TaskStatus | Unset = UNSET
    owner_id: str | None | Unset = UNSET
    due_date: datetime | None | Unset = UNSET
    priority: str | None | Unset = UNSET
    visibility: Visibility | Unset = UNSET

    def touches(self, name: str) -> bool:
        """Whether the request sets the given field."""
        return not isinstance(getattr(self, name), Unset)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of applying changes to a task.

    Attributes:
        task: The task after the transition.
        owner_credit_delta: Credits to add to the owner's balance.
        credit_account_id: Account the delta applies to, None when zero.
        history_append: Entries appended to the task history.
        previous_status: Status before the transition.
    """

    task: Task
    owner_credit_delta: int
    credit_account_id: str | None
    history_append: tuple[HistoryEntry, ...]
    previous_status: TaskStatus

    @property
    def status_changed(self) -> bool:
        """Whether the transition moved the task to a new status."""
        return self.task.status is not self.previous_status


def completion_credit(due_date: datetime | None, now: datetime) -> int:
    """Credits earned for completing a task at ``now``.

    Args:
        due_date: The task's deadline, if any.
        now: Completion time.

    Returns:
        2 for two or more days early, 1 for less than that, 0 when late
        or without a deadline.
    """
    if due_date is None or now >= due_date:
        return 0
    days_early = math.ceil((due_date - now) / _ONE_DAY)
    if days_early >= EARLY_COMPLETION_DAYS:
        return EARLY_COMPLETION_BONUS
    return ON_TIME_COMPLETION_BONUS


def overdue_penalty(owner_id: str, history: tuple[HistoryEntry, ...]) -> int:
    """Credits lost when an owned task falls behind schedule.

    Args:
        owner_id: Current owner of the task.
        history: Task history including entries appended in this update.

    Returns:
        -2 when the latest assignment was performed by someone else,
        -1 when self-assigned or never recorded.
    """
    assignment = latest_assignment(history)
    if assignment is not None and assignment.performed_by != owner_id:
        return ASSIGNED_BY_OTHER_PENALTY
    return SELF_ASSIGNED_PENALTY


def _resolve_status(
    task: Task,
    changes: TaskChanges,
    owner_id: str | None,
    now: datetime,
) -> TaskStatus:
    """Work out the status the task ends up in."""
    if isinstance(changes.status, TaskStatus):
        return changes.status

    # Extending the deadline of a behind-schedule task reopens it.
    if (
        task.status is TaskStatus.BEHIND_SCHEDULE
        and isinstance(changes.due_date, datetime)
        and changes.due_date > now
    ):
        return TaskStatus.IN_PROGRESS if owner_id else TaskStatus.PENDING

    return task.status


def apply_transition(
    task: Task,
    changes: TaskChanges,
    actor_id: str | None,
    now: datetime,
) -> TransitionResult:
    """Apply validated changes to a task.

    Args:
        task: Task as currently stored.
        changes: Field changes already checked by the authorization policy.
        actor_id: Account performing the change, None for the system.
        now: Current time (timezone-aware).

    Returns:
        TransitionResult with the new task, credit delta and history entries.
    """
    previous = task.status
    owner_id: str | None = (
        task.owner_id if isinstance(changes.owner_id, Unset) else changes.owner_id
    )
    appended: list[HistoryEntry] = []

    if isinstance(changes.owner_id, str) and changes.owner_id:
        appended.append(
            HistoryEntry(
                action=HistoryAction.ASSIGNED,
                timestamp=now,
                performed_by=actor_id,
                assigned_to=changes.owner_id,
            )
        )

    new_status = _resolve_status(task, changes, owner_id, now)
    delta = 0

    if new_status is not previous:
        match new_status:
            case TaskStatus.COMPLETED:
                if owner_id:
                    delta = completion_credit(task.due_date, now)
                appended.append(
                    HistoryEntry(
                        action=HistoryAction.COMPLETED,
                        timestamp=now,
                        performed_by=actor_id,
                    )
                )
            case TaskStatus.BEHIND_SCHEDULE if previous not in (
                TaskStatus.COMPLETED,
                TaskStatus.CANCELLED,
            ):
                if owner_id:
                    delta = overdue_penalty(owner_id, task.history + tuple(appended))
                appended.append(_updated(now, actor_id))
            case TaskStatus.CANCELLED if previous is TaskStatus.BEHIND_SCHEDULE:
                if owner_id:
                    delta = CANCELLATION_REFUND
                appended.append(_updated(now, actor_id))
            case _:
                appended.append(_updated(now, actor_id))

    credit_account_id = owner_id if delta else None

    # Setting status to pending always releases the task.
    if changes.touches("status") and changes.status is TaskStatus.PENDING:
        owner_id = None

    updated = replace(
        task,
        title=_pick(changes.title, task.title),
        description=_pick(changes.description, task.description),
        priority=_pick(changes.priority, task.priority),
        due_date=_pick(changes.due_date, task.due_date),
        visibility=_pick(changes.visibility, task.visibility),
        status=new_status,
        owner_id=owner_id,
        history=task.history + tuple(appended),
        updated_at=now,
    )

    return TransitionResult(
        task=updated,
        owner_credit_delta=delta,
        credit_account_id=credit_account_id,
        history_append=tuple(appended),
        previous_status=previous,
    )


def _updated(now: datetime, actor_id: str | None) -> HistoryEntry:
    return HistoryEntry(action=HistoryAction.UPDATED, timestamp=now, performed_by=actor_id)


def _pick(value: T | Unset, current: T) -> T:
    return current if isinstance(value, Unset) else value
