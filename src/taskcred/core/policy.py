"""Authorization policy for task and account operations.

All checks here run before any state is touched. They either return
normally or raise one of the domain errors; none of them mutate anything.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from taskcred.core.domain_types import (
    Account,
    PublicVisibility,
    RestrictedVisibility,
    Task,
    TaskStatus,
    Visibility,
)
from taskcred.core.exceptions import AuthorizationError, StateConflictError, ValidationError
from taskcred.core.overdue import is_overdue
from taskcred.core.transitions import TaskChanges

# Wire-level field names accepted by the general task update.
UPDATABLE_FIELDS = frozenset(
    {"title", "description", "status", "dueDate", "priority", "visibleTo", "isPublic"}
)

TITLE_MIN_LENGTH = 3
DESCRIPTION_MIN_LENGTH = 10

# Statuses an admin may set on a locked task.
LOCKED_STATUS_TARGETS = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.CANCELLED, TaskStatus.BEHIND_SCHEDULE}
)


def validate_update_fields(fields: Iterable[str]) -> None:
    """Reject the whole request if any field is outside the allow-list.

    Raises:
        ValidationError: If an unknown or protected field is present.
    """
    invalid = sorted(set(fields) - UPDATABLE_FIELDS)
    if invalid:
        raise ValidationError(f"Invalid updates: {', '.join(invalid)}")


def validate_title(title: str) -> str:
    """Trim and check a task title."""
    title = title.strip()
    if len(title) < TITLE_MIN_LENGTH:
        raise ValidationError(f"Title must be at least {TITLE_MIN_LENGTH} characters long")
    return title


def validate_description(description: str) -> str:
    """Trim and check a task description."""
    description = description.strip()
    if len(description) < DESCRIPTION_MIN_LENGTH:
        raise ValidationError(
            f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters long"
        )
    return description


def require_admin(actor: Account) -> None:
    """Raise unless the actor is an admin."""
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")


def is_owner(task: Task, actor: Account) -> bool:
    """Whether the actor owns the task."""
    return task.owner_id is not None and task.owner_id == actor.id


def can_view(task: Task, actor: Account) -> bool:
    """Whether the actor may see the task."""
    if actor.is_admin or is_owner(task, actor):
        return True
    match task.visibility:
        case PublicVisibility():
            return True
        case RestrictedVisibility(account_ids=ids):
            return actor.id in ids
    return False


def authorize_task_write(task: Task, actor: Account, action: str = "update") -> None:
    """Only the owner or an admin may modify or delete a task.

    Unowned tasks have no owner to match, so only admins may modify them;
    claiming an unowned task goes through the assignment operation.

    Raises:
        AuthorizationError: If the actor is neither owner nor admin.
    """
    if actor.is_admin or is_owner(task, actor):
        return
    raise AuthorizationError(f"Not authorized to {action} this task")


def authorize_assignment(task: Task, actor: Account, assignee_id: str | None) -> None:
    """Check an ownership change requested through the assignment operation.

    Admins may assign any task to anyone. Other accounts may claim an
    unowned task for themselves, or release a task they own.

    Raises:
        AuthorizationError: If the actor may not make this assignment.
    """
    if actor.is_admin:
        return
    if task.owner_id is not None and task.owner_id != actor.id:
        raise AuthorizationError("This task is already assigned to someone else")
    if assignee_id is not None and assignee_id != actor.id:
        raise AuthorizationError("Only admins can assign tasks to other accounts")


def is_locked(task: Task, now: datetime) -> bool:
    """Whether the task is behind schedule, or should be."""
    return task.status is TaskStatus.BEHIND_SCHEDULE or is_overdue(task, now)


def check_overdue_lockout(
    task: Task,
    changes: TaskChanges,
    actor: Account,
    now: datetime,
) -> None:
    """Enforce the behind-schedule lockout.

    On a locked task non-admins may change neither status nor due date.
    Admins may only move the status to completed or cancelled (or keep it
    behind schedule); other statuses require extending the due date first.

    Raises:
        AuthorizationError: If a non-admin touches status or due date.
        StateConflictError: If an admin requests a disallowed status.
    """
    if not is_locked(task, now):
        return

    if changes.touches("status"):
        if not actor.is_admin:
            raise AuthorizationError(
                "Task is behind schedule. Status can only be modified by an admin."
            )
        if changes.status not in LOCKED_STATUS_TARGETS:
            raise StateConflictError(
                "Behind schedule tasks can only be set to completed or cancelled"
            )

    if changes.touches("due_date") and not actor.is_admin:
        raise AuthorizationError(
            "Only admins can extend the due date for behind schedule tasks"
        )


def normalize_visibility(
    is_public: bool | None,
    visible_to: list[str] | None,
    current: Visibility,
) -> Visibility:
    """Resolve the requested visibility into the canonical sum type.

    A non-empty ``visible_to`` always wins and makes the task restricted;
    ``is_public=True`` clears the list. Fields left as None keep the
    current visibility.

    Args:
        is_public: Requested public flag, if present in the request.
        visible_to: Requested account list, if present in the request.
        current: Visibility before the change.

    Returns:
        The resulting visibility.
    """
    if visible_to:
        return RestrictedVisibility(account_ids=frozenset(visible_to))
    if is_public is True:
        return PublicVisibility()
    if is_public is False:
        if visible_to is None and isinstance(current, RestrictedVisibility):
            return current
        return RestrictedVisibility()
    if visible_to is not None and isinstance(current, RestrictedVisibility):
        return RestrictedVisibility()
    return current
