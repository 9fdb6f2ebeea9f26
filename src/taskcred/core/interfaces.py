"""Protocol definitions for task-side external dependencies.

This module defines the interfaces (Protocols) that adapters must implement.
The core domain and the services only depend on these protocols, never on
concrete implementations (MongoDB, SMTP, GridFS, ...).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection

    from .domain_types import Task, TaskStatus


@dataclass(frozen=True)
class StoredFile:
    """An attachment as returned by the file store."""

    filename: str
    content_type: str
    data: bytes


@runtime_checkable
class TaskRepository(Protocol):
    """Interface for task persistence.

    Implementations must support atomic single-document writes; nothing
    here spans more than one document.
    """

    def next_id(self) -> str:
        """Allocate an identifier for a new task."""
        ...

    async def get(self, task_id: str) -> Task | None:
        """Get a task by ID, None if missing or the ID is malformed."""
        ...

    async def create(self, task: Task) -> Task:
        """Insert a new task."""
        ...

    async def save(self, task: Task) -> Task:
        """Replace a stored task with the given state."""
        ...

    async def delete(self, task_id: str) -> bool:
        """Delete a task. Returns False if it did not exist."""
        ...

    async def list_all(self) -> list[Task]:
        """Every task, newest first."""
        ...

    async def list_visible_to(self, account_id: str) -> list[Task]:
        """Tasks owned by, public to, or shared with the account, newest first."""
        ...

    async def list_due_between(
        self,
        start: datetime,
        end: datetime,
        statuses: Collection[TaskStatus],
    ) -> list[Task]:
        """Tasks in the given statuses whose due date lies in [start, end]."""
        ...

    async def mark_reminded(self, task_id: str, at: datetime) -> None:
        """Record when the last due-date reminder for the task went out."""
        ...


@runtime_checkable
class Notifier(Protocol):
    """Interface for outbound notifications.

    Delivery is fire-and-forget: implementations log failures and return
    False instead of raising.
    """

    async def send_reminder(self, to_email: str, task_title: str, due_date: datetime) -> bool:
        """Remind a recipient that a task is due soon."""
        ...

    async def send_verification(self, to_email: str, token: str) -> bool:
        """Send the e-mail verification link."""
        ...

    async def send_password_reset(self, to_email: str, token: str) -> bool:
        """Send the password reset link."""
        ...


@runtime_checkable
class FileStore(Protocol):
    """Interface for attachment storage, keyed by task ID."""

    async def put(self, task_id: str, filename: str, content_type: str, data: bytes) -> None:
        """Store (or replace) the attachment of a task."""
        ...

    async def get(self, task_id: str) -> StoredFile | None:
        """Fetch the attachment of a task, None if there is none."""
        ...

    async def delete(self, task_id: str) -> None:
        """Remove the attachment of a task if present."""
        ...
