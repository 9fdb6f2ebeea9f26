"""Task orchestration service.

Ties the pure core (policy, overdue detector, transition engine) to the
repositories. Every mutating operation follows the same order:

1. validate the request shape,
2. load the task,
3. authorize (ownership/role, then the overdue lockout),
4. let the overdue detector reclassify the task if its due date passed,
5. run the transition engine,
6. persist the task, then apply the owner's credit delta.

Nothing is written before step 4, so a rejected request leaves no trace.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from taskcred.adapters.export.excel import tasks_to_xlsx
from taskcred.core.auth.repository import AccountRepository
from taskcred.core.domain_types import (
    OPEN_STATUSES,
    Account,
    AttachmentInfo,
    HistoryAction,
    HistoryEntry,
    PublicVisibility,
    Task,
    TaskStatus,
    Visibility,
)
from taskcred.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from taskcred.core.interfaces import FileStore, StoredFile, TaskRepository
from taskcred.core.overdue import detect_overdue
from taskcred.core.policy import (
    authorize_assignment,
    authorize_task_write,
    can_view,
    check_overdue_lockout,
    is_locked,
    normalize_visibility,
    require_admin,
    validate_description,
    validate_title,
    validate_update_fields,
)
from taskcred.core.transitions import (
    UNSET,
    TaskChanges,
    TransitionResult,
    Unset,
    apply_transition,
)

logger = structlog.get_logger()

DEFAULT_MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time, timezone-aware."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Read naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TaskUpdatePayload(BaseModel):
    """Typed view of a general update request body (wire field names)."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    due_date: datetime | None = Field(default=None, alias="dueDate")
    priority: str | None = None
    visible_to: list[str] | None = Field(default=None, alias="visibleTo")
    is_public: bool | None = Field(default=None, alias="isPublic")


def parse_update(fields: Mapping[str, Any]) -> TaskUpdatePayload:
    """Validate an update body against the allow-list and field types.

    Raises:
        ValidationError: On a disallowed field or a malformed value.
    """
    validate_update_fields(fields.keys())
    try:
        payload = TaskUpdatePayload.model_validate(dict(fields))
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid value for {location}: {first['msg']}") from None

    for name in ("title", "description", "status"):
        if name in payload.model_fields_set and getattr(payload, name) is None:
            raise ValidationError(f"{name} cannot be null")
    return payload


def changes_from_payload(payload: TaskUpdatePayload, task: Task) -> TaskChanges:
    """Convert a validated payload into engine changes for ``task``."""
    given = payload.model_fields_set
    visibility: Visibility | Unset = UNSET
    if "visible_to" in given or "is_public" in given:
        visibility = normalize_visibility(payload.is_public, payload.visible_to, task.visibility)

    return TaskChanges(
        title=validate_title(payload.title) if payload.title is not None else UNSET,
        description=(
            validate_description(payload.description)
            if payload.description is not None
            else UNSET
        ),
        status=payload.status if payload.status is not None else UNSET,
        due_date=(
            (as_utc(payload.due_date) if payload.due_date is not None else None)
            if "due_date" in given
            else UNSET
        ),
        priority=payload.priority if "priority" in given else UNSET,
        visibility=visibility,
    )


class TaskService:
    """Application service for task operations."""

    def __init__(
        self,
        tasks: TaskRepository,
        accounts: AccountRepository,
        files: FileStore,
        clock: Clock = utcnow,
        max_attachment_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES,
    ) -> None:
        """Initialize the task service.

        Args:
            tasks: Task repository.
            accounts: Account repository, used for credits and assignees.
            files: Attachment storage.
            clock: Returns the current time; injectable for tests.
            max_attachment_bytes: Upload size limit.
        """
        self._tasks = tasks
        self._accounts = accounts
        self._files = files
        self._clock = clock
        self._max_attachment_bytes = max_attachment_bytes

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    async def create(
        self,
        actor: Account,
        title: str,
        description: str,
        *,
        owner_id: str | None | Unset = UNSET,
        status: TaskStatus | None = None,
        due_date: datetime | None = None,
        priority: str | None = None,
        is_public: bool | None = None,
        visible_to: list[str] | None = None,
    ) -> Task:
        """Create a task.

        The owner defaults to the creator; pass ``owner_id=None`` for an
        unassigned task. Non-admins may only create tasks for themselves
        or unassigned ones.

        Raises:
            ValidationError: On invalid fields or a non-open initial status.
            AuthorizationError: If a non-admin assigns someone else.
            NotFoundError: If the owner account does not exist.
        """
        title = validate_title(title)
        description = validate_description(description)
        owner = actor.id if isinstance(owner_id, Unset) else owner_id

        if owner is not None and owner != actor.id:
            if not actor.is_admin:
                raise AuthorizationError("Only admins can create tasks for other accounts")
            await self._require_account(owner)

        if status is not None and status not in OPEN_STATUSES:
            raise ValidationError("New tasks must be pending or in-progress")
        if status is TaskStatus.PENDING:
            owner = None
        if status is None:
            status = TaskStatus.IN_PROGRESS if owner else TaskStatus.PENDING

        now = self._clock()
        history: tuple[HistoryEntry, ...] = ()
        if owner:
            history = (
                HistoryEntry(
                    action=HistoryAction.ASSIGNED,
                    timestamp=now,
                    performed_by=actor.id,
                    assigned_to=owner,
                ),
            )

        task = Task(
            id=self._tasks.next_id(),
            title=title,
            description=description,
            status=status,
            owner_id=owner,
            due_date=as_utc(due_date) if due_date else None,
            visibility=normalize_visibility(is_public, visible_to, PublicVisibility()),
            history=history,
            priority=priority,
            created_at=now,
            updated_at=now,
        )
        task = await self._tasks.create(task)
        logger.info("task_created", task_id=task.id, owner_id=owner, actor_id=actor.id)
        return task

    async def get(self, actor: Account, task_id: str) -> Task:
        """Get one task the actor may see, reclassifying it if overdue.

        Raises:
            NotFoundError: If the task does not exist.
            AuthorizationError: If the actor may not see it.
        """
        task = await self._load(task_id)
        if not can_view(task, actor):
            raise AuthorizationError("Not authorized to view this task")
        return await self._detect(task, self._clock())

    async def list_visible(self, actor: Account) -> list[Task]:
        """Tasks owned by, public to, or shared with the actor."""
        tasks = await self._tasks.list_visible_to(actor.id)
        return await self._detect_all(tasks)

    async def list_all(self, actor: Account) -> list[Task]:
        """Every task. Admin only."""
        require_admin(actor)
        tasks = await self._tasks.list_all()
        return await self._detect_all(tasks)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def update(self, actor: Account, task_id: str, fields: Mapping[str, Any]) -> Task:
        """Apply a general field update.

        Args:
            actor: Requesting account.
            task_id: Task to update.
            fields: Request body keyed by wire field names.

        Returns:
            The updated task.

        Raises:
            ValidationError: On a disallowed field or invalid value.
            NotFoundError: If the task does not exist.
            AuthorizationError: If the actor is not owner/admin, or a
                non-admin touches status/due date of a locked task.
            StateConflictError: If an admin sets a disallowed status on a
                locked task.
        """
        payload = parse_update(fields)
        task = await self._load(task_id)
        authorize_task_write(task, actor)

        changes = changes_from_payload(payload, task)
        now = self._clock()
        check_overdue_lockout(task, changes, actor, now)

        # Due date changes apply to the stored status, not a reclassified one.
        if not changes.touches("due_date"):
            task = await self._detect(task, now)

        result = apply_transition(task, changes, actor.id, now)
        return await self._commit(result, actor.id)

    async def assign(self, actor: Account, task_id: str, assignee_id: str | None) -> Task:
        """Change the owner of a task.

        Assigning a pending task moves it to in-progress; releasing an open
        task (``assignee_id=None``) moves it back to pending. Tasks in any
        other status keep their status.

        Raises:
            NotFoundError: If the task or the assignee does not exist.
            AuthorizationError: If the assignment is not allowed.
        """
        task = await self._load(task_id)
        authorize_assignment(task, actor, assignee_id)
        if assignee_id is not None:
            await self._require_account(assignee_id)

        now = self._clock()
        if is_locked(task, now) and not actor.is_admin:
            raise AuthorizationError(
                "Task is behind schedule. Ownership can only be changed by an admin."
            )

        task = await self._detect(task, now)

        if assignee_id is None:
            if task.status in OPEN_STATUSES:
                changes = TaskChanges(status=TaskStatus.PENDING)
            else:
                changes = TaskChanges(owner_id=None)
        elif task.status is TaskStatus.PENDING:
            changes = TaskChanges(owner_id=assignee_id, status=TaskStatus.IN_PROGRESS)
        else:
            changes = TaskChanges(owner_id=assignee_id)

        result = apply_transition(task, changes, actor.id, now)
        return await self._commit(result, actor.id)

    async def change_visibility(
        self,
        actor: Account,
        task_id: str,
        is_public: bool | None,
        visible_to: list[str] | None,
    ) -> Task:
        """Change who can see a task. Owner or admin only."""
        if is_public is None and visible_to is None:
            raise ValidationError("Provide isPublic or visibleTo")

        task = await self._load(task_id)
        authorize_task_write(task, actor, action="change visibility of")

        now = self._clock()
        task = await self._detect(task, now)
        visibility = normalize_visibility(is_public, visible_to, task.visibility)
        result = apply_transition(task, TaskChanges(visibility=visibility), actor.id, now)
        return await self._commit(result, actor.id)

    async def delete(self, actor: Account, task_id: str) -> Task:
        """Delete a task and its attachment. Owner or admin only."""
        task = await self._load(task_id)
        authorize_task_write(task, actor, action="delete")

        if task.attachment:
            await self._files.delete(task.id)
        await self._tasks.delete(task.id)
        logger.info("task_deleted", task_id=task.id, actor_id=actor.id)
        return task

    # ------------------------------------------------------------------
    # Export and attachments
    # ------------------------------------------------------------------

    async def owner_accounts(self, tasks: Iterable[Task]) -> dict[str, Account]:
        """Accounts of the owners of the given tasks, keyed by id.

        Owners whose account no longer exists are left out.
        """
        owners: dict[str, Account] = {}
        for owner_id in {t.owner_id for t in tasks if t.owner_id}:
            owner = await self._accounts.get_by_id(owner_id)
            if owner:
                owners[owner_id] = owner
        return owners

    async def export_xlsx(self, actor: Account) -> bytes:
        """Excel workbook of the tasks visible to the actor."""
        tasks = await self.list_visible(actor)
        owners = await self.owner_accounts(tasks)
        owner_names = {owner_id: owner.name for owner_id, owner in owners.items()}

        logger.info("tasks_exported", actor_id=actor.id, count=len(tasks))
        return tasks_to_xlsx(tasks, owner_names)

    async def upload_attachment(
        self,
        actor: Account,
        task_id: str,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> Task:
        """Store (or replace) the attachment of a task.

        Raises:
            ValidationError: If the file is empty or too large.
        """
        task = await self._load(task_id)
        authorize_task_write(task, actor, action="attach files to")

        if not data:
            raise ValidationError("Attachment is empty")
        if len(data) > self._max_attachment_bytes:
            raise ValidationError(
                f"Attachment exceeds the {self._max_attachment_bytes // (1024 * 1024)} MB limit"
            )

        await self._files.put(task.id, filename, content_type, data)
        task = await self._tasks.save(
            replace(
                task,
                attachment=AttachmentInfo(
                    filename=filename, content_type=content_type, size=len(data)
                ),
                updated_at=self._clock(),
            )
        )
        logger.info("attachment_uploaded", task_id=task.id, size=len(data))
        return task

    async def get_attachment(self, actor: Account, task_id: str) -> StoredFile:
        """Fetch the attachment of a task the actor may see."""
        task = await self._load(task_id)
        if not can_view(task, actor):
            raise AuthorizationError("Not authorized to view this task")
        if not task.attachment:
            raise NotFoundError("Task has no attachment")

        stored = await self._files.get(task.id)
        if stored is None:
            logger.warning("attachment_missing_in_store", task_id=task.id)
            raise NotFoundError("Task has no attachment")
        return stored

    async def delete_attachment(self, actor: Account, task_id: str) -> Task:
        """Remove the attachment of a task."""
        task = await self._load(task_id)
        authorize_task_write(task, actor, action="remove attachments from")
        if not task.attachment:
            raise NotFoundError("Task has no attachment")

        await self._files.delete(task.id)
        task = await self._tasks.save(replace(task, attachment=None, updated_at=self._clock()))
        logger.info("attachment_deleted", task_id=task.id)
        return task

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load(self, task_id: str) -> Task:
        task = await self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def _require_account(self, account_id: str) -> Account:
        account = await self._accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account

    async def _detect(self, task: Task, now: datetime) -> Task:
        """Persist an overdue reclassification, if one is due."""
        result = detect_overdue(task, now)
        if result is None:
            return task
        logger.info("task_overdue", task_id=task.id, owner_id=task.owner_id)
        return await self._commit(result, None)

    async def _detect_all(self, tasks: list[Task]) -> list[Task]:
        now = self._clock()
        return [await self._detect(task, now) for task in tasks]

    async def _commit(self, result: TransitionResult, actor_id: str | None) -> Task:
        """Persist the task, then apply the credit delta to its owner."""
        task = await self._tasks.save(result.task)

        if result.status_changed:
            logger.info(
                "task_status_changed",
                task_id=task.id,
                from_status=result.previous_status.value,
                to_status=task.status.value,
                actor_id=actor_id,
            )

        if result.credit_account_id is not None:
            account = await self._accounts.adjust_credits(
                result.credit_account_id, result.owner_credit_delta
            )
            if account is None:
                logger.warning(
                    "credit_owner_missing",
                    task_id=task.id,
                    account_id=result.credit_account_id,
                    delta=result.owner_credit_delta,
                )
            else:
                logger.info(
                    "credits_adjusted",
                    task_id=task.id,
                    account_id=account.id,
                    delta=result.owner_credit_delta,
                    credits=account.credits,
                )
        return task
