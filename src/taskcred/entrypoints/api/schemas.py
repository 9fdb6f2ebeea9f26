"""Shared API response models.

Field names are camelCase on the wire; Python attributes stay snake_case.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from taskcred.core.domain_types import (
    Account,
    ApprovalStatus,
    HistoryAction,
    Role,
    Task,
    TaskStatus,
)


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting either casing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserResponse(CamelModel):
    """Public view of an account. Never includes secrets."""

    id: str
    name: str
    email: str
    role: Role
    approval_status: ApprovalStatus
    email_verified: bool
    credits: int
    created_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> UserResponse:
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            role=account.role,
            approval_status=account.approval_status,
            email_verified=account.email_verified,
            credits=account.credits,
            created_at=account.created_at,
        )


class SessionResponse(CamelModel):
    """An account together with a freshly issued session token."""

    user: UserResponse
    token: str


class MessageResponse(CamelModel):
    """Plain confirmation message."""

    message: str


class HistoryEntryResponse(CamelModel):
    """One task history entry."""

    action: HistoryAction
    timestamp: datetime
    performed_by: str | None
    assigned_to: str | None = None


class AttachmentResponse(CamelModel):
    """Attachment metadata."""

    filename: str
    content_type: str
    size: int


class OwnerSummary(CamelModel):
    """Name and e-mail of a task owner."""

    id: str
    name: str
    email: str


class TaskResponse(CamelModel):
    """Public view of a task."""

    id: str
    title: str
    description: str
    status: TaskStatus
    owner: str | None
    owner_details: OwnerSummary | None = None
    due_date: datetime | None
    priority: str | None
    is_public: bool
    visible_to: list[str]
    history: list[HistoryEntryResponse]
    attachment: AttachmentResponse | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: Task, owners: Mapping[str, Account] | None = None) -> TaskResponse:
        """Build the response; ``owners`` maps owner ids to their accounts."""
        owner = (owners or {}).get(task.owner_id) if task.owner_id else None
        attachment = None
        if task.attachment:
            attachment = AttachmentResponse(
                filename=task.attachment.filename,
                content_type=task.attachment.content_type,
                size=task.attachment.size,
            )
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            owner=task.owner_id,
            owner_details=(
                OwnerSummary(id=owner.id, name=owner.name, email=owner.email) if owner else None
            ),
            due_date=task.due_date,
            priority=task.priority,
            is_public=task.is_public,
            visible_to=task.visible_to,
            history=[
                HistoryEntryResponse(
                    action=entry.action,
                    timestamp=entry.timestamp,
                    performed_by=entry.performed_by,
                    assigned_to=entry.assigned_to,
                )
                for entry in task.history
            ],
            attachment=attachment,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )
