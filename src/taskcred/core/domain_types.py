"""Domain types - immutable objects defining the core domain.

Accounts and tasks are frozen dataclasses; every state change produces a
new instance via ``dataclasses.replace`` so the transition engine can stay
a pure function. Enum-like string fields from the wire format are closed
enums here, and task visibility is a two-variant sum type instead of a
pair of loosely coupled fields.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class Role(str, Enum):
    """Account roles."""

    USER = "user"
    ADMIN = "admin"


class ApprovalStatus(str, Enum):
    """Admin approval state of an account. Only approved accounts may log in."""

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class TaskStatus(str, Enum):
    """Lifecycle status of a task."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BEHIND_SCHEDULE = "behind-schedule"
    CANCELLED = "cancelled"


class HistoryAction(str, Enum):
    """Kinds of task history entries."""

    ASSIGNED = "assigned"
    COMPLETED = "completed"
    UPDATED = "updated"


# Statuses the overdue detector may move to behind-schedule.
OPEN_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})


@dataclass(frozen=True)
class PublicVisibility:
    """Task is visible to every account."""


@dataclass(frozen=True)
class RestrictedVisibility:
    """Task is visible only to the listed accounts (plus owner and admins).

    Attributes:
        account_ids: Accounts explicitly granted visibility.
    """

    account_ids: frozenset[str] = frozenset()


Visibility = PublicVisibility | RestrictedVisibility


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable audit record appended to a task.

    Attributes:
        action: What happened.
        timestamp: When it happened (UTC).
        performed_by: Acting account, or None when the system acted
            (overdue detection).
        assigned_to: New owner, for ``assigned`` entries only.
    """

    action: HistoryAction
    timestamp: datetime
    performed_by: str | None
    assigned_to: str | None = None


def latest_assignment(history: Iterable[HistoryEntry]) -> HistoryEntry | None:
    """Return the most recent ``assigned`` entry of a history, if any."""
    for entry in reversed(tuple(history)):
        if entry.action is HistoryAction.ASSIGNED:
            return entry
    return None


@dataclass(frozen=True)
class AttachmentInfo:
    """Metadata of a task attachment. The bytes live in the file store."""

    filename: str
    content_type: str
    size: int


@dataclass(frozen=True)
class Task:
    """A unit of work.

    Attributes:
        id: Stable unique identifier.
        title: Short title, at least 3 characters.
        description: Longer description, at least 10 characters.
        status: Current lifecycle status.
        owner_id: Owning account, or None when unassigned.
        due_date: Optional deadline (timezone-aware, UTC).
        visibility: Public, or restricted to an explicit set of accounts.
        history: Append-only audit log.
        priority: Optional free-form priority label.
        attachment: Metadata of the stored attachment, if any.
        last_reminded_at: When the last due-date reminder went out.
        created_at: Creation time, never changes.
        updated_at: Time of the last mutation.
    """

    id: str
    title: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    owner_id: str | None = None
    due_date: datetime | None = None
    visibility: Visibility = field(default_factory=PublicVisibility)
    history: tuple[HistoryEntry, ...] = ()
    priority: str | None = None
    attachment: AttachmentInfo | None = None
    last_reminded_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_public(self) -> bool:
        """Whether the task is visible to everyone."""
        return isinstance(self.visibility, PublicVisibility)

    @property
    def visible_to(self) -> list[str]:
        """Accounts explicitly granted visibility, sorted for stable output."""
        match self.visibility:
            case RestrictedVisibility(account_ids=ids):
                return sorted(ids)
            case PublicVisibility():
                return []


@dataclass(frozen=True)
class Account:
    """A user of the system.

    Attributes:
        id: Stable unique identifier.
        name: Display name.
        email: Lower-cased organizational e-mail address.
        password_hash: Bcrypt hash; never serialized outward.
        role: User or admin.
        approval_status: Admin approval state; gates login.
        email_verified: Whether the e-mail address was confirmed; gates login.
        credits: Punctuality score, unbounded in both directions.
        session_token_hashes: SHA-256 hashes of the active session tokens.
        verification_token_hash: Hash of the pending e-mail verification token.
        verification_expires_at: Expiry of the verification token.
        reset_token_hash: Hash of the pending password reset token.
        reset_expires_at: Expiry of the reset token.
        created_at: Registration time.
    """

    id: str
    name: str
    email: str
    password_hash: str
    role: Role = Role.USER
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    email_verified: bool = False
    credits: int = 0
    session_token_hashes: frozenset[str] = frozenset()
    verification_token_hash: str | None = None
    verification_expires_at: datetime | None = None
    reset_token_hash: str | None = None
    reset_expires_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_admin(self) -> bool:
        """Whether the account has the admin role."""
        return self.role is Role.ADMIN
