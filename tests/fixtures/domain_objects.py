"""Domain object fixtures for testing."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from taskcred.core.domain_types import (
    Account,
    ApprovalStatus,
    HistoryAction,
    HistoryEntry,
    Role,
    Task,
    TaskStatus,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


def build_account(account_id: str, role: Role = Role.USER, **overrides: Any) -> Account:
    """Build an approved, verified account."""
    fields: dict[str, Any] = {
        "id": account_id,
        "name": account_id.capitalize(),
        "email": f"{account_id}@icterra.com",
        "password_hash": "not-a-real-hash",
        "role": role,
        "approval_status": ApprovalStatus.APPROVED,
        "email_verified": True,
        "created_at": NOW - timedelta(days=30),
    }
    fields.update(overrides)
    return Account(**fields)


def build_task(task_id: str = "task-1", **overrides: Any) -> Task:
    """Build a task; pass ``assigned_by`` to record who assigned the owner."""
    assigned_by = overrides.pop("assigned_by", None)
    fields: dict[str, Any] = {
        "id": task_id,
        "title": "Write report",
        "description": "Quarterly numbers for the team",
        "created_at": NOW - timedelta(days=7),
        "updated_at": NOW - timedelta(days=7),
    }
    fields.update(overrides)
    if assigned_by is not None and fields.get("owner_id"):
        fields["history"] = (
            HistoryEntry(
                action=HistoryAction.ASSIGNED,
                timestamp=NOW - timedelta(days=7),
                performed_by=assigned_by,
                assigned_to=fields["owner_id"],
            ),
        )
    return Task(**fields)


@pytest.fixture
def now() -> datetime:
    """Return the fixed reference time used across tests."""
    return NOW


@pytest.fixture
def user() -> Account:
    """Return a regular approved account."""
    return build_account("alice")


@pytest.fixture
def other_user() -> Account:
    """Return a second regular account."""
    return build_account("bob")


@pytest.fixture
def admin() -> Account:
    """Return an admin account."""
    return build_account("root", role=Role.ADMIN)


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """Return the task factory."""
    return build_task


@pytest.fixture
def in_progress_task(user: Account) -> Task:
    """Return a self-assigned in-progress task due in three days."""
    return build_task(
        owner_id=user.id,
        status=TaskStatus.IN_PROGRESS,
        due_date=NOW + timedelta(days=3),
        assigned_by=user.id,
    )
