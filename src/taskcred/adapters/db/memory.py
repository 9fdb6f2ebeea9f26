"""In-memory database for tests and local development.

Implements the same repository and file store interfaces as the MongoDB
adapter, backed by plain dictionaries. Not safe across processes.

Attributes on ``InMemoryDatabase`` expose the stores directly so tests can
seed and inspect state.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import replace
from datetime import datetime
from uuid import uuid4

from taskcred.core.auth.tokens import is_token_expired
from taskcred.core.domain_types import (
    Account,
    ApprovalStatus,
    PublicVisibility,
    RestrictedVisibility,
    Role,
    Task,
    TaskStatus,
)
from taskcred.core.exceptions import ValidationError
from taskcred.core.interfaces import StoredFile


class InMemoryAccountRepository:
    """Dictionary-backed account repository."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}

    def next_id(self) -> str:
        return uuid4().hex

    async def get_by_id(self, account_id: str) -> Account | None:
        return self.accounts.get(account_id)

    async def get_by_email(self, email: str) -> Account | None:
        email = email.lower()
        return next((a for a in self.accounts.values() if a.email == email), None)

    async def get_by_verification_token(self, token_hash: str) -> Account | None:
        return next(
            (a for a in self.accounts.values() if a.verification_token_hash == token_hash),
            None,
        )

    async def get_by_reset_token(self, token_hash: str) -> Account | None:
        return next(
            (a for a in self.accounts.values() if a.reset_token_hash == token_hash),
            None,
        )

    async def create(self, account: Account) -> Account:
        if await self.get_by_email(account.email):
            raise ValidationError("An account with this email already exists")
        self.accounts[account.id] = account
        return account

    async def save(self, account: Account) -> Account:
        stored = self.accounts.get(account.id)
        if stored is not None:
            account = replace(
                account,
                credits=stored.credits,
                session_token_hashes=stored.session_token_hashes,
            )
        self.accounts[account.id] = account
        return account

    async def delete(self, account_id: str) -> Account | None:
        return self.accounts.pop(account_id, None)

    async def adjust_credits(self, account_id: str, delta: int) -> Account | None:
        account = self.accounts.get(account_id)
        if account is None:
            return None
        account = replace(account, credits=account.credits + delta)
        self.accounts[account_id] = account
        return account

    async def add_session(self, account_id: str, token_hash: str) -> None:
        account = self.accounts.get(account_id)
        if account is not None:
            self.accounts[account_id] = replace(
                account, session_token_hashes=account.session_token_hashes | {token_hash}
            )

    async def remove_session(self, account_id: str, token_hash: str) -> None:
        account = self.accounts.get(account_id)
        if account is not None:
            self.accounts[account_id] = replace(
                account, session_token_hashes=account.session_token_hashes - {token_hash}
            )

    async def clear_sessions(self, account_id: str) -> None:
        account = self.accounts.get(account_id)
        if account is not None:
            self.accounts[account_id] = replace(account, session_token_hashes=frozenset())

    async def list_accounts(
        self,
        role: Role | None = None,
        approval_status: ApprovalStatus | None = None,
    ) -> list[Account]:
        accounts = [
            a
            for a in self.accounts.values()
            if (role is None or a.role is role)
            and (approval_status is None or a.approval_status is approval_status)
        ]
        return sorted(accounts, key=lambda a: a.created_at)

    async def leaderboard(self, limit: int | None = None) -> list[Account]:
        ranked = sorted(
            (a for a in self.accounts.values() if a.approval_status is ApprovalStatus.APPROVED),
            key=lambda a: (-a.credits, a.name),
        )
        return ranked if limit is None else ranked[:limit]

    async def count_ahead_of(self, credits: int) -> int:
        return sum(
            1
            for a in self.accounts.values()
            if a.approval_status is ApprovalStatus.APPROVED and a.credits > credits
        )

    async def purge_expired_tokens(self, now: datetime) -> int:
        purged = 0
        for account in list(self.accounts.values()):
            changed = account
            if changed.verification_token_hash and is_token_expired(
                changed.verification_expires_at, now
            ):
                changed = replace(
                    changed, verification_token_hash=None, verification_expires_at=None
                )
            if changed.reset_token_hash and is_token_expired(changed.reset_expires_at, now):
                changed = replace(changed, reset_token_hash=None, reset_expires_at=None)
            if changed is not account:
                self.accounts[account.id] = changed
                purged += 1
        return purged


class InMemoryTaskRepository:
    """Dictionary-backed task repository."""

    def __init__(self) -> None:
        self.tasks: dict[str, Task] = {}

    def next_id(self) -> str:
        return uuid4().hex

    async def get(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    async def create(self, task: Task) -> Task:
        self.tasks[task.id] = task
        return task

    async def save(self, task: Task) -> Task:
        self.tasks[task.id] = task
        return task

    async def delete(self, task_id: str) -> bool:
        return self.tasks.pop(task_id, None) is not None

    async def list_all(self) -> list[Task]:
        return _newest_first(self.tasks.values())

    async def list_visible_to(self, account_id: str) -> list[Task]:
        def visible(task: Task) -> bool:
            if task.owner_id == account_id:
                return True
            match task.visibility:
                case PublicVisibility():
                    return True
                case RestrictedVisibility(account_ids=ids):
                    return account_id in ids
            return False

        return _newest_first(t for t in self.tasks.values() if visible(t))

    async def list_due_between(
        self,
        start: datetime,
        end: datetime,
        statuses: Collection[TaskStatus],
    ) -> list[Task]:
        return [
            t
            for t in self.tasks.values()
            if t.due_date is not None and start <= t.due_date <= end and t.status in statuses
        ]

    async def mark_reminded(self, task_id: str, at: datetime) -> None:
        task = self.tasks.get(task_id)
        if task is not None:
            self.tasks[task_id] = replace(task, last_reminded_at=at)


class InMemoryFileStore:
    """Dictionary-backed attachment store."""

    def __init__(self) -> None:
        self.files: dict[str, StoredFile] = {}

    async def put(self, task_id: str, filename: str, content_type: str, data: bytes) -> None:
        self.files[task_id] = StoredFile(filename=filename, content_type=content_type, data=data)

    async def get(self, task_id: str) -> StoredFile | None:
        return self.files.get(task_id)

    async def delete(self, task_id: str) -> None:
        self.files.pop(task_id, None)


class InMemoryDatabase:
    """Bundle of in-memory repositories, shaped like ``MongoDatabase``."""

    def __init__(self) -> None:
        self.accounts = InMemoryAccountRepository()
        self.tasks = InMemoryTaskRepository()
        self.files = InMemoryFileStore()

    async def connect(self) -> None:
        """No-op for the in-memory database."""
        pass

    async def close(self) -> None:
        """No-op for the in-memory database."""
        pass


def _newest_first(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=lambda t: t.created_at, reverse=True)
