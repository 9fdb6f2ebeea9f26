"""Account administration and leaderboard service."""

from __future__ import annotations

from dataclasses import dataclass, replace

import structlog

from taskcred.core.auth.repository import AccountRepository
from taskcred.core.domain_types import Account, ApprovalStatus, Role
from taskcred.core.exceptions import NotFoundError, StateConflictError, ValidationError
from taskcred.core.policy import require_admin

logger = structlog.get_logger()


@dataclass(frozen=True)
class Rank:
    """An account's position on the leaderboard."""

    account_id: str
    credits: int
    rank: int
    total: int


class AccountService:
    """Admin account management plus credit standings."""

    def __init__(self, repo: AccountRepository) -> None:
        self._repo = repo

    async def list_accounts(
        self,
        actor: Account,
        role: Role | None = None,
        approval_status: ApprovalStatus | None = None,
    ) -> list[Account]:
        """List accounts, optionally filtered. Admin only."""
        require_admin(actor)
        return await self._repo.list_accounts(role=role, approval_status=approval_status)

    async def update_account(
        self,
        actor: Account,
        account_id: str,
        name: str | None = None,
        role: Role | None = None,
    ) -> Account:
        """Change another account's name or role. Admin only.

        Raises:
            NotFoundError: If the account does not exist.
            StateConflictError: If an admin tries to demote themselves.
        """
        require_admin(actor)
        account = await self._load(account_id)

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Name is required")
            account = replace(account, name=name)

        if role is not None and role is not account.role:
            if account.id == actor.id:
                raise StateConflictError("Admins cannot change their own role")
            account = replace(account, role=role)
            # The role is baked into issued tokens.
            await self._repo.clear_sessions(account.id)

        account = await self._repo.save(account)
        logger.info("account_updated", account_id=account.id, actor_id=actor.id)
        return account

    async def set_approval(
        self,
        actor: Account,
        account_id: str,
        approval_status: ApprovalStatus,
    ) -> Account:
        """Approve or decline an account. Admin only.

        Declining revokes every session of the account.
        """
        require_admin(actor)
        if approval_status is ApprovalStatus.PENDING:
            raise ValidationError("Approval status must be approved or declined")

        account = await self._load(account_id)
        if account.id == actor.id:
            raise StateConflictError("Admins cannot change their own approval status")

        account = await self._repo.save(replace(account, approval_status=approval_status))
        if approval_status is ApprovalStatus.DECLINED:
            await self._repo.clear_sessions(account.id)

        logger.info(
            "account_approval_changed",
            account_id=account.id,
            approval_status=approval_status.value,
            actor_id=actor.id,
        )
        return account

    async def delete_account(self, actor: Account, account_id: str) -> Account:
        """Delete an account. Admin only; admins cannot delete themselves.

        Tasks owned by the account keep their owner reference; credit
        changes for such tasks are skipped.
        """
        require_admin(actor)
        if account_id == actor.id:
            raise StateConflictError("Admins cannot delete their own account")

        account = await self._repo.delete(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        logger.info("account_deleted", account_id=account.id, actor_id=actor.id)
        return account

    async def leaderboard(self, limit: int | None = None) -> list[Account]:
        """Approved accounts ordered by credits, highest first."""
        return await self._repo.leaderboard(limit)

    async def rank(self, account: Account) -> Rank:
        """Competition rank of the account: ties share the better position."""
        current = await self._load(account.id)
        ahead = await self._repo.count_ahead_of(current.credits)
        total = len(await self._repo.leaderboard())
        return Rank(account_id=current.id, credits=current.credits, rank=ahead + 1, total=total)

    async def _load(self, account_id: str) -> Account:
        account = await self._repo.get_by_id(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account
