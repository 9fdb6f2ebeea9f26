"""Account repository protocol for database operations."""

from datetime import datetime
from typing import Protocol, runtime_checkable

from taskcred.core.domain_types import Account, ApprovalStatus, Role


@runtime_checkable
class AccountRepository(Protocol):
    """Protocol for account persistence.

    Implementations provide actual database access (MongoDB, in-memory).
    ``save`` never writes ``credits`` or the session set; those are changed
    only through the dedicated atomic operations so a stale read cannot
    overwrite a concurrent increment.
    """

    def next_id(self) -> str:
        """Allocate an identifier for a new account."""
        ...

    async def get_by_id(self, account_id: str) -> Account | None:
        """Get account by ID."""
        ...

    async def get_by_email(self, email: str) -> Account | None:
        """Get account by (lower-cased) e-mail address."""
        ...

    async def get_by_verification_token(self, token_hash: str) -> Account | None:
        """Get the account holding an e-mail verification token."""
        ...

    async def get_by_reset_token(self, token_hash: str) -> Account | None:
        """Get the account holding a password reset token."""
        ...

    async def create(self, account: Account) -> Account:
        """Insert a new account.

        Raises:
            ValidationError: If the e-mail address is already registered.
        """
        ...

    async def save(self, account: Account) -> Account:
        """Persist profile, role, approval and token fields of an account."""
        ...

    async def delete(self, account_id: str) -> Account | None:
        """Delete an account, returning it if it existed."""
        ...

    async def adjust_credits(self, account_id: str, delta: int) -> Account | None:
        """Atomically add ``delta`` to the account's credits.

        Returns:
            The updated account, or None if it does not exist.
        """
        ...

    async def add_session(self, account_id: str, token_hash: str) -> None:
        """Add a session token hash to the active set."""
        ...

    async def remove_session(self, account_id: str, token_hash: str) -> None:
        """Remove one session token hash from the active set."""
        ...

    async def clear_sessions(self, account_id: str) -> None:
        """Revoke every session of the account."""
        ...

    async def list_accounts(
        self,
        role: Role | None = None,
        approval_status: ApprovalStatus | None = None,
    ) -> list[Account]:
        """List accounts, optionally filtered, oldest first."""
        ...

    async def leaderboard(self, limit: int | None = None) -> list[Account]:
        """Approved accounts ordered by credits (highest first), then name."""
        ...

    async def count_ahead_of(self, credits: int) -> int:
        """Number of approved accounts with strictly more credits."""
        ...

    async def purge_expired_tokens(self, now: datetime) -> int:
        """Clear expired verification and reset tokens; returns the count."""
        ...
