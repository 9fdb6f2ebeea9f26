"""Authentication: passwords, session tokens, one-time tokens, accounts."""

from taskcred.core.auth.repository import AccountRepository
from taskcred.core.auth.service import AuthService

__all__ = ["AccountRepository", "AuthService"]
