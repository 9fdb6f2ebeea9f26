"""API middleware and request dependencies."""

from taskcred.entrypoints.api.middleware.auth import (
    CurrentSession,
    RequireAdmin,
    SessionContext,
    verify_admin,
    verify_session,
)

__all__ = [
    "CurrentSession",
    "RequireAdmin",
    "SessionContext",
    "verify_admin",
    "verify_session",
]
