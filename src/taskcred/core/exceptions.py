"""Domain-specific exceptions.

All exceptions in the taskcred system inherit from TaskcredError,
making it easy to catch all system errors while still being able
to handle specific error types.

Every error carries a machine-readable ``kind`` and the HTTP status the
API layer responds with, so handlers never have to map exception
classes to responses themselves.
"""

from __future__ import annotations


class TaskcredError(Exception):
    """Base exception for all taskcred errors.

    Attributes:
        kind: Machine-readable error kind returned to clients.
        status_code: HTTP status used when the error reaches the API.
        message: Human-readable description safe to show to users.
    """

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        """Initialize the error.

        Args:
            message: Human-readable description safe to show to users.
        """
        super().__init__(message)
        self.message = message


class ValidationError(TaskcredError):
    """Malformed or disallowed input.

    Raised before any state is touched, e.g. when an update request
    contains a field outside the allow-list or a title is too short.
    The whole request is rejected; nothing is partially applied.
    """

    kind = "validation_error"
    status_code = 400


class AuthenticationError(TaskcredError):
    """Caller could not be authenticated.

    Missing, expired, revoked or malformed bearer tokens, wrong
    credentials, and accounts that are not yet verified or approved.
    """

    kind = "authentication_error"
    status_code = 401


class AuthorizationError(TaskcredError):
    """Caller is authenticated but not allowed to perform the action.

    Role or ownership mismatch, or a non-admin touching a locked
    (behind-schedule) task.
    """

    kind = "authorization_error"
    status_code = 403


class NotFoundError(TaskcredError):
    """Referenced task, account or token does not exist."""

    kind = "not_found"
    status_code = 404


class StateConflictError(TaskcredError):
    """Requested transition is not allowed from the current status.

    Raised before any credit mutation, e.g. an admin trying to move a
    behind-schedule task back to in-progress without extending its
    due date.
    """

    kind = "state_conflict"
    status_code = 409


class DependencyError(TaskcredError):
    """A collaborator (database, mail server, file store) failed.

    Notification failures are logged and swallowed instead of being
    raised; this is only raised where the operation cannot complete.
    """

    kind = "dependency_error"
    status_code = 502
