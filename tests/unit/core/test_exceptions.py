"""Tests for the domain error hierarchy."""

import pytest

from taskcred.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DependencyError,
    NotFoundError,
    StateConflictError,
    TaskcredError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("error_class", "kind", "status_code"),
    [
        (ValidationError, "validation_error", 400),
        (AuthenticationError, "authentication_error", 401),
        (AuthorizationError, "authorization_error", 403),
        (NotFoundError, "not_found", 404),
        (StateConflictError, "state_conflict", 409),
        (DependencyError, "dependency_error", 502),
    ],
)
def test_error_kinds(error_class: type[TaskcredError], kind: str, status_code: int) -> None:
    """Each error carries its machine-readable kind and HTTP status."""
    error = error_class("something went wrong")

    assert isinstance(error, TaskcredError)
    assert error.kind == kind
    assert error.status_code == status_code
    assert error.message == "something went wrong"
    assert str(error) == "something went wrong"
