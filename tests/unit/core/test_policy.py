"""Tests for the authorization policy."""

from __future__ import annotations

from datetime import timedelta

import pytest

from taskcred.core.domain_types import (
    Account,
    PublicVisibility,
    RestrictedVisibility,
    Task,
    TaskStatus,
)
from taskcred.core.exceptions import AuthorizationError, StateConflictError, ValidationError
from taskcred.core.policy import (
    authorize_assignment,
    authorize_task_write,
    can_view,
    check_overdue_lockout,
    is_locked,
    normalize_visibility,
    require_admin,
    validate_description,
    validate_title,
    validate_update_fields,
)
from taskcred.core.transitions import TaskChanges
from tests.fixtures.domain_objects import NOW, build_task


class TestValidateUpdateFields:
    """Tests for the update allow-list."""

    def test_allowed_fields_pass(self) -> None:
        """Every allow-listed field is accepted."""
        validate_update_fields(
            ["title", "description", "status", "dueDate", "priority", "visibleTo", "isPublic"]
        )

    @pytest.mark.parametrize("field", ["owner", "credits", "history", "_id"])
    def test_unknown_field_rejects_request(self, field: str) -> None:
        """One disallowed field rejects the whole request."""
        with pytest.raises(ValidationError, match=field):
            validate_update_fields(["title", field])


class TestFieldValidation:
    """Tests for title and description checks."""

    def test_title_is_trimmed(self) -> None:
        assert validate_title("  Fix bug  ") == "Fix bug"

    def test_short_title_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_title(" ab ")

    def test_short_description_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_description("too short")


class TestAuthorizeTaskWrite:
    """Tests for owner/admin write access."""

    def test_owner_may_write(self, user: Account) -> None:
        authorize_task_write(build_task(owner_id=user.id), user)

    def test_admin_may_write(self, admin: Account) -> None:
        authorize_task_write(build_task(owner_id="someone"), admin)

    def test_other_user_rejected(self, other_user: Account) -> None:
        with pytest.raises(AuthorizationError):
            authorize_task_write(build_task(owner_id="alice"), other_user)

    def test_unowned_task_is_admin_only(self, user: Account, admin: Account) -> None:
        """Nobody owns it, so only admins may edit it."""
        task = build_task(owner_id=None)
        authorize_task_write(task, admin)
        with pytest.raises(AuthorizationError):
            authorize_task_write(task, user)


class TestAuthorizeAssignment:
    """Tests for ownership changes."""

    def test_claim_unowned_task(self, user: Account) -> None:
        authorize_assignment(build_task(owner_id=None), user, user.id)

    def test_release_own_task(self, user: Account) -> None:
        authorize_assignment(build_task(owner_id=user.id), user, None)

    def test_cannot_take_someone_elses_task(self, user: Account) -> None:
        with pytest.raises(AuthorizationError):
            authorize_assignment(build_task(owner_id="bob"), user, user.id)

    def test_cannot_assign_others(self, user: Account) -> None:
        with pytest.raises(AuthorizationError):
            authorize_assignment(build_task(owner_id=None), user, "bob")

    def test_admin_assigns_anyone(self, admin: Account) -> None:
        authorize_assignment(build_task(owner_id="bob"), admin, "alice")


class TestOverdueLockout:
    """Tests for the behind-schedule lockout."""

    @pytest.fixture
    def locked_task(self, user: Account) -> Task:
        return build_task(
            owner_id=user.id,
            status=TaskStatus.BEHIND_SCHEDULE,
            due_date=NOW - timedelta(days=1),
        )

    def test_overdue_open_task_is_locked(self) -> None:
        """An open task past its due date is locked before reclassification."""
        task = build_task(status=TaskStatus.IN_PROGRESS, due_date=NOW - timedelta(minutes=1))
        assert is_locked(task, NOW)

    def test_future_task_is_not_locked(self) -> None:
        task = build_task(status=TaskStatus.IN_PROGRESS, due_date=NOW + timedelta(days=1))
        assert not is_locked(task, NOW)

    def test_non_admin_status_change_rejected(self, locked_task: Task, user: Account) -> None:
        with pytest.raises(AuthorizationError):
            check_overdue_lockout(
                locked_task, TaskChanges(status=TaskStatus.COMPLETED), user, NOW
            )

    def test_non_admin_due_date_change_rejected(self, locked_task: Task, user: Account) -> None:
        with pytest.raises(AuthorizationError):
            check_overdue_lockout(
                locked_task, TaskChanges(due_date=NOW + timedelta(days=3)), user, NOW
            )

    def test_non_admin_may_edit_other_fields(self, locked_task: Task, user: Account) -> None:
        check_overdue_lockout(locked_task, TaskChanges(title="Renamed"), user, NOW)

    @pytest.mark.parametrize(
        "status",
        [TaskStatus.COMPLETED, TaskStatus.CANCELLED, TaskStatus.BEHIND_SCHEDULE],
    )
    def test_admin_allowed_targets(
        self, locked_task: Task, admin: Account, status: TaskStatus
    ) -> None:
        check_overdue_lockout(locked_task, TaskChanges(status=status), admin, NOW)

    @pytest.mark.parametrize("status", [TaskStatus.IN_PROGRESS, TaskStatus.PENDING])
    def test_admin_disallowed_targets(
        self, locked_task: Task, admin: Account, status: TaskStatus
    ) -> None:
        with pytest.raises(StateConflictError):
            check_overdue_lockout(locked_task, TaskChanges(status=status), admin, NOW)

    def test_admin_may_extend_due_date(self, locked_task: Task, admin: Account) -> None:
        check_overdue_lockout(
            locked_task, TaskChanges(due_date=NOW + timedelta(days=3)), admin, NOW
        )


class TestNormalizeVisibility:
    """Tests for visibility normalisation."""

    def test_visible_to_forces_restricted(self) -> None:
        result = normalize_visibility(True, ["bob"], PublicVisibility())
        assert result == RestrictedVisibility(account_ids=frozenset({"bob"}))

    def test_is_public_clears_list(self) -> None:
        current = RestrictedVisibility(account_ids=frozenset({"bob"}))
        assert normalize_visibility(True, None, current) == PublicVisibility()

    def test_private_keeps_existing_list(self) -> None:
        current = RestrictedVisibility(account_ids=frozenset({"bob"}))
        assert normalize_visibility(False, None, current) == current

    def test_private_from_public_is_empty_restriction(self) -> None:
        assert normalize_visibility(False, None, PublicVisibility()) == RestrictedVisibility()

    def test_nothing_requested_keeps_current(self) -> None:
        assert normalize_visibility(None, None, PublicVisibility()) == PublicVisibility()


class TestCanView:
    """Tests for read access."""

    def test_public_task_visible_to_all(self, other_user: Account) -> None:
        assert can_view(build_task(owner_id="alice"), other_user)

    def test_restricted_task(self, user: Account, other_user: Account, admin: Account) -> None:
        task = build_task(
            owner_id="carol",
            visibility=RestrictedVisibility(account_ids=frozenset({user.id})),
        )
        assert can_view(task, user)
        assert can_view(task, admin)
        assert not can_view(task, other_user)


class TestRequireAdmin:
    """Tests for admin gating."""

    def test_rejects_user(self, user: Account) -> None:
        with pytest.raises(AuthorizationError):
            require_admin(user)

    def test_accepts_admin(self, admin: Account) -> None:
        require_admin(admin)
