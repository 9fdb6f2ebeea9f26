"""Account routes: registration, sessions, profile, recovery, administration."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import ConfigDict, EmailStr, Field

from taskcred.core.auth.service import AuthService
from taskcred.core.domain_types import ApprovalStatus, Role
from taskcred.entrypoints.api.deps import get_account_service, get_auth_service
from taskcred.entrypoints.api.middleware.auth import CurrentSession, RequireAdmin
from taskcred.entrypoints.api.schemas import (
    CamelModel,
    MessageResponse,
    SessionResponse,
    UserResponse,
)
from taskcred.services.accounts import AccountService

router = APIRouter(prefix="/users", tags=["users"])

# Annotated types for dependency injection
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
AccountServiceDep = Annotated[AccountService, Depends(get_account_service)]


class StrictModel(CamelModel):
    """Request model rejecting unknown fields."""

    model_config = ConfigDict(extra="forbid")


class RegisterRequest(StrictModel):
    """Request to register an account."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str


class RegisterResponse(CamelModel):
    """Response after registration."""

    message: str
    user: UserResponse


class LoginRequest(StrictModel):
    """Login credentials."""

    email: str
    password: str


class UpdateProfileRequest(StrictModel):
    """Self-service profile update. Only the name can change."""

    name: str = Field(..., min_length=1, max_length=100)


class ChangePasswordRequest(StrictModel):
    """Request to change the own password."""

    current_password: str
    new_password: str


class ResetRequest(StrictModel):
    """Request a password reset e-mail."""

    email: EmailStr


class ResetPasswordRequest(StrictModel):
    """Set a new password with a reset token."""

    token: str
    password: str


class ResetTokenResponse(CamelModel):
    """Result of checking a reset token."""

    valid: bool
    email: str


class RankResponse(CamelModel):
    """The caller's leaderboard standing."""

    credits: int
    rank: int
    total: int


class LeaderboardEntry(CamelModel):
    """One leaderboard row."""

    id: str
    name: str
    credits: int


class AdminUpdateRequest(StrictModel):
    """Admin change of another account."""

    name: str | None = Field(None, min_length=1, max_length=100)
    role: Role | None = None


class ApprovalRequest(StrictModel):
    """Admin approval decision."""

    approval_status: ApprovalStatus


# ============================================================================
# Registration and sessions
# ============================================================================


@router.post("", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, auth_service: AuthServiceDep) -> RegisterResponse:
    """Register a new account and send the verification e-mail."""
    account = await auth_service.register(body.name, str(body.email), body.password)
    return RegisterResponse(
        message="Registration successful. Please verify your email.",
        user=UserResponse.from_account(account),
    )


@router.get("/verify-email/{token}", response_model=MessageResponse)
async def verify_email(token: str, auth_service: AuthServiceDep) -> MessageResponse:
    """Confirm an e-mail address."""
    await auth_service.verify_email(token)
    return MessageResponse(message="Email verified. Your account is awaiting admin approval.")


@router.post("/login", response_model=SessionResponse)
async def login(body: LoginRequest, auth_service: AuthServiceDep) -> SessionResponse:
    """Log in with e-mail and password."""
    account, token = await auth_service.login(body.email, body.password)
    return SessionResponse(user=UserResponse.from_account(account), token=token)


@router.post("/logout", response_model=MessageResponse)
async def logout(session: CurrentSession, auth_service: AuthServiceDep) -> MessageResponse:
    """Revoke the current session token."""
    await auth_service.logout(session.account, session.token)
    return MessageResponse(message="Logged out")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(session: CurrentSession, auth_service: AuthServiceDep) -> MessageResponse:
    """Revoke every session of the current account."""
    await auth_service.logout_all(session.account)
    return MessageResponse(message="Logged out of all sessions")


# ============================================================================
# Self-service (must be before /{user_id} routes)
# ============================================================================


@router.get("/me", response_model=UserResponse)
async def get_me(session: CurrentSession) -> UserResponse:
    """Get the current account's profile."""
    return UserResponse.from_account(session.account)


@router.patch("/me", response_model=SessionResponse)
async def update_me(
    body: UpdateProfileRequest,
    session: CurrentSession,
    auth_service: AuthServiceDep,
) -> SessionResponse:
    """Update the own name. The session token is re-issued."""
    account, token = await auth_service.update_profile(session.account, session.token, body.name)
    return SessionResponse(user=UserResponse.from_account(account), token=token)


@router.patch("/me/password", response_model=SessionResponse)
async def change_password(
    body: ChangePasswordRequest,
    session: CurrentSession,
    auth_service: AuthServiceDep,
) -> SessionResponse:
    """Change the own password. All other sessions are revoked."""
    account, token = await auth_service.change_password(
        session.account, body.current_password, body.new_password
    )
    return SessionResponse(user=UserResponse.from_account(account), token=token)


@router.get("/me/rank", response_model=RankResponse)
async def get_my_rank(session: CurrentSession, account_service: AccountServiceDep) -> RankResponse:
    """Get the own credits and leaderboard position."""
    rank = await account_service.rank(session.account)
    return RankResponse(credits=rank.credits, rank=rank.rank, total=rank.total)


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def get_leaderboard(
    session: CurrentSession,
    account_service: AccountServiceDep,
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
) -> list[LeaderboardEntry]:
    """Approved accounts ordered by credits."""
    accounts = await account_service.leaderboard(limit)
    return [LeaderboardEntry(id=a.id, name=a.name, credits=a.credits) for a in accounts]


# ============================================================================
# Password recovery
# ============================================================================


@router.post("/reset-password-request", response_model=MessageResponse)
async def request_password_reset(
    body: ResetRequest,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    """Send a reset link if the address is registered."""
    await auth_service.request_password_reset(str(body.email))
    return MessageResponse(
        message="If an account exists for this email, a reset link has been sent."
    )


@router.get("/verify-reset-token/{token}", response_model=ResetTokenResponse)
async def verify_reset_token(token: str, auth_service: AuthServiceDep) -> ResetTokenResponse:
    """Check a reset token before showing the reset form."""
    account = await auth_service.verify_reset_token(token)
    return ResetTokenResponse(valid=True, email=account.email)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest, auth_service: AuthServiceDep
) -> MessageResponse:
    """Set a new password with a reset token."""
    await auth_service.reset_password(body.token, body.password)
    return MessageResponse(message="Password has been reset. Please log in.")


# ============================================================================
# Administration
# ============================================================================


@router.get("", response_model=list[UserResponse])
async def list_users(
    admin: RequireAdmin,
    account_service: AccountServiceDep,
    role: Role | None = None,
    approval_status: Annotated[ApprovalStatus | None, Query(alias="approvalStatus")] = None,
) -> list[UserResponse]:
    """List accounts, optionally filtered by role or approval status."""
    accounts = await account_service.list_accounts(admin.account, role, approval_status)
    return [UserResponse.from_account(a) for a in accounts]


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    body: AdminUpdateRequest,
    admin: RequireAdmin,
    account_service: AccountServiceDep,
) -> UserResponse:
    """Change another account's name or role."""
    account = await account_service.update_account(
        admin.account, user_id, name=body.name, role=body.role
    )
    return UserResponse.from_account(account)


@router.patch("/{user_id}/approval", response_model=UserResponse)
async def set_approval(
    user_id: str,
    body: ApprovalRequest,
    admin: RequireAdmin,
    account_service: AccountServiceDep,
) -> UserResponse:
    """Approve or decline an account."""
    account = await account_service.set_approval(admin.account, user_id, body.approval_status)
    return UserResponse.from_account(account)


@router.delete("/{user_id}", response_model=UserResponse)
async def delete_user(
    user_id: str,
    admin: RequireAdmin,
    account_service: AccountServiceDep,
) -> UserResponse:
    """Delete an account."""
    account = await account_service.delete_account(admin.account, user_id)
    return UserResponse.from_account(account)
