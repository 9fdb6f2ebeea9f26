"""Auth service for registration, login, sessions and password recovery."""

import re
from dataclasses import replace

import structlog

from taskcred.core.auth.jwt import TokenError, create_session_token, decode_token
from taskcred.core.auth.password import hash_password, validate_password, verify_password
from taskcred.core.auth.repository import AccountRepository
from taskcred.core.auth.tokens import (
    RESET_TOKEN_EXPIRY_HOURS,
    VERIFICATION_TOKEN_EXPIRY_HOURS,
    generate_token,
    get_token_expiry,
    hash_token,
    is_token_expired,
)
from taskcred.core.domain_types import Account, ApprovalStatus, Role
from taskcred.core.exceptions import (
    AuthenticationError,
    NotFoundError,
    ValidationError,
)
from taskcred.core.interfaces import Notifier

logger = structlog.get_logger()

DEFAULT_EMAIL_DOMAIN = "icterra.com"


class AuthService:
    """Service for authentication operations."""

    def __init__(
        self,
        repo: AccountRepository,
        notifier: Notifier,
        email_domain: str = DEFAULT_EMAIL_DOMAIN,
    ) -> None:
        """Initialize the auth service.

        Args:
            repo: Account repository for database operations.
            notifier: Sends verification and password reset e-mails.
            email_domain: Only addresses in this domain may register.
        """
        self._repo = repo
        self._notifier = notifier
        self._email_pattern = re.compile(rf"^[a-zA-Z0-9.]+@{re.escape(email_domain)}$")
        self._email_domain = email_domain

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register(self, name: str, email: str, password: str) -> Account:
        """Register a new account.

        The account starts unverified and pending approval; a verification
        link is e-mailed. It can log in only after both the e-mail is
        verified and an admin approved it.

        Args:
            name: Display name.
            email: Organizational e-mail address.
            password: Plain text password.

        Returns:
            The created account.

        Raises:
            ValidationError: If a field is invalid or the e-mail is taken.
        """
        name = self._validate_name(name)
        email = self._validate_email(email)
        password = validate_password(password)

        if await self._repo.get_by_email(email):
            raise ValidationError("An account with this email already exists")

        token = generate_token()
        account = Account(
            id=self._repo.next_id(),
            name=name,
            email=email,
            password_hash=hash_password(password),
            verification_token_hash=hash_token(token),
            verification_expires_at=get_token_expiry(VERIFICATION_TOKEN_EXPIRY_HOURS),
        )
        account = await self._repo.create(account)
        logger.info("account_registered", account_id=account.id)

        await self._notifier.send_verification(account.email, token)
        return account

    async def verify_email(self, token: str) -> Account:
        """Confirm an e-mail address with the token from the verification link.

        Raises:
            NotFoundError: If no account holds the token.
            ValidationError: If the token has expired.
        """
        account = await self._repo.get_by_verification_token(hash_token(token))
        if not account:
            raise NotFoundError("Invalid verification token")
        if is_token_expired(account.verification_expires_at):
            raise ValidationError("Verification token has expired")

        account = await self._repo.save(
            replace(
                account,
                email_verified=True,
                verification_token_hash=None,
                verification_expires_at=None,
            )
        )
        logger.info("email_verified", account_id=account.id)
        return account

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> tuple[Account, str]:
        """Authenticate with e-mail and password and open a new session.

        Returns:
            The account and a new session token.

        Raises:
            AuthenticationError: On bad credentials, or when the account is
                not verified or not approved.
        """
        account = await self._repo.get_by_email(email.strip().lower())
        if not account or not verify_password(password, account.password_hash):
            logger.warning("login_failed", email=email)
            raise AuthenticationError("Invalid email or password")

        if not account.email_verified:
            raise AuthenticationError("Please verify your email before logging in")

        if account.approval_status is ApprovalStatus.PENDING:
            raise AuthenticationError("Your account is pending admin approval")

        if account.approval_status is ApprovalStatus.DECLINED:
            raise AuthenticationError("Your account has been declined")

        token = await self._open_session(account)
        logger.info("login_succeeded", account_id=account.id)
        return account, token

    async def authenticate(self, token: str) -> Account:
        """Resolve a bearer token to its account.

        The token must carry a valid signature and still be in the
        account's active session set.

        Raises:
            AuthenticationError: If the token is invalid, expired or revoked,
                or the account is gone or no longer approved.
        """
        try:
            payload = decode_token(token)
        except TokenError as e:
            raise AuthenticationError(str(e)) from None

        account = await self._repo.get_by_id(payload.sub)
        if not account:
            raise AuthenticationError("Account no longer exists")

        if hash_token(token) not in account.session_token_hashes:
            raise AuthenticationError("Session has been revoked")

        if account.approval_status is not ApprovalStatus.APPROVED:
            raise AuthenticationError("Account is not approved")

        return account

    async def logout(self, account: Account, token: str) -> None:
        """Revoke the given session token."""
        await self._repo.remove_session(account.id, hash_token(token))
        logger.info("logout", account_id=account.id)

    async def logout_all(self, account: Account) -> None:
        """Revoke every session of the account."""
        await self._repo.clear_sessions(account.id)
        logger.info("logout_all", account_id=account.id)

    # ------------------------------------------------------------------
    # Self-service profile
    # ------------------------------------------------------------------

    async def update_profile(self, account: Account, token: str, name: str) -> tuple[Account, str]:
        """Rename the account and re-issue the current session token.

        Returns:
            The updated account and the replacement token.
        """
        account = await self._repo.save(replace(account, name=self._validate_name(name)))
        await self._repo.remove_session(account.id, hash_token(token))
        new_token = await self._open_session(account)
        logger.info("profile_updated", account_id=account.id)
        return account, new_token

    async def change_password(
        self,
        account: Account,
        current_password: str,
        new_password: str,
    ) -> tuple[Account, str]:
        """Change the password, revoking every session and opening a new one.

        Raises:
            ValidationError: If the current password is wrong or the new
                one is too short.
        """
        if not verify_password(current_password, account.password_hash):
            raise ValidationError("Current password is incorrect")
        new_password = validate_password(new_password)

        account = await self._repo.save(replace(account, password_hash=hash_password(new_password)))
        await self._repo.clear_sessions(account.id)
        token = await self._open_session(account)
        logger.info("password_changed", account_id=account.id)
        return account, token

    # ------------------------------------------------------------------
    # Password recovery
    # ------------------------------------------------------------------

    async def request_password_reset(self, email: str) -> None:
        """E-mail a password reset link.

        Unknown addresses are logged and otherwise ignored so the endpoint
        does not reveal which addresses are registered.
        """
        account = await self._repo.get_by_email(email.strip().lower())
        if not account:
            logger.info("password_reset_unknown_email")
            return

        token = generate_token()
        await self._repo.save(
            replace(
                account,
                reset_token_hash=hash_token(token),
                reset_expires_at=get_token_expiry(RESET_TOKEN_EXPIRY_HOURS),
            )
        )
        logger.info("password_reset_requested", account_id=account.id)
        await self._notifier.send_password_reset(account.email, token)

    async def verify_reset_token(self, token: str) -> Account:
        """Check that a reset token is known and unexpired.

        Raises:
            NotFoundError: If no account holds the token.
            ValidationError: If the token has expired.
        """
        account = await self._repo.get_by_reset_token(hash_token(token))
        if not account:
            raise NotFoundError("Invalid password reset token")
        if is_token_expired(account.reset_expires_at):
            raise ValidationError("Password reset token has expired")
        return account

    async def reset_password(self, token: str, new_password: str) -> Account:
        """Set a new password using a reset token. Revokes every session."""
        account = await self.verify_reset_token(token)
        new_password = validate_password(new_password)

        account = await self._repo.save(
            replace(
                account,
                password_hash=hash_password(new_password),
                reset_token_hash=None,
                reset_expires_at=None,
            )
        )
        await self._repo.clear_sessions(account.id)
        logger.info("password_reset_completed", account_id=account.id)
        return account

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def create_admin(self, name: str, email: str, password: str) -> Account:
        """Create a verified, approved admin account, or promote an existing one.

        Domain restrictions do not apply here; this is only reachable
        from the command line.
        """
        email = email.strip().lower()
        password = validate_password(password)
        existing = await self._repo.get_by_email(email)
        if existing:
            account = await self._repo.save(
                replace(
                    existing,
                    role=Role.ADMIN,
                    approval_status=ApprovalStatus.APPROVED,
                    email_verified=True,
                    password_hash=hash_password(password),
                )
            )
            logger.info("admin_promoted", account_id=account.id)
            return account

        account = await self._repo.create(
            Account(
                id=self._repo.next_id(),
                name=self._validate_name(name),
                email=email,
                password_hash=hash_password(password),
                role=Role.ADMIN,
                approval_status=ApprovalStatus.APPROVED,
                email_verified=True,
            )
        )
        logger.info("admin_created", account_id=account.id)
        return account

    async def _open_session(self, account: Account) -> str:
        token = create_session_token(account.id, account.role)
        await self._repo.add_session(account.id, hash_token(token))
        return token

    def _validate_name(self, name: str) -> str:
        name = name.strip()
        if not name:
            raise ValidationError("Name is required")
        return name

    def _validate_email(self, email: str) -> str:
        email = email.strip().lower()
        if not self._email_pattern.match(email):
            raise ValidationError(f"Email must be a valid @{self._email_domain} address")
        return email
