"""Bearer session authentication."""

from dataclasses import dataclass
from typing import Annotated

import structlog
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from taskcred.core.auth.service import AuthService
from taskcred.core.domain_types import Account
from taskcred.core.exceptions import AuthenticationError
from taskcred.core.policy import require_admin
from taskcred.entrypoints.api.deps import get_auth_service

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class SessionContext:
    """Context from a verified session token."""

    account: Account
    token: str

    @property
    def account_id(self) -> str:
        """ID of the authenticated account."""
        return self.account.id


async def verify_session(
    request: Request,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> SessionContext:
    """Verify the bearer token and return the session context.

    Raises:
        AuthenticationError: If the token is missing, invalid or revoked.
    """
    if not credentials:
        raise AuthenticationError("Missing authentication token")

    try:
        account = await auth_service.authenticate(credentials.credentials)
    except AuthenticationError as e:
        logger.warning("session_verification_failed", reason=e.message)
        raise

    context = SessionContext(account=account, token=credentials.credentials)
    request.state.session = context
    return context


async def verify_admin(
    session: Annotated[SessionContext, Depends(verify_session)],
) -> SessionContext:
    """Require an authenticated admin."""
    require_admin(session.account)
    return session


CurrentSession = Annotated[SessionContext, Depends(verify_session)]
RequireAdmin = Annotated[SessionContext, Depends(verify_admin)]
