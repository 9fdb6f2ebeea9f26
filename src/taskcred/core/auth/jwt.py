"""Session token creation and validation.

Session tokens are HS256 JWTs carrying the account id and role. A valid
signature is not enough on its own: the token's hash must also be in the
account's active session set, which is what makes each token
individually revocable (see ``AuthService.authenticate``).
"""

import os
import secrets
from datetime import UTC, datetime, timedelta

import jwt

from taskcred.core.auth.types import TokenPayload
from taskcred.core.domain_types import Role


class TokenError(Exception):
    """Raised when token validation fails."""

    pass


# Configuration
SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-in-production")
ALGORITHM = "HS256"
SESSION_TOKEN_EXPIRE_DAYS = int(os.environ.get("SESSION_TOKEN_EXPIRE_DAYS", "7"))


def create_session_token(account_id: str, role: Role) -> str:
    """Create a session token for an account.

    Args:
        account_id: Account identifier
        role: Account role at issue time

    Returns:
        Encoded JWT string
    """
    now = datetime.now(UTC)
    expire = now + timedelta(days=SESSION_TOKEN_EXPIRE_DAYS)

    payload = {
        "sub": account_id,
        "role": role.value,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "jti": secrets.token_hex(8),
    }

    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> TokenPayload:
    """Decode and validate a session token.

    Args:
        token: Encoded JWT string

    Returns:
        Decoded token payload

    Raises:
        TokenError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return TokenPayload(
            sub=payload["sub"],
            role=Role(payload["role"]),
            iat=payload["iat"],
            jti=payload["jti"],
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired") from None
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise TokenError(f"Invalid token: {e}") from None
