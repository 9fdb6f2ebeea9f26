"""Secure one-time tokens for e-mail verification and password reset."""

import hashlib
import secrets
from datetime import UTC, datetime, timedelta

# Token configuration
ONE_TIME_TOKEN_BYTES = 20
VERIFICATION_TOKEN_EXPIRY_HOURS = 24
RESET_TOKEN_EXPIRY_HOURS = 1


def generate_token() -> str:
    """Generate a cryptographically secure one-time token.

    Returns:
        Hex encoded token string, safe to put in a URL path.
    """
    return secrets.token_hex(ONE_TIME_TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Hash a token for storage.

    Used for one-time tokens and for session tokens alike; only hashes are
    ever persisted.

    Args:
        token: The plaintext token to hash.

    Returns:
        Hex-encoded SHA-256 hash of the token.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def get_token_expiry(hours: int, now: datetime | None = None) -> datetime:
    """Calculate token expiry timestamp.

    Args:
        hours: Number of hours until expiry.
        now: Reference time, defaults to the current time.

    Returns:
        UTC datetime when the token expires.
    """
    return (now or datetime.now(UTC)) + timedelta(hours=hours)


def is_token_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """Check if a token has expired.

    Args:
        expires_at: The token's expiry timestamp; None counts as expired.
        now: Reference time, defaults to the current time.

    Returns:
        True if the token has expired.
    """
    if expires_at is None:
        return True
    now = now or datetime.now(UTC)
    # Handle timezone-naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return now > expires_at
