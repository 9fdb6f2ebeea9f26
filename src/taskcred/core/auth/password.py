"""Password hashing and validation using bcrypt."""

import bcrypt

from taskcred.core.exceptions import ValidationError

PASSWORD_MIN_LENGTH = 7


def validate_password(password: str) -> str:
    """Check a new plain text password.

    Args:
        password: Plain text password as submitted.

    Returns:
        The password with surrounding whitespace removed.

    Raises:
        ValidationError: If the password is too short.
    """
    password = password.strip()
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    return password


def hash_password(password: str) -> str:
    """Hash a password with a fresh salt.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash string
    """
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against a stored hash.

    Args:
        plain_password: Plain text password to check
        hashed_password: Bcrypt hash to check against

    Returns:
        True if password matches hash
    """
    if not plain_password or not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.strip().encode("utf-8"), hashed_password.encode("utf-8"))
