"""Tests for session token handling."""

from datetime import UTC, datetime, timedelta

import jwt as pyjwt
import pytest

from taskcred.core.auth.jwt import (
    ALGORITHM,
    SECRET_KEY,
    TokenError,
    create_session_token,
    decode_token,
)
from taskcred.core.auth.tokens import (
    generate_token,
    get_token_expiry,
    hash_token,
    is_token_expired,
)
from taskcred.core.domain_types import Role


class TestSessionTokens:
    """Test session token creation and decoding."""

    def test_round_trip_claims(self) -> None:
        """Decoded token carries the account id and role."""
        token = create_session_token("abc123", Role.ADMIN)
        payload = decode_token(token)

        assert payload.sub == "abc123"
        assert payload.role is Role.ADMIN

    def test_tokens_are_unique(self) -> None:
        """Two tokens issued in the same second still differ."""
        assert create_session_token("abc", Role.USER) != create_session_token("abc", Role.USER)

    def test_expired_token(self) -> None:
        """Expired tokens are rejected."""
        past = datetime.now(UTC) - timedelta(days=1)
        token = pyjwt.encode(
            {
                "sub": "abc",
                "role": "user",
                "iat": int(past.timestamp()),
                "exp": int(past.timestamp()),
                "jti": "x",
            },
            SECRET_KEY,
            algorithm=ALGORITHM,
        )
        with pytest.raises(TokenError, match="expired"):
            decode_token(token)

    def test_wrong_signature(self) -> None:
        token = pyjwt.encode({"sub": "abc", "role": "user"}, "another-key", algorithm=ALGORITHM)
        with pytest.raises(TokenError, match="Invalid"):
            decode_token(token)

    def test_garbage(self) -> None:
        with pytest.raises(TokenError):
            decode_token("not-a-token")


class TestOneTimeTokens:
    """Test verification and reset tokens."""

    def test_generate_token_is_hex(self) -> None:
        token = generate_token()
        assert len(token) == 40
        int(token, 16)

    def test_hash_is_stable(self) -> None:
        assert hash_token("abc") == hash_token("abc")
        assert hash_token("abc") != hash_token("abd")

    def test_expiry(self) -> None:
        now = datetime(2025, 1, 1, tzinfo=UTC)
        expires = get_token_expiry(1, now)

        assert not is_token_expired(expires, now + timedelta(minutes=59))
        assert is_token_expired(expires, now + timedelta(minutes=61))

    def test_missing_expiry_counts_as_expired(self) -> None:
        assert is_token_expired(None)

    def test_naive_expiry_read_as_utc(self) -> None:
        now = datetime(2025, 1, 1, 12, tzinfo=UTC)
        assert is_token_expired(datetime(2025, 1, 1, 11), now)
