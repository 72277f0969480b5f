"""Tests for the access token codec."""

from __future__ import annotations
from datetime import UTC, datetime, timedelta
from uuid import uuid4
import jwt
import pytest
from authbound.auth.tokens import ACCESS_TOKEN_TYPE, AccessTokenCodec
from authbound.errors import ValidationError
from authbound.models import IssuedToken


SECRET = "unit-test-signing-secret-0123456789"
OTHER_SECRET = "another-signing-secret-0123456789"


def _token() -> IssuedToken:
    issued_at = datetime(2025, 1, 1, tzinfo=UTC)
    return IssuedToken(
        config_id=uuid4(),
        owner_id="identity-1",
        issued_at=issued_at,
        expires_at=issued_at + timedelta(hours=1),
    )


def test_encode_decode_returns_token_id() -> None:
    """Bearer strings resolve back to the ledger token id."""

    codec = AccessTokenCodec(SECRET)
    token = _token()

    bearer = codec.encode(token)
    claims = jwt.decode(bearer, SECRET, algorithms=["HS256"], issuer="authbound")

    assert codec.decode(bearer) == token.token_id
    assert claims["sub"] == "identity-1"
    assert claims["config_id"] == str(token.config_id)
    assert claims["token_type"] == ACCESS_TOKEN_TYPE
    assert "exp" not in claims


@pytest.mark.parametrize(
    "bearer",
    [
        "not-a-jwt",
        jwt.encode(
            {"jti": str(uuid4()), "iss": "authbound"}, OTHER_SECRET, "HS256"
        ),
        jwt.encode(
            {"jti": str(uuid4()), "iss": "authbound", "token_type": "refresh"},
            SECRET,
            "HS256",
        ),
        jwt.encode(
            {"jti": "nope", "iss": "authbound", "token_type": ACCESS_TOKEN_TYPE},
            SECRET,
            "HS256",
        ),
    ],
)
def test_decode_rejects_invalid_bearers(bearer: str) -> None:
    """Tampered, foreign or malformed bearers are validation errors."""

    with pytest.raises(ValidationError) as excinfo:
        AccessTokenCodec(SECRET).decode(bearer)

    assert excinfo.value.code == "auth.invalid_token"


def test_empty_secret_is_rejected() -> None:
    """A signing secret is mandatory."""

    with pytest.raises(ValueError):
        AccessTokenCodec("")
