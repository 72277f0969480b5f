"""Bearer encoding for issued access tokens."""

from __future__ import annotations
from typing import Any
from uuid import UUID
import jwt
from jwt.exceptions import InvalidTokenError
from authbound.errors import ValidationError
from authbound.models import IssuedToken


ACCESS_TOKEN_TYPE = "machine_identity_access"


class AccessTokenCodec:
    """Signs issued tokens as JWTs and resolves bearer strings to token ids.

    The JWT only identifies the ledger record. Expiry, revocation and usage
    are always checked against the ledger because renewals move
    ``expires_at`` after the bearer string has been handed out.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        issuer: str = "authbound",
    ) -> None:
        """Create the codec with the signing secret."""
        if not secret:
            msg = "Access token signing secret must not be empty."
            raise ValueError(msg)
        self._secret = secret
        self._algorithm = algorithm
        self._issuer = issuer

    def encode(self, token: IssuedToken) -> str:
        """Return the signed bearer string for ``token``."""
        claims: dict[str, Any] = {
            "iss": self._issuer,
            "sub": token.owner_id,
            "jti": str(token.token_id),
            "config_id": str(token.config_id),
            "token_type": ACCESS_TOKEN_TYPE,
            "iat": int(token.issued_at.timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def decode(self, bearer: str) -> UUID:
        """Return the token id carried by ``bearer``."""
        try:
            claims = jwt.decode(
                bearer,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": ["jti", "iss"]},
            )
        except InvalidTokenError as exc:
            msg = "Invalid access token"
            raise ValidationError(msg, code="auth.invalid_token") from exc
        if claims.get("token_type") != ACCESS_TOKEN_TYPE:
            msg = "Invalid access token"
            raise ValidationError(msg, code="auth.invalid_token")
        try:
            return UUID(str(claims["jti"]))
        except ValueError as exc:
            msg = "Invalid access token"
            raise ValidationError(msg, code="auth.invalid_token") from exc


__all__ = ["ACCESS_TOKEN_TYPE", "AccessTokenCodec"]
