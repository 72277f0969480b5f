"""Error taxonomy shared by the configuration store, ledger and issuer."""

from __future__ import annotations
from enum import Enum


class AuthboundError(RuntimeError):
    """Base error type for authbound operations."""

    code = "authbound.error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        """Store the message alongside a machine readable error code."""
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(AuthboundError):
    """Raised when a configuration is malformed or misses required fields."""

    code = "config.invalid"


class ConflictError(AuthboundError):
    """Raised when another writer is mutating the same configuration key."""

    code = "config.conflict"


class NotFoundError(AuthboundError):
    """Raised when an owner, configuration or token cannot be found."""

    code = "not_found"


class AuthErrorReason(str, Enum):
    """Distinguishable reasons an authentication or token operation failed."""

    CONFIG_NOT_FOUND = "ConfigNotFound"
    CONFIG_INACTIVE = "ConfigInactive"
    IP_NOT_TRUSTED = "IpNotTrusted"
    PRINCIPAL_NOT_ALLOWED = "PrincipalNotAllowed"
    PROJECT_NOT_ALLOWED = "ProjectNotAllowed"
    USES_LIMIT_EXCEEDED = "UsesLimitExceeded"
    TOKEN_EXPIRED = "TokenExpired"
    TOKEN_REVOKED = "TokenRevoked"

    @property
    def code(self) -> str:
        """Return the dotted error code used in logs and HTTP payloads."""
        return _REASON_CODES[self]


_REASON_CODES: dict[AuthErrorReason, str] = {
    AuthErrorReason.CONFIG_NOT_FOUND: "auth.config_not_found",
    AuthErrorReason.CONFIG_INACTIVE: "auth.config_inactive",
    AuthErrorReason.IP_NOT_TRUSTED: "auth.ip_not_trusted",
    AuthErrorReason.PRINCIPAL_NOT_ALLOWED: "auth.principal_not_allowed",
    AuthErrorReason.PROJECT_NOT_ALLOWED: "auth.project_not_allowed",
    AuthErrorReason.USES_LIMIT_EXCEEDED: "auth.uses_limit_exceeded",
    AuthErrorReason.TOKEN_EXPIRED: "auth.token_expired",
    AuthErrorReason.TOKEN_REVOKED: "auth.token_revoked",
}

_DEFAULT_MESSAGES: dict[AuthErrorReason, str] = {
    AuthErrorReason.CONFIG_NOT_FOUND: "Authentication method is not configured",
    AuthErrorReason.CONFIG_INACTIVE: "Authentication method is not active",
    AuthErrorReason.IP_NOT_TRUSTED: "Caller IP address is not trusted",
    AuthErrorReason.PRINCIPAL_NOT_ALLOWED: "Service account is not allowed",
    AuthErrorReason.PROJECT_NOT_ALLOWED: "Project is not allowed",
    AuthErrorReason.USES_LIMIT_EXCEEDED: "Access token usage limit reached",
    AuthErrorReason.TOKEN_EXPIRED: "Access token has expired",
    AuthErrorReason.TOKEN_REVOKED: "Access token has been revoked",
}


class AuthError(AuthboundError):
    """Authentication failure tagged with a specific reason."""

    def __init__(self, reason: AuthErrorReason, message: str | None = None) -> None:
        """Create the error for ``reason`` with an optional custom message."""
        super().__init__(message or _DEFAULT_MESSAGES[reason], code=reason.code)
        self.reason = reason


__all__ = [
    "AuthError",
    "AuthErrorReason",
    "AuthboundError",
    "ConflictError",
    "NotFoundError",
    "ValidationError",
]
