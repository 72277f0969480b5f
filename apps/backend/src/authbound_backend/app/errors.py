"""Translation of domain errors into HTTP responses."""

from __future__ import annotations
from typing import NoReturn
from fastapi import HTTPException, status
from authbound.errors import (
    AuthboundError,
    AuthError,
    AuthErrorReason,
    ConflictError,
    NotFoundError,
    ValidationError,
)


_POLICY_DENIALS = frozenset(
    {
        AuthErrorReason.IP_NOT_TRUSTED,
        AuthErrorReason.PRINCIPAL_NOT_ALLOWED,
        AuthErrorReason.PROJECT_NOT_ALLOWED,
        AuthErrorReason.USES_LIMIT_EXCEEDED,
    }
)


def status_for(exc: AuthboundError) -> int:
    """Return the HTTP status code matching ``exc``."""
    if isinstance(exc, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_CONTENT
    if isinstance(exc, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, AuthError) and exc.reason in _POLICY_DENIALS:
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, AuthError):
        return status.HTTP_401_UNAUTHORIZED
    return status.HTTP_400_BAD_REQUEST


def raise_domain_error(exc: AuthboundError) -> NoReturn:
    """Raise an HTTP error carrying the domain message and code."""
    raise HTTPException(
        status_code=status_for(exc),
        detail={"message": exc.message, "code": exc.code},
    ) from exc


def raise_not_found(message: str, exc: Exception | None = None) -> NoReturn:
    """Raise a standardized 404 error."""
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"message": message, "code": NotFoundError.code},
    ) from exc


__all__ = ["raise_domain_error", "raise_not_found", "status_for"]
