"""Access tokens issued under machine identity configurations."""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4
from pydantic import Field
from authbound.models.base import AuthboundBaseModel, _utcnow


__all__ = ["AuthenticationAttempt", "IssuedToken"]


class IssuedToken(AuthboundBaseModel):
    """Ledger record describing a bounded access token."""

    token_id: UUID = Field(default_factory=uuid4)
    config_id: UUID
    owner_id: str
    issued_at: datetime = Field(default_factory=_utcnow)
    expires_at: datetime
    uses_count: int = Field(default=0, ge=0)
    revoked: bool = False
    revoked_at: datetime | None = None
    revocation_reason: str | None = None
    last_used_at: datetime | None = None
    last_renewed_at: datetime | None = None

    def is_expired(self, *, now: datetime | None = None) -> bool:
        """Return True once ``expires_at`` has been reached."""
        return (now or _utcnow()) >= self.expires_at

    def is_live(self, *, now: datetime | None = None) -> bool:
        """Return True when the token is neither revoked nor expired."""
        return not self.revoked and not self.is_expired(now=now)

    def mark_revoked(self, *, reason: str, now: datetime | None = None) -> bool:
        """Revoke the token, returning False when it was already revoked."""
        if self.revoked:
            return False
        self.revoked = True
        self.revoked_at = now or _utcnow()
        self.revocation_reason = reason
        return True


@dataclass(frozen=True, slots=True)
class AuthenticationAttempt:
    """Caller attributes presented when authenticating with a machine identity.

    ``service_account`` and ``project_id`` are the claims proved by the cloud
    provider; verifying that proof happens before the attempt is built.
    """

    client_ip: str | None
    service_account: str
    project_id: str
    requested_ttl: int | None = None
