"""Token issuance orchestrating the store, constraint policy and ledger."""

from __future__ import annotations
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from uuid import UUID
from authbound.auth.policy import ConstraintPolicy, Deny
from authbound.errors import (
    AuthError,
    AuthErrorReason,
    NotFoundError,
    ValidationError,
)
from authbound.ledger import BaseTokenLedger
from authbound.models import (
    AuthenticationAttempt,
    AuthMethodType,
    IssuedToken,
    MachineIdentityAuthConfig,
)
from authbound.store import BaseAuthConfigStore


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class TokenIssuer:
    """Authenticates machine identities and manages their access tokens."""

    def __init__(
        self,
        store: BaseAuthConfigStore,
        ledger: BaseTokenLedger,
        *,
        policy: ConstraintPolicy | None = None,
        clock: Clock = _utcnow,
    ) -> None:
        """Wire the issuer to its configuration store and token ledger."""
        self._store = store
        self._ledger = ledger
        self._policy = policy or ConstraintPolicy()
        self._clock = clock

    @property
    def ledger(self) -> BaseTokenLedger:
        """Expose the ledger recording issued tokens."""
        return self._ledger

    def authenticate(
        self,
        owner_id: str,
        method_type: AuthMethodType | str,
        attempt: AuthenticationAttempt,
    ) -> IssuedToken:
        """Issue a token for ``attempt`` under the owner's configuration."""
        method = AuthMethodType(method_type)
        if method is not AuthMethodType.MACHINE_IDENTITY:
            msg = f"{method.value} configurations do not issue access tokens."
            raise ValidationError(msg)
        try:
            config = self._store.get(owner_id, method)
        except NotFoundError as exc:
            self._log_denial(AuthErrorReason.CONFIG_NOT_FOUND, owner_id=owner_id)
            raise AuthError(AuthErrorReason.CONFIG_NOT_FOUND) from exc
        return self._issue(self._require_active(config), attempt)

    def authenticate_config(
        self, config_id: UUID, attempt: AuthenticationAttempt
    ) -> IssuedToken:
        """Issue a token for ``attempt`` against the configuration ``config_id``."""
        config = self._load_config(config_id)
        return self.authenticate(config.owner_id, config.method_type, attempt)

    def renew(self, token_id: UUID) -> IssuedToken:
        """Extend a live token by its configuration's TTL, bounded by max TTL."""
        token = self._ledger.get(token_id)
        now = self._clock()
        if token.revoked:
            raise AuthError(AuthErrorReason.TOKEN_REVOKED)
        if token.is_expired(now=now):
            raise AuthError(AuthErrorReason.TOKEN_EXPIRED)
        config = self._require_active(self._load_config(token.config_id))
        renewed = self._ledger.extend(token_id, config=config, now=now)
        logger.info(
            "token.renewed",
            extra={
                "token_id": str(token_id),
                "expires_at": renewed.expires_at.isoformat(),
            },
        )
        return renewed

    def revoke(self, token_id: UUID) -> None:
        """Revoke the token; repeated revocations are no-ops."""
        self._ledger.revoke(token_id, reason="revoked", now=self._clock())
        logger.info("token.revoked", extra={"token_id": str(token_id)})

    def verify(self, token_id: UUID, *, client_ip: str | None = None) -> IssuedToken:
        """Check a token's liveness and count one authenticated use."""
        token = self._ledger.get(token_id)
        if token.revoked:
            raise AuthError(AuthErrorReason.TOKEN_REVOKED)
        config = self._require_active(self._load_config(token.config_id))
        denial = self._policy.check_trusted_ip(config, client_ip)
        if denial is not None:
            self._log_denial(denial.reason, owner_id=config.owner_id)
            raise AuthError(denial.reason)
        return self._ledger.record_use(
            token_id,
            uses_limit=config.access_token_num_uses_limit,
            now=self._clock(),
        )

    def _issue(
        self, config: MachineIdentityAuthConfig, attempt: AuthenticationAttempt
    ) -> IssuedToken:
        decision = self._policy.evaluate(
            config, attempt, usage_count=self._ledger.usage_count(config.id)
        )
        if isinstance(decision, Deny):
            self._log_denial(decision.reason, owner_id=config.owner_id)
            raise AuthError(decision.reason)

        issued_at = self._clock()
        token = IssuedToken(
            config_id=config.id,
            owner_id=config.owner_id,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=decision.effective_ttl),
        )
        try:
            recorded = self._ledger.record_issue(token, config=config)
        except AuthError as exc:
            self._log_denial(exc.reason, owner_id=config.owner_id)
            raise
        self._confirm_still_active(recorded)
        return recorded

    def _confirm_still_active(self, token: IssuedToken) -> None:
        """Revoke ``token`` when its config changed while it was being issued.

        Store writes land before the ledger cascade runs, so a config seen as
        active here will revoke this token itself if it is deactivated later.
        """
        try:
            self._require_active(self._load_config(token.config_id))
        except AuthError as exc:
            deleted = exc.reason is AuthErrorReason.CONFIG_NOT_FOUND
            self._ledger.revoke(
                token.token_id,
                reason="config_deleted" if deleted else "config_deactivated",
                now=self._clock(),
            )
            if deleted:
                self._ledger.forget_config(token.config_id)
            self._log_denial(exc.reason, owner_id=token.owner_id)
            raise

    def _load_config(self, config_id: UUID) -> MachineIdentityAuthConfig:
        try:
            config = self._store.get_by_id(config_id)
        except NotFoundError as exc:
            raise AuthError(AuthErrorReason.CONFIG_NOT_FOUND) from exc
        if not isinstance(config, MachineIdentityAuthConfig):
            raise AuthError(AuthErrorReason.CONFIG_NOT_FOUND)
        return config

    @staticmethod
    def _require_active(config: object) -> MachineIdentityAuthConfig:
        if not isinstance(config, MachineIdentityAuthConfig):
            raise AuthError(AuthErrorReason.CONFIG_NOT_FOUND)
        if not config.is_active:
            raise AuthError(AuthErrorReason.CONFIG_INACTIVE)
        return config

    @staticmethod
    def _log_denial(reason: AuthErrorReason, *, owner_id: str) -> None:
        logger.info(
            "auth.denied",
            extra={"reason": reason.value, "code": reason.code, "owner_id": owner_id},
        )


__all__ = ["Clock", "TokenIssuer"]
