"""Constraint policy deciding whether a machine identity may obtain a token."""

from __future__ import annotations
import ipaddress
from collections.abc import Iterable
from dataclasses import dataclass
from authbound.errors import AuthErrorReason, ValidationError
from authbound.models import AuthenticationAttempt, MachineIdentityAuthConfig


@dataclass(frozen=True, slots=True)
class Allow:
    """Issuance is permitted with the given token lifetime in seconds."""

    effective_ttl: int


@dataclass(frozen=True, slots=True)
class Deny:
    """Issuance is refused for ``reason``."""

    reason: AuthErrorReason


PolicyDecision = Allow | Deny


def ip_in_ranges(client_ip: str | None, ranges: Iterable[str]) -> bool:
    """Return True when ``client_ip`` falls inside any of the CIDR ``ranges``."""
    if not client_ip:
        return False
    try:
        address = ipaddress.ip_address(client_ip.strip())
    except ValueError:
        return False
    for cidr in ranges:
        network = ipaddress.ip_network(cidr, strict=False)
        if address.version == network.version and address in network:
            return True
    return False


class ConstraintPolicy:
    """Evaluates trusted IP, principal, project and usage constraints.

    Checks run in a fixed order and the first failing check determines the
    denial reason, so the same inputs always produce the same decision.
    """

    def evaluate(
        self,
        config: MachineIdentityAuthConfig,
        attempt: AuthenticationAttempt,
        *,
        usage_count: int,
    ) -> PolicyDecision:
        """Decide whether ``attempt`` may obtain a token under ``config``."""
        if attempt.requested_ttl is not None and attempt.requested_ttl <= 0:
            msg = "Requested TTL must be greater than zero."
            raise ValidationError(msg)

        denial = self.check_trusted_ip(config, attempt.client_ip)
        if denial is None:
            denial = self.check_principal(config, attempt)
        if denial is None:
            denial = self.check_usage(config, usage_count)
        if denial is not None:
            return denial
        return Allow(effective_ttl=self.effective_ttl(config, attempt.requested_ttl))

    @staticmethod
    def check_trusted_ip(
        config: MachineIdentityAuthConfig, client_ip: str | None
    ) -> Deny | None:
        """Deny callers outside a non-empty trusted IP allow-list."""
        ranges = config.access_token_trusted_ips
        if ranges and not ip_in_ranges(client_ip, ranges):
            return Deny(AuthErrorReason.IP_NOT_TRUSTED)
        return None

    @staticmethod
    def check_principal(
        config: MachineIdentityAuthConfig, attempt: AuthenticationAttempt
    ) -> Deny | None:
        """Deny service accounts or projects outside the configured sets."""
        if attempt.service_account not in config.allowed_service_accounts:
            return Deny(AuthErrorReason.PRINCIPAL_NOT_ALLOWED)
        if attempt.project_id not in config.allowed_projects:
            return Deny(AuthErrorReason.PROJECT_NOT_ALLOWED)
        return None

    @staticmethod
    def check_usage(config: MachineIdentityAuthConfig, usage_count: int) -> Deny | None:
        """Deny once ``usage_count`` has reached a non-zero uses limit."""
        limit = config.access_token_num_uses_limit
        if limit > 0 and usage_count >= limit:
            return Deny(AuthErrorReason.USES_LIMIT_EXCEEDED)
        return None

    @staticmethod
    def effective_ttl(
        config: MachineIdentityAuthConfig, requested_ttl: int | None = None
    ) -> int:
        """Return the requested or default TTL capped by the configured maximum."""
        ttl = requested_ttl or config.access_token_ttl
        return min(ttl, config.access_token_max_ttl)


__all__ = [
    "Allow",
    "ConstraintPolicy",
    "Deny",
    "PolicyDecision",
    "ip_in_ranges",
]
