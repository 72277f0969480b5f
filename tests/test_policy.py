"""Tests for the machine identity constraint policy."""

from __future__ import annotations
import pytest
from authbound.auth.policy import Allow, ConstraintPolicy, Deny, ip_in_ranges
from authbound.errors import AuthErrorReason, ValidationError
from authbound.models import AuthenticationAttempt, MachineIdentityAuthConfig


SERVICE_ACCOUNT = "svc@proj.iam.gserviceaccount.com"


def _config(**overrides: object) -> MachineIdentityAuthConfig:
    payload: dict[str, object] = {
        "owner_id": "identity-1",
        "access_token_ttl": 3600,
        "access_token_max_ttl": 7200,
        "allowed_service_accounts": [SERVICE_ACCOUNT],
        "allowed_projects": ["proj"],
        "is_active": True,
    }
    payload.update(overrides)
    return MachineIdentityAuthConfig.model_validate(payload)


def _attempt(**overrides: object) -> AuthenticationAttempt:
    values: dict[str, object] = {
        "client_ip": "10.1.2.3",
        "service_account": SERVICE_ACCOUNT,
        "project_id": "proj",
    }
    values.update(overrides)
    return AuthenticationAttempt(**values)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("client_ip", "expected"),
    [
        ("10.1.2.3", True),
        ("10.255.255.255", True),
        ("11.0.0.1", False),
        ("::ffff:0a01:0203", False),
        ("not-an-ip", False),
        (None, False),
    ],
)
def test_ip_in_ranges(client_ip: str | None, expected: bool) -> None:
    """Only well formed addresses of the same family can match a range."""

    assert ip_in_ranges(client_ip, ["10.0.0.0/8"]) is expected


def test_allows_matching_attempt_with_default_ttl() -> None:
    """A matching attempt gets the configured default TTL."""

    decision = ConstraintPolicy().evaluate(
        _config(access_token_trusted_ips=["10.0.0.0/8"]), _attempt(), usage_count=0
    )

    assert decision == Allow(effective_ttl=3600)


def test_requested_ttl_is_capped_by_max_ttl() -> None:
    """Requested lifetimes never exceed the max TTL."""

    policy = ConstraintPolicy()

    assert policy.evaluate(
        _config(), _attempt(requested_ttl=100_000), usage_count=0
    ) == Allow(effective_ttl=7200)
    assert policy.evaluate(
        _config(), _attempt(requested_ttl=60), usage_count=0
    ) == Allow(effective_ttl=60)


@pytest.mark.parametrize("requested_ttl", [0, -5])
def test_non_positive_requested_ttl_is_invalid(requested_ttl: int) -> None:
    """Requested TTLs must be positive."""

    with pytest.raises(ValidationError):
        ConstraintPolicy().evaluate(
            _config(), _attempt(requested_ttl=requested_ttl), usage_count=0
        )


def test_untrusted_ip_is_denied_first() -> None:
    """IP checks run before principal checks."""

    decision = ConstraintPolicy().evaluate(
        _config(access_token_trusted_ips=["192.168.0.0/16"]),
        _attempt(service_account="other@x.com"),
        usage_count=0,
    )

    assert decision == Deny(AuthErrorReason.IP_NOT_TRUSTED)


def test_missing_client_ip_is_denied_when_list_is_set() -> None:
    """An unknown caller address cannot satisfy a trusted IP list."""

    decision = ConstraintPolicy().evaluate(
        _config(access_token_trusted_ips=["10.0.0.0/8"]),
        _attempt(client_ip=None),
        usage_count=0,
    )

    assert decision == Deny(AuthErrorReason.IP_NOT_TRUSTED)


def test_empty_trusted_ips_allow_any_address() -> None:
    """No trusted IP list means no address restriction."""

    decision = ConstraintPolicy().evaluate(
        _config(), _attempt(client_ip=None), usage_count=0
    )

    assert isinstance(decision, Allow)


def test_principal_and_project_denials() -> None:
    """Unknown service accounts and projects have distinct reasons."""

    policy = ConstraintPolicy()

    assert policy.evaluate(
        _config(), _attempt(service_account="other@x.com"), usage_count=0
    ) == Deny(AuthErrorReason.PRINCIPAL_NOT_ALLOWED)
    assert policy.evaluate(
        _config(), _attempt(project_id="other"), usage_count=0
    ) == Deny(AuthErrorReason.PROJECT_NOT_ALLOWED)


def test_usage_limit_denial() -> None:
    """A non-zero uses limit caps issuance; zero means unlimited."""

    policy = ConstraintPolicy()

    assert policy.evaluate(
        _config(access_token_num_uses_limit=2), _attempt(), usage_count=2
    ) == Deny(AuthErrorReason.USES_LIMIT_EXCEEDED)
    assert isinstance(
        policy.evaluate(_config(), _attempt(), usage_count=10_000), Allow
    )
