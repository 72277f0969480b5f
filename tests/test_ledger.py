"""Tests for token ledgers."""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from pathlib import Path
import pytest
from authbound.errors import AuthError, AuthErrorReason, NotFoundError
from authbound.ledger import BaseTokenLedger, SqliteTokenLedger
from authbound.models import IssuedToken, MachineIdentityAuthConfig


NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def _config(**overrides: object) -> MachineIdentityAuthConfig:
    payload: dict[str, object] = {
        "owner_id": "identity-1",
        "access_token_ttl": 3600,
        "access_token_max_ttl": 7200,
        "allowed_service_accounts": ["svc@proj.iam.gserviceaccount.com"],
        "allowed_projects": ["proj"],
        "is_active": True,
    }
    payload.update(overrides)
    return MachineIdentityAuthConfig.model_validate(payload)


def _token(config: MachineIdentityAuthConfig, *, ttl: int = 3600) -> IssuedToken:
    return IssuedToken(
        config_id=config.id,
        owner_id=config.owner_id,
        issued_at=NOW,
        expires_at=NOW + timedelta(seconds=ttl),
    )


def test_record_issue_counts_usage(ledger: BaseTokenLedger) -> None:
    """Each issued token increments the per-config counter."""

    config = _config()
    first = ledger.record_issue(_token(config), config=config)
    ledger.record_issue(_token(config), config=config)

    assert ledger.usage_count(config.id) == 2
    assert ledger.get(first.token_id) == first
    assert len(ledger.tokens_for_config(config.id)) == 2


def test_record_issue_rejects_foreign_token(ledger: BaseTokenLedger) -> None:
    """Tokens must belong to the config they are recorded under."""

    with pytest.raises(ValueError):
        ledger.record_issue(_token(_config()), config=_config())


def test_record_issue_enforces_limit(ledger: BaseTokenLedger) -> None:
    """Issuance stops at the uses limit and revocation does not refund it."""

    config = _config(access_token_num_uses_limit=2)
    first = ledger.record_issue(_token(config), config=config)
    ledger.record_issue(_token(config), config=config)
    ledger.revoke(first.token_id)

    with pytest.raises(AuthError) as excinfo:
        ledger.record_issue(_token(config), config=config)

    assert excinfo.value.reason is AuthErrorReason.USES_LIMIT_EXCEEDED
    assert ledger.usage_count(config.id) == 2


def test_parallel_issuance_never_exceeds_limit(ledger: BaseTokenLedger) -> None:
    """N + 5 parallel callers produce exactly N tokens."""

    limit = 10
    config = _config(access_token_num_uses_limit=limit)

    def attempt(_: int) -> bool:
        try:
            ledger.record_issue(_token(config), config=config)
        except AuthError as exc:
            assert exc.reason is AuthErrorReason.USES_LIMIT_EXCEEDED
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(attempt, range(limit + 5)))

    assert results.count(True) == limit
    assert results.count(False) == 5
    assert ledger.usage_count(config.id) == limit
    assert len(ledger.tokens_for_config(config.id)) == limit


def test_record_use_revokes_at_limit(ledger: BaseTokenLedger) -> None:
    """A token is revoked on the use that reaches its limit."""

    config = _config()
    token = ledger.record_issue(_token(config), config=config)

    first = ledger.record_use(token.token_id, uses_limit=2, now=NOW)
    second = ledger.record_use(token.token_id, uses_limit=2, now=NOW)

    assert first.uses_count == 1
    assert first.revoked is False
    assert second.uses_count == 2
    assert second.revoked is True
    with pytest.raises(AuthError) as excinfo:
        ledger.record_use(token.token_id, uses_limit=2, now=NOW)
    assert excinfo.value.reason is AuthErrorReason.TOKEN_REVOKED


def test_record_use_rejects_expired_token(ledger: BaseTokenLedger) -> None:
    """Expired tokens cannot be used."""

    config = _config()
    token = ledger.record_issue(_token(config, ttl=60), config=config)

    with pytest.raises(AuthError) as excinfo:
        ledger.record_use(token.token_id, uses_limit=0, now=NOW + timedelta(seconds=60))

    assert excinfo.value.reason is AuthErrorReason.TOKEN_EXPIRED
    assert ledger.get(token.token_id).uses_count == 0


def test_use_over_lowered_limit_revokes_token(ledger: BaseTokenLedger) -> None:
    """A token already past a lowered limit is revoked when presented."""

    config = _config()
    token = ledger.record_issue(_token(config), config=config)
    ledger.record_use(token.token_id, uses_limit=0, now=NOW)
    ledger.record_use(token.token_id, uses_limit=0, now=NOW)

    with pytest.raises(AuthError) as excinfo:
        ledger.record_use(token.token_id, uses_limit=1, now=NOW)

    assert excinfo.value.reason is AuthErrorReason.USES_LIMIT_EXCEEDED
    stored = ledger.get(token.token_id)
    assert stored.revoked is True
    assert stored.uses_count == 2


def test_extend_is_capped_by_max_ttl(ledger: BaseTokenLedger) -> None:
    """Renewals extend by the TTL but never past issued_at + max TTL."""

    config = _config()
    token = ledger.record_issue(_token(config), config=config)

    renewed = ledger.extend(
        token.token_id, config=config, now=NOW + timedelta(seconds=3000)
    )
    assert renewed.expires_at == NOW + timedelta(seconds=6600)

    capped = ledger.extend(
        token.token_id, config=config, now=NOW + timedelta(seconds=6000)
    )
    assert capped.expires_at == NOW + timedelta(seconds=7200)
    assert capped.last_renewed_at == NOW + timedelta(seconds=6000)


def test_extend_rejects_revoked_and_expired(ledger: BaseTokenLedger) -> None:
    """Revoked or expired tokens cannot be renewed."""

    config = _config()
    revoked = ledger.record_issue(_token(config), config=config)
    ledger.revoke(revoked.token_id, now=NOW)
    expired = ledger.record_issue(_token(config, ttl=60), config=config)

    with pytest.raises(AuthError) as revoked_info:
        ledger.extend(revoked.token_id, config=config, now=NOW)
    with pytest.raises(AuthError) as expired_info:
        ledger.extend(expired.token_id, config=config, now=NOW + timedelta(hours=1))

    assert revoked_info.value.reason is AuthErrorReason.TOKEN_REVOKED
    assert expired_info.value.reason is AuthErrorReason.TOKEN_EXPIRED


def test_revoke_is_idempotent(ledger: BaseTokenLedger) -> None:
    """Revoking twice keeps the first revocation details."""

    config = _config()
    token = ledger.record_issue(_token(config), config=config)

    ledger.revoke(token.token_id, reason="first", now=NOW)
    again = ledger.revoke(token.token_id, reason="second", now=NOW)

    assert again.revoked is True
    assert again.revocation_reason == "first"


def test_unknown_token_is_not_found(ledger: BaseTokenLedger) -> None:
    """Operations on unknown tokens raise NotFoundError."""

    config = _config()
    token = _token(config)

    with pytest.raises(NotFoundError):
        ledger.get(token.token_id)
    with pytest.raises(NotFoundError):
        ledger.revoke(token.token_id)


def test_invalidate_and_forget_config(ledger: BaseTokenLedger) -> None:
    """Invalidation revokes live tokens once; forgetting drops the counter."""

    config = _config()
    ledger.record_issue(_token(config), config=config)
    ledger.record_issue(_token(config), config=config)

    assert ledger.invalidate_config(config.id, reason="config_deleted") == 2
    assert ledger.invalidate_config(config.id, reason="config_deleted") == 0

    ledger.forget_config(config.id)
    assert ledger.usage_count(config.id) == 0


def test_sweep_removes_dead_tokens_but_keeps_usage(ledger: BaseTokenLedger) -> None:
    """The reaper drops expired tokens only, leaving revoked ones and usage."""

    config = _config()
    live = ledger.record_issue(_token(config, ttl=3600), config=config)
    expired = ledger.record_issue(_token(config, ttl=60), config=config)
    revoked = ledger.record_issue(_token(config, ttl=3600), config=config)
    ledger.revoke(revoked.token_id, now=NOW)

    removed = ledger.sweep(now=NOW + timedelta(seconds=120))

    assert removed == 1
    assert ledger.get(live.token_id) == live
    assert ledger.get(revoked.token_id).revoked
    with pytest.raises(NotFoundError):
        ledger.get(expired.token_id)
    assert ledger.usage_count(config.id) == 3


def test_sqlite_ledger_persists_across_instances(tmp_path: Path) -> None:
    """Counters and tokens survive reopening the database."""

    path = tmp_path / "ledger.sqlite"
    config = _config(access_token_num_uses_limit=1)
    token = SqliteTokenLedger(path).record_issue(_token(config), config=config)

    reopened = SqliteTokenLedger(path)

    assert reopened.get(token.token_id) == token
    with pytest.raises(AuthError):
        reopened.record_issue(_token(config), config=config)
