"""Token ledgers tracking issued access tokens and per-config usage counters."""

from __future__ import annotations
import logging
import sqlite3
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID
from authbound.auth.policy import ConstraintPolicy
from authbound.errors import AuthError, AuthErrorReason, NotFoundError
from authbound.models import IssuedToken, MachineIdentityAuthConfig


logger = logging.getLogger(__name__)

TokenMutation = Callable[[IssuedToken], None]


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(tz=UTC)


def _apply_use(token: IssuedToken, *, uses_limit: int, now: datetime) -> None:
    """Count one authenticated use of ``token``."""
    if token.revoked:
        raise AuthError(AuthErrorReason.TOKEN_REVOKED)
    if token.is_expired(now=now):
        raise AuthError(AuthErrorReason.TOKEN_EXPIRED)
    if uses_limit > 0 and token.uses_count >= uses_limit:
        token.mark_revoked(reason="uses_limit_reached", now=now)
        raise AuthError(AuthErrorReason.USES_LIMIT_EXCEEDED)
    token.uses_count += 1
    token.last_used_at = now
    if uses_limit > 0 and token.uses_count >= uses_limit:
        token.mark_revoked(reason="uses_limit_reached", now=now)


def _apply_renewal(
    token: IssuedToken, *, config: MachineIdentityAuthConfig, now: datetime
) -> None:
    """Extend ``token`` by the config TTL without passing its max TTL."""
    if token.revoked:
        raise AuthError(AuthErrorReason.TOKEN_REVOKED)
    if token.is_expired(now=now):
        raise AuthError(AuthErrorReason.TOKEN_EXPIRED)
    denial = ConstraintPolicy.check_usage(config, token.uses_count)
    if denial is not None:
        raise AuthError(denial.reason)
    hard_limit = token.issued_at + timedelta(seconds=config.access_token_max_ttl)
    if now >= hard_limit:
        msg = "Access token cannot be renewed past its max TTL"
        raise AuthError(AuthErrorReason.TOKEN_EXPIRED, msg)
    extended = min(now + timedelta(seconds=config.access_token_ttl), hard_limit)
    token.expires_at = max(token.expires_at, extended)
    token.last_renewed_at = now


class BaseTokenLedger:
    """Base helper implementing token lifecycle rules over a storage backend."""

    def record_issue(
        self, token: IssuedToken, *, config: MachineIdentityAuthConfig
    ) -> IssuedToken:
        """Insert ``token`` unless the config's usage limit has been reached.

        The usage check and the insertion happen in one atomic step so that
        concurrent issuers can never push the count over the limit.
        """
        if token.config_id != config.id:
            msg = "Token does not belong to the provided configuration."
            raise ValueError(msg)
        self._insert_checked(token, uses_limit=config.access_token_num_uses_limit)
        logger.info(
            "ledger.token.issued",
            extra={"token_id": str(token.token_id), "config_id": str(config.id)},
        )
        return token.model_copy(deep=True)

    def get(self, token_id: UUID) -> IssuedToken:
        """Return the token record for ``token_id``."""
        token = self._load(token_id)
        if token is None:
            msg = f"Access token {token_id} was not found."
            raise NotFoundError(msg)
        return token

    def record_use(
        self, token_id: UUID, *, uses_limit: int, now: datetime | None = None
    ) -> IssuedToken:
        """Count an authenticated use, revoking the token at its uses limit."""
        moment = _now(now)
        return self._mutate(
            token_id, lambda token: _apply_use(token, uses_limit=uses_limit, now=moment)
        )

    def extend(
        self,
        token_id: UUID,
        *,
        config: MachineIdentityAuthConfig,
        now: datetime | None = None,
    ) -> IssuedToken:
        """Renew the token's expiry under ``config``'s TTL bounds."""
        moment = _now(now)
        return self._mutate(
            token_id,
            lambda token: _apply_renewal(token, config=config, now=moment),
        )

    def revoke(
        self, token_id: UUID, *, reason: str = "revoked", now: datetime | None = None
    ) -> IssuedToken:
        """Revoke the token; revoking an already revoked token is a no-op."""
        moment = _now(now)
        return self._mutate(
            token_id, lambda token: token.mark_revoked(reason=reason, now=moment)
        )

    def usage_count(self, config_id: UUID) -> int:  # pragma: no cover
        """Return how many tokens have been issued under ``config_id``."""
        raise NotImplementedError

    def tokens_for_config(self, config_id: UUID) -> list[IssuedToken]:
        """Return every token recorded for ``config_id``."""
        return [token for token in self._iter_tokens() if token.config_id == config_id]

    def invalidate_config(
        self, config_id: UUID, *, reason: str, now: datetime | None = None
    ) -> int:  # pragma: no cover
        """Revoke every outstanding token of ``config_id``; return the count."""
        raise NotImplementedError

    def forget_config(self, config_id: UUID) -> None:  # pragma: no cover
        """Drop the usage counter of a deleted configuration."""
        raise NotImplementedError

    def sweep(self, *, now: datetime | None = None) -> int:  # pragma: no cover
        """Remove tokens past their expiry; revoked records stay until then."""
        raise NotImplementedError

    def _insert_checked(
        self, token: IssuedToken, *, uses_limit: int
    ) -> None:  # pragma: no cover
        raise NotImplementedError

    def _load(self, token_id: UUID) -> IssuedToken | None:  # pragma: no cover
        raise NotImplementedError

    def _mutate(
        self, token_id: UUID, mutation: TokenMutation
    ) -> IssuedToken:  # pragma: no cover
        raise NotImplementedError

    def _iter_tokens(self) -> Iterable[IssuedToken]:  # pragma: no cover
        raise NotImplementedError


def _limit_reached(uses_limit: int, issued: int) -> bool:
    return uses_limit > 0 and issued >= uses_limit


class InMemoryTokenLedger(BaseTokenLedger):
    """In-memory token ledger used for tests and single-process deployments."""

    def __init__(self) -> None:
        """Create an empty ledger guarded by a single lock."""
        self._lock = threading.Lock()
        self._tokens: dict[UUID, IssuedToken] = {}
        self._usage: dict[UUID, int] = {}

    def usage_count(self, config_id: UUID) -> int:
        """Return how many tokens have been issued under ``config_id``."""
        with self._lock:
            return self._usage.get(config_id, 0)

    def invalidate_config(
        self, config_id: UUID, *, reason: str, now: datetime | None = None
    ) -> int:
        """Revoke every outstanding token of ``config_id``; return the count."""
        moment = _now(now)
        revoked = 0
        with self._lock:
            for token in self._tokens.values():
                if token.config_id == config_id and token.mark_revoked(
                    reason=reason, now=moment
                ):
                    revoked += 1
        return revoked

    def forget_config(self, config_id: UUID) -> None:
        """Drop the usage counter of a deleted configuration."""
        with self._lock:
            self._usage.pop(config_id, None)

    def sweep(self, *, now: datetime | None = None) -> int:
        """Remove tokens past their expiry; revoked records stay until then."""
        moment = _now(now)
        with self._lock:
            stale = [
                token_id
                for token_id, token in self._tokens.items()
                if token.is_expired(now=moment)
            ]
            for token_id in stale:
                del self._tokens[token_id]
        return len(stale)

    def _insert_checked(self, token: IssuedToken, *, uses_limit: int) -> None:
        with self._lock:
            issued = self._usage.get(token.config_id, 0)
            if _limit_reached(uses_limit, issued):
                raise AuthError(AuthErrorReason.USES_LIMIT_EXCEEDED)
            self._tokens[token.token_id] = token.model_copy(deep=True)
            self._usage[token.config_id] = issued + 1

    def _load(self, token_id: UUID) -> IssuedToken | None:
        with self._lock:
            token = self._tokens.get(token_id)
            return token.model_copy(deep=True) if token else None

    def _mutate(self, token_id: UUID, mutation: TokenMutation) -> IssuedToken:
        with self._lock:
            current = self._tokens.get(token_id)
            if current is None:
                msg = f"Access token {token_id} was not found."
                raise NotFoundError(msg)
            working = current.model_copy(deep=True)
            try:
                mutation(working)
            except AuthError:
                # A use rejected at the limit still revokes the token.
                if working.revoked and not current.revoked:
                    self._tokens[token_id] = working
                raise
            self._tokens[token_id] = working
            return working.model_copy(deep=True)

    def _iter_tokens(self) -> Iterable[IssuedToken]:
        with self._lock:
            tokens = [token.model_copy(deep=True) for token in self._tokens.values()]
        yield from tokens


class SqliteTokenLedger(BaseTokenLedger):
    """Token ledger persisted in a SQLite database."""

    def __init__(self, path: str | Path, *, timeout: float = 5.0) -> None:
        """Create the ledger tables at ``path`` when missing."""
        self._path = Path(path).expanduser()
        self._timeout = timeout
        self._lock = threading.Lock()
        self._initialize()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._path, timeout=self._timeout, isolation_level=None)

    def _initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock, self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS issued_tokens (
                    token_id TEXT PRIMARY KEY,
                    config_id TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    revoked INTEGER NOT NULL DEFAULT 0,
                    payload TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_issued_tokens_config
                    ON issued_tokens(config_id)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS config_usage (
                    config_id TEXT PRIMARY KEY,
                    issued_count INTEGER NOT NULL DEFAULT 0
                )
                """
            )

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction that is committed or rolled back as a unit."""
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @staticmethod
    def _save(conn: sqlite3.Connection, token: IssuedToken) -> None:
        conn.execute(
            """
            INSERT OR REPLACE INTO issued_tokens (
                token_id, config_id, expires_at, revoked, payload
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                str(token.token_id),
                str(token.config_id),
                token.expires_at.isoformat(),
                int(token.revoked),
                token.model_dump_json(),
            ),
        )

    @staticmethod
    def _fetch(conn: sqlite3.Connection, token_id: UUID) -> IssuedToken | None:
        row = conn.execute(
            "SELECT payload FROM issued_tokens WHERE token_id = ?", (str(token_id),)
        ).fetchone()
        return IssuedToken.model_validate_json(row[0]) if row else None

    def usage_count(self, config_id: UUID) -> int:
        """Return how many tokens have been issued under ``config_id``."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT issued_count FROM config_usage WHERE config_id = ?",
                (str(config_id),),
            ).fetchone()
        finally:
            conn.close()
        return int(row[0]) if row else 0

    def invalidate_config(
        self, config_id: UUID, *, reason: str, now: datetime | None = None
    ) -> int:
        """Revoke every outstanding token of ``config_id``; return the count."""
        moment = _now(now)
        revoked = 0
        with self._lock, self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT payload FROM issued_tokens
                 WHERE config_id = ? AND revoked = 0
                """,
                (str(config_id),),
            ).fetchall()
            for row in rows:
                token = IssuedToken.model_validate_json(row[0])
                if token.mark_revoked(reason=reason, now=moment):
                    self._save(conn, token)
                    revoked += 1
        return revoked

    def forget_config(self, config_id: UUID) -> None:
        """Drop the usage counter of a deleted configuration."""
        with self._lock, self._transaction() as conn:
            conn.execute(
                "DELETE FROM config_usage WHERE config_id = ?", (str(config_id),)
            )

    def sweep(self, *, now: datetime | None = None) -> int:
        """Remove tokens past their expiry; revoked records stay until then."""
        moment = _now(now)
        with self._lock, self._transaction() as conn:
            rows = conn.execute(
                "SELECT token_id, expires_at FROM issued_tokens"
            ).fetchall()
            stale = [
                (token_id,)
                for token_id, expires_at in rows
                if datetime.fromisoformat(expires_at) <= moment
            ]
            conn.executemany("DELETE FROM issued_tokens WHERE token_id = ?", stale)
        return len(stale)

    def _insert_checked(self, token: IssuedToken, *, uses_limit: int) -> None:
        with self._lock, self._transaction() as conn:
            row = conn.execute(
                "SELECT issued_count FROM config_usage WHERE config_id = ?",
                (str(token.config_id),),
            ).fetchone()
            issued = int(row[0]) if row else 0
            if _limit_reached(uses_limit, issued):
                raise AuthError(AuthErrorReason.USES_LIMIT_EXCEEDED)
            self._save(conn, token)
            conn.execute(
                """
                INSERT INTO config_usage (config_id, issued_count) VALUES (?, 1)
                ON CONFLICT(config_id)
                DO UPDATE SET issued_count = issued_count + 1
                """,
                (str(token.config_id),),
            )

    def _load(self, token_id: UUID) -> IssuedToken | None:
        conn = self._connect()
        try:
            return self._fetch(conn, token_id)
        finally:
            conn.close()

    def _mutate(self, token_id: UUID, mutation: TokenMutation) -> IssuedToken:
        error: AuthError | None = None
        with self._lock, self._transaction() as conn:
            token = self._fetch(conn, token_id)
            if token is None:
                msg = f"Access token {token_id} was not found."
                raise NotFoundError(msg)
            was_revoked = token.revoked
            try:
                mutation(token)
            except AuthError as exc:
                error = exc
            if error is None or (token.revoked and not was_revoked):
                self._save(conn, token)
        if error is not None:
            raise error
        return token

    def _iter_tokens(self) -> Iterable[IssuedToken]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT payload FROM issued_tokens ORDER BY rowid ASC"
            ).fetchall()
        finally:
            conn.close()
        for row in rows:
            yield IssuedToken.model_validate_json(row[0])


__all__ = [
    "BaseTokenLedger",
    "InMemoryTokenLedger",
    "SqliteTokenLedger",
]
