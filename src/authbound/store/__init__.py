"""Authentication method configuration stores."""

from __future__ import annotations
import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import UUID
from pydantic import ValidationError as PydanticValidationError
from authbound.errors import ConflictError, NotFoundError, ValidationError
from authbound.ledger import BaseTokenLedger
from authbound.models import (
    IMMUTABLE_FIELDS,
    AuthMethodConfig,
    AuthMethodConfigAdapter,
    AuthMethodType,
    config_model_for,
)


logger = logging.getLogger(__name__)

ConfigKey = tuple[str, AuthMethodType]


def _format_validation_error(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        message = str(error.get("msg", "invalid value"))
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid configuration"


class KeyedWriteGuard:
    """Admits at most one writer per key, rejecting contenders immediately."""

    def __init__(self) -> None:
        """Create an empty guard."""
        self._lock = threading.Lock()
        self._held: set[ConfigKey] = set()

    @contextmanager
    def hold(self, *keys: ConfigKey) -> Iterator[None]:
        """Hold every key for the duration of the block or raise ConflictError."""
        with self._lock:
            busy = [key for key in keys if key in self._held]
            if busy:
                owner_id, method_type = busy[0]
                msg = (
                    f"Another update to the {method_type.value} configuration "
                    f"of owner {owner_id!r} is in progress; retry later."
                )
                logger.warning(
                    "config.write_conflict",
                    extra={"owner_id": owner_id, "method_type": method_type.value},
                )
                raise ConflictError(msg)
            self._held.update(keys)
        try:
            yield
        finally:
            with self._lock:
                self._held.difference_update(keys)


class BaseAuthConfigStore:
    """Base helper implementing configuration workflows over a backend."""

    def __init__(self, *, ledger: BaseTokenLedger | None = None) -> None:
        """Initialize the store with an optional ledger to cascade into."""
        self._ledger = ledger
        self._guard = KeyedWriteGuard()

    @property
    def ledger(self) -> BaseTokenLedger | None:
        """Expose the ledger receiving token invalidations."""
        return self._ledger

    def upsert(
        self,
        owner_id: str,
        method_type: AuthMethodType | str,
        fields: Mapping[str, Any],
    ) -> AuthMethodConfig:
        """Create the configuration or replace its mutable fields."""
        method = AuthMethodType(method_type)
        forbidden = sorted(IMMUTABLE_FIELDS.intersection(fields))
        if forbidden:
            msg = "Fields cannot be set directly: " + ", ".join(forbidden)
            raise ValidationError(msg)

        with self._guard.hold((owner_id, method)):
            existing = self._find(owner_id, method)
            now = datetime.now(tz=UTC)
            payload: dict[str, Any] = {
                **fields,
                "owner_id": owner_id,
                "updated_at": now,
            }
            if existing is not None:
                payload["id"] = existing.id
                payload["created_at"] = existing.created_at
            config = self._build(method, payload)
            self._write(config)

        action = "created" if existing is None else "updated"
        logger.info(
            "config.%s",
            action,
            extra={
                "config_id": str(config.id),
                "owner_id": owner_id,
                "method_type": method.value,
                "is_active": config.is_active,
            },
        )
        if existing is not None and existing.is_active and not config.is_active:
            self._invalidate_tokens(config, reason="config_deactivated")
        return config.model_copy(deep=True)

    def get(self, owner_id: str, method_type: AuthMethodType | str) -> AuthMethodConfig:
        """Return the configuration of ``method_type`` for ``owner_id``."""
        method = AuthMethodType(method_type)
        config = self._find(owner_id, method)
        if config is None:
            msg = f"No {method.value} configuration exists for owner {owner_id!r}."
            raise NotFoundError(msg)
        return config

    def get_by_id(self, config_id: UUID) -> AuthMethodConfig:
        """Return the configuration identified by ``config_id``."""
        config = self._find_by_id(config_id)
        if config is None:
            msg = f"Configuration {config_id} was not found."
            raise NotFoundError(msg)
        return config

    def list_for_owner(self, owner_id: str) -> list[AuthMethodConfig]:
        """Return every configuration belonging to ``owner_id``."""
        return sorted(self._iter_owner(owner_id), key=lambda item: item.method_type)

    def set_active(self, config_id: UUID, active: bool) -> AuthMethodConfig:
        """Toggle activation, re-validating required fields when activating."""
        current = self.get_by_id(config_id)
        method = AuthMethodType(current.method_type)
        with self._guard.hold((current.owner_id, method)):
            current = self.get_by_id(config_id)
            payload = current.model_dump()
            payload.update(is_active=active, updated_at=datetime.now(tz=UTC))
            config = self._build(method, payload)
            self._write(config)

        logger.info(
            "config.activation_changed",
            extra={"config_id": str(config_id), "is_active": active},
        )
        if current.is_active and not active:
            self._invalidate_tokens(config, reason="config_deactivated")
        return config.model_copy(deep=True)

    def delete(self, config_id: UUID) -> None:
        """Hard-delete the configuration and invalidate its tokens."""
        current = self.get_by_id(config_id)
        method = AuthMethodType(current.method_type)
        with self._guard.hold((current.owner_id, method)):
            if not self._remove(config_id):
                msg = f"Configuration {config_id} was not found."
                raise NotFoundError(msg)
        logger.info("config.deleted", extra={"config_id": str(config_id)})
        self._invalidate_tokens(current, reason="config_deleted", forget=True)

    def delete_owner(self, owner_id: str) -> int:
        """Remove the owner with all of its configurations; return the count."""
        keys = [(owner_id, method) for method in AuthMethodType]
        with self._guard.hold(*keys):
            removed = self._remove_owner(owner_id)
        logger.info(
            "owner.deleted",
            extra={"owner_id": owner_id, "configs_removed": len(removed)},
        )
        for config in removed:
            self._invalidate_tokens(config, reason="owner_deleted", forget=True)
        return len(removed)

    @staticmethod
    def _build(method: AuthMethodType, payload: Mapping[str, Any]) -> AuthMethodConfig:
        model = config_model_for(method)
        try:
            return model.model_validate(dict(payload))
        except PydanticValidationError as exc:
            raise ValidationError(_format_validation_error(exc)) from exc

    def _invalidate_tokens(
        self, config: AuthMethodConfig, *, reason: str, forget: bool = False
    ) -> None:
        if self._ledger is None or config.method_type != AuthMethodType.MACHINE_IDENTITY:
            return
        revoked = self._ledger.invalidate_config(config.id, reason=reason)
        if forget:
            self._ledger.forget_config(config.id)
        logger.info(
            "config.tokens_invalidated",
            extra={"config_id": str(config.id), "reason": reason, "revoked": revoked},
        )

    def _find(
        self, owner_id: str, method_type: AuthMethodType
    ) -> AuthMethodConfig | None:  # pragma: no cover
        raise NotImplementedError

    def _find_by_id(
        self, config_id: UUID
    ) -> AuthMethodConfig | None:  # pragma: no cover
        raise NotImplementedError

    def _iter_owner(
        self, owner_id: str
    ) -> Iterable[AuthMethodConfig]:  # pragma: no cover
        raise NotImplementedError

    def _write(self, config: AuthMethodConfig) -> None:  # pragma: no cover
        raise NotImplementedError

    def _remove(self, config_id: UUID) -> bool:  # pragma: no cover
        raise NotImplementedError

    def _remove_owner(
        self, owner_id: str
    ) -> list[AuthMethodConfig]:  # pragma: no cover
        raise NotImplementedError


class InMemoryAuthConfigStore(BaseAuthConfigStore):
    """In-memory configuration store used for tests and local deployments."""

    def __init__(self, *, ledger: BaseTokenLedger | None = None) -> None:
        """Create an ephemeral store."""
        super().__init__(ledger=ledger)
        self._lock = threading.Lock()
        self._records: dict[UUID, AuthMethodConfig] = {}
        self._index: dict[ConfigKey, UUID] = {}

    def _find(
        self, owner_id: str, method_type: AuthMethodType
    ) -> AuthMethodConfig | None:
        with self._lock:
            config_id = self._index.get((owner_id, method_type))
            record = self._records.get(config_id) if config_id else None
            return record.model_copy(deep=True) if record else None

    def _find_by_id(self, config_id: UUID) -> AuthMethodConfig | None:
        with self._lock:
            record = self._records.get(config_id)
            return record.model_copy(deep=True) if record else None

    def _iter_owner(self, owner_id: str) -> Iterable[AuthMethodConfig]:
        with self._lock:
            records = [
                record.model_copy(deep=True)
                for record in self._records.values()
                if record.owner_id == owner_id
            ]
        return records

    def _write(self, config: AuthMethodConfig) -> None:
        key = (config.owner_id, AuthMethodType(config.method_type))
        with self._lock:
            self._records[config.id] = config.model_copy(deep=True)
            self._index[key] = config.id

    def _remove(self, config_id: UUID) -> bool:
        with self._lock:
            record = self._records.pop(config_id, None)
            if record is None:
                return False
            self._index.pop((record.owner_id, AuthMethodType(record.method_type)), None)
            return True

    def _remove_owner(self, owner_id: str) -> list[AuthMethodConfig]:
        with self._lock:
            removed = [
                record
                for record in self._records.values()
                if record.owner_id == owner_id
            ]
            for record in removed:
                del self._records[record.id]
                self._index.pop((owner_id, AuthMethodType(record.method_type)), None)
        return removed


class SqliteAuthConfigStore(BaseAuthConfigStore):
    """Configuration store persisted in a SQLite database.

    Configurations reference an ``owners`` row with ``ON DELETE CASCADE`` and
    are unique per ``(owner_id, method_type)``.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        ledger: BaseTokenLedger | None = None,
        timeout: float = 5.0,
    ) -> None:
        """Create the configuration tables at ``path`` when missing."""
        super().__init__(ledger=ledger)
        self._path = Path(path).expanduser()
        self._timeout = timeout
        self._initialize()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path, timeout=self._timeout)
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn
        finally:
            conn.close()

    def _initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS owners (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS auth_method_configs (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    method_type TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    UNIQUE (owner_id, method_type),
                    FOREIGN KEY (owner_id) REFERENCES owners(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_auth_method_configs_owner
                    ON auth_method_configs(owner_id);
                """
            )

    @staticmethod
    def _decode(rows: Iterable[tuple[str]]) -> list[AuthMethodConfig]:
        return [AuthMethodConfigAdapter.validate_json(row[0]) for row in rows]

    def _find(
        self, owner_id: str, method_type: AuthMethodType
    ) -> AuthMethodConfig | None:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT payload FROM auth_method_configs
                 WHERE owner_id = ? AND method_type = ?
                """,
                (owner_id, method_type.value),
            ).fetchall()
        decoded = self._decode(rows)
        return decoded[0] if decoded else None

    def _find_by_id(self, config_id: UUID) -> AuthMethodConfig | None:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT payload FROM auth_method_configs WHERE id = ?",
                (str(config_id),),
            ).fetchall()
        decoded = self._decode(rows)
        return decoded[0] if decoded else None

    def _iter_owner(self, owner_id: str) -> Iterable[AuthMethodConfig]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT payload FROM auth_method_configs WHERE owner_id = ?",
                (owner_id,),
            ).fetchall()
        return self._decode(rows)

    def _write(self, config: AuthMethodConfig) -> None:
        try:
            with self._connection() as conn:
                conn.execute(
                    "INSERT OR IGNORE INTO owners (id, created_at) VALUES (?, ?)",
                    (config.owner_id, config.created_at.isoformat()),
                )
                conn.execute(
                    """
                    INSERT INTO auth_method_configs (
                        id, owner_id, method_type, is_active,
                        created_at, updated_at, payload
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        is_active = excluded.is_active,
                        updated_at = excluded.updated_at,
                        payload = excluded.payload
                    """,
                    (
                        str(config.id),
                        config.owner_id,
                        config.method_type,
                        int(config.is_active),
                        config.created_at.isoformat(),
                        config.updated_at.isoformat(),
                        config.model_dump_json(),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            msg = (
                f"A concurrent writer created the {config.method_type} "
                f"configuration of owner {config.owner_id!r}; retry later."
            )
            raise ConflictError(msg) from exc

    def _remove(self, config_id: UUID) -> bool:
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM auth_method_configs WHERE id = ?", (str(config_id),)
            )
        return cursor.rowcount > 0

    def _remove_owner(self, owner_id: str) -> list[AuthMethodConfig]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT payload FROM auth_method_configs WHERE owner_id = ?",
                (owner_id,),
            ).fetchall()
            conn.execute("DELETE FROM owners WHERE id = ?", (owner_id,))
        return self._decode(rows)


__all__ = [
    "BaseAuthConfigStore",
    "InMemoryAuthConfigStore",
    "KeyedWriteGuard",
    "SqliteAuthConfigStore",
]
