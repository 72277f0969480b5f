"""Helpers wiring the store, ledger and issuer from runtime settings."""

from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from authbound.auth.issuer import TokenIssuer
from authbound.auth.tokens import AccessTokenCodec
from authbound.config import get_settings
from authbound.ledger import BaseTokenLedger, InMemoryTokenLedger, SqliteTokenLedger
from authbound.store import (
    BaseAuthConfigStore,
    InMemoryAuthConfigStore,
    SqliteAuthConfigStore,
)


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthServices:
    """Bundle of collaborators serving configuration and token requests."""

    store: BaseAuthConfigStore
    ledger: BaseTokenLedger
    issuer: TokenIssuer
    codec: AccessTokenCodec
    site_url: str


def settings_value(settings: Any, key: str, default: Any = None) -> Any:
    """Read ``key`` from Dynaconf settings or a plain mapping."""
    if isinstance(settings, dict):
        return settings.get(key.upper(), settings.get(key.lower(), default))
    return settings.get(key.upper(), default)


def create_ledger(settings: Any) -> BaseTokenLedger:
    """Return the token ledger selected by ``STORE_BACKEND``."""
    backend = str(settings_value(settings, "STORE_BACKEND", "inmemory")).lower()
    if backend == "sqlite":
        path = Path(str(settings_value(settings, "SQLITE_PATH")))
        path.parent.mkdir(parents=True, exist_ok=True)
        return SqliteTokenLedger(path)
    return InMemoryTokenLedger()


def create_store(settings: Any, *, ledger: BaseTokenLedger) -> BaseAuthConfigStore:
    """Return the configuration store selected by ``STORE_BACKEND``."""
    backend = str(settings_value(settings, "STORE_BACKEND", "inmemory")).lower()
    if backend == "sqlite":
        path = Path(str(settings_value(settings, "SQLITE_PATH")))
        path.parent.mkdir(parents=True, exist_ok=True)
        return SqliteAuthConfigStore(path, ledger=ledger)
    return InMemoryAuthConfigStore(ledger=ledger)


def build_services(
    settings: Any | None = None,
    *,
    store: BaseAuthConfigStore | None = None,
    ledger: BaseTokenLedger | None = None,
) -> AuthServices:
    """Assemble services, reusing any store or ledger passed by the caller."""
    settings = settings if settings is not None else get_settings()
    if ledger is None and store is not None:
        ledger = store.ledger
    if ledger is None:
        ledger = create_ledger(settings)
    if store is None:
        store = create_store(settings, ledger=ledger)
    codec = AccessTokenCodec(str(settings_value(settings, "TOKEN_SIGNING_SECRET")))
    logger.info(
        "services.ready",
        extra={
            "store": type(store).__name__,
            "ledger": type(ledger).__name__,
        },
    )
    return AuthServices(
        store=store,
        ledger=ledger,
        issuer=TokenIssuer(store, ledger),
        codec=codec,
        site_url=str(settings_value(settings, "SITE_URL", "http://localhost:8000")),
    )


__all__ = [
    "AuthServices",
    "build_services",
    "create_ledger",
    "create_store",
    "settings_value",
]
