"""Runtime configuration helpers for Authbound."""

from __future__ import annotations
import secrets
from functools import lru_cache
from typing import Literal, cast
from dynaconf import Dynaconf


StoreBackend = Literal["inmemory", "sqlite"]
"""Supported configuration store and token ledger backends."""

_DEFAULTS: dict[str, object] = {
    "STORE_BACKEND": "inmemory",
    "SQLITE_PATH": ".authbound/authbound.sqlite",
    "TOKEN_SIGNING_SECRET": None,
    "SITE_URL": "http://localhost:8000",
    "REAPER_INTERVAL_SECONDS": 300,
    "HOST": "0.0.0.0",
    "PORT": 8000,
}


def _build_loader() -> Dynaconf:
    """Create a Dynaconf loader wired to environment variables only."""
    return Dynaconf(
        envvar_prefix="AUTHBOUND",
        settings_files=[],
        load_dotenv=True,
        environments=False,
    )


def _positive_int(source: Dynaconf, key: str) -> int:
    raw = source.get(key, _DEFAULTS[key])
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        msg = f"AUTHBOUND_{key} must be an integer."
        raise ValueError(msg) from exc
    if value <= 0:
        msg = f"AUTHBOUND_{key} must be greater than zero."
        raise ValueError(msg)
    return value


def _normalize_settings(source: Dynaconf) -> Dynaconf:
    """Validate and fill defaults on the raw Dynaconf settings."""
    backend_raw = source.get("STORE_BACKEND", _DEFAULTS["STORE_BACKEND"])
    backend = str(backend_raw or _DEFAULTS["STORE_BACKEND"]).lower()
    if backend not in {"inmemory", "sqlite"}:
        msg = "AUTHBOUND_STORE_BACKEND must be either 'inmemory' or 'sqlite'."
        raise ValueError(msg)

    normalized = Dynaconf(
        envvar_prefix="AUTHBOUND",
        settings_files=[],
        load_dotenv=False,
        environments=False,
    )
    normalized.set("STORE_BACKEND", cast(StoreBackend, backend))

    if backend == "sqlite":
        sqlite_path = source.get("SQLITE_PATH") or _DEFAULTS["SQLITE_PATH"]
        normalized.set("SQLITE_PATH", str(sqlite_path))
    else:
        normalized.set("SQLITE_PATH", None)

    secret = source.get("TOKEN_SIGNING_SECRET")
    if not secret:
        if backend == "sqlite":
            msg = (
                "AUTHBOUND_TOKEN_SIGNING_SECRET must be set when using the "
                "sqlite backend."
            )
            raise ValueError(msg)
        # In-memory ledgers never outlive the process.
        secret = secrets.token_urlsafe(32)
    normalized.set("TOKEN_SIGNING_SECRET", str(secret))

    site_url = source.get("SITE_URL") or _DEFAULTS["SITE_URL"]
    normalized.set("SITE_URL", str(site_url).rstrip("/"))

    normalized.set(
        "REAPER_INTERVAL_SECONDS", _positive_int(source, "REAPER_INTERVAL_SECONDS")
    )

    host = source.get("HOST") or _DEFAULTS["HOST"]
    normalized.set("HOST", str(host))
    normalized.set("PORT", _positive_int(source, "PORT"))

    return normalized


@lru_cache(maxsize=1)
def _load_settings() -> Dynaconf:
    """Load settings once and cache the normalized Dynaconf instance."""
    return _normalize_settings(_build_loader())


def get_settings(*, refresh: bool = False) -> Dynaconf:
    """Return the cached Dynaconf settings, reloading them if requested."""
    if refresh:
        _load_settings.cache_clear()
    return _load_settings()


__all__ = ["StoreBackend", "get_settings"]
