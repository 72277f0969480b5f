"""Application factory for the Authbound backend service."""

from __future__ import annotations
import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from typing import Any
from fastapi import APIRouter, FastAPI
from authbound.config import get_settings
from authbound.ledger import BaseTokenLedger
from authbound.service import AuthServices, build_services, settings_value
from authbound.store import BaseAuthConfigStore
from authbound_backend.app import logging_config
from authbound_backend.app.routers import machine_auth, owners, sso, system


logger = logging.getLogger(__name__)


async def _reaper_loop(ledger: BaseTokenLedger, interval_seconds: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await asyncio.to_thread(ledger.sweep)
        except Exception:
            logger.exception("ledger.sweep_failed")
            continue
        if removed:
            logger.info("ledger.swept", extra={"removed": removed})


def _build_lifespan(services: AuthServices, interval_seconds: float) -> Any:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task = asyncio.create_task(_reaper_loop(services.ledger, interval_seconds))
        logger.info("app.started", extra={"reaper_interval": interval_seconds})
        try:
            yield
        finally:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
            logger.info("app.stopped")

    return lifespan


def create_app(
    store: BaseAuthConfigStore | None = None,
    *,
    ledger: BaseTokenLedger | None = None,
    settings: Any | None = None,
) -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    logging_config.configure_logging()
    settings = settings if settings is not None else get_settings()
    services = build_services(settings, store=store, ledger=ledger)
    interval = int(settings_value(settings, "REAPER_INTERVAL_SECONDS", 300))

    app = FastAPI(
        title="Authbound",
        lifespan=_build_lifespan(services, interval),
    )
    app.state.services = services

    api_router = APIRouter(prefix="/api")
    for module in (system, sso, machine_auth, owners):
        api_router.include_router(module.router)
    app.include_router(api_router)
    return app


__all__ = ["create_app"]
