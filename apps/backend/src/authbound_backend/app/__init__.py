"""FastAPI application entrypoint for the Authbound backend service."""

from __future__ import annotations
from authbound_backend.app.factory import create_app


__all__ = ["create_app"]
