"""System health routes."""

from __future__ import annotations
from fastapi import APIRouter


router = APIRouter()


@router.get("/system/health")
def get_system_health() -> dict[str, str]:
    """Return a lightweight unauthenticated health status."""
    return {"status": "ok"}


__all__ = ["router"]
