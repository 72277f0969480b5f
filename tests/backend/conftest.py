"""Shared pytest fixtures for backend tests."""

from __future__ import annotations
from collections.abc import Iterator
import pytest
from fastapi.testclient import TestClient
from authbound_backend.app import create_app


SETTINGS = {
    "STORE_BACKEND": "inmemory",
    "TOKEN_SIGNING_SECRET": "backend-test-signing-secret-0123456789",
    "SITE_URL": "https://auth.example.com",
    "REAPER_INTERVAL_SECONDS": 300,
}


@pytest.fixture
def api_client() -> Iterator[TestClient]:
    """Yield a client bound to a fresh in-memory application."""
    with TestClient(create_app(settings=dict(SETTINGS))) as client:
        yield client


@pytest.fixture
def machine_payload() -> dict[str, object]:
    """Return a valid machine identity request body."""
    return {
        "accessTokenTtl": 3600,
        "accessTokenMaxTtl": 7200,
        "accessTokenNumUsesLimit": 2,
        "accessTokenTrustedIps": ["10.0.0.0/8"],
        "allowedServiceAccounts": "svc@proj.iam.gserviceaccount.com",
        "allowedProjects": ["proj"],
        "isActive": True,
    }
