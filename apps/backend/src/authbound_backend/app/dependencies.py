"""FastAPI dependencies exposing the shared authentication services."""

from __future__ import annotations
from typing import Annotated
from fastapi import Depends, Request
from authbound.auth.issuer import TokenIssuer
from authbound.service import AuthServices
from authbound.store import BaseAuthConfigStore


def get_services(request: Request) -> AuthServices:
    """Return the services attached to the application state."""
    return request.app.state.services


def get_store(request: Request) -> BaseAuthConfigStore:
    """Return the configuration store."""
    return get_services(request).store


def get_issuer(request: Request) -> TokenIssuer:
    """Return the token issuer."""
    return get_services(request).issuer


ServicesDep = Annotated[AuthServices, Depends(get_services)]
StoreDep = Annotated[BaseAuthConfigStore, Depends(get_store)]
IssuerDep = Annotated[TokenIssuer, Depends(get_issuer)]


__all__ = [
    "IssuerDep",
    "ServicesDep",
    "StoreDep",
    "get_issuer",
    "get_services",
    "get_store",
]
