"""Owner lifecycle routes."""

from __future__ import annotations
from fastapi import APIRouter
from authbound.errors import AuthboundError
from authbound_backend.app.dependencies import ServicesDep
from authbound_backend.app.errors import raise_domain_error
from authbound_backend.app.schemas import OwnerDeletedResponse


router = APIRouter()


@router.delete("/owners/{owner_id}", response_model=OwnerDeletedResponse)
def delete_owner(owner_id: str, services: ServicesDep) -> OwnerDeletedResponse:
    """Remove the owner together with every configuration and token."""
    try:
        removed = services.store.delete_owner(owner_id)
    except AuthboundError as exc:
        raise_domain_error(exc)
    return OwnerDeletedResponse(owner_id=owner_id, configs_removed=removed)


__all__ = ["router"]
