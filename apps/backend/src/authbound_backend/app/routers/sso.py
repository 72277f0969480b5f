"""Federated SAML single sign-on configuration routes."""

from __future__ import annotations
from typing import Annotated
from uuid import UUID
from fastapi import APIRouter, Query
from authbound.auth.sso import list_providers, profile_for, service_provider_urls
from authbound.errors import AuthboundError, NotFoundError
from authbound.models import AuthMethodType, FederatedSsoConfig
from authbound.service import AuthServices
from authbound_backend.app.dependencies import ServicesDep
from authbound_backend.app.errors import raise_domain_error, raise_not_found
from authbound_backend.app.schemas import (
    ActivationRequest,
    SsoConfigRequest,
    SsoConfigResponse,
    SsoProfileResponse,
    SsoProviderOption,
)


router = APIRouter()


def _to_response(services: AuthServices, config: object) -> SsoConfigResponse:
    if not isinstance(config, FederatedSsoConfig):
        raise_not_found("SSO configuration not found")
    urls = service_provider_urls(services.site_url, config.id)
    return SsoConfigResponse.from_config(config, urls)


@router.get("/sso-config/providers", response_model=list[SsoProviderOption])
def get_sso_providers() -> list[SsoProviderOption]:
    """Return the selectable SAML identity provider vendors."""
    return [
        SsoProviderOption(label=label, value=value)
        for label, value in list_providers()
    ]


@router.get("/sso-config/profile", response_model=SsoProfileResponse)
def get_sso_profile(
    services: ServicesDep,
    auth_provider: Annotated[str | None, Query(alias="authProvider")] = None,
    owner_id: Annotated[str | None, Query(alias="ownerId")] = None,
) -> SsoProfileResponse:
    """Return vendor labels and, for a configured owner, the SP URLs."""
    urls = None
    if owner_id:
        try:
            config = services.store.get(owner_id, AuthMethodType.FEDERATED_SSO)
        except NotFoundError:
            config = None
        if config is not None:
            urls = service_provider_urls(services.site_url, config.id)
    return SsoProfileResponse.from_profile(profile_for(auth_provider), urls)


@router.put("/sso-config", response_model=SsoConfigResponse)
def put_sso_config(
    request: SsoConfigRequest, services: ServicesDep
) -> SsoConfigResponse:
    """Create or replace the owner's SAML configuration, leaving it inactive."""
    try:
        config = services.store.upsert(
            request.owner_id, AuthMethodType.FEDERATED_SSO, request.to_fields()
        )
    except AuthboundError as exc:
        raise_domain_error(exc)
    return _to_response(services, config)


@router.get("/sso-config", response_model=SsoConfigResponse)
def get_sso_config(
    services: ServicesDep,
    owner_id: Annotated[str, Query(alias="ownerId")],
) -> SsoConfigResponse:
    """Return the owner's SAML configuration."""
    try:
        config = services.store.get(owner_id, AuthMethodType.FEDERATED_SSO)
    except AuthboundError as exc:
        raise_domain_error(exc)
    return _to_response(services, config)


@router.patch("/sso-config/{config_id}/activation", response_model=SsoConfigResponse)
def set_sso_activation(
    config_id: UUID, request: ActivationRequest, services: ServicesDep
) -> SsoConfigResponse:
    """Activate or deactivate a SAML configuration."""
    try:
        current = services.store.get_by_id(config_id)
        if not isinstance(current, FederatedSsoConfig):
            raise_not_found("SSO configuration not found")
        config = services.store.set_active(config_id, request.is_active)
    except AuthboundError as exc:
        raise_domain_error(exc)
    return _to_response(services, config)


__all__ = ["router"]
