"""Machine identity configuration and access token routes."""

from __future__ import annotations
from typing import Annotated
from uuid import UUID
from fastapi import APIRouter, Query, Response, status
from authbound.errors import AuthboundError
from authbound.models import (
    AuthenticationAttempt,
    AuthMethodType,
    MachineIdentityAuthConfig,
)
from authbound_backend.app.dependencies import ServicesDep
from authbound_backend.app.errors import raise_domain_error, raise_not_found
from authbound_backend.app.schemas import (
    AccessTokenRequest,
    AccessTokenResponse,
    ActivationRequest,
    AuthenticateRequest,
    MachineAuthRequest,
    MachineAuthResponse,
    TokenStatusResponse,
    VerifyTokenRequest,
)


router = APIRouter()


def _require_machine_config(config: object) -> MachineIdentityAuthConfig:
    if not isinstance(config, MachineIdentityAuthConfig):
        raise_not_found("Machine identity configuration not found")
    return config


@router.put("/machine-auth", response_model=MachineAuthResponse)
def put_machine_auth(
    request: MachineAuthRequest,
    services: ServicesDep,
    owner_id: Annotated[str, Query(alias="ownerId")],
) -> MachineAuthResponse:
    """Create or fully replace the owner's machine identity configuration."""
    try:
        config = services.store.upsert(
            owner_id, AuthMethodType.MACHINE_IDENTITY, request.to_fields()
        )
    except AuthboundError as exc:
        raise_domain_error(exc)
    return MachineAuthResponse.from_config(_require_machine_config(config))


@router.get("/machine-auth", response_model=MachineAuthResponse)
def get_machine_auth(
    services: ServicesDep,
    owner_id: Annotated[str, Query(alias="ownerId")],
) -> MachineAuthResponse:
    """Return the owner's machine identity configuration."""
    try:
        config = services.store.get(owner_id, AuthMethodType.MACHINE_IDENTITY)
    except AuthboundError as exc:
        raise_domain_error(exc)
    return MachineAuthResponse.from_config(_require_machine_config(config))


@router.patch(
    "/machine-auth/{config_id}/activation", response_model=MachineAuthResponse
)
def set_machine_auth_activation(
    config_id: UUID, request: ActivationRequest, services: ServicesDep
) -> MachineAuthResponse:
    """Activate or deactivate; deactivation invalidates outstanding tokens."""
    try:
        _require_machine_config(services.store.get_by_id(config_id))
        config = services.store.set_active(config_id, request.is_active)
    except AuthboundError as exc:
        raise_domain_error(exc)
    return MachineAuthResponse.from_config(_require_machine_config(config))


@router.delete(
    "/machine-auth/{config_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def delete_machine_auth(config_id: UUID, services: ServicesDep) -> Response:
    """Delete the configuration and invalidate its tokens."""
    try:
        _require_machine_config(services.store.get_by_id(config_id))
        services.store.delete(config_id)
    except AuthboundError as exc:
        raise_domain_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/machine-auth/{config_id}/authenticate", response_model=AccessTokenResponse
)
def authenticate_machine_identity(
    config_id: UUID, request: AuthenticateRequest, services: ServicesDep
) -> AccessTokenResponse:
    """Exchange machine identity credentials for a bounded access token."""
    attempt = AuthenticationAttempt(
        client_ip=request.client_ip,
        service_account=request.service_account,
        project_id=request.project_id,
        requested_ttl=request.requested_ttl,
    )
    try:
        token = services.issuer.authenticate_config(config_id, attempt)
    except AuthboundError as exc:
        raise_domain_error(exc)
    return AccessTokenResponse(
        token_id=token.token_id,
        access_token=services.codec.encode(token),
        expires_at=token.expires_at,
    )


@router.post("/machine-auth/tokens/renew", response_model=AccessTokenResponse)
def renew_access_token(
    request: AccessTokenRequest, services: ServicesDep
) -> AccessTokenResponse:
    """Extend a live token by its configuration's TTL."""
    try:
        token = services.issuer.renew(services.codec.decode(request.access_token))
    except AuthboundError as exc:
        raise_domain_error(exc)
    return AccessTokenResponse(
        token_id=token.token_id,
        access_token=services.codec.encode(token),
        expires_at=token.expires_at,
    )


@router.post(
    "/machine-auth/tokens/revoke",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def revoke_access_token(request: AccessTokenRequest, services: ServicesDep) -> Response:
    """Revoke a token; revoking twice is a no-op."""
    try:
        services.issuer.revoke(services.codec.decode(request.access_token))
    except AuthboundError as exc:
        raise_domain_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/machine-auth/tokens/verify", response_model=TokenStatusResponse)
def verify_access_token(
    request: VerifyTokenRequest, services: ServicesDep
) -> TokenStatusResponse:
    """Check a bearer token and count one use against its limit."""
    try:
        token = services.issuer.verify(
            services.codec.decode(request.access_token),
            client_ip=request.client_ip,
        )
    except AuthboundError as exc:
        raise_domain_error(exc)
    return TokenStatusResponse.from_token(token)


__all__ = ["router"]
