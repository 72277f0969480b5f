"""Request and response schemas for the Authbound HTTP API."""

from __future__ import annotations
from datetime import datetime
from typing import Any
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from authbound.auth.sso import ProviderProfile, ServiceProviderUrls
from authbound.models import (
    DEFAULT_ACCESS_TOKEN_MAX_TTL,
    DEFAULT_ACCESS_TOKEN_TTL,
    FederatedSsoConfig,
    IssuedToken,
    MachineIdentityAuthConfig,
    SsoProviderKind,
)


class CamelModel(BaseModel):
    """Base schema exchanging camelCase keys with HTTP clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SsoConfigRequest(CamelModel):
    """Payload submitted from the SAML configuration form."""

    owner_id: str
    auth_provider: SsoProviderKind
    entry_point: str = ""
    issuer: str = ""
    cert: str = ""

    def to_fields(self) -> dict[str, Any]:
        """Return store fields; saving the form always leaves SSO inactive."""
        return {
            "provider_kind": self.auth_provider,
            "entry_point": self.entry_point,
            "issuer": self.issuer,
            "certificate": self.cert,
            "is_active": False,
        }


class SsoConfigResponse(CamelModel):
    """Stored SAML configuration plus the values to copy into the IdP."""

    id: UUID
    owner_id: str
    auth_provider: SsoProviderKind
    entry_point: str
    issuer: str
    cert: str
    is_active: bool
    acs_url: str
    entity_id: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_config(
        cls, config: FederatedSsoConfig, urls: ServiceProviderUrls
    ) -> SsoConfigResponse:
        """Build the response from the domain model."""
        return cls(
            id=config.id,
            owner_id=config.owner_id,
            auth_provider=config.provider_kind,
            entry_point=config.entry_point,
            issuer=config.issuer,
            cert=config.certificate,
            is_active=config.is_active,
            acs_url=urls.acs_url,
            entity_id=urls.entity_id,
            created_at=config.created_at,
            updated_at=config.updated_at,
        )


class SsoProviderOption(CamelModel):
    """Selectable identity provider vendor."""

    label: str
    value: str


class SsoProfileResponse(CamelModel):
    """Vendor specific field labels, with SP URLs once a config exists."""

    acs_url_label: str
    entity_id_label: str
    entry_point_label: str
    entry_point_placeholder: str
    issuer_label: str
    issuer_placeholder: str
    acs_url: str | None = None
    entity_id: str | None = None

    @classmethod
    def from_profile(
        cls, profile: ProviderProfile, urls: ServiceProviderUrls | None
    ) -> SsoProfileResponse:
        """Build the response from a provider profile."""
        return cls(
            acs_url_label=profile.acs_url_label,
            entity_id_label=profile.entity_id_label,
            entry_point_label=profile.entry_point_label,
            entry_point_placeholder=profile.entry_point_placeholder,
            issuer_label=profile.issuer_label,
            issuer_placeholder=profile.issuer_placeholder,
            acs_url=urls.acs_url if urls else None,
            entity_id=urls.entity_id if urls else None,
        )


class MachineAuthRequest(CamelModel):
    """Full replacement of a machine identity configuration."""

    access_token_ttl: int = DEFAULT_ACCESS_TOKEN_TTL
    access_token_max_ttl: int = DEFAULT_ACCESS_TOKEN_MAX_TTL
    access_token_num_uses_limit: int = 0
    access_token_trusted_ips: list[str] = Field(default_factory=list)
    allowed_service_accounts: list[str] | str = Field(default_factory=list)
    allowed_projects: list[str] | str = Field(default_factory=list)
    is_active: bool = False

    def to_fields(self) -> dict[str, Any]:
        """Return store fields for the upsert."""
        return self.model_dump()


class MachineAuthResponse(CamelModel):
    """Stored machine identity configuration."""

    id: UUID
    owner_id: str
    is_active: bool
    access_token_ttl: int
    access_token_max_ttl: int
    access_token_num_uses_limit: int
    access_token_trusted_ips: list[str]
    allowed_service_accounts: list[str]
    allowed_projects: list[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_config(cls, config: MachineIdentityAuthConfig) -> MachineAuthResponse:
        """Build the response from the domain model."""
        return cls.model_validate(config.model_dump(exclude={"method_type"}))


class ActivationRequest(CamelModel):
    """Explicit activation toggle."""

    is_active: bool


class AuthenticateRequest(CamelModel):
    """Credentials presented by a machine identity."""

    client_ip: str | None = None
    service_account: str
    project_id: str
    requested_ttl: int | None = None


class AccessTokenResponse(CamelModel):
    """Issued or renewed access token."""

    token_id: UUID
    access_token: str
    expires_at: datetime


class AccessTokenRequest(CamelModel):
    """Bearer access token presented for renewal or revocation."""

    access_token: str


class VerifyTokenRequest(AccessTokenRequest):
    """Bearer access token presented by a caller at ``client_ip``."""

    client_ip: str | None = None


class TokenStatusResponse(CamelModel):
    """Ledger view of a verified token."""

    token_id: UUID
    config_id: UUID
    owner_id: str
    expires_at: datetime
    uses_count: int

    @classmethod
    def from_token(cls, token: IssuedToken) -> TokenStatusResponse:
        """Build the response from a ledger record."""
        return cls(
            token_id=token.token_id,
            config_id=token.config_id,
            owner_id=token.owner_id,
            expires_at=token.expires_at,
            uses_count=token.uses_count,
        )


class OwnerDeletedResponse(CamelModel):
    """Summary of an owner removal."""

    owner_id: str
    configs_removed: int


__all__ = [
    "AccessTokenRequest",
    "AccessTokenResponse",
    "ActivationRequest",
    "AuthenticateRequest",
    "CamelModel",
    "MachineAuthRequest",
    "MachineAuthResponse",
    "OwnerDeletedResponse",
    "SsoConfigRequest",
    "SsoConfigResponse",
    "SsoProfileResponse",
    "SsoProviderOption",
    "TokenStatusResponse",
    "VerifyTokenRequest",
]
