"""Authentication method configurations attached to identities and organizations."""

from __future__ import annotations
import ipaddress
from enum import Enum
from typing import Annotated, Literal
from pydantic import Field, TypeAdapter, field_validator, model_validator
from authbound.models.base import TimestampedModel


__all__ = [
    "AuthMethodConfig",
    "AuthMethodConfigAdapter",
    "AuthMethodType",
    "DEFAULT_ACCESS_TOKEN_MAX_TTL",
    "DEFAULT_ACCESS_TOKEN_TTL",
    "FederatedSsoConfig",
    "IMMUTABLE_FIELDS",
    "MachineIdentityAuthConfig",
    "SsoProviderKind",
    "config_model_for",
    "normalize_cidrs",
]


DEFAULT_ACCESS_TOKEN_TTL = 7200
DEFAULT_ACCESS_TOKEN_MAX_TTL = 7200

IMMUTABLE_FIELDS = frozenset(
    {"id", "owner_id", "method_type", "created_at", "updated_at"}
)
"""Envelope fields callers may never supply when upserting a configuration."""


class AuthMethodType(str, Enum):
    """Kinds of authentication methods an owner can configure."""

    FEDERATED_SSO = "federated_sso"
    MACHINE_IDENTITY = "machine_identity"


class SsoProviderKind(str, Enum):
    """Supported SAML identity provider vendors."""

    OKTA_SAML = "okta-saml"
    AZURE_SAML = "azure-saml"
    JUMPCLOUD_SAML = "jumpcloud-saml"
    GOOGLE_SAML = "google-saml"


class AuthMethodConfig(TimestampedModel):
    """Common envelope shared by every authentication method configuration."""

    owner_id: str = Field(min_length=1, max_length=255)
    is_active: bool = False

    def missing_activation_fields(self) -> list[str]:
        """Return the names of fields that block activation."""
        return []

    @model_validator(mode="after")
    def _check_activation(self) -> AuthMethodConfig:
        if self.is_active:
            missing = self.missing_activation_fields()
            if missing:
                msg = (
                    "Cannot activate configuration; missing required fields: "
                    + ", ".join(missing)
                )
                raise ValueError(msg)
        return self


class FederatedSsoConfig(AuthMethodConfig):
    """SAML single sign-on configuration for an organization."""

    method_type: Literal["federated_sso"] = "federated_sso"
    provider_kind: SsoProviderKind
    entry_point: str = ""
    issuer: str = ""
    certificate: str = ""

    def missing_activation_fields(self) -> list[str]:
        """Entry point, issuer and certificate must all be present to activate."""
        return [
            name
            for name in ("entry_point", "issuer", "certificate")
            if not getattr(self, name)
        ]


def _split_identifiers(value: object) -> object:
    if isinstance(value, str):
        return [item for item in (part.strip() for part in value.split(",")) if item]
    return value


def normalize_cidrs(values: list[str]) -> list[str]:
    """Return de-duplicated CIDR strings, preserving the caller's order."""
    seen: set[str] = set()
    normalized: list[str] = []
    for raw in values:
        candidate = str(raw).strip()
        try:
            network = ipaddress.ip_network(candidate, strict=False)
        except ValueError as exc:
            msg = f"Invalid trusted IP range: {candidate!r}"
            raise ValueError(msg) from exc
        text = network.with_prefixlen
        if text not in seen:
            seen.add(text)
            normalized.append(text)
    return normalized


class MachineIdentityAuthConfig(AuthMethodConfig):
    """Cloud IAM authentication for a machine identity with bounded tokens."""

    method_type: Literal["machine_identity"] = "machine_identity"
    access_token_ttl: int = Field(default=DEFAULT_ACCESS_TOKEN_TTL, gt=0)
    access_token_max_ttl: int = Field(default=DEFAULT_ACCESS_TOKEN_MAX_TTL, gt=0)
    access_token_num_uses_limit: int = Field(default=0, ge=0)
    access_token_trusted_ips: list[str] = Field(default_factory=list)
    allowed_service_accounts: list[str] = Field(min_length=1)
    allowed_projects: list[str] = Field(min_length=1)

    @field_validator("allowed_service_accounts", "allowed_projects", mode="before")
    @classmethod
    def _split_comma_separated(cls, value: object) -> object:
        return _split_identifiers(value)

    @field_validator("allowed_service_accounts", "allowed_projects", mode="after")
    @classmethod
    def _dedupe_identifiers(cls, value: list[str]) -> list[str]:
        return sorted({item.strip() for item in value if item.strip()})

    @field_validator("access_token_trusted_ips", mode="before")
    @classmethod
    def _split_trusted_ips(cls, value: object) -> object:
        return _split_identifiers(value)

    @field_validator("access_token_trusted_ips", mode="after")
    @classmethod
    def _normalize_trusted_ips(cls, value: list[str]) -> list[str]:
        return normalize_cidrs(value)

    @model_validator(mode="after")
    def _check_ttl_bounds(self) -> MachineIdentityAuthConfig:
        if self.access_token_ttl > self.access_token_max_ttl:
            msg = "access_token_ttl must not exceed access_token_max_ttl"
            raise ValueError(msg)
        if not self.allowed_service_accounts:
            msg = "allowed_service_accounts must not be empty"
            raise ValueError(msg)
        if not self.allowed_projects:
            msg = "allowed_projects must not be empty"
            raise ValueError(msg)
        return self


AuthMethodConfigAdapter = TypeAdapter(
    Annotated[
        FederatedSsoConfig | MachineIdentityAuthConfig,
        Field(discriminator="method_type"),
    ]
)
"""Adapter that restores the concrete configuration from a serialized payload."""


_MODELS: dict[AuthMethodType, type[AuthMethodConfig]] = {
    AuthMethodType.FEDERATED_SSO: FederatedSsoConfig,
    AuthMethodType.MACHINE_IDENTITY: MachineIdentityAuthConfig,
}


def config_model_for(method_type: AuthMethodType | str) -> type[AuthMethodConfig]:
    """Return the configuration model class for ``method_type``."""
    return _MODELS[AuthMethodType(method_type)]
