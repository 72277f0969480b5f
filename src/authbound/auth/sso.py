"""Display metadata for SAML identity provider vendors."""

from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from uuid import UUID
from authbound.models import SsoProviderKind


@dataclass(frozen=True, slots=True)
class ProviderProfile:
    """Vendor specific labels shown next to SAML configuration fields."""

    acs_url_label: str
    entity_id_label: str
    entry_point_label: str
    entry_point_placeholder: str
    issuer_label: str
    issuer_placeholder: str


@dataclass(frozen=True, slots=True)
class ServiceProviderUrls:
    """Values an administrator copies into the identity provider."""

    acs_url: str
    entity_id: str


GENERIC_PROFILE = ProviderProfile(
    acs_url_label="ACS URL",
    entity_id_label="Entity ID",
    entry_point_label="Entrypoint",
    entry_point_placeholder="Enter entrypoint...",
    issuer_label="Issuer",
    issuer_placeholder="Enter placeholder...",
)

_PROFILES = MappingProxyType(
    {
        SsoProviderKind.OKTA_SAML: ProviderProfile(
            acs_url_label="Single sign-on URL",
            entity_id_label="Audience URI (SP Entity ID)",
            entry_point_label="Identity Provider Single Sign-On URL",
            entry_point_placeholder=(
                "https://your-domain.okta.com/app/app-name/xxx/sso/saml"
            ),
            issuer_label="Identity Provider Issuer",
            issuer_placeholder="http://www.okta.com/xxx",
        ),
        SsoProviderKind.AZURE_SAML: ProviderProfile(
            acs_url_label="Reply URL (Assertion Consumer Service URL)",
            entity_id_label="Identifier (Entity ID)",
            entry_point_label="Login URL",
            entry_point_placeholder="https://login.microsoftonline.com/xxx/saml2",
            issuer_label="Azure Application ID",
            issuer_placeholder="abc-def-ghi-jkl-mno",
        ),
        SsoProviderKind.JUMPCLOUD_SAML: ProviderProfile(
            acs_url_label="ACS URL",
            entity_id_label="SP Entity ID",
            entry_point_label="IDP URL",
            entry_point_placeholder="https://sso.jumpcloud.com/saml2/xxx",
            issuer_label="IdP Entity ID",
            issuer_placeholder="xxx",
        ),
        SsoProviderKind.GOOGLE_SAML: ProviderProfile(
            acs_url_label="ACS URL",
            entity_id_label="SP Entity ID",
            entry_point_label="SSO URL",
            entry_point_placeholder="https://accounts.google.com/o/saml2/idp?idpid=xxx",
            issuer_label="IdP Entity ID",
            issuer_placeholder="https://accounts.google.com/o/saml2/idp?idpid=xxx",
        ),
    }
)

_DISPLAY_NAMES = MappingProxyType(
    {
        SsoProviderKind.OKTA_SAML: "Okta SAML",
        SsoProviderKind.AZURE_SAML: "Azure SAML",
        SsoProviderKind.JUMPCLOUD_SAML: "JumpCloud SAML",
        SsoProviderKind.GOOGLE_SAML: "Google SAML",
    }
)


def profile_for(kind: SsoProviderKind | str | None) -> ProviderProfile:
    """Return the profile for ``kind``, falling back to generic labels."""
    try:
        provider = SsoProviderKind(kind)
    except ValueError:
        return GENERIC_PROFILE
    return _PROFILES.get(provider, GENERIC_PROFILE)


def list_providers() -> list[tuple[str, str]]:
    """Return ``(display name, value)`` pairs for every supported vendor."""
    return [(_DISPLAY_NAMES[kind], kind.value) for kind in SsoProviderKind]


def service_provider_urls(site_url: str, config_id: UUID | str) -> ServiceProviderUrls:
    """Return the ACS URL and entity id for the SAML configuration."""
    base = site_url.rstrip("/")
    return ServiceProviderUrls(
        acs_url=f"{base}/api/v1/sso/saml2/{config_id}",
        entity_id=base,
    )


__all__ = [
    "GENERIC_PROFILE",
    "ProviderProfile",
    "ServiceProviderUrls",
    "list_providers",
    "profile_for",
    "service_provider_urls",
]
