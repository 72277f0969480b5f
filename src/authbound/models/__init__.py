"""Domain models representing authentication methods and issued tokens."""

from authbound.models.auth_methods import (
    DEFAULT_ACCESS_TOKEN_MAX_TTL,
    DEFAULT_ACCESS_TOKEN_TTL,
    IMMUTABLE_FIELDS,
    AuthMethodConfig,
    AuthMethodConfigAdapter,
    AuthMethodType,
    FederatedSsoConfig,
    MachineIdentityAuthConfig,
    SsoProviderKind,
    config_model_for,
    normalize_cidrs,
)
from authbound.models.base import AuthboundBaseModel, TimestampedModel
from authbound.models.tokens import AuthenticationAttempt, IssuedToken


__all__ = [
    "DEFAULT_ACCESS_TOKEN_MAX_TTL",
    "DEFAULT_ACCESS_TOKEN_TTL",
    "IMMUTABLE_FIELDS",
    "AuthMethodConfig",
    "AuthMethodConfigAdapter",
    "AuthMethodType",
    "AuthboundBaseModel",
    "AuthenticationAttempt",
    "FederatedSsoConfig",
    "IssuedToken",
    "MachineIdentityAuthConfig",
    "SsoProviderKind",
    "TimestampedModel",
    "config_model_for",
    "normalize_cidrs",
]
