from shadowit.integrations.core.client import ApiClient
from shadowit.integrations.core.exceptions import (
    ApiRequestError,
    AuthExpiredError,
    ConfigurationError,
    IntegrationException,
    ProviderNotFoundError,
    QuotaExceededError,
)
from shadowit.integrations.core.interfaces import IDirectoryProvider
from shadowit.integrations.core.types import (
    AuthContext,
    DirectoryAccount,
    GoogleTokenGrant,
    MicrosoftAppRoleAssignment,
    MicrosoftDelegatedGrant,
    RawGrant,
    TokenResponse,
)

__all__ = [
    "ApiClient",
    "ApiRequestError",
    "AuthExpiredError",
    "ConfigurationError",
    "IntegrationException",
    "ProviderNotFoundError",
    "QuotaExceededError",
    "IDirectoryProvider",
    "AuthContext",
    "DirectoryAccount",
    "GoogleTokenGrant",
    "MicrosoftAppRoleAssignment",
    "MicrosoftDelegatedGrant",
    "RawGrant",
    "TokenResponse",
]
