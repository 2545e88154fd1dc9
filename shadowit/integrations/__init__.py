from shadowit.integrations.core import (
    ApiClient,
    ApiRequestError,
    AuthExpiredError,
    ConfigurationError,
    IDirectoryProvider,
    IntegrationException,
    QuotaExceededError,
    RawGrant,
)
from shadowit.integrations.providers import (
    GoogleWorkspaceProvider,
    MicrosoftEntraProvider,
    get_provider,
)

__all__ = [
    # Core
    "ApiClient",
    "ApiRequestError",
    "AuthExpiredError",
    "ConfigurationError",
    "IDirectoryProvider",
    "IntegrationException",
    "QuotaExceededError",
    "RawGrant",
    # Providers
    "GoogleWorkspaceProvider",
    "MicrosoftEntraProvider",
    "get_provider",
]
