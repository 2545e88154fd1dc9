from shadowit.integrations.providers.microsoft_entra.adapters import (
    ServicePrincipal,
    adapt_app_role_assignment,
    adapt_delegated_grant,
    adapt_microsoft_user,
    adapt_microsoft_users,
    adapt_service_principal,
)
from shadowit.integrations.providers.microsoft_entra.constants import (
    MICROSOFT_ENTRA_PROVIDER_SLUG,
)
from shadowit.integrations.providers.microsoft_entra.provider import (
    MicrosoftEntraProvider,
    microsoft_entra_provider,
)

__all__ = [
    "ServicePrincipal",
    "adapt_app_role_assignment",
    "adapt_delegated_grant",
    "adapt_microsoft_user",
    "adapt_microsoft_users",
    "adapt_service_principal",
    "MICROSOFT_ENTRA_PROVIDER_SLUG",
    "MicrosoftEntraProvider",
    "microsoft_entra_provider",
]
