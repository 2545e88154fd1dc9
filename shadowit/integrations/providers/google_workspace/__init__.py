from shadowit.integrations.providers.google_workspace.adapters import (
    adapt_google_token,
    adapt_google_tokens,
    adapt_google_user,
    adapt_google_users,
)
from shadowit.integrations.providers.google_workspace.constants import (
    GOOGLE_ADMIN_DIRECTORY_SCOPES,
    GOOGLE_WORKSPACE_ADMIN_SCOPES,
    GOOGLE_WORKSPACE_PROVIDER_SLUG,
)
from shadowit.integrations.providers.google_workspace.provider import (
    GoogleWorkspaceProvider,
    google_workspace_provider,
)

__all__ = [
    "adapt_google_token",
    "adapt_google_tokens",
    "adapt_google_user",
    "adapt_google_users",
    "GOOGLE_ADMIN_DIRECTORY_SCOPES",
    "GOOGLE_WORKSPACE_ADMIN_SCOPES",
    "GOOGLE_WORKSPACE_PROVIDER_SLUG",
    "GoogleWorkspaceProvider",
    "google_workspace_provider",
]
