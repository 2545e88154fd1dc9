from shadowit.integrations.providers.factory import get_provider
from shadowit.integrations.providers.google_workspace import GoogleWorkspaceProvider
from shadowit.integrations.providers.microsoft_entra import MicrosoftEntraProvider

__all__ = ["get_provider", "GoogleWorkspaceProvider", "MicrosoftEntraProvider"]
