from shadowit.constants.enums import AuthProvider
from shadowit.integrations.core.exceptions import ProviderNotFoundError
from shadowit.integrations.core.interfaces import IDirectoryProvider
from shadowit.integrations.providers.google_workspace.provider import (
    google_workspace_provider,
)
from shadowit.integrations.providers.microsoft_entra.provider import (
    microsoft_entra_provider,
)

_PROVIDERS: dict[AuthProvider, IDirectoryProvider] = {
    AuthProvider.GOOGLE: google_workspace_provider,
    AuthProvider.MICROSOFT: microsoft_entra_provider,
}


def get_provider(auth_provider: AuthProvider | str) -> IDirectoryProvider:
    try:
        return _PROVIDERS[AuthProvider(auth_provider)]
    except (KeyError, ValueError):
        raise ProviderNotFoundError(str(auth_provider))
