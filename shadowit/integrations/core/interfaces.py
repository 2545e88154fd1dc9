from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Sequence

from shadowit.constants.enums import AuthProvider
from shadowit.integrations.core.types import (
    AuthContext,
    DirectoryAccount,
    RawGrant,
    TokenResponse,
)


class IDirectoryProvider(ABC):
    """Read-only capability interface over one vendor directory."""

    @property
    @abstractmethod
    def provider(self) -> AuthProvider:
        pass

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        pass

    @abstractmethod
    def list_users(
        self, auth_context: AuthContext
    ) -> AsyncGenerator[list[DirectoryAccount], None]:
        pass

    @abstractmethod
    def list_oauth_grants(
        self, auth_context: AuthContext, users: Sequence[DirectoryAccount]
    ) -> AsyncGenerator[list[RawGrant], None]:
        pass

    @abstractmethod
    async def has_app_assignment(
        self, auth_context: AuthContext, user_provider_id: str, app_name: str
    ) -> bool:
        """Ask the vendor whether this user holds an assignment/grant for the app."""
