import logging
from collections.abc import AsyncGenerator, Sequence
from typing import Any

import aiohttp

from shadowit.constants.enums import AuthProvider
from shadowit.core.settings import settings
from shadowit.integrations.core.client import ApiClient
from shadowit.integrations.core.exceptions import (
    ApiRequestError,
    AuthExpiredError,
)
from shadowit.integrations.core.interfaces import IDirectoryProvider
from shadowit.integrations.core.rate_limiter import rate_limiter_registry
from shadowit.integrations.core.types import (
    AuthContext,
    DirectoryAccount,
    HttpMethod,
    MicrosoftAppRoleAssignment,
    RawGrant,
    RequestDefinition,
    TokenResponse,
)
from shadowit.integrations.providers.microsoft_entra.adapters import (
    ServicePrincipal,
    adapt_app_role_assignment,
    adapt_delegated_grant,
    adapt_microsoft_users,
    adapt_service_principal,
)
from shadowit.integrations.providers.microsoft_entra.constants import (
    MICROSOFT_ENTRA_PROVIDER_SLUG,
    MICROSOFT_OAUTH_TOKEN_URL,
    MICROSOFT_PERMISSION_GRANTS_ENDPOINT,
    MICROSOFT_REAUTH_ERROR_MARKERS,
    MICROSOFT_REFRESH_SCOPE,
    MICROSOFT_SERVICE_PRINCIPAL_ENDPOINT,
    MICROSOFT_SERVICE_PRINCIPAL_SELECT,
    MICROSOFT_SERVICE_PRINCIPALS_ENDPOINT,
    MICROSOFT_USER_APP_ROLE_ASSIGNMENTS_ENDPOINT,
    MICROSOFT_USER_PERMISSION_GRANTS_ENDPOINT,
    MICROSOFT_USER_SELECT,
    MICROSOFT_USERS_ENDPOINT,
)
from shadowit.integrations.providers.microsoft_entra.paginators import (
    GraphCollectionPaginator,
)

logger = logging.getLogger(__name__)


class MicrosoftEntraProvider(IDirectoryProvider):
    def __init__(self, client_id: str, client_secret: str):
        self._client_id = client_id
        self._client_secret = client_secret

    @property
    def provider(self) -> AuthProvider:
        return AuthProvider.MICROSOFT

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                MICROSOFT_OAUTH_TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "scope": MICROSOFT_REFRESH_SCOPE,
                },
            ) as response:
                data = await response.json(content_type=None) or {}
                if response.status >= 300:
                    detail = f"{data.get('error', '')} {data.get('error_description', '')}"
                    if response.status in (400, 401) or any(
                        marker in detail for marker in MICROSOFT_REAUTH_ERROR_MARKERS
                    ):
                        raise AuthExpiredError(self.provider, detail.strip())
                    raise ApiRequestError(
                        response.status, f"Microsoft token refresh failed: {detail}"
                    )

                return TokenResponse(
                    access_token=data["access_token"],
                    refresh_token=data.get("refresh_token"),
                    expires_in=data.get("expires_in"),
                    token_type=data.get("token_type", "Bearer"),
                    scope=data.get("scope"),
                )

    async def list_users(
        self, auth_context: AuthContext
    ) -> AsyncGenerator[list[DirectoryAccount], None]:
        request = RequestDefinition(
            method=HttpMethod.GET,
            url=MICROSOFT_USERS_ENDPOINT,
            params={"$select": MICROSOFT_USER_SELECT},
        )
        async with self._create_api_client() as client:
            async for raw_users in client.execute_paginated(
                request, auth_context, GraphCollectionPaginator()
            ):
                logger.debug(f"Fetched page of {len(raw_users)} Microsoft users")
                yield adapt_microsoft_users(raw_users)

    async def list_oauth_grants(
        self, auth_context: AuthContext, users: Sequence[DirectoryAccount]
    ) -> AsyncGenerator[list[RawGrant], None]:
        users_by_id = {u.provider_id: u for u in users}

        async with self._create_api_client() as client:
            principals = await self._fetch_service_principals(client, auth_context)
            logger.info(
                "Loaded %d service principals for %d users",
                len(principals),
                len(users_by_id),
            )

            request = RequestDefinition(
                method=HttpMethod.GET, url=MICROSOFT_PERMISSION_GRANTS_ENDPOINT
            )
            async for raw_grants in client.execute_paginated(
                request, auth_context, GraphCollectionPaginator(page_size=None)
            ):
                delegated: list[RawGrant] = []
                for raw in raw_grants:
                    # tenant-wide admin consent has no principal; not a per-user edge
                    if raw.get("consentType") != "Principal":
                        continue
                    user = users_by_id.get(raw.get("principalId"))
                    if user is None:
                        continue
                    delegated.append(
                        adapt_delegated_grant(
                            raw, principals.get(raw.get("clientId")), user
                        )
                    )
                if delegated:
                    yield delegated

            for user in users_by_id.values():
                assignments = await self._fetch_app_role_assignments(
                    client, auth_context, user, principals
                )
                if assignments:
                    yield assignments

    async def has_app_assignment(
        self, auth_context: AuthContext, user_provider_id: str, app_name: str
    ) -> bool:
        user = DirectoryAccount(provider_id=user_provider_id, email="")
        async with self._create_api_client() as client:
            assignments = await self._fetch_app_role_assignments(
                client, auth_context, user, {}
            )
            if any(a.display_name == app_name for a in assignments):
                return True

            grants = await self._fetch_user_permission_grants(
                client, auth_context, user_provider_id
            )
            for grant in grants:
                principal = await self._fetch_service_principal(
                    client, auth_context, grant.get("clientId")
                )
                if principal and principal.display_name == app_name:
                    return True
        return False

    async def _fetch_service_principals(
        self, client: ApiClient, auth_context: AuthContext
    ) -> dict[str, ServicePrincipal]:
        request = RequestDefinition(
            method=HttpMethod.GET,
            url=MICROSOFT_SERVICE_PRINCIPALS_ENDPOINT,
            params={"$select": MICROSOFT_SERVICE_PRINCIPAL_SELECT},
        )
        principals: dict[str, ServicePrincipal] = {}
        async for page in client.execute_paginated(
            request, auth_context, GraphCollectionPaginator()
        ):
            for raw in page:
                principal = adapt_service_principal(raw)
                if principal.id:
                    principals[principal.id] = principal
        return principals

    async def _fetch_service_principal(
        self, client: ApiClient, auth_context: AuthContext, sp_id: str | None
    ) -> ServicePrincipal | None:
        if not sp_id:
            return None
        request = RequestDefinition(
            method=HttpMethod.GET,
            url=MICROSOFT_SERVICE_PRINCIPAL_ENDPOINT.format(sp_id=sp_id),
            params={"$select": MICROSOFT_SERVICE_PRINCIPAL_SELECT},
        )
        try:
            data = await client.execute_checked(request, auth_context)
        except ApiRequestError as e:
            logger.debug(f"Service principal {sp_id} unavailable: {e.message}")
            return None
        return adapt_service_principal(data)

    async def _fetch_app_role_assignments(
        self,
        client: ApiClient,
        auth_context: AuthContext,
        user: DirectoryAccount,
        principals: dict[str, ServicePrincipal],
    ) -> list[MicrosoftAppRoleAssignment]:
        request = RequestDefinition(
            method=HttpMethod.GET,
            url=MICROSOFT_USER_APP_ROLE_ASSIGNMENTS_ENDPOINT.format(
                user_id=user.provider_id
            ),
        )
        raw_assignments: list[dict[str, Any]] = []
        try:
            async for page in client.execute_paginated(
                request, auth_context, GraphCollectionPaginator(page_size=None)
            ):
                raw_assignments.extend(page)
        except ApiRequestError as e:
            if not e.is_not_found:
                logger.warning(
                    f"Skipping app role assignments for user {user.email or user.provider_id}: {e.message}"
                )
            return []

        return [
            adapt_app_role_assignment(raw, principals.get(raw.get("resourceId")), user)
            for raw in raw_assignments
        ]

    async def _fetch_user_permission_grants(
        self, client: ApiClient, auth_context: AuthContext, user_provider_id: str
    ) -> list[dict[str, Any]]:
        request = RequestDefinition(
            method=HttpMethod.GET,
            url=MICROSOFT_USER_PERMISSION_GRANTS_ENDPOINT.format(
                user_id=user_provider_id
            ),
        )
        grants: list[dict[str, Any]] = []
        try:
            async for page in client.execute_paginated(
                request, auth_context, GraphCollectionPaginator(page_size=None)
            ):
                grants.extend(page)
        except ApiRequestError as e:
            if e.is_not_found:
                return []
            raise
        return grants

    def _create_api_client(self) -> ApiClient:
        limiter = rate_limiter_registry.get_limiter(MICROSOFT_ENTRA_PROVIDER_SLUG)
        return ApiClient(provider=self.provider, rate_limiter=limiter)


microsoft_entra_provider = MicrosoftEntraProvider(
    client_id=settings.microsoft_client_id,
    client_secret=settings.microsoft_client_secret,
)
