import asyncio
import logging
from collections.abc import AsyncGenerator, Sequence
from typing import Any

import aiohttp

from shadowit.constants.enums import AuthProvider
from shadowit.core.resource_monitor import ResourceMonitor, resource_monitor
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
    GoogleTokenGrant,
    HttpMethod,
    RawGrant,
    RequestDefinition,
    TokenResponse,
)
from shadowit.integrations.providers.google_workspace.adapters import (
    adapt_google_tokens,
    adapt_google_users,
)
from shadowit.integrations.providers.google_workspace.constants import (
    GOOGLE_OAUTH_TOKEN_URL,
    GOOGLE_USER_TOKEN_ENDPOINT,
    GOOGLE_USER_TOKENS_ENDPOINT,
    GOOGLE_USERS_ENDPOINT,
    GOOGLE_WORKSPACE_PROVIDER_SLUG,
)
from shadowit.integrations.providers.google_workspace.paginators import (
    GoogleUsersPaginator,
    GoogleUserTokensPaginator,
)
from shadowit.utils.batching import chunked

logger = logging.getLogger(__name__)


class GoogleWorkspaceProvider(IDirectoryProvider):
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        user_batch_size: int = 25,
        concurrent_batches: int = 5,
        batch_stagger_seconds: float = 0.5,
        group_pause_seconds: float = 2.0,
        resource_monitor: ResourceMonitor | None = None,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._user_batch_size = user_batch_size
        self._concurrent_batches = concurrent_batches
        self._batch_stagger_seconds = batch_stagger_seconds
        self._group_pause_seconds = group_pause_seconds
        self._resource_monitor = resource_monitor

    @property
    def provider(self) -> AuthProvider:
        return AuthProvider.GOOGLE

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                GOOGLE_OAUTH_TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
            ) as response:
                data = await response.json(content_type=None)
                if response.status in (400, 401):
                    raise AuthExpiredError(
                        self.provider, (data or {}).get("error", str(response.status))
                    )
                if response.status >= 300:
                    raise ApiRequestError(
                        response.status, f"Google token refresh failed: {data}"
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
            url=GOOGLE_USERS_ENDPOINT,
            params={"customer": "my_customer", "orderBy": "email"},
        )
        async with self._create_api_client() as client:
            async for raw_users in client.execute_paginated(
                request, auth_context, GoogleUsersPaginator()
            ):
                logger.debug(f"Fetched page of {len(raw_users)} Google users")
                yield adapt_google_users(raw_users)

    async def list_oauth_grants(
        self, auth_context: AuthContext, users: Sequence[DirectoryAccount]
    ) -> AsyncGenerator[list[RawGrant], None]:
        batches = list(chunked(list(users), self._user_batch_size))
        logger.info(
            "Fetching Google tokens for %d users in %d batches",
            len(users),
            len(batches),
        )

        async with self._create_api_client() as client:
            start = 0
            while start < len(batches):
                group = batches[start : start + self._group_width()]
                start += len(group)
                results = await asyncio.gather(
                    *(
                        self._fetch_batch_tokens(client, auth_context, batch, index)
                        for index, batch in enumerate(group)
                    )
                )
                grants: list[RawGrant] = [g for batch in results for g in batch]
                if grants:
                    yield grants
                if start < len(batches):
                    await asyncio.sleep(self._group_pause_seconds)

    async def has_app_assignment(
        self, auth_context: AuthContext, user_provider_id: str, app_name: str
    ) -> bool:
        user = DirectoryAccount(provider_id=user_provider_id, email="")
        async with self._create_api_client() as client:
            tokens = await self._fetch_user_tokens(client, auth_context, user)
        return any(t.display_name == app_name for t in tokens)

    async def _fetch_batch_tokens(
        self,
        client: ApiClient,
        auth_context: AuthContext,
        batch: list[DirectoryAccount],
        index: int,
    ) -> list[GoogleTokenGrant]:
        if index:
            await asyncio.sleep(index * self._batch_stagger_seconds)
        per_user = await asyncio.gather(
            *(self._fetch_user_tokens(client, auth_context, user) for user in batch)
        )
        return [grant for grants in per_user for grant in grants]

    async def _fetch_user_tokens(
        self, client: ApiClient, auth_context: AuthContext, user: DirectoryAccount
    ) -> list[GoogleTokenGrant]:
        request = RequestDefinition(
            method=HttpMethod.GET,
            url=GOOGLE_USER_TOKENS_ENDPOINT.format(user_key=user.provider_id),
        )
        raw_tokens: list[dict[str, Any]] = []
        try:
            async for page in client.execute_paginated(
                request, auth_context, GoogleUserTokensPaginator()
            ):
                raw_tokens.extend(page)
        except ApiRequestError as e:
            if e.is_not_found:
                return []
            logger.warning(f"Skipping tokens for user {user.email or user.provider_id}: {e.message}")
            return []

        detailed = [
            await self._fetch_token_detail(client, auth_context, user, raw)
            for raw in raw_tokens
        ]
        return adapt_google_tokens(detailed, user)

    async def _fetch_token_detail(
        self,
        client: ApiClient,
        auth_context: AuthContext,
        user: DirectoryAccount,
        raw_token: dict[str, Any],
    ) -> dict[str, Any]:
        client_id = raw_token.get("clientId")
        if not client_id:
            return raw_token
        request = RequestDefinition(
            method=HttpMethod.GET,
            url=GOOGLE_USER_TOKEN_ENDPOINT.format(
                user_key=user.provider_id, client_id=client_id
            ),
        )
        try:
            detail = await client.execute_checked(request, auth_context)
        except ApiRequestError as e:
            logger.debug(f"Token detail unavailable for {client_id}: {e.message}")
            return raw_token
        return {**raw_token, **detail}

    def _group_width(self) -> int:
        if self._resource_monitor is None:
            return self._concurrent_batches
        return self._resource_monitor.optimal_concurrency(self._concurrent_batches)

    def _create_api_client(self) -> ApiClient:
        limiter = rate_limiter_registry.get_limiter(GOOGLE_WORKSPACE_PROVIDER_SLUG)
        return ApiClient(provider=self.provider, rate_limiter=limiter)


google_workspace_provider = GoogleWorkspaceProvider(
    client_id=settings.google_client_id,
    client_secret=settings.google_client_secret,
    user_batch_size=settings.user_batch_size,
    concurrent_batches=settings.google_user_group_concurrency,
    batch_stagger_seconds=settings.google_batch_stagger_seconds,
    group_pause_seconds=settings.google_group_pause_seconds,
    resource_monitor=resource_monitor,
)
