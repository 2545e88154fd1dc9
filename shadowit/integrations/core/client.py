import logging
from collections.abc import AsyncGenerator
from functools import partial
from types import TracebackType
from typing import Any, Self

import aiohttp

from shadowit.constants.enums import AuthProvider
from shadowit.integrations.core.exceptions import (
    ApiRequestError,
    AuthExpiredError,
    QuotaExceededError,
)
from shadowit.integrations.core.pagination import PaginationStrategy
from shadowit.integrations.core.rate_limiter import SlidingWindowRateLimiter
from shadowit.integrations.core.types import (
    ApiResponse,
    AuthContext,
    HttpMethod,
    RequestDefinition,
)

logger = logging.getLogger(__name__)


class ApiClient:
    def __init__(
        self,
        provider: AuthProvider,
        rate_limiter: SlidingWindowRateLimiter,
        timeout: float = 30.0,
        max_retries: int = 3,
    ):
        self._provider = provider
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._client: aiohttp.ClientSession | None = None
        self._rate_limiter = rate_limiter
        self._max_retries = max_retries

    async def __aenter__(self) -> Self:
        self._client = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _get_client(self) -> aiohttp.ClientSession:
        if self._client is None or self._client.closed:
            logger.debug("Creating new aiohttp ClientSession")
            self._client = aiohttp.ClientSession(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.closed:
            await self._client.close()
            self._client = None

    async def execute(
        self,
        request: RequestDefinition,
        auth_context: AuthContext,
    ) -> ApiResponse:
        headers = self._build_headers(request, auth_context)
        return await self._execute_with_retry(request, headers)

    async def execute_checked(
        self,
        request: RequestDefinition,
        auth_context: AuthContext,
    ) -> dict[str, Any]:
        response = await self.execute(request, auth_context)
        self._raise_for_status(response, request)
        return response.data

    async def execute_paginated(
        self,
        request: RequestDefinition,
        auth_context: AuthContext,
        paginator: PaginationStrategy,
    ) -> AsyncGenerator[list[Any], None]:
        current_request = RequestDefinition(
            method=request.method,
            url=request.url,
            params={**paginator.get_initial_params(), **request.params},
            headers=request.headers,
            body=request.body,
        )
        logger.debug(
            "Starting paginated request to %s with params %s",
            current_request.url,
            current_request.params,
        )

        page = 0
        while current_request is not None:
            data = await self.execute_checked(current_request, auth_context)
            page += 1

            items = paginator.extract_items(data)
            if items:
                yield items

            current_request = paginator.get_next_request(data, current_request)

        logger.debug("Paginated request to %s finished after %d pages", request.url, page)

    def _raise_for_status(
        self, response: ApiResponse, request: RequestDefinition
    ) -> None:
        if response.is_success:
            return
        if response.is_unauthorized:
            raise AuthExpiredError(self._provider, f"401 from {request.url}")
        raise ApiRequestError(
            response.status_code,
            f"API request to {request.url} failed: {response.data}",
        )

    def _build_headers(
        self, request: RequestDefinition, auth_context: AuthContext
    ) -> dict[str, str]:
        headers = {
            "Authorization": auth_context.authorization_header,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        headers.update(request.headers)
        return headers

    async def _execute_with_retry(
        self, request: RequestDefinition, headers: dict[str, str]
    ) -> ApiResponse:
        # Quota retries happen inside the rate limiter; this loop only
        # covers transport failures and 5xx responses.
        last_exception: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                response = await self._rate_limiter.schedule(
                    partial(self._send, request, headers)
                )
            except aiohttp.ClientError as e:
                last_exception = e
                logger.warning(f"Request error: {e}, retry {attempt + 1}")
                continue

            if response.is_server_error and attempt < self._max_retries - 1:
                logger.warning(
                    f"Server error {response.status_code} from {request.url}, retry {attempt + 1}"
                )
                continue

            return response

        raise ApiRequestError(503, f"Request to {request.url} failed: {last_exception}")

    async def _send(
        self, request: RequestDefinition, headers: dict[str, str]
    ) -> ApiResponse:
        response = await self._make_request(request, headers)
        if response.is_rate_limited:
            raise QuotaExceededError(self._parse_retry_after(response.headers))
        if response.status_code == 403 and self._mentions_quota(response.data):
            raise QuotaExceededError(message="Quota exceeded")
        return response

    async def _make_request(
        self, request: RequestDefinition, headers: dict[str, str]
    ) -> ApiResponse:
        client = await self._get_client()

        kwargs: dict[str, Any] = {
            "headers": headers,
            "params": request.params or None,
        }
        if request.body and request.method in (
            HttpMethod.POST,
            HttpMethod.PUT,
            HttpMethod.PATCH,
        ):
            kwargs["json"] = request.body

        async with client.request(
            request.method.value, request.url, **kwargs
        ) as response:
            try:
                data = await response.json()
            except aiohttp.ContentTypeError:
                data = {}

            return ApiResponse(
                status_code=response.status,
                data=data or {},
                headers={k: v for k, v in response.headers.items()},
            )

    @staticmethod
    def _mentions_quota(data: dict[str, Any]) -> bool:
        error = data.get("error") if isinstance(data, dict) else None
        text = str(error).lower() if error else ""
        return "quota" in text or "rate limit" in text

    def _parse_retry_after(self, headers: dict[str, str]) -> int | None:
        retry_after = headers.get("Retry-After") or headers.get("retry-after")
        if retry_after:
            try:
                return int(retry_after)
            except ValueError:
                pass
        return None
