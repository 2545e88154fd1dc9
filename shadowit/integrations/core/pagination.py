from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

from shadowit.integrations.core.types import RequestDefinition


class PaginationStrategy(ABC):
    @abstractmethod
    def get_next_request(
        self, current_response: dict[str, Any], current_request: RequestDefinition
    ) -> RequestDefinition | None:
        pass

    @abstractmethod
    def extract_items(self, response: dict[str, Any]) -> list[Any]:
        pass

    def get_initial_params(self) -> dict[str, Any]:
        return {}


class CursorPagination(PaginationStrategy):
    """Page token echoed back as a query parameter (Google style)."""

    def __init__(
        self,
        cursor_response_key: str,
        cursor_request_param: str,
        items_key: str,
        max_results_param: str | None = None,
        default_page_size: int = 100,
    ):
        self.cursor_response_key = cursor_response_key
        self.cursor_request_param = cursor_request_param
        self.items_key = items_key
        self.max_results_param = max_results_param
        self.default_page_size = default_page_size

    def get_next_request(
        self, current_response: dict[str, Any], current_request: RequestDefinition
    ) -> RequestDefinition | None:
        next_cursor = current_response.get(self.cursor_response_key)
        if not next_cursor:
            return None

        next_params = current_request.params.copy()
        next_params[self.cursor_request_param] = next_cursor
        return replace(current_request, params=next_params)

    def extract_items(self, response: dict[str, Any]) -> list[Any]:
        return response.get(self.items_key, [])

    def get_initial_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.max_results_param:
            params[self.max_results_param] = self.default_page_size
        return params


class NextLinkPagination(PaginationStrategy):
    """Absolute next-page URL in the body (Microsoft Graph ``@odata.nextLink``)."""

    def __init__(
        self,
        next_link_key: str = "@odata.nextLink",
        items_key: str = "value",
        page_size: int | None = None,
    ):
        self.next_link_key = next_link_key
        self.items_key = items_key
        self.page_size = page_size

    def get_next_request(
        self, current_response: dict[str, Any], current_request: RequestDefinition
    ) -> RequestDefinition | None:
        next_link = current_response.get(self.next_link_key)
        if not next_link:
            return None
        # the link already carries $select/$top/$skiptoken
        return replace(current_request, url=next_link, params={})

    def extract_items(self, response: dict[str, Any]) -> list[Any]:
        return response.get(self.items_key, [])

    def get_initial_params(self) -> dict[str, Any]:
        if self.page_size:
            return {"$top": self.page_size}
        return {}
