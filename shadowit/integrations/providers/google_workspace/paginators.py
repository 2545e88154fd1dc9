from shadowit.integrations.core.pagination import CursorPagination
from shadowit.integrations.providers.google_workspace.constants import (
    GOOGLE_TOKENS_PAGE_SIZE,
    GOOGLE_USERS_PAGE_SIZE,
)


class GoogleUsersPaginator(CursorPagination):
    def __init__(self):
        super().__init__(
            cursor_response_key="nextPageToken",
            cursor_request_param="pageToken",
            items_key="users",
            max_results_param="maxResults",
            default_page_size=GOOGLE_USERS_PAGE_SIZE,
        )


class GoogleUserTokensPaginator(CursorPagination):
    def __init__(self):
        super().__init__(
            cursor_response_key="nextPageToken",
            cursor_request_param="pageToken",
            items_key="items",
            max_results_param="maxResults",
            default_page_size=GOOGLE_TOKENS_PAGE_SIZE,
        )
