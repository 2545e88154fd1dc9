from shadowit.integrations.core.pagination import NextLinkPagination
from shadowit.integrations.providers.microsoft_entra.constants import (
    MICROSOFT_PAGE_SIZE,
)


class GraphCollectionPaginator(NextLinkPagination):
    def __init__(self, page_size: int | None = MICROSOFT_PAGE_SIZE):
        super().__init__(
            next_link_key="@odata.nextLink",
            items_key="value",
            page_size=page_size,
        )
