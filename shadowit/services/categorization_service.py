import logging

import aiohttp

from shadowit.constants.enums import UNCATEGORIZED_VALUES
from shadowit.core.settings import settings
from shadowit.models.application import Application

logger = logging.getLogger(__name__)


def needs_category(app: Application) -> bool:
    return app.category in UNCATEGORIZED_VALUES


class CategorizationService:
    """Client for the downstream categorization collaborator."""

    def __init__(self, categorization_url: str, timeout_seconds: float = 15.0):
        self._url = categorization_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def request_categorization(
        self, organization_id: int, application_ids: list[int]
    ) -> bool:
        if not self._url:
            logger.debug("Categorization endpoint not configured")
            return False
        if not application_ids:
            return False

        payload = {
            "organization_id": organization_id,
            "application_ids": application_ids,
        }
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(self._url, json=payload) as response:
                    if response.status >= 300:
                        logger.warning(
                            f"Categorization request rejected ({response.status}) "
                            f"for organization {organization_id}"
                        )
                        return False
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.warning(f"Categorization request failed for organization {organization_id}: {e}")
            return False

        logger.info(
            "Requested categorization of %d applications for organization %d",
            len(application_ids),
            organization_id,
        )
        return True


categorization_service = CategorizationService(
    categorization_url=settings.categorization_url,
    timeout_seconds=settings.collaborator_timeout_seconds,
)
