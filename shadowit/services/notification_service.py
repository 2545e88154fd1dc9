import logging
import re

import aiohttp

from shadowit.core.settings import settings

logger = logging.getLogger(__name__)

_TRAILING_INC = re.compile(r"\s+inc\.?$", re.IGNORECASE)


def clean_app_name(name: str) -> str:
    """Strip commas and a trailing "Inc"/"Inc." for the signup webhook."""
    if not name:
        return name
    cleaned = name.replace(",", "")
    cleaned = _TRAILING_INC.sub("", cleaned)
    return cleaned.strip()


class NotificationService:
    """Outbound notifications after a sync completes.

    Every method logs and swallows delivery failures; callers schedule them
    with ``fire_and_forget`` and never wait on the outcome.
    """

    def __init__(
        self,
        loops_api_url: str,
        loops_api_key: str,
        sync_completed_template_id: str,
        webhook_url: str,
        webhook_username: str = "",
        webhook_password: str = "",
        timeout_seconds: float = 15.0,
    ):
        self._loops_api_url = loops_api_url
        self._loops_api_key = loops_api_key
        self._template_id = sync_completed_template_id
        self._webhook_url = webhook_url
        self._webhook_auth = (
            aiohttp.BasicAuth(webhook_username, webhook_password)
            if webhook_username
            else None
        )
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def send_transactional_email(
        self,
        recipient_email: str,
        template_id: str,
        variables: dict | None = None,
    ) -> bool:
        if not recipient_email:
            logger.error("No recipient email; skipping notification")
            return False
        if not template_id:
            logger.error("No transactional template configured; skipping notification")
            return False

        payload: dict = {"transactionalId": template_id, "email": recipient_email}
        if variables:
            payload["dataVariables"] = variables
        headers = {"Authorization": f"Bearer {self._loops_api_key}"}

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(
                    self._loops_api_url, json=payload, headers=headers
                ) as response:
                    if response.status >= 300:
                        body = await response.text()
                        logger.error(
                            f"Email to {recipient_email} rejected ({response.status}): {body}"
                        )
                        return False
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.error(f"Email to {recipient_email} failed: {e}")
            return False

        logger.info(f"Sent transactional email {template_id} to {recipient_email}")
        return True

    async def send_sync_completed_email(self, recipient_email: str) -> bool:
        return await self.send_transactional_email(recipient_email, self._template_id)

    async def send_first_sync_webhook(
        self, organization_id: int, app_names: list[str]
    ) -> bool:
        if not self._webhook_url:
            logger.debug("Signup webhook not configured")
            return False

        tool_names = [n for n in (clean_app_name(a) for a in app_names) if n]
        if not tool_names:
            logger.info(f"No applications to report for organization {organization_id}")
            return False

        payload = {"org_id": organization_id, "tool_name": tool_names}
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(
                    self._webhook_url, json=payload, auth=self._webhook_auth
                ) as response:
                    if response.status >= 300:
                        body = await response.text()
                        logger.error(
                            f"Signup webhook rejected ({response.status}): {body}"
                        )
                        return False
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.error(f"Signup webhook failed for organization {organization_id}: {e}")
            return False

        logger.info(
            "Signup webhook sent for organization %d with %d applications",
            organization_id,
            len(tool_names),
        )
        return True


notification_service = NotificationService(
    loops_api_url=settings.loops_api_url,
    loops_api_key=settings.loops_api_key,
    sync_completed_template_id=settings.loops_sync_completed_template_id,
    webhook_url=settings.signup_webhook_url,
    webhook_username=settings.signup_webhook_username,
    webhook_password=settings.signup_webhook_password,
    timeout_seconds=settings.collaborator_timeout_seconds,
)
