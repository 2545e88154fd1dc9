"""Background task that drains the sync job queue and runs stage handlers."""

import asyncio
import logging
import traceback
from collections.abc import Awaitable, Callable

import aiohttp
import asyncpg

from shadowit.database import DatabaseUnavailableError
from shadowit.integrations.core.exceptions import ApiRequestError, QuotaExceededError
from shadowit.workflow.job_queue import QueueMessage, SyncJobQueue

logger = logging.getLogger(__name__)

StageHandler = Callable[[QueueMessage], Awaitable[None]]
DeadLetterHandler = Callable[[QueueMessage, Exception, str], Awaitable[None]]


def is_retryable_error(error: Exception) -> bool:
    """Transient failures worth another delivery; everything else is permanent."""
    if isinstance(error, (QuotaExceededError, DatabaseUnavailableError)):
        return True
    if isinstance(error, ApiRequestError):
        return error.status_code >= 500
    if isinstance(
        error,
        (
            asyncpg.PostgresConnectionError,
            asyncpg.InterfaceError,
            aiohttp.ClientError,
            ConnectionError,
            TimeoutError,
        ),
    ):
        return True
    return False


class SyncQueueConsumer:
    def __init__(
        self,
        queue: SyncJobQueue,
        handler: StageHandler,
        on_dead_letter: DeadLetterHandler,
        retry_delay_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._queue = queue
        self._handler = handler
        self._on_dead_letter = on_dead_letter
        self._retry_delay = retry_delay_seconds
        self._sleep = sleep
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self.run(), name="sync-queue-consumer")
        logger.info("Sync queue consumer started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sync queue consumer stopped")

    async def run(self) -> None:
        while True:
            await self.process_next()

    async def process_next(self) -> None:
        job = await self._queue.get()
        message = job.message
        logger.info(
            f"Processing {message.kind} stage for sync job {message.sync_job_id} "
            f"(attempt {job.attempts}/{self._queue.max_attempts})"
        )
        try:
            await self._handler(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            details = traceback.format_exc()
            if is_retryable_error(e):
                if self._queue.retry(job, e):
                    logger.warning(
                        f"Retryable error on sync job {message.sync_job_id}: {e}"
                    )
                    await self._sleep(self._retry_delay * job.attempts)
                    return
            else:
                logger.error(
                    f"Non-retryable error on sync job {message.sync_job_id}: {e}"
                )
                self._queue.ack(job)

            self._queue.dead_letter(job, e)
            try:
                await self._on_dead_letter(message, e, details)
            except Exception as dead_letter_error:
                logger.error(
                    f"Dead-letter handling failed for sync job {message.sync_job_id}: "
                    f"{dead_letter_error}"
                )
            return

        self._queue.ack(job)
