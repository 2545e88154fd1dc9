import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone

from shadowit.core.exceptions import AppException
from shadowit.core.settings import settings
from shadowit.workflow.messages import GrantsStageMessage, RelationsStageMessage

logger = logging.getLogger(__name__)

QueueMessage = GrantsStageMessage | RelationsStageMessage


class JobQueueFullError(AppException):
    def __init__(self, max_size: int):
        super().__init__(
            code="JOB_QUEUE_FULL",
            message=f"Sync job queue is full ({max_size} pending stages)",
            status_code=503,
        )


@dataclass
class QueuedJob:
    message: QueueMessage
    attempts: int = 0
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_error: str | None = None


class SyncJobQueue:
    """In-process queue of typed stage messages.

    Delivery is at-least-once: a job handed out by ``get`` stays counted as
    in flight until ``ack``, or until ``retry`` gives up on it.
    ``is_in_flight`` tells whether a sync job has any stage queued or running.
    """

    def __init__(self, max_size: int = 1000, max_attempts: int = 3):
        self._queue: asyncio.Queue[QueuedJob] = asyncio.Queue(maxsize=max_size)
        self._max_size = max_size
        self.max_attempts = max_attempts
        self.dead_letters: list[QueuedJob] = []
        # sync job id -> stages queued or being handled
        self._in_flight: Counter[int] = Counter()

    def enqueue(self, message: QueueMessage) -> QueuedJob:
        job = QueuedJob(message=message)
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull as e:
            raise JobQueueFullError(self._max_size) from e
        self._in_flight[message.sync_job_id] += 1
        logger.info(
            f"Enqueued {message.kind} stage for sync job {message.sync_job_id}"
        )
        return job

    async def get(self) -> QueuedJob:
        job = await self._queue.get()
        job.attempts += 1
        return job

    def ack(self, job: QueuedJob) -> None:
        self._queue.task_done()
        self._settle(job)

    def retry(self, job: QueuedJob, error: Exception) -> bool:
        """Requeue a failed job. Returns False once attempts are exhausted."""
        job.last_error = str(error)
        self._queue.task_done()
        if job.attempts >= self.max_attempts:
            self._settle(job)
            return False
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.error(
                f"Queue full, cannot retry {job.message.kind} stage "
                f"for sync job {job.message.sync_job_id}"
            )
            self._settle(job)
            return False
        return True

    def dead_letter(self, job: QueuedJob, error: Exception) -> None:
        job.last_error = str(error)
        self.dead_letters.append(job)
        logger.error(
            f"Dead-lettered {job.message.kind} stage for sync job "
            f"{job.message.sync_job_id} after {job.attempts} attempts: {error}"
        )

    def is_in_flight(self, sync_job_id: int) -> bool:
        return self._in_flight[sync_job_id] > 0

    def _settle(self, job: QueuedJob) -> None:
        sync_job_id = job.message.sync_job_id
        self._in_flight[sync_job_id] -= 1
        if self._in_flight[sync_job_id] <= 0:
            del self._in_flight[sync_job_id]

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def join(self) -> None:
        await self._queue.join()


sync_job_queue = SyncJobQueue(
    max_size=settings.job_queue_max_size,
    max_attempts=settings.job_queue_max_attempts,
)
