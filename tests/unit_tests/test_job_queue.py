"""Tests for the stage queue and its consumer."""

import aiohttp
import pytest

from shadowit.integrations.core.exceptions import ApiRequestError, QuotaExceededError
from shadowit.workflow.consumer import SyncQueueConsumer, is_retryable_error
from shadowit.workflow.job_queue import JobQueueFullError, SyncJobQueue
from shadowit.workflow.messages import GrantsStageMessage
from tests.fakes import no_sleep


def grants_message(sync_job_id: int = 1) -> GrantsStageMessage:
    return GrantsStageMessage(organization_id=1, sync_job_id=sync_job_id)


class Recorder:
    def __init__(self, failures: list[Exception] | None = None):
        self.failures = list(failures or [])
        self.handled = []
        self.dead = []

    async def handle(self, message) -> None:
        self.handled.append(message)
        if self.failures:
            raise self.failures.pop(0)

    async def dead_letter(self, message, error, details) -> None:
        self.dead.append((message, error))


class TestSyncJobQueue:
    def test_full_queue_rejects(self):
        queue = SyncJobQueue(max_size=1)
        queue.enqueue(grants_message(1))

        with pytest.raises(JobQueueFullError) as exc:
            queue.enqueue(grants_message(2))

        assert exc.value.status_code == 503

    async def test_retry_until_attempts_exhausted(self):
        queue = SyncJobQueue(max_attempts=2)
        queue.enqueue(grants_message())

        job = await queue.get()
        assert queue.retry(job, RuntimeError("first"))
        job = await queue.get()
        assert not queue.retry(job, RuntimeError("second"))
        assert job.last_error == "second"
        assert queue.pending == 0

    async def test_job_stays_in_flight_until_settled(self):
        queue = SyncJobQueue(max_attempts=2)
        queue.enqueue(grants_message(7))
        assert queue.is_in_flight(7)
        assert not queue.is_in_flight(8)

        job = await queue.get()
        assert queue.is_in_flight(7)
        assert queue.retry(job, RuntimeError("first"))
        assert queue.is_in_flight(7)

        job = await queue.get()
        queue.ack(job)
        assert not queue.is_in_flight(7)

    async def test_exhausted_job_is_no_longer_in_flight(self):
        queue = SyncJobQueue(max_attempts=1)
        queue.enqueue(grants_message(7))

        job = await queue.get()

        assert not queue.retry(job, RuntimeError("boom"))
        assert not queue.is_in_flight(7)

    def test_rejected_message_is_not_in_flight(self):
        queue = SyncJobQueue(max_size=1)
        queue.enqueue(grants_message(1))

        with pytest.raises(JobQueueFullError):
            queue.enqueue(grants_message(2))

        assert not queue.is_in_flight(2)


class TestRetryableErrors:
    @pytest.mark.parametrize(
        "error, expected",
        [
            (QuotaExceededError(30), True),
            (ApiRequestError(503, "unavailable"), True),
            (ApiRequestError(400, "bad request"), False),
            (aiohttp.ClientConnectionError(), True),
            (TimeoutError(), True),
            (ValueError("bug"), False),
        ],
    )
    def test_classification(self, error, expected):
        assert is_retryable_error(error) is expected


class TestSyncQueueConsumer:
    """Tests for delivery, retry and dead-lettering."""

    async def test_success_acks(self):
        queue = SyncJobQueue()
        recorder = Recorder()
        consumer = SyncQueueConsumer(queue, recorder.handle, recorder.dead_letter, sleep=no_sleep)
        queue.enqueue(grants_message())

        await consumer.process_next()

        assert len(recorder.handled) == 1
        assert recorder.dead == []
        await queue.join()

    async def test_transient_error_is_redelivered(self):
        queue = SyncJobQueue(max_attempts=3)
        recorder = Recorder([QuotaExceededError(1)])
        consumer = SyncQueueConsumer(queue, recorder.handle, recorder.dead_letter, sleep=no_sleep)
        queue.enqueue(grants_message())

        await consumer.process_next()
        assert queue.pending == 1
        await consumer.process_next()

        assert len(recorder.handled) == 2
        assert recorder.dead == []

    async def test_permanent_error_is_dead_lettered_once(self):
        queue = SyncJobQueue(max_attempts=3)
        recorder = Recorder([ValueError("bug")])
        consumer = SyncQueueConsumer(queue, recorder.handle, recorder.dead_letter, sleep=no_sleep)
        queue.enqueue(grants_message(7))

        await consumer.process_next()

        assert queue.pending == 0
        assert len(recorder.dead) == 1
        message, error = recorder.dead[0]
        assert message.sync_job_id == 7
        assert str(error) == "bug"
        assert len(queue.dead_letters) == 1

    async def test_exhausted_retries_are_dead_lettered(self):
        queue = SyncJobQueue(max_attempts=2)
        recorder = Recorder([QuotaExceededError(1), QuotaExceededError(1)])
        consumer = SyncQueueConsumer(queue, recorder.handle, recorder.dead_letter, sleep=no_sleep)
        queue.enqueue(grants_message())

        await consumer.process_next()
        await consumer.process_next()

        assert len(recorder.handled) == 2
        assert len(recorder.dead) == 1
        assert queue.dead_letters[0].attempts == 2
