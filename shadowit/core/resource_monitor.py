import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import psutil

from shadowit.core.exceptions import PartialBatchFailure
from shadowit.core.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MB = 1024 * 1024


@dataclass(frozen=True)
class MemorySample:
    rss_mb: float
    heap_mb: float


@dataclass
class BatchResult(Generic[T]):
    processed: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    failed_items: list[T] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0


def sample_process_memory() -> MemorySample:
    process = psutil.Process()
    info = process.memory_info()
    try:
        # USS is the memory that would be freed if the process exited, the
        # closest psutil gets to "heap in use"
        heap = process.memory_full_info().uss
    except psutil.AccessDenied:
        heap = info.rss
    return MemorySample(rss_mb=info.rss / _MB, heap_mb=heap / _MB)


class ResourceMonitor:
    """Samples process memory and sizes batches/concurrency to stay under it."""

    def __init__(
        self,
        max_heap_mb: float,
        max_rss_mb: float,
        emergency_mb: float,
        max_concurrency: int = 2,
        wait_timeout_seconds: float = 30.0,
        poll_interval_seconds: float = 1.0,
        sampler: Callable[[], MemorySample] = sample_process_memory,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._max_heap_mb = max_heap_mb
        self._max_rss_mb = max_rss_mb
        self._emergency_mb = emergency_mb
        self._max_concurrency = max_concurrency
        self._wait_timeout = wait_timeout_seconds
        self._poll_interval = poll_interval_seconds
        self._sampler = sampler
        self._sleep = sleep
        self._clock = clock

    def sample(self) -> MemorySample:
        return self._sampler()

    def memory_ratio(self, sample: MemorySample | None = None) -> float:
        sample = sample or self.sample()
        return max(
            sample.rss_mb / self._max_rss_mb,
            sample.heap_mb / self._max_heap_mb,
        )

    def is_emergency(self, sample: MemorySample | None = None) -> bool:
        sample = sample or self.sample()
        return sample.rss_mb >= self._emergency_mb

    def optimal_concurrency(self, ceiling: int | None = None) -> int:
        """Parallel workers allowed right now, never above ``ceiling``."""
        ceiling = ceiling or self._max_concurrency
        sample = self.sample()
        if self.is_emergency(sample):
            return 1
        ratio = self.memory_ratio(sample)
        if ratio > 0.8:
            return 1
        if ratio > 0.6:
            return min(2, ceiling)
        return ceiling

    def optimal_batch_size(self, default: int) -> int:
        ratio = self.memory_ratio()
        if ratio > 0.7:
            return max(5, default // 2)
        if ratio > 0.5:
            return max(10, (default * 3) // 4)
        return default

    def batch_delay(self, base_seconds: float) -> float:
        ratio = self.memory_ratio()
        if ratio > 0.7:
            return base_seconds * 3
        if ratio > 0.5:
            return base_seconds * 2
        return base_seconds

    async def wait_for_resources(self) -> bool:
        deadline = self._clock() + self._wait_timeout
        while self.is_emergency():
            if self._clock() >= deadline:
                logger.warning(
                    "Memory still above emergency level after %.0fs", self._wait_timeout
                )
                return False
            await self._sleep(self._poll_interval)
        return True

    async def process_in_batches(
        self,
        items: Sequence[T],
        handler: Callable[[list[T]], Awaitable[None]],
        batch_size: int,
        delay_seconds: float = 0.0,
        stage: str = "batch",
    ) -> BatchResult[T]:
        """Run ``handler`` over adaptive chunks of ``items``.

        A failing batch is logged and counted; the remaining batches still run.
        """
        result: BatchResult[T] = BatchResult()
        index = 0
        batch_index = 0
        while index < len(items):
            if not await self.wait_for_resources():
                logger.warning(f"Proceeding with {stage} under memory pressure")
            size = self.optimal_batch_size(batch_size)
            batch = list(items[index : index + size])
            index += len(batch)

            try:
                await handler(batch)
                result.processed += len(batch)
            except Exception as e:
                failure = PartialBatchFailure(stage, batch_index, str(e))
                logger.warning(failure.message)
                result.failed += len(batch)
                result.errors.append(failure.message)
                result.failed_items.extend(batch)

            batch_index += 1
            if index < len(items) and delay_seconds > 0:
                await self._sleep(self.batch_delay(delay_seconds))

        return result


resource_monitor = ResourceMonitor(
    max_heap_mb=settings.resource_max_heap_mb,
    max_rss_mb=settings.resource_max_rss_mb,
    emergency_mb=settings.resource_emergency_mb,
    max_concurrency=settings.resource_max_concurrency,
    wait_timeout_seconds=settings.resource_wait_timeout_seconds,
    poll_interval_seconds=settings.resource_poll_interval_seconds,
)
