import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from shadowit.core.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_QUOTA_MARKERS = ("quota", "rate limit")


@dataclass
class RateLimitConfig:
    requests_per_minute: int = 1800
    max_retries: int = 3
    backoff_multiplier: float = 2.0
    base_delay: float = 1.0
    adaptive_threshold: float = 0.8
    window_seconds: float = 60.0
    window_padding: float = 0.1
    adaptive_delay_per_request: float = 0.01
    max_adaptive_delay: float = 1.0

    @classmethod
    def from_settings(cls) -> "RateLimitConfig":
        return cls(
            requests_per_minute=settings.rate_limit_requests_per_minute,
            max_retries=settings.rate_limit_max_retries,
            backoff_multiplier=settings.rate_limit_backoff_multiplier,
            base_delay=settings.rate_limit_base_delay_seconds,
            adaptive_threshold=settings.rate_limit_adaptive_threshold,
        )


def is_quota_error(error: BaseException) -> bool:
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if value == 429 or value == "429":
            return True
    message = str(error).lower()
    return any(marker in message for marker in _QUOTA_MARKERS)


class SlidingWindowRateLimiter:
    """Serializes calls through one queue against a per-minute budget.

    Timestamps are recorded when a call finishes, so any 60 s window holds at
    most ``requests_per_minute`` completed calls. Only quota errors are
    retried; everything else reaches the caller on the first failure.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._request_times: deque[float] = deque()
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None

    @property
    def queue_size(self) -> int:
        return self._queue.qsize() if self._queue else 0

    def recent_request_count(self) -> int:
        self._prune(self._clock())
        return len(self._request_times)

    async def schedule(self, operation: Callable[[], Awaitable[T]]) -> T:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        queue = self._ensure_worker()
        await queue.put((operation, future))
        return await future

    async def close(self) -> None:
        if self._worker and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._queue = None

    def _ensure_worker(self) -> asyncio.Queue:
        loop = asyncio.get_running_loop()
        if (
            self._worker is None
            or self._worker.done()
            or self._worker.get_loop() is not loop
        ):
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._drain(self._queue))
        return self._queue

    async def _drain(self, queue: asyncio.Queue) -> None:
        while True:
            operation, future = await queue.get()
            try:
                if future.cancelled():
                    continue
                result = await self._execute_with_retry(operation)
                if not future.done():
                    future.set_result(result)
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                raise
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            finally:
                queue.task_done()

    async def _execute_with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            await self._wait_for_slot()
            try:
                result = await operation()
            except Exception as e:
                self._request_times.append(self._clock())
                if not is_quota_error(e) or attempt >= self.config.max_retries:
                    raise
                delay = self.config.base_delay * (
                    self.config.backoff_multiplier**attempt
                )
                attempt += 1
                logger.warning(
                    "Quota error, retry %d/%d in %.1fs: %s",
                    attempt,
                    self.config.max_retries,
                    delay,
                    e,
                )
                await self._sleep(delay)
                continue
            self._request_times.append(self._clock())
            return result

    async def _wait_for_slot(self) -> None:
        now = self._clock()
        self._prune(now)

        if len(self._request_times) >= self.config.requests_per_minute:
            oldest = self._request_times[0]
            wait = self.config.window_seconds - (now - oldest) + self.config.window_padding
            if wait > 0:
                logger.info(
                    "Rate limit window full (%d requests), waiting %.2fs",
                    len(self._request_times),
                    wait,
                )
                await self._sleep(wait)
            self._prune(self._clock())

        recent = len(self._request_times)
        if recent > self.config.requests_per_minute * self.config.adaptive_threshold:
            delay = min(
                self.config.max_adaptive_delay,
                recent * self.config.adaptive_delay_per_request,
            )
            await self._sleep(delay)

    def _prune(self, now: float) -> None:
        cutoff = now - self.config.window_seconds
        while self._request_times and self._request_times[0] <= cutoff:
            self._request_times.popleft()


class RateLimiterRegistry:
    def __init__(self):
        self._limiters: dict[str, SlidingWindowRateLimiter] = {}

    def get_limiter(
        self, provider_slug: str, config: RateLimitConfig | None = None
    ) -> SlidingWindowRateLimiter:
        if provider_slug not in self._limiters:
            self._limiters[provider_slug] = SlidingWindowRateLimiter(
                config or RateLimitConfig.from_settings()
            )
        return self._limiters[provider_slug]

    async def close_all(self) -> None:
        for limiter in self._limiters.values():
            await limiter.close()
        self._limiters.clear()


rate_limiter_registry = RateLimiterRegistry()
