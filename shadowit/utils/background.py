import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

# Strong references so the event loop does not drop running tasks
_background_tasks: set[asyncio.Task] = set()


def fire_and_forget(coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
    task = asyncio.create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_on_done)
    return task


def _on_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning(f"Background task {task.get_name()} failed: {error}")


async def drain_background_tasks() -> None:
    """Wait for outstanding fire-and-forget work, used on shutdown and in tests."""
    if _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)
