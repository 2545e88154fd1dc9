import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from shadowit.core.logging import setup_logging
from shadowit.core.settings import settings
from shadowit.database import db_connection
from shadowit.integrations.core.rate_limiter import rate_limiter_registry
from shadowit.utils.background import drain_background_tasks
from shadowit.workflow.consumer import SyncQueueConsumer
from shadowit.workflow.handlers import handle_dead_letter, handle_stage_message
from shadowit.workflow.job_queue import sync_job_queue

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging(settings.log_level)
    logger.info("Application startup initiated")
    await db_connection.connect()

    consumer = SyncQueueConsumer(
        sync_job_queue,
        handle_stage_message,
        handle_dead_letter,
        retry_delay_seconds=settings.job_queue_retry_delay_seconds,
    )
    consumer.start()
    app.state.sync_consumer = consumer
    yield
    logger.info("Application shutdown initiated")
    await consumer.stop()
    await drain_background_tasks()
    await rate_limiter_registry.close_all()
    await db_connection.close()
