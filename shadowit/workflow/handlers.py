"""Stage handlers run by the queue consumer, one pooled connection per message."""

import logging

import asyncpg

from shadowit.core.resource_monitor import resource_monitor
from shadowit.core.settings import settings
from shadowit.database import db_connection
from shadowit.integrations.core.credentials import CredentialsManager
from shadowit.repositories.application_repository import ApplicationRepository
from shadowit.repositories.directory_user_repository import DirectoryUserRepository
from shadowit.repositories.organization_repository import OrganizationRepository
from shadowit.repositories.sync_job_repository import SyncJobRepository
from shadowit.repositories.user_application_repository import (
    UserApplicationRepository,
)
from shadowit.services.categorization_service import categorization_service
from shadowit.services.directory_service import DirectoryService
from shadowit.services.notification_service import notification_service
from shadowit.services.sync_accumulator import CapacityLimits
from shadowit.services.sync_orchestrator import SyncOrchestrator
from shadowit.workflow.job_queue import QueueMessage, SyncJobQueue, sync_job_queue
from shadowit.workflow.messages import GrantsStageMessage, RelationsStageMessage

logger = logging.getLogger(__name__)


def build_sync_orchestrator(
    conn: asyncpg.Connection, job_queue: SyncJobQueue = sync_job_queue
) -> SyncOrchestrator:
    sync_job_repository = SyncJobRepository(conn)
    return SyncOrchestrator(
        sync_job_repository=sync_job_repository,
        organization_repository=OrganizationRepository(conn),
        application_repository=ApplicationRepository(conn),
        user_application_repository=UserApplicationRepository(conn),
        directory_service=DirectoryService(
            user_repository=DirectoryUserRepository(conn),
            resource_monitor=resource_monitor,
            user_batch_size=settings.user_batch_size,
            batch_delay_seconds=settings.batch_delay_seconds,
        ),
        credentials_manager=CredentialsManager(
            sync_job_repository, settings.encryption_key
        ),
        job_queue=job_queue,
        resource_monitor=resource_monitor,
        notification_service=notification_service,
        categorization_service=categorization_service,
        limits=CapacityLimits.from_settings(),
        application_batch_size=settings.application_batch_size,
        relation_batch_size=settings.relation_batch_size,
        batch_delay_seconds=settings.batch_delay_seconds,
    )


async def dispatch_stage(orchestrator: SyncOrchestrator, message: QueueMessage) -> None:
    match message:
        case GrantsStageMessage():
            await orchestrator.run_grants_stage(message)
        case RelationsStageMessage():
            await orchestrator.run_relations_stage(message)
        case _:
            raise TypeError(f"Unsupported stage message: {type(message).__name__}")


async def handle_stage_message(message: QueueMessage) -> None:
    async with db_connection.get_connection() as conn:
        await dispatch_stage(build_sync_orchestrator(conn), message)


async def handle_dead_letter(
    message: QueueMessage, error: Exception, details: str
) -> None:
    async with db_connection.get_connection() as conn:
        orchestrator = build_sync_orchestrator(conn)
        await orchestrator.handle_dead_letter(message, error, details)
