import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import asyncpg
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shadowit.core.exceptions import AuthenticationException
from shadowit.core.resource_monitor import resource_monitor
from shadowit.core.security import token_service
from shadowit.core.settings import settings
from shadowit.database import db_connection
from shadowit.dtos.token_dtos import AccessTokenPayload
from shadowit.integrations.core.credentials import CredentialsManager
from shadowit.repositories.application_repository import ApplicationRepository
from shadowit.repositories.directory_user_repository import DirectoryUserRepository
from shadowit.repositories.organization_repository import OrganizationRepository
from shadowit.repositories.sync_job_repository import SyncJobRepository
from shadowit.repositories.user_application_repository import (
    UserApplicationRepository,
)
from shadowit.services.app_verification_service import AppVerificationService
from shadowit.services.directory_service import DirectoryService
from shadowit.services.reconciliation_service import ReconciliationService
from shadowit.services.sync_manager import SyncManager
from shadowit.workflow.job_queue import sync_job_queue

logger = logging.getLogger(__name__)

http_bearer = HTTPBearer(auto_error=False)


async def get_db_session() -> AsyncGenerator[asyncpg.Connection, None]:
    async with db_connection.get_connection() as conn:
        yield conn


def get_organization_repository(
    conn: asyncpg.Connection = Depends(get_db_session),
) -> OrganizationRepository:
    return OrganizationRepository(conn)


def get_sync_job_repository(
    conn: asyncpg.Connection = Depends(get_db_session),
) -> SyncJobRepository:
    return SyncJobRepository(conn)


def get_directory_user_repository(
    conn: asyncpg.Connection = Depends(get_db_session),
) -> DirectoryUserRepository:
    return DirectoryUserRepository(conn)


def get_application_repository(
    conn: asyncpg.Connection = Depends(get_db_session),
) -> ApplicationRepository:
    return ApplicationRepository(conn)


def get_user_application_repository(
    conn: asyncpg.Connection = Depends(get_db_session),
) -> UserApplicationRepository:
    return UserApplicationRepository(conn)


def get_credentials_manager(
    sync_job_repository: SyncJobRepository = Depends(get_sync_job_repository),
) -> CredentialsManager:
    return CredentialsManager(sync_job_repository, settings.encryption_key)


def get_directory_service(
    user_repository: DirectoryUserRepository = Depends(get_directory_user_repository),
) -> DirectoryService:
    return DirectoryService(
        user_repository=user_repository,
        resource_monitor=resource_monitor,
        user_batch_size=settings.user_batch_size,
        batch_delay_seconds=settings.batch_delay_seconds,
    )


def get_sync_manager(
    sync_job_repository: SyncJobRepository = Depends(get_sync_job_repository),
    organization_repository: OrganizationRepository = Depends(
        get_organization_repository
    ),
    application_repository: ApplicationRepository = Depends(
        get_application_repository
    ),
    credentials_manager: CredentialsManager = Depends(get_credentials_manager),
) -> SyncManager:
    return SyncManager(
        sync_job_repository=sync_job_repository,
        organization_repository=organization_repository,
        application_repository=application_repository,
        credentials_manager=credentials_manager,
        job_queue=sync_job_queue,
        stale_after_minutes=settings.sync_stale_after_minutes,
    )


def get_reconciliation_service(
    organization_repository: OrganizationRepository = Depends(
        get_organization_repository
    ),
    sync_job_repository: SyncJobRepository = Depends(get_sync_job_repository),
    user_repository: DirectoryUserRepository = Depends(get_directory_user_repository),
    application_repository: ApplicationRepository = Depends(
        get_application_repository
    ),
    user_application_repository: UserApplicationRepository = Depends(
        get_user_application_repository
    ),
    directory_service: DirectoryService = Depends(get_directory_service),
    credentials_manager: CredentialsManager = Depends(get_credentials_manager),
) -> ReconciliationService:
    return ReconciliationService(
        organization_repository=organization_repository,
        sync_job_repository=sync_job_repository,
        user_repository=user_repository,
        application_repository=application_repository,
        user_application_repository=user_application_repository,
        directory_service=directory_service,
        credentials_manager=credentials_manager,
        resource_monitor=resource_monitor,
        safety_threshold=settings.cleanup_safety_threshold,
        edge_batch_size=settings.cleanup_edge_batch_size,
        user_batch_size=settings.cleanup_user_batch_size,
        org_retries=settings.cleanup_org_retries,
        retry_delay_seconds=settings.cleanup_retry_delay_seconds,
        org_delay_seconds=settings.cleanup_org_delay_seconds,
    )


def get_app_verification_service(
    organization_repository: OrganizationRepository = Depends(
        get_organization_repository
    ),
    user_repository: DirectoryUserRepository = Depends(get_directory_user_repository),
    application_repository: ApplicationRepository = Depends(
        get_application_repository
    ),
    user_application_repository: UserApplicationRepository = Depends(
        get_user_application_repository
    ),
    reconciliation_service: ReconciliationService = Depends(
        get_reconciliation_service
    ),
) -> AppVerificationService:
    return AppVerificationService(
        organization_repository=organization_repository,
        user_repository=user_repository,
        application_repository=application_repository,
        user_application_repository=user_application_repository,
        reconciliation_service=reconciliation_service,
        resource_monitor=resource_monitor,
        min_users=settings.suspicious_min_users,
        org_ratio=settings.suspicious_org_ratio,
        sample_size=settings.suspicious_sample_size,
        legitimacy_ratio=settings.suspicious_legitimacy_ratio,
        delete_batch_size=settings.verification_delete_batch_size,
    )


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(http_bearer)],
) -> AccessTokenPayload:
    if credentials is None:
        raise AuthenticationException("NOT_AUTHENTICATED", "Not authenticated")

    payload = token_service.verify_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationException(
            "INVALID_TOKEN", "Invalid or expired access token"
        )
    return payload


async def verify_cron_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(http_bearer)],
) -> None:
    if credentials is None or not token_service.verify_cron_secret(
        credentials.credentials
    ):
        logger.warning("Rejected cron request with missing or invalid secret")
        raise AuthenticationException("UNAUTHORIZED", "Unauthorized")


CurrentPrincipalDep = Annotated[AccessTokenPayload, Depends(get_current_principal)]
CronAuthDep = Annotated[None, Depends(verify_cron_secret)]
SyncManagerDep = Annotated[SyncManager, Depends(get_sync_manager)]
ReconciliationServiceDep = Annotated[
    ReconciliationService, Depends(get_reconciliation_service)
]
AppVerificationServiceDep = Annotated[
    AppVerificationService, Depends(get_app_verification_service)
]
