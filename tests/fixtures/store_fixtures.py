"""Fixtures for the in-memory store, repositories and services built on them."""

from unittest.mock import AsyncMock

import pytest
from cryptography.fernet import Fernet

from shadowit.constants.enums import AuthProvider
from shadowit.dtos.sync_job_dtos import CreateSyncJobDTO
from shadowit.integrations.core.credentials import CredentialsManager
from shadowit.integrations.core.types import TokenResponse
from shadowit.services.directory_service import DirectoryService
from shadowit.services.sync_accumulator import CapacityLimits
from shadowit.services.sync_manager import SyncManager
from shadowit.services.sync_orchestrator import SyncOrchestrator
from shadowit.utils.background import drain_background_tasks
from shadowit.workflow.consumer import SyncQueueConsumer
from shadowit.workflow.handlers import dispatch_stage
from shadowit.workflow.job_queue import SyncJobQueue
from tests.consts import ALICE
from tests.fakes import (
    FakeApplicationRepository,
    FakeDirectoryUserRepository,
    FakeOrganizationRepository,
    FakeStore,
    FakeSyncJobRepository,
    FakeUserApplicationRepository,
    idle_resource_monitor,
    no_sleep,
)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def org_repo(store):
    return FakeOrganizationRepository(store)


@pytest.fixture
def sync_job_repo(store):
    return FakeSyncJobRepository(store)


@pytest.fixture
def user_repo(store):
    return FakeDirectoryUserRepository(store)


@pytest.fixture
def app_repo(store):
    return FakeApplicationRepository(store)


@pytest.fixture
def edge_repo(store):
    return FakeUserApplicationRepository(store)


@pytest.fixture
def monitor():
    return idle_resource_monitor()


@pytest.fixture
def credentials(sync_job_repo):
    return CredentialsManager(sync_job_repo, Fernet.generate_key().decode())


@pytest.fixture
def directory_service(user_repo, monitor):
    return DirectoryService(user_repo, monitor, user_batch_size=10, batch_delay_seconds=0)


@pytest.fixture
def job_queue():
    return SyncJobQueue(max_size=10, max_attempts=3)


@pytest.fixture
def notifications():
    service = AsyncMock()
    service.send_sync_completed_email.return_value = True
    service.send_first_sync_webhook.return_value = True
    return service


@pytest.fixture
def categorization():
    service = AsyncMock()
    service.request_categorization.return_value = True
    return service


@pytest.fixture
def limits():
    return CapacityLimits(max_tokens=100, max_applications=20, max_relations=100, max_users=100)


@pytest.fixture
def google_org(store):
    return store.add_organization("Acme", "acme.com", AuthProvider.GOOGLE)


@pytest.fixture
def microsoft_org(store):
    return store.add_organization("Contoso", "contoso.com", AuthProvider.MICROSOFT)


@pytest.fixture
def create_job(sync_job_repo, credentials):
    """Create an in-progress sync job holding an encrypted refresh token."""

    async def _create(org, refresh_token: str | None = "refresh-1", user_email: str = ALICE):
        encrypted = credentials.encrypt_tokens(
            TokenResponse(access_token="access-0", refresh_token=refresh_token, expires_in=3600)
        )
        return await sync_job_repo.create(
            CreateSyncJobDTO(
                organization_id=org.id,
                user_email=user_email,
                provider=org.auth_provider,
                access_token=encrypted.access_token,
                refresh_token=encrypted.refresh_token,
                token_expiry=encrypted.token_expiry,
            )
        )

    return _create


@pytest.fixture
def make_orchestrator(
    sync_job_repo,
    org_repo,
    app_repo,
    edge_repo,
    directory_service,
    credentials,
    job_queue,
    monitor,
    notifications,
    categorization,
    limits,
):
    def _make(provider, limits_override: CapacityLimits | None = None) -> SyncOrchestrator:
        return SyncOrchestrator(
            sync_job_repository=sync_job_repo,
            organization_repository=org_repo,
            application_repository=app_repo,
            user_application_repository=edge_repo,
            directory_service=directory_service,
            credentials_manager=credentials,
            job_queue=job_queue,
            resource_monitor=monitor,
            notification_service=notifications,
            categorization_service=categorization,
            limits=limits_override or limits,
            application_batch_size=10,
            relation_batch_size=10,
            batch_delay_seconds=0,
            provider_resolver=lambda _: provider,
        )

    return _make


@pytest.fixture
def sync_manager(sync_job_repo, org_repo, app_repo, credentials, job_queue):
    return SyncManager(
        sync_job_repository=sync_job_repo,
        organization_repository=org_repo,
        application_repository=app_repo,
        credentials_manager=credentials,
        job_queue=job_queue,
        stale_after_minutes=30,
    )


@pytest.fixture
def drain_queue(job_queue):
    """Deliver queued stage messages to an orchestrator until the queue is empty."""

    async def _drain(orchestrator: SyncOrchestrator) -> int:
        consumer = SyncQueueConsumer(
            job_queue,
            lambda message: dispatch_stage(orchestrator, message),
            orchestrator.handle_dead_letter,
            sleep=no_sleep,
        )
        delivered = 0
        while job_queue.pending:
            await consumer.process_next()
            delivered += 1
        await drain_background_tasks()
        return delivered

    return _drain
