import logging
from datetime import datetime, timedelta, timezone

from shadowit.constants.enums import AuthProvider, SyncStage
from shadowit.core.exceptions import OrganizationNotFoundError, SyncJobNotFoundError
from shadowit.dtos.sync_job_dtos import CreateSyncJobDTO
from shadowit.integrations.core.credentials import CredentialsManager
from shadowit.integrations.core.types import TokenResponse
from shadowit.models.sync_job import SyncJob
from shadowit.repositories.application_repository import ApplicationRepository
from shadowit.repositories.organization_repository import OrganizationRepository
from shadowit.repositories.sync_job_repository import SyncJobRepository
from shadowit.services.progress_tracker import SyncProgressTracker
from shadowit.workflow.job_queue import JobQueueFullError, SyncJobQueue
from shadowit.workflow.messages import GrantsStageMessage, RelationsStageMessage

logger = logging.getLogger(__name__)

CREDENTIALS_UPDATED_MESSAGE = "Credentials updated"
SYNC_TIMED_OUT_MESSAGE = "Sync timed out"


class SyncManager:
    """Entry points that create, resume and expire sync jobs.

    The heavy lifting happens in the queue consumer; everything here returns
    as soon as the job row is written and the next stage is enqueued.
    """

    def __init__(
        self,
        sync_job_repository: SyncJobRepository,
        organization_repository: OrganizationRepository,
        application_repository: ApplicationRepository,
        credentials_manager: CredentialsManager,
        job_queue: SyncJobQueue,
        stale_after_minutes: int = 30,
    ):
        self._sync_job_repo = sync_job_repository
        self._org_repo = organization_repository
        self._app_repo = application_repository
        self._credentials = credentials_manager
        self._job_queue = job_queue
        self._stale_after = timedelta(minutes=stale_after_minutes)

    async def start_sync(
        self,
        organization_id: int,
        user_email: str,
        provider: AuthProvider,
        tokens: TokenResponse,
    ) -> SyncJob:
        org = await self._org_repo.find_by_id(organization_id)
        if org is None:
            raise OrganizationNotFoundError(organization_id)
        if org.auth_provider != provider:
            logger.warning(
                f"Organization {organization_id} is registered with "
                f"{org.auth_provider.value}, starting {provider.value} sync"
            )

        encrypted = self._credentials.encrypt_tokens(tokens)
        job = await self._sync_job_repo.create(
            CreateSyncJobDTO(
                organization_id=organization_id,
                user_email=user_email.lower(),
                provider=provider,
                message=f"Starting {provider.display_name} data sync...",
                access_token=encrypted.access_token,
                refresh_token=encrypted.refresh_token,
                scope=encrypted.scope,
                token_expiry=encrypted.token_expiry,
            )
        )
        logger.info(f"Created sync job {job.id} for organization {organization_id}")

        tracker = SyncProgressTracker(self._sync_job_repo, job)
        if await self._app_repo.count_by_organization(organization_id) > 0:
            # returning organization: the login only refreshes stored tokens
            await tracker.complete(CREDENTIALS_UPDATED_MESSAGE)
            return await self._reload(job.id)

        try:
            self._job_queue.enqueue(
                GrantsStageMessage(organization_id=organization_id, sync_job_id=job.id)
            )
        except JobQueueFullError as e:
            await tracker.fail(e.message, {"code": e.code})
            raise
        return job

    async def accept_relations(self, message: RelationsStageMessage) -> SyncJob:
        """Queue a relations stage handed in from outside the process."""
        job = await self._reload(message.sync_job_id)
        if job.organization_id != message.organization_id:
            raise SyncJobNotFoundError(message.sync_job_id)
        self._job_queue.enqueue(message)
        return job

    async def get_progress(self, sync_job_id: int) -> SyncJob:
        return await self._reload(sync_job_id)

    async def continue_in_progress(self, organization_id: int) -> SyncJob | None:
        job = await self._sync_job_repo.find_latest_in_progress(organization_id)
        if job is None:
            logger.info(f"No in-progress sync for organization {organization_id}")
            return None

        tracker = SyncProgressTracker(self._sync_job_repo, job)
        if self._is_stale(job):
            await self._expire(tracker, job)
            return None

        if self._job_queue.is_in_flight(job.id):
            logger.info(f"Sync job {job.id} already has a stage queued, not re-enqueuing")
            return job

        if job.stage == SyncStage.RELATIONSHIPS_PERSISTED:
            # relations are written; the empty stage only completes the job
            message = RelationsStageMessage(
                organization_id=organization_id, sync_job_id=job.id
            )
        else:
            # every stage write is an upsert, so rerunning from the top is safe
            message = GrantsStageMessage(
                organization_id=organization_id, sync_job_id=job.id
            )
        self._job_queue.enqueue(message)
        logger.info(
            f"Re-enqueued {message.kind} stage for sync job {job.id} at stage {job.stage.value}"
        )
        return job

    async def expire_stale_jobs(self) -> list[SyncJob]:
        cutoff = datetime.now(timezone.utc) - self._stale_after
        stale = await self._sync_job_repo.find_stale_in_progress(cutoff)
        for job in stale:
            await self._expire(SyncProgressTracker(self._sync_job_repo, job), job)
        if stale:
            logger.warning(f"Expired {len(stale)} stale sync jobs")
        return stale

    def _is_stale(self, job: SyncJob) -> bool:
        return job.updated_at < datetime.now(timezone.utc) - self._stale_after

    async def _expire(self, tracker: SyncProgressTracker, job: SyncJob) -> None:
        await tracker.fail(
            SYNC_TIMED_OUT_MESSAGE,
            {
                "reason": "stale",
                "stage": job.stage.value,
                "last_update": job.updated_at.isoformat(),
            },
        )

    async def _reload(self, sync_job_id: int) -> SyncJob:
        job = await self._sync_job_repo.find_by_id(sync_job_id)
        if job is None:
            raise SyncJobNotFoundError(sync_job_id)
        return job
