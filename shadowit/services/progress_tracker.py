import logging
from typing import Any

from shadowit.constants.enums import AuthProvider, SyncJobStatus, SyncStage
from shadowit.core.exceptions import InvalidStateTransitionError
from shadowit.dtos.sync_job_dtos import UpdateSyncProgressDTO
from shadowit.models.sync_job import SyncJob
from shadowit.repositories.sync_job_repository import SyncJobRepository

logger = logging.getLogger(__name__)

STAGE_ORDER: dict[SyncStage, int] = {
    SyncStage.CONNECTED: 0,
    SyncStage.USERS_FETCHED: 1,
    SyncStage.GRANTS_FETCHED: 2,
    SyncStage.APPLICATIONS_GROUPED: 3,
    SyncStage.APPLICATIONS_PERSISTED: 4,
    SyncStage.RELATIONSHIPS_PERSISTED: 5,
    SyncStage.COMPLETED: 6,
}

STAGE_PROGRESS: dict[SyncStage, int] = {
    SyncStage.CONNECTED: 10,
    SyncStage.USERS_FETCHED: 30,
    SyncStage.GRANTS_FETCHED: 50,
    SyncStage.APPLICATIONS_GROUPED: 60,
    SyncStage.APPLICATIONS_PERSISTED: 75,
    SyncStage.RELATIONSHIPS_PERSISTED: 95,
    SyncStage.COMPLETED: 100,
}

STAGE_MESSAGES: dict[SyncStage, str] = {
    SyncStage.CONNECTED: "Starting {provider} data sync...",
    SyncStage.USERS_FETCHED: "Found {count} users...",
    SyncStage.GRANTS_FETCHED: "Discovering applications and permissions...",
    SyncStage.APPLICATIONS_GROUPED: "Processing {count} application connections...",
    SyncStage.APPLICATIONS_PERSISTED: "Saved {count} applications...",
    SyncStage.RELATIONSHIPS_PERSISTED: "Finalizing data synchronization...",
    SyncStage.COMPLETED: "{provider} data sync completed",
}

# Forward edges that skip stages: credentials-only logins, and runs that end
# without a relations stage
_SHORTCUTS: set[tuple[SyncStage, SyncStage]] = {
    (SyncStage.CONNECTED, SyncStage.COMPLETED),
    (SyncStage.APPLICATIONS_PERSISTED, SyncStage.COMPLETED),
}

FAILED_PROGRESS = -1


class SyncProgressTracker:
    """Writes stage, progress and message on every pipeline transition.

    Progress never goes down. Replaying a stage the job already passed is a
    no-op, so a redelivered queue message does not rewind the record.
    """

    def __init__(self, repository: SyncJobRepository, sync_job: SyncJob):
        self._repository = repository
        self._job_id = sync_job.id
        self._provider = AuthProvider(sync_job.provider)
        self.stage = sync_job.stage
        self.progress = sync_job.progress
        self.status = sync_job.status

    @property
    def is_terminal(self) -> bool:
        return self.status in (SyncJobStatus.COMPLETED, SyncJobStatus.FAILED)

    def can_advance(self, target: SyncStage) -> bool:
        if self.is_terminal or target is SyncStage.FAILED:
            return False
        current = STAGE_ORDER[self.stage]
        wanted = STAGE_ORDER[target]
        return wanted <= current + 1 or (self.stage, target) in _SHORTCUTS

    async def advance(
        self, target: SyncStage, message: str | None = None, **fmt: Any
    ) -> None:
        if not self.can_advance(target):
            raise InvalidStateTransitionError(self.stage.value, target.value)

        if STAGE_ORDER[target] < STAGE_ORDER[self.stage]:
            logger.debug(
                f"Sync job {self._job_id} already past {target.value}, skipping"
            )
            return

        if message is None:
            message = STAGE_MESSAGES[target].format(
                provider=self._provider.display_name, **fmt
            )
        progress = max(self.progress, STAGE_PROGRESS[target])
        status = (
            SyncJobStatus.COMPLETED
            if target is SyncStage.COMPLETED
            else SyncJobStatus.IN_PROGRESS
        )
        await self._write(
            UpdateSyncProgressDTO(
                status=status, stage=target, progress=progress, message=message
            )
        )
        logger.info(f"Sync job {self._job_id} -> {target.value} ({progress}%): {message}")
        self.stage = target
        self.progress = progress
        self.status = status

    async def complete(self, message: str | None = None) -> None:
        await self.advance(SyncStage.COMPLETED, message=message)

    async def fail(self, message: str, error_details: dict[str, Any] | None = None) -> None:
        if self.is_terminal:
            logger.warning(
                f"Sync job {self._job_id} already {self.status.value}; not marking failed"
            )
            return
        await self._write(
            UpdateSyncProgressDTO(
                status=SyncJobStatus.FAILED,
                stage=SyncStage.FAILED,
                progress=FAILED_PROGRESS,
                message=message,
                error_details=error_details,
            )
        )
        logger.error(f"Sync job {self._job_id} failed at {self.stage.value}: {message}")
        self.stage = SyncStage.FAILED
        self.progress = FAILED_PROGRESS
        self.status = SyncJobStatus.FAILED

    async def _write(self, dto: UpdateSyncProgressDTO) -> None:
        await self._repository.update_progress(self._job_id, dto)
