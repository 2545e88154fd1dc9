from pydantic import BaseModel, Field

from shadowit.constants.enums import AuthProvider
from shadowit.models.sync_job import SyncJob
from shadowit.workflow.messages import AppMapEntry, RelationsStageMessage, UserAppRelation


class StartSyncRequest(BaseModel):
    organization_id: int = Field(..., gt=0)
    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    user_email: str = Field(..., min_length=3)
    provider: AuthProvider
    scope: str | None = None
    expires_in: int | None = Field(default=None, gt=0)


class RelationsStageRequest(BaseModel):
    organization_id: int = Field(..., gt=0)
    sync_job_id: int = Field(..., gt=0)
    user_app_relations: list[UserAppRelation] = Field(default_factory=list)
    app_map: list[AppMapEntry] = Field(default_factory=list)

    def to_message(self) -> RelationsStageMessage:
        return RelationsStageMessage(**self.model_dump())


class ContinueSyncRequest(BaseModel):
    organization_id: int = Field(..., gt=0)


class SyncJobResponse(BaseModel):
    sync_job_id: int
    organization_id: int
    status: str
    stage: str
    progress: int
    message: str | None

    @classmethod
    def from_job(cls, job: SyncJob) -> "SyncJobResponse":
        return cls(
            sync_job_id=job.id,
            organization_id=job.organization_id,
            status=job.status.value,
            stage=job.stage.value,
            progress=job.progress,
            message=job.message,
        )


class SyncProgressResponse(BaseModel):
    status: str
    progress: int
    message: str | None


class ContinueSyncResponse(BaseModel):
    resumed: bool
    sync_job: SyncJobResponse | None = None


class ExpireStaleResponse(BaseModel):
    expired: int
    sync_job_ids: list[int]
