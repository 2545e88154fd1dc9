from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from shadowit.constants.enums import AuthProvider, SyncJobStatus, SyncStage


class CreateSyncJobDTO(BaseModel):
    organization_id: int = Field(..., gt=0)
    user_email: str
    provider: AuthProvider
    status: SyncJobStatus = SyncJobStatus.IN_PROGRESS
    stage: SyncStage = SyncStage.CONNECTED
    progress: int = 0
    message: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    scope: str | None = None
    token_expiry: datetime | None = None


class UpdateSyncProgressDTO(BaseModel):
    status: SyncJobStatus | None = None
    stage: SyncStage | None = None
    progress: int | None = Field(default=None, ge=-1, le=100)
    message: str | None = None
    error_details: dict[str, Any] | None = None


class UpdateSyncTokensDTO(BaseModel):
    access_token: str
    refresh_token: str | None = None
    scope: str | None = None
    token_expiry: datetime | None = None
