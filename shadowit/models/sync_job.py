from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shadowit.constants.enums import AuthProvider, SyncJobStatus, SyncStage


class SyncJob(BaseModel):
    """One pipeline run for one organization (the ``sync_status`` row).

    ``access_token`` and ``refresh_token`` hold Fernet ciphertext; use
    ``CredentialsManager`` to read them.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    user_email: str
    provider: AuthProvider
    status: SyncJobStatus
    stage: SyncStage
    progress: int
    message: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    scope: str | None = None
    token_expiry: datetime | None = None
    error_details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in (SyncJobStatus.COMPLETED, SyncJobStatus.FAILED)
