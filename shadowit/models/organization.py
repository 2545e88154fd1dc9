from datetime import datetime

from pydantic import BaseModel, ConfigDict

from shadowit.constants.enums import AuthProvider


class Organization(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    domain: str
    auth_provider: AuthProvider
    first_sync_completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
