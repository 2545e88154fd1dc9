from datetime import datetime

from pydantic import BaseModel, ConfigDict

from shadowit.constants.enums import UserType


class DirectoryUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    provider_user_id: str
    email: str
    name: str | None = None
    role: str | None = None
    department: str | None = None
    user_type: UserType = UserType.MEMBER
    account_enabled: bool = True
    created_at: datetime
    updated_at: datetime
