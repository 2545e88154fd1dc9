from pydantic import BaseModel, Field

from shadowit.constants.enums import UserType


class UpsertDirectoryUserDTO(BaseModel):
    organization_id: int = Field(..., gt=0)
    provider_user_id: str
    email: str
    name: str | None = None
    role: str | None = None
    department: str | None = None
    user_type: UserType = UserType.MEMBER
    account_enabled: bool = True
