from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserApplication(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    application_id: int
    scopes: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class UserApplicationWithEmail(UserApplication):
    user_email: str
    user_provider_id: str
