from pydantic import BaseModel, Field


class UpsertUserApplicationDTO(BaseModel):
    user_id: int = Field(..., gt=0)
    application_id: int = Field(..., gt=0)
    scopes: list[str] = Field(default_factory=list)
