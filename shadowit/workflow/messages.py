from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class UserAppRelation(BaseModel):
    app_name: str
    # vendor user id of the grant subject
    user_id: str
    user_email: str
    scopes: list[str] = Field(default_factory=list)


class AppMapEntry(BaseModel):
    app_name: str
    app_id: int


class GrantsStageMessage(BaseModel):
    """Runs users, grants and application persistence for a sync job."""

    kind: Literal["grants"] = "grants"
    organization_id: int = Field(..., gt=0)
    sync_job_id: int = Field(..., gt=0)


class RelationsStageMessage(BaseModel):
    kind: Literal["relations"] = "relations"
    organization_id: int = Field(..., gt=0)
    sync_job_id: int = Field(..., gt=0)
    user_app_relations: list[UserAppRelation] = Field(default_factory=list)
    app_map: list[AppMapEntry] = Field(default_factory=list)


StageMessage = Annotated[
    Union[GrantsStageMessage, RelationsStageMessage],
    Field(discriminator="kind"),
]
