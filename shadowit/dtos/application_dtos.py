from pydantic import BaseModel, Field

from shadowit.constants.enums import ManagementStatus, RiskLevel


class UpsertApplicationDTO(BaseModel):
    organization_id: int = Field(..., gt=0)
    name: str
    provider_app_id: str | None = None
    category: str | None = None
    risk_level: RiskLevel = RiskLevel.LOW
    management_status: str = ManagementStatus.NEWLY_DISCOVERED.value
    all_scopes: list[str] = Field(default_factory=list)
    user_count: int = 0


class RecalculatedApplicationDTO(BaseModel):
    """Values rebuilt from the surviving user_applications rows."""

    application_id: int
    all_scopes: list[str]
    total_permissions: int
    user_count: int
    risk_level: RiskLevel
