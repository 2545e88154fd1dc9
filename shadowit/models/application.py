from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from shadowit.constants.enums import ManagementStatus, RiskLevel


class Application(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    name: str
    provider_app_id: str | None = None
    category: str | None = None
    risk_level: RiskLevel = RiskLevel.LOW
    management_status: str = ManagementStatus.NEWLY_DISCOVERED.value
    total_permissions: int = 0
    all_scopes: list[str] = Field(default_factory=list)
    user_count: int = 0
    created_at: datetime
    updated_at: datetime
