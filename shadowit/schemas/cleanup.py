from pydantic import BaseModel, Field


class CleanupRequest(BaseModel):
    # None runs every organization on the cleanup's provider
    organization_id: int | None = Field(default=None, gt=0)
    dry_run: bool = True


class VerificationRequest(BaseModel):
    organization_id: int = Field(..., gt=0)
    dry_run: bool = True


class RecalculateRiskRequest(BaseModel):
    organization_id: int = Field(..., gt=0)


class RelationshipCleanupRequest(BaseModel):
    organization_id: int = Field(..., gt=0)
    dry_run: bool = True
