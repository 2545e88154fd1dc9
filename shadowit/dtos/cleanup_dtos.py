from typing import Literal

from pydantic import BaseModel, Field


class CleanupDetails(BaseModel):
    removed_user_emails: list[str] = Field(default_factory=list)
    removed_application_names: list[str] = Field(default_factory=list)
    relationships_by_app: dict[str, int] = Field(default_factory=dict)


class CleanupResult(BaseModel):
    """Outcome for one organization. Counts are what was (or, on a dry run, would be) removed."""

    organization_id: int
    organization_name: str
    organization_domain: str
    success: bool = False
    error: str | None = None
    error_code: str | None = None
    removed_users: int = 0
    removed_relationships: int = 0
    removed_applications: int = 0
    reason_counts: dict[str, int] = Field(default_factory=dict)
    retry_count: int = 0
    details: CleanupDetails = Field(default_factory=CleanupDetails)


class CleanupSummary(BaseModel):
    total_organizations: int = 0
    successful_organizations: int = 0
    failed_organizations: int = 0
    total_removed_users: int = 0
    total_removed_relationships: int = 0
    total_removed_applications: int = 0
    reason_counts: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_results(cls, results: list[CleanupResult]) -> "CleanupSummary":
        reasons: dict[str, int] = {}
        for result in results:
            for reason, count in result.reason_counts.items():
                reasons[reason] = reasons.get(reason, 0) + count
        return cls(
            total_organizations=len(results),
            successful_organizations=sum(1 for r in results if r.success),
            failed_organizations=sum(1 for r in results if not r.success),
            total_removed_users=sum(r.removed_users for r in results),
            total_removed_relationships=sum(r.removed_relationships for r in results),
            total_removed_applications=sum(r.removed_applications for r in results),
            reason_counts=reasons,
        )


class CleanupReport(BaseModel):
    dry_run: bool
    summary: CleanupSummary
    results: list[CleanupResult]


class RiskRecalculationResult(BaseModel):
    organization_id: int
    applications_updated: int = 0
    # app name -> "OLD -> NEW"
    risk_changes: dict[str, str] = Field(default_factory=dict)


class ApplicationVerification(BaseModel):
    application_id: int
    name: str
    user_count: int
    percentage_of_org: int
    sampled_users: int
    verified_users: int
    legitimacy_ratio: float
    action: Literal["kept", "removed", "would_remove"]
    relationships: int
    removed_relationships: int = 0


class VerificationReport(BaseModel):
    organization_id: int
    organization_name: str
    dry_run: bool
    total_users: int
    suspicious_threshold: int
    suspicious_applications: int
    removed_relationships: int = 0
    removed_application_names: list[str] = Field(default_factory=list)
    applications: list[ApplicationVerification] = Field(default_factory=list)
    recommendation: str


class StaleRelationship(BaseModel):
    user_email: str
    app_name: str


class ApplicationRelationshipCounts(BaseModel):
    keep: int = 0
    remove: int = 0


class RelationshipReconciliationResult(BaseModel):
    """Stored user-application edges checked against the vendor's live grants."""

    organization_id: int
    organization_name: str
    dry_run: bool
    success: bool = False
    error: str | None = None
    total_relationships: int = 0
    kept_relationships: int = 0
    removed_relationships: int = 0
    removed_application_names: list[str] = Field(default_factory=list)
    applications: dict[str, ApplicationRelationshipCounts] = Field(default_factory=dict)
    stale: list[StaleRelationship] = Field(default_factory=list)
