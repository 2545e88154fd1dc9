import logging

from fastapi import APIRouter

from shadowit.constants.enums import CleanupKind
from shadowit.core.dependencies import (
    AppVerificationServiceDep,
    CronAuthDep,
    ReconciliationServiceDep,
)
from shadowit.core.exceptions import (
    CredentialsNotFoundError,
    OrganizationNotFoundError,
    SafetyThresholdTrippedError,
)
from shadowit.schemas.cleanup import (
    CleanupRequest,
    RecalculateRiskRequest,
    RelationshipCleanupRequest,
    VerificationRequest,
)
from shadowit.schemas.common import (
    ApiResponse,
    create_error_response,
    create_success_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cleanup", tags=["cleanup"])


async def _run_cleanup(
    kind: CleanupKind, request: CleanupRequest, service: ReconciliationServiceDep
):
    logger.info(
        "Cleanup %s requested (organization=%s, dry_run=%s)",
        kind.value,
        request.organization_id,
        request.dry_run,
    )
    try:
        report = await service.run(
            kind, organization_id=request.organization_id, dry_run=request.dry_run
        )
        return create_success_response(data=report.model_dump(mode="json"))

    except OrganizationNotFoundError as e:
        return create_error_response(
            code=e.code,
            message=f"{kind.provider.display_name} organization not found",
            status_code=e.status_code,
        )


@router.post("/guest-disabled-users", response_model=ApiResponse)
async def cleanup_guest_disabled_users(
    request: CleanupRequest,
    _: CronAuthDep,
    service: ReconciliationServiceDep,
):
    return await _run_cleanup(CleanupKind.GUEST_DISABLED, request, service)


@router.post("/google-suspended-users", response_model=ApiResponse)
async def cleanup_google_suspended_users(
    request: CleanupRequest,
    _: CronAuthDep,
    service: ReconciliationServiceDep,
):
    return await _run_cleanup(CleanupKind.SUSPENDED_ARCHIVED, request, service)


@router.post("/stale-relationships", response_model=ApiResponse)
async def cleanup_stale_relationships(
    request: RelationshipCleanupRequest,
    _: CronAuthDep,
    service: ReconciliationServiceDep,
):
    try:
        result = await service.reconcile_relationships(
            request.organization_id, dry_run=request.dry_run
        )
        return create_success_response(data=result.model_dump(mode="json"))

    except (
        OrganizationNotFoundError,
        CredentialsNotFoundError,
        SafetyThresholdTrippedError,
    ) as e:
        return create_error_response(
            code=e.code,
            message=e.message,
            status_code=e.status_code,
        )


@router.post("/suspicious-applications", response_model=ApiResponse)
async def verify_suspicious_applications(
    request: VerificationRequest,
    _: CronAuthDep,
    service: AppVerificationServiceDep,
):
    try:
        report = await service.verify_organization(
            request.organization_id, dry_run=request.dry_run
        )
        return create_success_response(data=report.model_dump(mode="json"))

    except (OrganizationNotFoundError, CredentialsNotFoundError) as e:
        return create_error_response(
            code=e.code,
            message=e.message,
            status_code=e.status_code,
        )


@router.post("/recalculate-risk", response_model=ApiResponse)
async def recalculate_risk(
    request: RecalculateRiskRequest,
    _: CronAuthDep,
    service: ReconciliationServiceDep,
):
    result = await service.recalculate_organization(request.organization_id)
    return create_success_response(data=result.model_dump(mode="json"))
