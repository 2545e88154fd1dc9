import logging

from fastapi import APIRouter, status

from shadowit.core.dependencies import CronAuthDep, CurrentPrincipalDep, SyncManagerDep
from shadowit.core.exceptions import OrganizationNotFoundError, SyncJobNotFoundError
from shadowit.integrations.core.types import TokenResponse
from shadowit.schemas.common import (
    ApiResponse,
    create_error_response,
    create_success_response,
)
from shadowit.schemas.sync import (
    ContinueSyncRequest,
    ContinueSyncResponse,
    ExpireStaleResponse,
    RelationsStageRequest,
    StartSyncRequest,
    SyncJobResponse,
    SyncProgressResponse,
)
from shadowit.workflow.job_queue import JobQueueFullError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/start", response_model=ApiResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_sync(
    request: StartSyncRequest,
    principal: CurrentPrincipalDep,
    manager: SyncManagerDep,
):
    logger.info(
        "Starting %s sync for organization: %d", request.provider.value, request.organization_id
    )
    if request.organization_id != principal.org_id:
        logger.warning(
            "Access denied to sync organization: %d for %s",
            request.organization_id,
            principal.email,
        )
        return create_error_response(
            code="FORBIDDEN",
            message="Access denied to this organization",
            status_code=403,
        )

    tokens = TokenResponse(
        access_token=request.access_token,
        refresh_token=request.refresh_token,
        expires_in=request.expires_in,
        scope=request.scope,
    )
    try:
        job = await manager.start_sync(
            organization_id=request.organization_id,
            user_email=request.user_email,
            provider=request.provider,
            tokens=tokens,
        )
        return create_success_response(data=SyncJobResponse.from_job(job).model_dump())

    except (OrganizationNotFoundError, JobQueueFullError) as e:
        return create_error_response(
            code=e.code,
            message=e.message,
            status_code=e.status_code,
        )


@router.post(
    "/relations",
    response_model=ApiResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue the relations stage",
)
async def queue_relations_stage(
    request: RelationsStageRequest,
    _: CronAuthDep,
    manager: SyncManagerDep,
):
    logger.info(
        f"Relations stage for sync job {request.sync_job_id}: "
        f"{len(request.user_app_relations)} relations"
    )
    try:
        job = await manager.accept_relations(request.to_message())
        return create_success_response(data=SyncJobResponse.from_job(job).model_dump())

    except (SyncJobNotFoundError, JobQueueFullError) as e:
        return create_error_response(
            code=e.code,
            message=e.message,
            status_code=e.status_code,
        )


@router.get("/{sync_job_id}/progress", response_model=ApiResponse)
async def get_sync_progress(
    sync_job_id: int,
    principal: CurrentPrincipalDep,
    manager: SyncManagerDep,
):
    try:
        job = await manager.get_progress(sync_job_id)
        if job.organization_id != principal.org_id:
            raise SyncJobNotFoundError(sync_job_id)

        response_data = SyncProgressResponse(
            status=job.status.value,
            progress=job.progress,
            message=job.message,
        )
        return create_success_response(data=response_data.model_dump())

    except SyncJobNotFoundError as e:
        return create_error_response(
            code=e.code,
            message=e.message,
            status_code=e.status_code,
        )


@router.post("/continue", response_model=ApiResponse)
async def continue_sync(
    request: ContinueSyncRequest,
    _: CronAuthDep,
    manager: SyncManagerDep,
):
    job = await manager.continue_in_progress(request.organization_id)
    response_data = ContinueSyncResponse(
        resumed=job is not None,
        sync_job=SyncJobResponse.from_job(job) if job else None,
    )
    return create_success_response(data=response_data.model_dump())


@router.post("/expire-stale", response_model=ApiResponse)
async def expire_stale_syncs(_: CronAuthDep, manager: SyncManagerDep):
    expired = await manager.expire_stale_jobs()
    response_data = ExpireStaleResponse(
        expired=len(expired),
        sync_job_ids=[job.id for job in expired],
    )
    return create_success_response(data=response_data.model_dump())
