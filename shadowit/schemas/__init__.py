from shadowit.schemas.cleanup import (
    CleanupRequest,
    RecalculateRiskRequest,
    VerificationRequest,
)
from shadowit.schemas.common import (
    ApiResponse,
    ErrorDetail,
    ErrorResponse,
    MetaResponse,
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

__all__ = [
    "ApiResponse",
    "CleanupRequest",
    "ContinueSyncRequest",
    "ContinueSyncResponse",
    "ErrorDetail",
    "ErrorResponse",
    "ExpireStaleResponse",
    "MetaResponse",
    "RecalculateRiskRequest",
    "RelationsStageRequest",
    "StartSyncRequest",
    "SyncJobResponse",
    "SyncProgressResponse",
    "VerificationRequest",
    "create_error_response",
    "create_success_response",
]
