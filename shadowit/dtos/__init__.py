from shadowit.dtos.application_dtos import (
    RecalculatedApplicationDTO,
    UpsertApplicationDTO,
)
from shadowit.dtos.cleanup_dtos import (
    ApplicationVerification,
    CleanupDetails,
    CleanupReport,
    CleanupResult,
    CleanupSummary,
    RiskRecalculationResult,
    VerificationReport,
)
from shadowit.dtos.sync_job_dtos import (
    CreateSyncJobDTO,
    UpdateSyncProgressDTO,
    UpdateSyncTokensDTO,
)
from shadowit.dtos.token_dtos import AccessTokenPayload
from shadowit.dtos.user_application_dtos import UpsertUserApplicationDTO
from shadowit.dtos.user_dtos import UpsertDirectoryUserDTO

__all__ = [
    "AccessTokenPayload",
    "ApplicationVerification",
    "CleanupDetails",
    "CleanupReport",
    "CleanupResult",
    "CleanupSummary",
    "RiskRecalculationResult",
    "VerificationReport",
    "CreateSyncJobDTO",
    "RecalculatedApplicationDTO",
    "UpdateSyncProgressDTO",
    "UpdateSyncTokensDTO",
    "UpsertApplicationDTO",
    "UpsertDirectoryUserDTO",
    "UpsertUserApplicationDTO",
]
