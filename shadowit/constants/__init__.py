from shadowit.constants.enums import (
    UNCATEGORIZED_VALUES,
    UNKNOWN_APP_NAME,
    UNKNOWN_CATEGORY,
    UNKNOWN_SCOPE,
    AuthProvider,
    CleanupKind,
    ManagementStatus,
    RemovalReason,
    RiskLevel,
    SyncJobStatus,
    SyncStage,
    UserType,
)

__all__ = [
    "UNCATEGORIZED_VALUES",
    "UNKNOWN_APP_NAME",
    "UNKNOWN_CATEGORY",
    "UNKNOWN_SCOPE",
    "AuthProvider",
    "CleanupKind",
    "ManagementStatus",
    "RemovalReason",
    "RiskLevel",
    "SyncJobStatus",
    "SyncStage",
    "UserType",
]
