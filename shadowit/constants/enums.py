from enum import Enum


class AuthProvider(str, Enum):
    GOOGLE = "google"
    MICROSOFT = "microsoft"

    @property
    def display_name(self) -> str:
        if self is AuthProvider.GOOGLE:
            return "Google Workspace"
        return "Microsoft Entra ID"


class SyncJobStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SyncStage(str, Enum):
    CONNECTED = "CONNECTED"
    USERS_FETCHED = "USERS_FETCHED"
    GRANTS_FETCHED = "GRANTS_FETCHED"
    APPLICATIONS_GROUPED = "APPLICATIONS_GROUPED"
    APPLICATIONS_PERSISTED = "APPLICATIONS_PERSISTED"
    RELATIONSHIPS_PERSISTED = "RELATIONSHIPS_PERSISTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class UserType(str, Enum):
    MEMBER = "Member"
    GUEST = "Guest"


class ManagementStatus(str, Enum):
    NEWLY_DISCOVERED = "Newly discovered"
    APPROVED = "Approved"
    NEEDS_REVIEW = "Needs review"
    NOT_APPROVED = "Not approved"


UNKNOWN_SCOPE = "unknown_scope"
UNKNOWN_APP_NAME = "Unknown App"
UNKNOWN_CATEGORY = "Unknown"
UNCATEGORIZED_VALUES = frozenset({None, "", "uncategorized", "Unknown", "Others"})


class CleanupKind(str, Enum):
    GUEST_DISABLED = "guest_disabled"
    SUSPENDED_ARCHIVED = "suspended_archived"

    @property
    def provider(self) -> AuthProvider:
        if self is CleanupKind.GUEST_DISABLED:
            return AuthProvider.MICROSOFT
        return AuthProvider.GOOGLE


class RemovalReason(str, Enum):
    GUEST = "guest"
    DISABLED = "disabled"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"
    DELETED = "deleted"
