from shadowit.repositories.application_repository import ApplicationRepository
from shadowit.repositories.directory_user_repository import DirectoryUserRepository
from shadowit.repositories.organization_repository import OrganizationRepository
from shadowit.repositories.sync_job_repository import SyncJobRepository
from shadowit.repositories.user_application_repository import (
    UserApplicationRepository,
)

__all__ = [
    "ApplicationRepository",
    "DirectoryUserRepository",
    "OrganizationRepository",
    "SyncJobRepository",
    "UserApplicationRepository",
]
