from shadowit.models.application import Application
from shadowit.models.directory_user import DirectoryUser
from shadowit.models.organization import Organization
from shadowit.models.sync_job import SyncJob
from shadowit.models.user_application import UserApplication, UserApplicationWithEmail

__all__ = [
    "Application",
    "DirectoryUser",
    "Organization",
    "SyncJob",
    "UserApplication",
    "UserApplicationWithEmail",
]
