import logging
from collections.abc import Iterable

from shadowit.constants.enums import UserType
from shadowit.core.resource_monitor import BatchResult, ResourceMonitor
from shadowit.dtos.user_dtos import UpsertDirectoryUserDTO
from shadowit.integrations.core.interfaces import IDirectoryProvider
from shadowit.integrations.core.types import AuthContext, DirectoryAccount
from shadowit.models.directory_user import DirectoryUser
from shadowit.repositories.directory_user_repository import DirectoryUserRepository
from shadowit.services.sync_accumulator import SyncAccumulator

logger = logging.getLogger(__name__)


def account_to_dto(organization_id: int, account: DirectoryAccount) -> UpsertDirectoryUserDTO:
    return UpsertDirectoryUserDTO(
        organization_id=organization_id,
        provider_user_id=account.provider_id,
        email=account.email.lower(),
        name=account.display_name,
        role=account.role,
        department=account.department,
        user_type=account.user_type,
        account_enabled=account.account_enabled,
    )


class UserIndex:
    """Stored users addressable by vendor id and by lower-cased email."""

    def __init__(self, users: Iterable[DirectoryUser] = ()):
        self._by_provider_id: dict[str, DirectoryUser] = {}
        self._by_email: dict[str, DirectoryUser] = {}
        for user in users:
            self.add(user)

    def add(self, user: DirectoryUser) -> None:
        self._by_provider_id[user.provider_user_id] = user
        self._by_email[user.email.lower()] = user

    def find(self, provider_user_id: str | None, email: str | None) -> DirectoryUser | None:
        if provider_user_id and provider_user_id in self._by_provider_id:
            return self._by_provider_id[provider_user_id]
        if email:
            return self._by_email.get(email.lower())
        return None

    def __len__(self) -> int:
        return len(self._by_email)


class DirectoryService:
    def __init__(
        self,
        user_repository: DirectoryUserRepository,
        resource_monitor: ResourceMonitor,
        user_batch_size: int = 25,
        batch_delay_seconds: float = 0.1,
    ):
        self._user_repo = user_repository
        self._resource_monitor = resource_monitor
        self._user_batch_size = user_batch_size
        self._batch_delay = batch_delay_seconds

    async def fetch_accounts(
        self,
        provider: IDirectoryProvider,
        auth_context: AuthContext,
        accumulator: SyncAccumulator | None = None,
    ) -> list[DirectoryAccount]:
        accounts: list[DirectoryAccount] = []
        async for page in provider.list_users(auth_context):
            if accumulator is not None:
                accumulator.add_users(len(page))
            accounts.extend(page)
        logger.info(f"Fetched {len(accounts)} {provider.provider.value} directory users")
        return accounts

    async def persist_accounts(
        self, organization_id: int, accounts: list[DirectoryAccount]
    ) -> BatchResult:
        # one DTO per email; a batch must not hit the same row twice
        unique: dict[str, UpsertDirectoryUserDTO] = {}
        for account in accounts:
            if account.email:
                unique[account.email.lower()] = account_to_dto(organization_id, account)

        async def _upsert(batch: list[UpsertDirectoryUserDTO]) -> None:
            await self._user_repo.bulk_upsert(batch)

        result = await self._resource_monitor.process_in_batches(
            list(unique.values()),
            _upsert,
            batch_size=self._user_batch_size,
            delay_seconds=self._batch_delay,
            stage="users",
        )
        logger.info(
            "Persisted %d users for organization %d (%d failed)",
            result.processed,
            organization_id,
            result.failed,
        )
        return result

    async def load_index(self, organization_id: int) -> UserIndex:
        return UserIndex(await self._user_repo.find_by_organization(organization_id))

    async def ensure_user(
        self,
        organization_id: int,
        index: UserIndex,
        provider_user_id: str | None,
        email: str,
    ) -> DirectoryUser:
        """Return the stored user for a grant subject, creating it from the email if absent."""
        existing = index.find(provider_user_id, email)
        if existing is not None:
            return existing

        email = email.lower()
        logger.info(f"Creating user {email} seen only in grants for organization {organization_id}")
        user = await self._user_repo.upsert(
            UpsertDirectoryUserDTO(
                organization_id=organization_id,
                provider_user_id=provider_user_id or email,
                email=email,
                name=email.split("@")[0],
                role="User",
                user_type=UserType.MEMBER,
            )
        )
        index.add(user)
        return user

