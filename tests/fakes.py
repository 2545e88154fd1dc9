"""In-memory stand-ins for the PostgreSQL repositories and vendor providers.

The fakes follow the merge rules of the SQL they replace: scope arrays are
unioned, application category and management status survive re-syncs, and
``user_count`` on upsert never goes down.
"""

import itertools
from collections.abc import AsyncGenerator, Sequence
from datetime import datetime, timedelta, timezone

from shadowit.constants.enums import AuthProvider, SyncJobStatus
from shadowit.core.resource_monitor import MemorySample, ResourceMonitor
from shadowit.dtos.application_dtos import (
    RecalculatedApplicationDTO,
    UpsertApplicationDTO,
)
from shadowit.dtos.sync_job_dtos import (
    CreateSyncJobDTO,
    UpdateSyncProgressDTO,
    UpdateSyncTokensDTO,
)
from shadowit.dtos.user_application_dtos import UpsertUserApplicationDTO
from shadowit.dtos.user_dtos import UpsertDirectoryUserDTO
from shadowit.integrations.core.interfaces import IDirectoryProvider
from shadowit.integrations.core.types import (
    AuthContext,
    DirectoryAccount,
    RawGrant,
    TokenResponse,
)
from shadowit.models.application import Application
from shadowit.models.directory_user import DirectoryUser
from shadowit.models.organization import Organization
from shadowit.models.sync_job import SyncJob
from shadowit.models.user_application import (
    UserApplication,
    UserApplicationWithEmail,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FakeStore:
    def __init__(self):
        self.organizations: dict[int, Organization] = {}
        self.sync_jobs: dict[int, SyncJob] = {}
        self.users: dict[int, DirectoryUser] = {}
        self.applications: dict[int, Application] = {}
        self.edges: dict[int, UserApplication] = {}
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    def add_organization(
        self,
        name: str = "Acme",
        domain: str = "acme.com",
        auth_provider: AuthProvider = AuthProvider.GOOGLE,
    ) -> Organization:
        now = utcnow()
        org = Organization(
            id=self.next_id(),
            name=name,
            domain=domain,
            auth_provider=auth_provider,
            created_at=now,
            updated_at=now,
        )
        self.organizations[org.id] = org
        return org

    def edges_for_app(self, application_id: int) -> list[UserApplication]:
        return [e for e in self.edges.values() if e.application_id == application_id]

    def app_by_name(self, organization_id: int, name: str) -> Application | None:
        for app in self.applications.values():
            if app.organization_id == organization_id and app.name == name:
                return app
        return None


class FakeOrganizationRepository:
    def __init__(self, store: FakeStore):
        self._store = store

    async def find_by_id(self, org_id: int) -> Organization | None:
        return self._store.organizations.get(org_id)

    async def find_by_domain(self, domain: str) -> Organization | None:
        for org in self._store.organizations.values():
            if org.domain == domain:
                return org
        return None

    async def find_by_provider(self, auth_provider: AuthProvider) -> list[Organization]:
        return [
            org
            for org in self._store.organizations.values()
            if org.auth_provider == auth_provider
        ]

    async def mark_first_sync_completed(self, org_id: int) -> bool:
        org = self._store.organizations.get(org_id)
        if org is None or org.first_sync_completed_at is not None:
            return False
        self._store.organizations[org_id] = org.model_copy(
            update={"first_sync_completed_at": utcnow()}
        )
        return True


class FakeSyncJobRepository:
    def __init__(self, store: FakeStore):
        self._store = store
        self.progress_updates: list[tuple[int, UpdateSyncProgressDTO]] = []

    async def create(self, dto: CreateSyncJobDTO) -> SyncJob:
        now = utcnow()
        job = SyncJob(id=self._store.next_id(), created_at=now, updated_at=now, **dto.model_dump())
        self._store.sync_jobs[job.id] = job
        return job

    async def find_by_id(self, sync_job_id: int) -> SyncJob | None:
        return self._store.sync_jobs.get(sync_job_id)

    async def update_progress(self, sync_job_id: int, dto: UpdateSyncProgressDTO) -> SyncJob | None:
        self.progress_updates.append((sync_job_id, dto))
        job = self._store.sync_jobs.get(sync_job_id)
        if job is None:
            return None
        update = dto.model_dump(exclude_none=True)
        update["updated_at"] = utcnow()
        job = job.model_copy(update=update)
        self._store.sync_jobs[sync_job_id] = job
        return job

    async def update_tokens(self, sync_job_id: int, dto: UpdateSyncTokensDTO) -> None:
        job = self._store.sync_jobs[sync_job_id]
        update = {"access_token": dto.access_token, "token_expiry": dto.token_expiry}
        if dto.refresh_token:
            update["refresh_token"] = dto.refresh_token
        if dto.scope:
            update["scope"] = dto.scope
        self._store.sync_jobs[sync_job_id] = job.model_copy(update=update)

    async def find_latest_in_progress(self, organization_id: int) -> SyncJob | None:
        jobs = [
            j
            for j in self._store.sync_jobs.values()
            if j.organization_id == organization_id and j.status == SyncJobStatus.IN_PROGRESS
        ]
        return max(jobs, key=lambda j: (j.created_at, j.id), default=None)

    async def find_latest_with_refresh_token(self, organization_id: int) -> SyncJob | None:
        jobs = [
            j
            for j in self._store.sync_jobs.values()
            if j.organization_id == organization_id and j.refresh_token
        ]
        return max(jobs, key=lambda j: (j.created_at, j.id), default=None)

    async def find_stale_in_progress(self, updated_before: datetime) -> list[SyncJob]:
        return [
            j
            for j in self._store.sync_jobs.values()
            if j.status == SyncJobStatus.IN_PROGRESS and j.updated_at < updated_before
        ]

    def backdate(self, sync_job_id: int, minutes: int) -> None:
        job = self._store.sync_jobs[sync_job_id]
        self._store.sync_jobs[sync_job_id] = job.model_copy(
            update={"updated_at": utcnow() - timedelta(minutes=minutes)}
        )


class FakeDirectoryUserRepository:
    def __init__(self, store: FakeStore):
        self._store = store

    async def find_by_id(self, user_id: int) -> DirectoryUser | None:
        return self._store.users.get(user_id)

    async def find_by_email(self, organization_id: int, email: str) -> DirectoryUser | None:
        for user in self._store.users.values():
            if user.organization_id == organization_id and user.email == email.lower():
                return user
        return None

    async def find_by_organization(self, organization_id: int) -> list[DirectoryUser]:
        return [u for u in self._store.users.values() if u.organization_id == organization_id]

    async def count_by_organization(self, organization_id: int) -> int:
        return len(await self.find_by_organization(organization_id))

    async def upsert(self, dto: UpsertDirectoryUserDTO) -> DirectoryUser:
        existing = await self.find_by_email(dto.organization_id, dto.email)
        now = utcnow()
        if existing is not None:
            user = existing.model_copy(update={**dto.model_dump(), "updated_at": now})
        else:
            user = DirectoryUser(
                id=self._store.next_id(), created_at=now, updated_at=now, **dto.model_dump()
            )
        self._store.users[user.id] = user
        return user

    async def bulk_upsert(self, dtos: list[UpsertDirectoryUserDTO]) -> list[DirectoryUser]:
        return [await self.upsert(dto) for dto in dtos]

    async def delete_by_ids(self, user_ids: list[int]) -> int:
        removed = 0
        for user_id in user_ids:
            if self._store.users.pop(user_id, None) is not None:
                removed += 1
        return removed


class FakeApplicationRepository:
    def __init__(self, store: FakeStore):
        self._store = store

    async def find_by_id(self, app_id: int) -> Application | None:
        return self._store.applications.get(app_id)

    async def find_by_organization(self, organization_id: int) -> list[Application]:
        apps = [a for a in self._store.applications.values() if a.organization_id == organization_id]
        return sorted(apps, key=lambda a: a.name)

    async def find_with_user_count_above(
        self, organization_id: int, threshold: int
    ) -> list[Application]:
        apps = await self.find_by_organization(organization_id)
        return sorted(
            (a for a in apps if a.user_count > threshold),
            key=lambda a: a.user_count,
            reverse=True,
        )

    async def count_by_organization(self, organization_id: int) -> int:
        return len(await self.find_by_organization(organization_id))

    async def upsert(self, dto: UpsertApplicationDTO) -> Application:
        now = utcnow()
        existing = self._store.app_by_name(dto.organization_id, dto.name)
        if existing is None:
            scopes = sorted(set(dto.all_scopes))
            app = Application(
                id=self._store.next_id(),
                organization_id=dto.organization_id,
                name=dto.name,
                provider_app_id=dto.provider_app_id,
                category=dto.category,
                risk_level=dto.risk_level,
                management_status=dto.management_status,
                total_permissions=len(scopes),
                all_scopes=scopes,
                user_count=dto.user_count,
                created_at=now,
                updated_at=now,
            )
        else:
            scopes = sorted(set(existing.all_scopes) | set(dto.all_scopes))
            app = existing.model_copy(
                update={
                    "provider_app_id": dto.provider_app_id or existing.provider_app_id,
                    "category": existing.category or dto.category,
                    "all_scopes": scopes,
                    "total_permissions": len(scopes),
                    "user_count": max(existing.user_count, dto.user_count),
                    "updated_at": now,
                }
            )
        self._store.applications[app.id] = app
        return app

    def _update(self, app_id: int, **fields) -> None:
        app = self._store.applications.get(app_id)
        if app is not None:
            self._store.applications[app_id] = app.model_copy(
                update={**fields, "updated_at": utcnow()}
            )

    async def update_risk_level(self, app_id: int, risk_level) -> None:
        self._update(app_id, risk_level=risk_level)

    async def update_user_count(self, app_id: int, user_count: int) -> None:
        self._update(app_id, user_count=user_count)

    async def apply_recalculation(self, dto: RecalculatedApplicationDTO) -> None:
        self._update(
            dto.application_id,
            all_scopes=dto.all_scopes,
            total_permissions=dto.total_permissions,
            user_count=dto.user_count,
            risk_level=dto.risk_level,
        )

    async def delete_without_users(self, organization_id: int) -> list[Application]:
        used = {e.application_id for e in self._store.edges.values()}
        removed = [
            a
            for a in self._store.applications.values()
            if a.organization_id == organization_id and a.id not in used
        ]
        for app in removed:
            del self._store.applications[app.id]
        return removed


class FakeUserApplicationRepository:
    def __init__(self, store: FakeStore):
        self._store = store

    def _find(self, user_id: int, application_id: int) -> UserApplication | None:
        for edge in self._store.edges.values():
            if edge.user_id == user_id and edge.application_id == application_id:
                return edge
        return None

    async def upsert(self, dto: UpsertUserApplicationDTO) -> UserApplication:
        now = utcnow()
        existing = self._find(dto.user_id, dto.application_id)
        if existing is None:
            edge = UserApplication(
                id=self._store.next_id(),
                user_id=dto.user_id,
                application_id=dto.application_id,
                scopes=sorted(set(dto.scopes)),
                created_at=now,
                updated_at=now,
            )
        else:
            edge = existing.model_copy(
                update={
                    "scopes": sorted(set(existing.scopes) | set(dto.scopes)),
                    "updated_at": now,
                }
            )
        self._store.edges[edge.id] = edge
        return edge

    async def bulk_upsert(self, dtos: list[UpsertUserApplicationDTO]) -> int:
        for dto in dtos:
            await self.upsert(dto)
        return len(dtos)

    async def find_by_application(
        self, application_id: int, limit: int | None = None
    ) -> list[UserApplicationWithEmail]:
        rows = []
        for edge in sorted(self._store.edges_for_app(application_id), key=lambda e: e.id):
            user = self._store.users[edge.user_id]
            rows.append(
                UserApplicationWithEmail(
                    **edge.model_dump(),
                    user_email=user.email,
                    user_provider_id=user.provider_user_id,
                )
            )
        return rows[:limit] if limit is not None else rows

    async def find_by_application_ids(self, application_ids: list[int]) -> list[UserApplication]:
        wanted = set(application_ids)
        return [e for e in self._store.edges.values() if e.application_id in wanted]

    async def find_by_user_ids(self, user_ids: list[int]) -> list[UserApplication]:
        wanted = set(user_ids)
        return [e for e in self._store.edges.values() if e.user_id in wanted]

    async def count_by_application(self, application_id: int) -> int:
        return len(self._store.edges_for_app(application_id))

    async def delete_by_ids(self, edge_ids: list[int]) -> int:
        removed = 0
        for edge_id in edge_ids:
            if self._store.edges.pop(edge_id, None) is not None:
                removed += 1
        return removed


class FakeDirectoryProvider(IDirectoryProvider):
    """Serves a fixed directory and grant set, one page each."""

    def __init__(
        self,
        provider: AuthProvider = AuthProvider.GOOGLE,
        accounts: Sequence[DirectoryAccount] = (),
        grants: Sequence[RawGrant] = (),
        assignments: dict[tuple[str, str], bool] | None = None,
        refresh_error: Exception | None = None,
    ):
        self._provider = provider
        self.accounts = list(accounts)
        self.grants = list(grants)
        self.assignments = assignments or {}
        self.refresh_error = refresh_error
        self.refresh_calls = 0

    @property
    def provider(self) -> AuthProvider:
        return self._provider

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        self.refresh_calls += 1
        if self.refresh_error is not None:
            raise self.refresh_error
        return TokenResponse(access_token=f"access-{self.refresh_calls}", expires_in=3600)

    async def list_users(
        self, auth_context: AuthContext
    ) -> AsyncGenerator[list[DirectoryAccount], None]:
        if self.accounts:
            yield list(self.accounts)

    async def list_oauth_grants(
        self, auth_context: AuthContext, users: Sequence[DirectoryAccount]
    ) -> AsyncGenerator[list[RawGrant], None]:
        if self.grants:
            yield list(self.grants)

    async def has_app_assignment(
        self, auth_context: AuthContext, user_provider_id: str, app_name: str
    ) -> bool:
        return self.assignments.get((user_provider_id, app_name), False)


async def no_sleep(seconds: float) -> None:
    return None


def idle_resource_monitor() -> ResourceMonitor:
    """A monitor that always reports low memory and never actually sleeps."""
    return ResourceMonitor(
        max_heap_mb=1000,
        max_rss_mb=1000,
        emergency_mb=1800,
        sampler=lambda: MemorySample(rss_mb=100, heap_mb=100),
        sleep=no_sleep,
    )
