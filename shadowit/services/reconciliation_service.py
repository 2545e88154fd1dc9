"""Prunes stored users, edges and applications that the vendor directory no
longer backs, and recomputes application aggregates from surviving edges."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from shadowit.constants.enums import (
    AuthProvider,
    CleanupKind,
    RemovalReason,
    UserType,
)
from shadowit.core.exceptions import (
    AppException,
    CredentialsNotFoundError,
    OrganizationNotFoundError,
    SafetyThresholdTrippedError,
)
from shadowit.core.resource_monitor import ResourceMonitor
from shadowit.dtos.application_dtos import RecalculatedApplicationDTO
from shadowit.dtos.cleanup_dtos import (
    ApplicationRelationshipCounts,
    CleanupReport,
    CleanupResult,
    CleanupSummary,
    RelationshipReconciliationResult,
    RiskRecalculationResult,
    StaleRelationship,
)
from shadowit.integrations.core.credentials import CredentialsManager
from shadowit.integrations.core.interfaces import IDirectoryProvider
from shadowit.integrations.core.types import (
    AuthContext,
    DirectoryAccount,
    MicrosoftDelegatedGrant,
)
from shadowit.integrations.providers.factory import get_provider
from shadowit.models.directory_user import DirectoryUser
from shadowit.models.organization import Organization
from shadowit.models.user_application import UserApplication
from shadowit.repositories.application_repository import ApplicationRepository
from shadowit.repositories.directory_user_repository import DirectoryUserRepository
from shadowit.repositories.organization_repository import OrganizationRepository
from shadowit.repositories.sync_job_repository import SyncJobRepository
from shadowit.repositories.user_application_repository import (
    UserApplicationRepository,
)
from shadowit.services.directory_service import DirectoryService
from shadowit.services.risk_classifier import classify
from shadowit.services.sync_accumulator import application_name

logger = logging.getLogger(__name__)


def removal_reason(account: DirectoryAccount | None) -> RemovalReason | None:
    """Why a stored user should go, or None if the directory still has them active."""
    if account is None:
        return RemovalReason.DELETED
    if account.is_active_member:
        return None
    if account.user_type == UserType.GUEST:
        return RemovalReason.GUEST
    # Google reports suspension as a disabled account too
    if account.suspended:
        return RemovalReason.SUSPENDED
    if account.archived:
        return RemovalReason.ARCHIVED
    return RemovalReason.DISABLED


def check_safety_threshold(candidates: int, total: int, threshold: float) -> None:
    if total and candidates / total > threshold:
        raise SafetyThresholdTrippedError(candidates, total, threshold)


class ReconciliationService:
    def __init__(
        self,
        organization_repository: OrganizationRepository,
        sync_job_repository: SyncJobRepository,
        user_repository: DirectoryUserRepository,
        application_repository: ApplicationRepository,
        user_application_repository: UserApplicationRepository,
        directory_service: DirectoryService,
        credentials_manager: CredentialsManager,
        resource_monitor: ResourceMonitor,
        safety_threshold: float = 0.9,
        edge_batch_size: int = 50,
        user_batch_size: int = 25,
        org_retries: int = 2,
        retry_delay_seconds: float = 5.0,
        org_delay_seconds: float = 60.0,
        provider_resolver: Callable[[AuthProvider], IDirectoryProvider] = get_provider,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._org_repo = organization_repository
        self._sync_job_repo = sync_job_repository
        self._user_repo = user_repository
        self._app_repo = application_repository
        self._edge_repo = user_application_repository
        self._directory = directory_service
        self._credentials = credentials_manager
        self._resource_monitor = resource_monitor
        self._safety_threshold = safety_threshold
        self._edge_batch_size = edge_batch_size
        self._user_batch_size = user_batch_size
        self._org_retries = org_retries
        self._retry_delay = retry_delay_seconds
        self._org_delay = org_delay_seconds
        self._provider_resolver = provider_resolver
        self._sleep = sleep

    async def run(
        self,
        kind: CleanupKind,
        organization_id: int | None = None,
        dry_run: bool = True,
    ) -> CleanupReport:
        """Reconcile one organization, or every organization on the kind's provider."""
        organizations = await self._select_organizations(kind, organization_id)
        logger.info(
            f"Starting {kind.value} cleanup for {len(organizations)} organizations "
            f"({'dry run' if dry_run else 'live'})"
        )

        results: list[CleanupResult] = []
        for i, org in enumerate(organizations):
            results.append(await self._reconcile_with_retry(org, kind, dry_run))
            if i < len(organizations) - 1 and self._org_delay > 0:
                await self._sleep(self._org_delay)

        summary = CleanupSummary.from_results(results)
        logger.info(
            "Cleanup finished: %d/%d organizations, %d users, %d relationships, %d applications",
            summary.successful_organizations,
            summary.total_organizations,
            summary.total_removed_users,
            summary.total_removed_relationships,
            summary.total_removed_applications,
        )
        return CleanupReport(dry_run=dry_run, summary=summary, results=results)

    async def reconcile_organization(
        self, org: Organization, kind: CleanupKind, dry_run: bool = True
    ) -> CleanupResult:
        result = CleanupResult(
            organization_id=org.id,
            organization_name=org.name,
            organization_domain=org.domain,
        )

        provider = self._provider_resolver(kind.provider)
        auth = await self.authenticate(org.id, provider)
        snapshot = await self._directory.fetch_accounts(provider, auth)
        accounts = {a.email.lower(): a for a in snapshot if a.email}

        stored = await self._user_repo.find_by_organization(org.id)
        candidates: list[DirectoryUser] = []
        for user in stored:
            reason = removal_reason(accounts.get(user.email.lower()))
            if reason is None:
                continue
            candidates.append(user)
            result.reason_counts[reason.value] = result.reason_counts.get(reason.value, 0) + 1

        check_safety_threshold(len(candidates), len(stored), self._safety_threshold)

        if not candidates:
            logger.info(f"Nothing to clean up for {org.name}")
            result.success = True
            return result

        apps = {app.id: app for app in await self._app_repo.find_by_organization(org.id)}
        edges = await self._edge_repo.find_by_user_ids([u.id for u in candidates])
        edges_per_app: dict[int, int] = {}
        for edge in edges:
            edges_per_app[edge.application_id] = edges_per_app.get(edge.application_id, 0) + 1

        result.details.removed_user_emails = sorted(u.email for u in candidates)
        result.details.relationships_by_app = {
            apps[app_id].name: count
            for app_id, count in edges_per_app.items()
            if app_id in apps
        }

        if dry_run:
            result.removed_users = len(candidates)
            result.removed_relationships = len(edges)
            emptied = [
                apps[app_id].name
                for app_id, count in edges_per_app.items()
                if app_id in apps
                and await self._edge_repo.count_by_application(app_id) == count
            ]
            result.removed_applications = len(emptied)
            result.details.removed_application_names = sorted(emptied)
            result.success = True
            return result

        # edges first so no user row is deleted out from under them
        edge_result = await self._resource_monitor.process_in_batches(
            [edge.id for edge in edges],
            self._delete_edges,
            batch_size=self._edge_batch_size,
            stage="cleanup-relationships",
        )
        user_result = await self._resource_monitor.process_in_batches(
            [user.id for user in candidates],
            self._delete_users,
            batch_size=self._user_batch_size,
            stage="cleanup-users",
        )
        removed_apps = await self._app_repo.delete_without_users(org.id)

        result.removed_relationships = edge_result.processed
        result.removed_users = user_result.processed
        result.removed_applications = len(removed_apps)
        result.details.removed_application_names = sorted(a.name for a in removed_apps)

        await self.recalculate_organization(org.id)

        errors = edge_result.errors + user_result.errors
        result.success = not errors
        if errors:
            result.error = "; ".join(errors)
        logger.info(
            f"Cleanup for {org.name}: {result.removed_users} users, "
            f"{result.removed_relationships} relationships, "
            f"{result.removed_applications} applications removed"
        )
        return result

    async def reconcile_relationships(
        self, organization_id: int, dry_run: bool = True
    ) -> RelationshipReconciliationResult:
        """Drop stored edges the vendor no longer backs with a live grant.

        Users stay; only the (user, application) pairs without a current
        grant from an active member go. Applications left without edges are
        removed and the survivors' aggregates rebuilt.
        """
        org = await self._org_repo.find_by_id(organization_id)
        if org is None:
            raise OrganizationNotFoundError(organization_id)
        result = RelationshipReconciliationResult(
            organization_id=org.id, organization_name=org.name, dry_run=dry_run
        )

        provider = self._provider_resolver(AuthProvider(org.auth_provider))
        auth = await self.authenticate(org.id, provider)
        snapshot = await self._directory.fetch_accounts(provider, auth)
        members = [a for a in snapshot if a.email and a.is_active_member]
        backed = await self._live_relationships(provider, auth, members)
        logger.info(
            f"{org.name}: {len(backed)} live grants across {len(members)} active members"
        )

        apps = {app.id: app for app in await self._app_repo.find_by_organization(org.id)}
        emails = {
            user.id: user.email.lower()
            for user in await self._user_repo.find_by_organization(org.id)
        }
        edges = await self._edge_repo.find_by_application_ids(list(apps))

        stale: list[UserApplication] = []
        for edge in edges:
            app = apps[edge.application_id]
            email = emails.get(edge.user_id, "")
            counts = result.applications.setdefault(app.name, ApplicationRelationshipCounts())
            if (app.name, email) in backed:
                counts.keep += 1
                continue
            counts.remove += 1
            stale.append(edge)
            result.stale.append(StaleRelationship(user_email=email, app_name=app.name))

        result.total_relationships = len(edges)
        result.kept_relationships = len(edges) - len(stale)
        check_safety_threshold(len(stale), len(edges), self._safety_threshold)

        if dry_run or not stale:
            result.removed_relationships = len(stale)
            result.removed_application_names = sorted(
                name for name, c in result.applications.items() if c.remove and not c.keep
            )
            result.success = True
            return result

        edge_result = await self._resource_monitor.process_in_batches(
            [edge.id for edge in stale],
            self._delete_edges,
            batch_size=self._edge_batch_size,
            stage="cleanup-stale-relationships",
        )
        removed_apps = await self._app_repo.delete_without_users(org.id)
        result.removed_relationships = edge_result.processed
        result.removed_application_names = sorted(a.name for a in removed_apps)

        await self.recalculate_organization(org.id)

        result.success = not edge_result.errors
        if edge_result.errors:
            result.error = "; ".join(edge_result.errors)
        logger.info(
            f"Stale relationship cleanup for {org.name}: "
            f"{result.removed_relationships}/{result.total_relationships} relationships, "
            f"{len(removed_apps)} applications removed"
        )
        return result

    async def recalculate_organization(self, organization_id: int) -> RiskRecalculationResult:
        """Rebuild scopes, counts and risk for every application from its edges."""
        result = RiskRecalculationResult(organization_id=organization_id)
        apps = await self._app_repo.find_by_organization(organization_id)
        if not apps:
            return result

        edges = await self._edge_repo.find_by_application_ids([app.id for app in apps])
        scopes_by_app: dict[int, set[str]] = {}
        users_by_app: dict[int, set[int]] = {}
        for edge in edges:
            scopes_by_app.setdefault(edge.application_id, set()).update(edge.scopes)
            users_by_app.setdefault(edge.application_id, set()).add(edge.user_id)

        for app in apps:
            if app.id not in users_by_app:
                continue
            scopes = sorted(scopes_by_app[app.id])
            risk = classify(scopes)
            await self._app_repo.apply_recalculation(
                RecalculatedApplicationDTO(
                    application_id=app.id,
                    all_scopes=scopes,
                    total_permissions=len(scopes),
                    user_count=len(users_by_app[app.id]),
                    risk_level=risk,
                )
            )
            result.applications_updated += 1
            if risk != app.risk_level:
                result.risk_changes[app.name] = f"{app.risk_level.value} -> {risk.value}"

        logger.info(
            f"Recalculated {result.applications_updated} applications for organization "
            f"{organization_id} ({len(result.risk_changes)} risk changes)"
        )
        return result

    async def authenticate(
        self, organization_id: int, provider: IDirectoryProvider
    ) -> AuthContext:
        job = await self._sync_job_repo.find_latest_with_refresh_token(organization_id)
        if job is None:
            raise CredentialsNotFoundError(organization_id)
        return await self._credentials.refresh(job, provider)

    async def _live_relationships(
        self,
        provider: IDirectoryProvider,
        auth: AuthContext,
        members: list[DirectoryAccount],
    ) -> set[tuple[str, str]]:
        active = {member.email.lower() for member in members}
        backed: set[tuple[str, str]] = set()
        async for grants in provider.list_oauth_grants(auth, members):
            for grant in grants:
                # tenant-wide consent never produced per-user edges
                if isinstance(grant, MicrosoftDelegatedGrant) and grant.is_admin_consent:
                    continue
                email = (grant.subject_email or "").lower()
                if email in active:
                    backed.add((application_name(grant), email))
        return backed

    async def _select_organizations(
        self, kind: CleanupKind, organization_id: int | None
    ) -> list[Organization]:
        if organization_id is None:
            return await self._org_repo.find_by_provider(kind.provider)
        org = await self._org_repo.find_by_id(organization_id)
        if org is None or org.auth_provider != kind.provider:
            raise OrganizationNotFoundError(organization_id)
        return [org]

    async def _reconcile_with_retry(
        self, org: Organization, kind: CleanupKind, dry_run: bool
    ) -> CleanupResult:
        last_error: Exception | None = None
        for attempt in range(self._org_retries + 1):
            if attempt:
                logger.info(f"Retry {attempt}/{self._org_retries} for {org.name}")
                await self._sleep(self._retry_delay)
            try:
                result = await self.reconcile_organization(org, kind, dry_run)
                result.retry_count = attempt
                return result
            except (SafetyThresholdTrippedError, CredentialsNotFoundError) as e:
                # same answer on every attempt
                logger.error(f"Cleanup aborted for {org.name}: {e.message}")
                return self._failed_result(org, e, attempt)
            except Exception as e:
                logger.error(f"Cleanup attempt {attempt + 1} failed for {org.name}: {e}")
                last_error = e

        return self._failed_result(org, last_error, self._org_retries)

    def _failed_result(
        self, org: Organization, error: Exception | None, retry_count: int
    ) -> CleanupResult:
        return CleanupResult(
            organization_id=org.id,
            organization_name=org.name,
            organization_domain=org.domain,
            success=False,
            error=str(error) if error else "Unknown error",
            error_code=error.code if isinstance(error, AppException) else None,
            retry_count=retry_count,
        )

    async def _delete_edges(self, edge_ids: list[int]) -> None:
        await self._edge_repo.delete_by_ids(edge_ids)

    async def _delete_users(self, user_ids: list[int]) -> None:
        await self._user_repo.delete_by_ids(user_ids)
