import asyncio
import logging
import math
from collections.abc import Awaitable, Callable

import aiohttp

from shadowit.constants.enums import AuthProvider
from shadowit.core.exceptions import OrganizationNotFoundError
from shadowit.core.resource_monitor import ResourceMonitor
from shadowit.dtos.cleanup_dtos import ApplicationVerification, VerificationReport
from shadowit.integrations.core.exceptions import ApiRequestError, QuotaExceededError
from shadowit.integrations.core.interfaces import IDirectoryProvider
from shadowit.integrations.core.types import AuthContext
from shadowit.integrations.providers.factory import get_provider
from shadowit.models.application import Application
from shadowit.repositories.application_repository import ApplicationRepository
from shadowit.repositories.directory_user_repository import DirectoryUserRepository
from shadowit.repositories.organization_repository import OrganizationRepository
from shadowit.repositories.user_application_repository import (
    UserApplicationRepository,
)
from shadowit.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)


def suspicious_threshold(org_users: int, min_users: int, org_ratio: float) -> int:
    return max(min_users, math.floor(org_users * org_ratio))


class AppVerificationService:
    """Re-checks applications that claim an implausible share of the organization.

    Admin-consented grants can attach an app to every user. A handful of the
    app's users are verified against the vendor's assignment API and the app's
    edges are purged when too few of them hold a real assignment.
    """

    def __init__(
        self,
        organization_repository: OrganizationRepository,
        user_repository: DirectoryUserRepository,
        application_repository: ApplicationRepository,
        user_application_repository: UserApplicationRepository,
        reconciliation_service: ReconciliationService,
        resource_monitor: ResourceMonitor,
        min_users: int = 20,
        org_ratio: float = 0.5,
        sample_size: int = 5,
        legitimacy_ratio: float = 0.3,
        delete_batch_size: int = 100,
        check_delay_seconds: float = 0.1,
        provider_resolver: Callable[[AuthProvider], IDirectoryProvider] = get_provider,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._org_repo = organization_repository
        self._user_repo = user_repository
        self._app_repo = application_repository
        self._edge_repo = user_application_repository
        self._reconciliation = reconciliation_service
        self._resource_monitor = resource_monitor
        self._min_users = min_users
        self._org_ratio = org_ratio
        self._sample_size = sample_size
        self._legitimacy_ratio = legitimacy_ratio
        self._delete_batch_size = delete_batch_size
        self._check_delay = check_delay_seconds
        self._provider_resolver = provider_resolver
        self._sleep = sleep

    async def verify_organization(
        self, organization_id: int, dry_run: bool = True
    ) -> VerificationReport:
        org = await self._org_repo.find_by_id(organization_id)
        if org is None:
            raise OrganizationNotFoundError(organization_id)

        total_users = await self._user_repo.count_by_organization(organization_id)
        threshold = suspicious_threshold(total_users, self._min_users, self._org_ratio)
        suspicious = await self._app_repo.find_with_user_count_above(
            organization_id, threshold
        )
        report = VerificationReport(
            organization_id=organization_id,
            organization_name=org.name,
            dry_run=dry_run,
            total_users=total_users,
            suspicious_threshold=threshold,
            suspicious_applications=len(suspicious),
            recommendation="No suspicious patterns found. All app user counts appear legitimate.",
        )
        if not suspicious:
            return report

        logger.info(
            f"{len(suspicious)} applications in {org.name} exceed {threshold} users"
        )
        provider = self._provider_resolver(org.auth_provider)
        auth = await self._reconciliation.authenticate(organization_id, provider)

        for app in suspicious:
            analysis = await self._verify_application(
                provider, auth, app, total_users, dry_run
            )
            report.applications.append(analysis)
            report.removed_relationships += analysis.removed_relationships

        if report.removed_relationships:
            # purged apps lose every edge; survivors need fresh aggregates
            removed_apps = await self._app_repo.delete_without_users(organization_id)
            report.removed_application_names = sorted(app.name for app in removed_apps)
            await self._reconciliation.recalculate_organization(organization_id)

        flagged = [a for a in report.applications if a.action != "kept"]
        report.recommendation = (
            f"Found {len(suspicious)} apps with suspicious user counts. "
            f"{len(flagged)} failed targeted verification"
            + (" and would be purged." if dry_run else " and were purged.")
        )
        return report

    async def _verify_application(
        self,
        provider: IDirectoryProvider,
        auth: AuthContext,
        app: Application,
        total_users: int,
        dry_run: bool,
    ) -> ApplicationVerification:
        edges = await self._edge_repo.find_by_application(app.id)
        sample = edges[: self._sample_size]

        verified = 0
        for edge in sample:
            try:
                if await provider.has_app_assignment(auth, edge.user_provider_id, app.name):
                    verified += 1
            except (ApiRequestError, QuotaExceededError, aiohttp.ClientError) as e:
                logger.warning(f"Could not verify {edge.user_email} for {app.name}: {e}")
            await self._sleep(self._check_delay)

        ratio = verified / len(sample) if sample else 0.0
        logger.info(
            "%s: %d/%d sampled users hold a real assignment (%.0f%%)",
            app.name,
            verified,
            len(sample),
            ratio * 100,
        )
        analysis = ApplicationVerification(
            application_id=app.id,
            name=app.name,
            user_count=app.user_count,
            percentage_of_org=round(app.user_count / total_users * 100) if total_users else 0,
            sampled_users=len(sample),
            verified_users=verified,
            legitimacy_ratio=ratio,
            action="kept",
            relationships=len(edges),
        )
        if ratio >= self._legitimacy_ratio:
            return analysis

        if dry_run:
            analysis.action = "would_remove"
            return analysis

        async def _delete(batch: list[int]) -> None:
            await self._edge_repo.delete_by_ids(batch)

        result = await self._resource_monitor.process_in_batches(
            [edge.id for edge in edges],
            _delete,
            batch_size=self._delete_batch_size,
            stage="verification-relationships",
        )
        logger.warning(f"Removed {result.processed} relationships for {app.name}")

        analysis.action = "removed"
        analysis.removed_relationships = result.processed
        return analysis
