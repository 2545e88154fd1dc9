import logging
from collections.abc import Callable

import asyncpg

from shadowit.constants.enums import UNKNOWN_CATEGORY, UNKNOWN_SCOPE, AuthProvider, SyncStage
from shadowit.core.exceptions import CapacityExceededError, SyncJobNotFoundError
from shadowit.core.resource_monitor import BatchResult, ResourceMonitor
from shadowit.dtos.application_dtos import UpsertApplicationDTO
from shadowit.dtos.user_application_dtos import UpsertUserApplicationDTO
from shadowit.integrations.core.credentials import CredentialsManager
from shadowit.integrations.core.exceptions import AuthExpiredError
from shadowit.integrations.core.interfaces import IDirectoryProvider
from shadowit.integrations.core.types import (
    AuthContext,
    DirectoryAccount,
    MicrosoftDelegatedGrant,
)
from shadowit.integrations.providers.factory import get_provider
from shadowit.models.application import Application
from shadowit.models.sync_job import SyncJob
from shadowit.repositories.application_repository import ApplicationRepository
from shadowit.repositories.organization_repository import OrganizationRepository
from shadowit.repositories.sync_job_repository import SyncJobRepository
from shadowit.repositories.user_application_repository import (
    UserApplicationRepository,
)
from shadowit.services.categorization_service import (
    CategorizationService,
    needs_category,
)
from shadowit.services.directory_service import DirectoryService
from shadowit.services.notification_service import NotificationService
from shadowit.services.progress_tracker import SyncProgressTracker
from shadowit.services.risk_classifier import classify
from shadowit.services.scope_normalizer import normalize
from shadowit.services.sync_accumulator import CapacityLimits, SyncAccumulator
from shadowit.utils.background import fire_and_forget
from shadowit.workflow.job_queue import JobQueueFullError, QueueMessage, SyncJobQueue
from shadowit.workflow.messages import (
    AppMapEntry,
    GrantsStageMessage,
    RelationsStageMessage,
    UserAppRelation,
)

logger = logging.getLogger(__name__)

COMPLETED_WITH_ISSUES_MESSAGE = (
    "Completed with issues. Some relationships could not be processed."
)
NO_RELATIONS_MESSAGE = "No user-application relations could be created."


class SyncOrchestrator:
    """Drives one sync job through its stages.

    The grants stage fetches users and grants, groups them by application and
    persists applications, then hands the (user, app, scopes) tuples to the
    relations stage through the job queue.
    """

    def __init__(
        self,
        sync_job_repository: SyncJobRepository,
        organization_repository: OrganizationRepository,
        application_repository: ApplicationRepository,
        user_application_repository: UserApplicationRepository,
        directory_service: DirectoryService,
        credentials_manager: CredentialsManager,
        job_queue: SyncJobQueue,
        resource_monitor: ResourceMonitor,
        notification_service: NotificationService,
        categorization_service: CategorizationService,
        limits: CapacityLimits,
        application_batch_size: int = 25,
        relation_batch_size: int = 50,
        batch_delay_seconds: float = 0.1,
        provider_resolver: Callable[[AuthProvider], IDirectoryProvider] = get_provider,
    ):
        self._sync_job_repo = sync_job_repository
        self._org_repo = organization_repository
        self._app_repo = application_repository
        self._edge_repo = user_application_repository
        self._directory = directory_service
        self._credentials = credentials_manager
        self._job_queue = job_queue
        self._resource_monitor = resource_monitor
        self._notifications = notification_service
        self._categorization = categorization_service
        self._limits = limits
        self._application_batch_size = application_batch_size
        self._relation_batch_size = relation_batch_size
        self._batch_delay = batch_delay_seconds
        self._provider_resolver = provider_resolver

    async def run_grants_stage(self, message: GrantsStageMessage) -> None:
        job = await self._load_active_job(message.sync_job_id)
        if job is None:
            return

        tracker = SyncProgressTracker(self._sync_job_repo, job)
        provider = self._provider_resolver(AuthProvider(job.provider))
        try:
            await self._run_grants_pipeline(job, tracker, provider)
        except AuthExpiredError as e:
            await tracker.fail(
                e.message,
                {"code": e.code, "detail": e.detail, "stage": tracker.stage.value},
            )
        except CapacityExceededError as e:
            await tracker.fail(
                e.message,
                {
                    "code": e.code,
                    "resource": e.resource,
                    "count": e.count,
                    "limit": e.limit,
                    "stage": tracker.stage.value,
                },
            )

    async def run_relations_stage(self, message: RelationsStageMessage) -> None:
        job = await self._load_active_job(message.sync_job_id)
        if job is None:
            return

        tracker = SyncProgressTracker(self._sync_job_repo, job)
        if job.stage == SyncStage.RELATIONSHIPS_PERSISTED:
            logger.info(f"Sync job {job.id} has its relations persisted, completing")
            await tracker.complete()
            await self._after_completion(job)
            return

        provider = self._provider_resolver(AuthProvider(job.provider))
        try:
            await self._refresh(job.id, provider)
        except AuthExpiredError as e:
            await tracker.fail(
                e.message,
                {"code": e.code, "detail": e.detail, "stage": tracker.stage.value},
            )
            return

        result = await self._persist_relations(message)
        await tracker.advance(SyncStage.RELATIONSHIPS_PERSISTED)

        if result.has_failures:
            logger.warning(
                "Sync job %d: %d of %d relations failed",
                job.id,
                result.failed,
                result.processed + result.failed,
            )
            await tracker.complete(COMPLETED_WITH_ISSUES_MESSAGE)
        else:
            await tracker.complete()
        await self._after_completion(job)

    async def handle_dead_letter(
        self, message: QueueMessage, error: Exception, details: str
    ) -> None:
        """Close out a job whose stage message exhausted its deliveries."""
        job = await self._load_active_job(message.sync_job_id)
        if job is None:
            return

        tracker = SyncProgressTracker(self._sync_job_repo, job)
        # applications are already persisted once the relations stage runs
        if isinstance(message, RelationsStageMessage) and tracker.can_advance(
            SyncStage.COMPLETED
        ):
            await tracker.complete(COMPLETED_WITH_ISSUES_MESSAGE)
            await self._after_completion(job)
            return

        await tracker.fail(
            f"Sync failed: {error}",
            {"error": str(error), "traceback": details, "stage": tracker.stage.value},
        )

    async def _run_grants_pipeline(
        self,
        job: SyncJob,
        tracker: SyncProgressTracker,
        provider: IDirectoryProvider,
    ) -> None:
        org_id = job.organization_id
        await tracker.advance(SyncStage.CONNECTED)
        accumulator = SyncAccumulator(self._limits)

        auth = await self._refresh(job.id, provider)
        accounts = await self._directory.fetch_accounts(provider, auth, accumulator)
        await self._directory.persist_accounts(org_id, accounts)
        await tracker.advance(SyncStage.USERS_FETCHED, count=len(accounts))

        auth = await self._refresh(job.id, provider)
        await self._collect_grants(provider, auth, accounts, accumulator)
        await tracker.advance(SyncStage.GRANTS_FETCHED)
        logger.info(
            "Sync job %d: %d grants, %d applications, %d relations (%d skipped)",
            job.id,
            accumulator.token_count,
            len(accumulator.applications),
            len(accumulator.relations),
            accumulator.skipped_grants,
        )
        await tracker.advance(
            SyncStage.APPLICATIONS_GROUPED, count=len(accumulator.relations)
        )

        await self._refresh(job.id, provider)
        saved = await self._persist_applications(org_id, accumulator)
        await tracker.advance(SyncStage.APPLICATIONS_PERSISTED, count=len(saved))
        self._trigger_categorization(org_id, saved)

        app_ids = {app.name: app.id for app in saved}
        relations = [
            UserAppRelation(
                app_name=r.app_name,
                user_id=r.user_id,
                user_email=r.user_email,
                scopes=sorted(r.scopes),
            )
            for r in accumulator.relations.values()
            if r.app_name in app_ids
        ]
        if not relations:
            logger.warning(f"Sync job {job.id}: no user-application relations")
            await tracker.complete(NO_RELATIONS_MESSAGE)
            await self._after_completion(job)
            return

        try:
            self._job_queue.enqueue(
                RelationsStageMessage(
                    organization_id=org_id,
                    sync_job_id=job.id,
                    user_app_relations=relations,
                    app_map=[
                        AppMapEntry(app_name=name, app_id=app_id)
                        for name, app_id in app_ids.items()
                    ],
                )
            )
        except JobQueueFullError as e:
            logger.error(f"Sync job {job.id}: relations hand-off failed: {e.message}")
            await tracker.complete(COMPLETED_WITH_ISSUES_MESSAGE)
            await self._after_completion(job)

    async def _collect_grants(
        self,
        provider: IDirectoryProvider,
        auth: AuthContext,
        accounts: list[DirectoryAccount],
        accumulator: SyncAccumulator,
    ) -> None:
        async for grants in provider.list_oauth_grants(auth, accounts):
            for grant in grants:
                if isinstance(grant, MicrosoftDelegatedGrant) and grant.is_admin_consent:
                    accumulator.skipped_grants += 1
                    continue
                accumulator.add_grant(grant, normalize(grant))

    async def _persist_applications(
        self, organization_id: int, accumulator: SyncAccumulator
    ) -> list[Application]:
        dtos = [
            UpsertApplicationDTO(
                organization_id=organization_id,
                name=group.name,
                provider_app_id=group.provider_app_id,
                category=UNKNOWN_CATEGORY,
                risk_level=classify(group.scopes),
                all_scopes=sorted(group.scopes),
                user_count=len(group.user_emails),
            )
            for group in accumulator.applications.values()
        ]
        saved: list[Application] = []

        async def _upsert(batch: list[UpsertApplicationDTO]) -> None:
            for dto in batch:
                app = await self._app_repo.upsert(dto)
                # risk follows the merged scope set, not just this run's
                risk = classify(app.all_scopes)
                if risk != app.risk_level:
                    await self._app_repo.update_risk_level(app.id, risk)
                    app = app.model_copy(update={"risk_level": risk})
                saved.append(app)

        result = await self._resource_monitor.process_in_batches(
            dtos,
            _upsert,
            batch_size=self._application_batch_size,
            delay_seconds=self._batch_delay,
            stage="applications",
        )
        if result.has_failures:
            logger.warning(
                f"{result.failed} applications failed to save for organization {organization_id}"
            )
        return saved

    async def _persist_relations(self, message: RelationsStageMessage) -> BatchResult:
        org_id = message.organization_id
        app_ids = {entry.app_name: entry.app_id for entry in message.app_map}
        index = await self._directory.load_index(org_id)

        edges: dict[tuple[int, int], set[str]] = {}
        unresolved: list[str] = []
        for relation in message.user_app_relations:
            app_id = app_ids.get(relation.app_name)
            if app_id is None:
                unresolved.append(f"Unknown application {relation.app_name}")
                continue
            try:
                user = await self._directory.ensure_user(
                    org_id, index, relation.user_id, relation.user_email
                )
            except asyncpg.PostgresError as e:
                logger.warning(f"Could not resolve user {relation.user_email}: {e}")
                unresolved.append(f"User {relation.user_email}: {e}")
                continue
            scopes = edges.setdefault((user.id, app_id), set())
            scopes.update(relation.scopes or [UNKNOWN_SCOPE])

        dtos = [
            UpsertUserApplicationDTO(
                user_id=user_id, application_id=app_id, scopes=sorted(scopes)
            )
            for (user_id, app_id), scopes in edges.items()
        ]

        async def _upsert(batch: list[UpsertUserApplicationDTO]) -> None:
            await self._edge_repo.bulk_upsert(batch)

        result = await self._resource_monitor.process_in_batches(
            dtos,
            _upsert,
            batch_size=self._relation_batch_size,
            delay_seconds=self._batch_delay,
            stage="relations",
        )
        result.failed += len(unresolved)
        result.errors.extend(unresolved)

        for app_id in sorted({dto.application_id for dto in dtos}):
            count = await self._edge_repo.count_by_application(app_id)
            await self._app_repo.update_user_count(app_id, count)

        logger.info(
            "Persisted %d relations for organization %d (%d failed)",
            result.processed,
            org_id,
            result.failed,
        )
        return result

    def _trigger_categorization(
        self, organization_id: int, apps: list[Application]
    ) -> None:
        pending = [app.id for app in apps if needs_category(app)]
        if not pending:
            return
        fire_and_forget(
            self._categorization.request_categorization(organization_id, pending),
            name=f"categorize-org-{organization_id}",
        )

    async def _after_completion(self, job: SyncJob) -> None:
        fire_and_forget(
            self._notifications.send_sync_completed_email(job.user_email),
            name=f"sync-email-{job.id}",
        )
        if not await self._org_repo.mark_first_sync_completed(job.organization_id):
            return
        apps = await self._app_repo.find_by_organization(job.organization_id)
        fire_and_forget(
            self._notifications.send_first_sync_webhook(
                job.organization_id, [app.name for app in apps]
            ),
            name=f"signup-webhook-{job.organization_id}",
        )

    async def _refresh(self, sync_job_id: int, provider: IDirectoryProvider) -> AuthContext:
        # reload: the provider may have rotated the refresh token last time
        job = await self._sync_job_repo.find_by_id(sync_job_id)
        if job is None:
            raise SyncJobNotFoundError(sync_job_id)
        return await self._credentials.refresh(job, provider)

    async def _load_active_job(self, sync_job_id: int) -> SyncJob | None:
        job = await self._sync_job_repo.find_by_id(sync_job_id)
        if job is None:
            logger.error(f"Sync job {sync_job_id} not found, dropping stage")
            return None
        if job.is_terminal:
            logger.info(f"Sync job {sync_job_id} already {job.status.value}, skipping")
            return None
        return job
