"""Tests for sync job stage transitions."""

import pytest

from shadowit.constants.enums import SyncJobStatus, SyncStage
from shadowit.core.exceptions import InvalidStateTransitionError
from shadowit.services.progress_tracker import FAILED_PROGRESS, SyncProgressTracker


@pytest.fixture
async def job(google_org, create_job):
    return await create_job(google_org)


@pytest.fixture
def tracker(sync_job_repo, job):
    return SyncProgressTracker(sync_job_repo, job)


class TestAdvance:
    """Tests for forward stage transitions."""

    async def test_writes_stage_progress_and_message(self, tracker, sync_job_repo, job):
        await tracker.advance(SyncStage.CONNECTED)
        await tracker.advance(SyncStage.USERS_FETCHED, count=42)

        stored = await sync_job_repo.find_by_id(job.id)
        assert stored.stage == SyncStage.USERS_FETCHED
        assert stored.progress == 30
        assert stored.message == "Found 42 users..."
        assert stored.status == SyncJobStatus.IN_PROGRESS

    async def test_connected_message_names_provider(self, tracker, sync_job_repo, job):
        await tracker.advance(SyncStage.CONNECTED)

        stored = await sync_job_repo.find_by_id(job.id)
        assert stored.message == "Starting Google Workspace data sync..."

    async def test_skipping_a_stage_is_rejected(self, tracker):
        await tracker.advance(SyncStage.CONNECTED)

        with pytest.raises(InvalidStateTransitionError):
            await tracker.advance(SyncStage.GRANTS_FETCHED)

    async def test_replaying_an_earlier_stage_is_a_noop(self, tracker, sync_job_repo):
        await tracker.advance(SyncStage.CONNECTED)
        await tracker.advance(SyncStage.USERS_FETCHED, count=1)
        writes = len(sync_job_repo.progress_updates)

        await tracker.advance(SyncStage.CONNECTED)

        assert len(sync_job_repo.progress_updates) == writes
        assert tracker.stage == SyncStage.USERS_FETCHED

    async def test_credentials_only_shortcut(self, tracker, sync_job_repo, job):
        await tracker.complete("Credentials updated")

        stored = await sync_job_repo.find_by_id(job.id)
        assert stored.status == SyncJobStatus.COMPLETED
        assert stored.progress == 100
        assert stored.message == "Credentials updated"

    async def test_nothing_advances_after_completion(self, tracker):
        await tracker.complete()

        assert not tracker.can_advance(SyncStage.COMPLETED)
        with pytest.raises(InvalidStateTransitionError):
            await tracker.advance(SyncStage.CONNECTED)


class TestFail:
    """Tests for the failure transition."""

    async def test_records_error_details(self, tracker, sync_job_repo, job):
        await tracker.advance(SyncStage.CONNECTED)
        await tracker.fail("boom", {"code": "X"})

        stored = await sync_job_repo.find_by_id(job.id)
        assert stored.status == SyncJobStatus.FAILED
        assert stored.stage == SyncStage.FAILED
        assert stored.progress == FAILED_PROGRESS
        assert stored.error_details == {"code": "X"}

    async def test_completed_job_is_not_failed(self, tracker, sync_job_repo, job):
        await tracker.complete()
        await tracker.fail("late failure")

        stored = await sync_job_repo.find_by_id(job.id)
        assert stored.status == SyncJobStatus.COMPLETED
