from shadowit.workflow.consumer import SyncQueueConsumer, is_retryable_error
from shadowit.workflow.job_queue import (
    JobQueueFullError,
    QueuedJob,
    SyncJobQueue,
    sync_job_queue,
)
from shadowit.workflow.messages import (
    AppMapEntry,
    GrantsStageMessage,
    RelationsStageMessage,
    StageMessage,
    UserAppRelation,
)

__all__ = [
    "AppMapEntry",
    "GrantsStageMessage",
    "JobQueueFullError",
    "QueuedJob",
    "RelationsStageMessage",
    "StageMessage",
    "SyncJobQueue",
    "SyncQueueConsumer",
    "UserAppRelation",
    "is_retryable_error",
    "sync_job_queue",
]
