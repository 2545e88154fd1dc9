class AppException(Exception):
    def __init__(self, code: str, message: str, status_code: int = 400):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthenticationException(AppException):
    def __init__(self, code: str, message: str):
        super().__init__(code, message, status_code=401)


class NotFoundException(AppException):
    def __init__(self, code: str, message: str):
        super().__init__(code, message, status_code=404)


class OrganizationNotFoundError(NotFoundException):
    def __init__(self, organization_id: int):
        super().__init__(
            "ORGANIZATION_NOT_FOUND",
            f"Organization {organization_id} not found",
        )


class SyncJobNotFoundError(NotFoundException):
    def __init__(self, sync_job_id: int):
        super().__init__("SYNC_JOB_NOT_FOUND", f"Sync job {sync_job_id} not found")


class CredentialsNotFoundError(NotFoundException):
    def __init__(self, organization_id: int):
        super().__init__(
            "CREDENTIALS_NOT_FOUND",
            f"No stored credentials with a refresh token for organization {organization_id}",
        )


class CapacityExceededError(AppException):
    """In-memory record counts crossed a hard ceiling; the run must abort."""

    def __init__(self, resource: str, count: int, limit: int):
        self.resource = resource
        self.count = count
        self.limit = limit
        super().__init__(
            code="CAPACITY_EXCEEDED",
            message=(
                f"Organization too large to sync: {count} {resource} exceeds the "
                f"limit of {limit}. Please contact support."
            ),
            status_code=413,
        )


class SafetyThresholdTrippedError(AppException):
    def __init__(self, candidates: int, total: int, threshold: float):
        self.candidates = candidates
        self.total = total
        self.threshold = threshold
        super().__init__(
            code="SAFETY_THRESHOLD_TRIPPED",
            message=(
                f"Refusing to remove {candidates} of {total} users "
                f"(more than {threshold:.0%}); directory data looks incomplete"
            ),
            status_code=409,
        )


class PartialBatchFailure(AppException):
    def __init__(self, stage: str, batch_index: int, message: str):
        self.stage = stage
        self.batch_index = batch_index
        super().__init__(
            code="PARTIAL_BATCH_FAILURE",
            message=f"Batch {batch_index} of stage '{stage}' failed: {message}",
            status_code=500,
        )


class InvalidStateTransitionError(AppException):
    def __init__(self, current: str, target: str):
        super().__init__(
            code="INVALID_STATE_TRANSITION",
            message=f"Cannot move sync from {current} to {target}",
            status_code=409,
        )


class ValidationException(AppException):
    def __init__(self, code: str, message: str, details: list | None = None):
        super().__init__(code, message, status_code=400)
        self.details = details or []
