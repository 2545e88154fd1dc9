from shadowit.constants.enums import AuthProvider
from shadowit.core.exceptions import AppException

_REAUTH_MESSAGES = {
    AuthProvider.GOOGLE: (
        "Google authentication credentials are invalid. "
        "Please re-authenticate your Google Workspace account."
    ),
    AuthProvider.MICROSOFT: (
        "Microsoft authentication has expired. "
        "Please re-authenticate your Microsoft account."
    ),
}


class IntegrationException(AppException):
    def __init__(self, code: str, message: str, status_code: int = 400):
        super().__init__(code, message, status_code)


class ProviderNotFoundError(IntegrationException):
    def __init__(self, provider: str):
        super().__init__(
            code="PROVIDER_NOT_FOUND",
            message=f"Provider '{provider}' not found or not supported",
            status_code=404,
        )


class AuthExpiredError(IntegrationException):
    """Refresh token invalid or revoked. Never retried; the user must re-authenticate."""

    def __init__(self, provider: AuthProvider, detail: str | None = None):
        self.provider = provider
        self.detail = detail
        super().__init__(
            code="AUTH_EXPIRED",
            message=_REAUTH_MESSAGES[provider],
            status_code=401,
        )


class QuotaExceededError(IntegrationException):
    def __init__(self, retry_after: int | None = None, message: str | None = None):
        self.retry_after = retry_after
        text = message or "API rate limit exceeded"
        if retry_after:
            text += f", retry after {retry_after} seconds"
        super().__init__(
            code="QUOTA_EXCEEDED",
            message=text,
            status_code=429,
        )


class ApiRequestError(IntegrationException):
    def __init__(self, status_code: int, message: str):
        super().__init__(
            code="API_REQUEST_FAILED",
            message=message,
            status_code=status_code,
        )

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class ConfigurationError(IntegrationException):
    def __init__(self, message: str):
        super().__init__(
            code="CONFIGURATION_ERROR",
            message=message,
            status_code=500,
        )
