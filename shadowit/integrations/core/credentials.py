import logging
from datetime import datetime, timedelta, timezone

from cryptography.fernet import Fernet, InvalidToken

from shadowit.dtos.sync_job_dtos import UpdateSyncTokensDTO
from shadowit.integrations.core.exceptions import AuthExpiredError, ConfigurationError
from shadowit.integrations.core.interfaces import IDirectoryProvider
from shadowit.integrations.core.types import AuthContext, TokenResponse
from shadowit.models.sync_job import SyncJob
from shadowit.repositories.sync_job_repository import SyncJobRepository

logger = logging.getLogger(__name__)


class CredentialsManager:
    """Encrypts OAuth tokens at rest on the sync job and refreshes them."""

    def __init__(self, sync_job_repository: SyncJobRepository, encryption_key: str):
        if not encryption_key:
            raise ConfigurationError("ENCRYPTION_KEY is not configured")
        self._sync_job_repository = sync_job_repository
        self._fernet = Fernet(encryption_key.encode())

    def encrypt(self, value: str) -> str:
        return self._fernet.encrypt(value.encode()).decode()

    def decrypt(self, encrypted_value: str) -> str:
        return self._fernet.decrypt(encrypted_value.encode()).decode()

    def encrypt_tokens(self, tokens: TokenResponse) -> UpdateSyncTokensDTO:
        expires_at = None
        if tokens.expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(
                seconds=tokens.expires_in
            )
        return UpdateSyncTokensDTO(
            access_token=self.encrypt(tokens.access_token),
            refresh_token=self.encrypt(tokens.refresh_token)
            if tokens.refresh_token
            else None,
            scope=tokens.scope,
            token_expiry=expires_at,
        )

    async def store_tokens(self, sync_job_id: int, tokens: TokenResponse) -> None:
        await self._sync_job_repository.update_tokens(
            sync_job_id, self.encrypt_tokens(tokens)
        )

    async def refresh(
        self, sync_job: SyncJob, provider: IDirectoryProvider
    ) -> AuthContext:
        """Force a refresh and persist the new tokens on the job.

        Any failure is fatal for the run and surfaces as ``AuthExpiredError``.
        """
        if not sync_job.refresh_token:
            raise AuthExpiredError(provider.provider, "No refresh token stored")

        try:
            refresh_token = self.decrypt(sync_job.refresh_token)
        except InvalidToken as e:
            raise AuthExpiredError(
                provider.provider, "Stored refresh token cannot be decrypted"
            ) from e

        try:
            tokens = await provider.refresh_access_token(refresh_token)
        except AuthExpiredError:
            logger.error(f"Refresh token rejected for sync job {sync_job.id}")
            raise
        except Exception as e:
            logger.error(f"Token refresh failed for sync job {sync_job.id}: {e}")
            raise AuthExpiredError(provider.provider, str(e)) from e

        # Google omits refresh_token on refresh; keep the one we have
        if not tokens.refresh_token:
            tokens.refresh_token = refresh_token
        await self.store_tokens(sync_job.id, tokens)
        logger.info(f"Refreshed tokens for sync job {sync_job.id}")

        expires_at = None
        if tokens.expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(
                seconds=tokens.expires_in
            )
        return AuthContext(access_token=tokens.access_token, expires_at=expires_at)
