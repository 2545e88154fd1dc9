"""Tests for token encryption and refresh."""

import pytest
from cryptography.fernet import Fernet

from shadowit.constants.enums import AuthProvider
from shadowit.integrations.core.credentials import CredentialsManager
from shadowit.integrations.core.exceptions import (
    ApiRequestError,
    AuthExpiredError,
    ConfigurationError,
)
from shadowit.integrations.core.types import TokenResponse
from tests.fakes import FakeDirectoryProvider


class RotatingProvider(FakeDirectoryProvider):
    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        self.refresh_calls += 1
        return TokenResponse(
            access_token="new-access", refresh_token="rotated-refresh", expires_in=3600
        )


class TestEncryption:
    def test_missing_key_is_a_configuration_error(self, sync_job_repo):
        with pytest.raises(ConfigurationError):
            CredentialsManager(sync_job_repo, "")

    def test_tokens_are_stored_encrypted(self, credentials):
        dto = credentials.encrypt_tokens(
            TokenResponse(access_token="access", refresh_token="refresh", expires_in=60)
        )

        assert dto.access_token != "access"
        assert credentials.decrypt(dto.access_token) == "access"
        assert credentials.decrypt(dto.refresh_token) == "refresh"
        assert dto.token_expiry is not None

    def test_missing_refresh_token_stays_empty(self, credentials):
        dto = credentials.encrypt_tokens(TokenResponse(access_token="access"))

        assert dto.refresh_token is None
        assert dto.token_expiry is None


class TestRefresh:
    """Tests for forced refresh against the provider."""

    async def test_keeps_refresh_token_when_provider_omits_it(
        self, credentials, sync_job_repo, google_org, create_job
    ):
        job = await create_job(google_org, refresh_token="refresh-1")
        provider = FakeDirectoryProvider(AuthProvider.GOOGLE)

        auth = await credentials.refresh(job, provider)

        stored = await sync_job_repo.find_by_id(job.id)
        assert auth.access_token == "access-1"
        assert credentials.decrypt(stored.access_token) == "access-1"
        assert credentials.decrypt(stored.refresh_token) == "refresh-1"

    async def test_stores_rotated_refresh_token(
        self, credentials, sync_job_repo, microsoft_org, create_job
    ):
        job = await create_job(microsoft_org)

        await credentials.refresh(job, RotatingProvider(AuthProvider.MICROSOFT))

        stored = await sync_job_repo.find_by_id(job.id)
        assert credentials.decrypt(stored.refresh_token) == "rotated-refresh"

    async def test_no_refresh_token(self, credentials, google_org, create_job):
        job = await create_job(google_org, refresh_token=None)

        with pytest.raises(AuthExpiredError) as exc:
            await credentials.refresh(job, FakeDirectoryProvider(AuthProvider.GOOGLE))

        assert exc.value.detail == "No refresh token stored"

    async def test_undecryptable_token(self, sync_job_repo, google_org, create_job):
        job = await create_job(google_org)
        other_key = CredentialsManager(sync_job_repo, Fernet.generate_key().decode())

        with pytest.raises(AuthExpiredError):
            await other_key.refresh(job, FakeDirectoryProvider(AuthProvider.GOOGLE))

    async def test_provider_errors_become_auth_expired(self, credentials, google_org, create_job):
        job = await create_job(google_org)
        provider = FakeDirectoryProvider(
            AuthProvider.GOOGLE, refresh_error=ApiRequestError(400, "invalid_grant")
        )

        with pytest.raises(AuthExpiredError) as exc:
            await credentials.refresh(job, provider)

        assert exc.value.code == "AUTH_EXPIRED"
        assert "invalid_grant" in exc.value.detail
