"""Tests for the HTTP surface: authentication, status codes and envelopes."""

from shadowit.core.security import token_service
from tests.consts import ALICE, API_BASE


def start_payload(organization_id: int, provider: str = "google") -> dict:
    return {
        "organization_id": organization_id,
        "access_token": "access-0",
        "refresh_token": "refresh-1",
        "user_email": ALICE,
        "provider": provider,
        "scope": "openid email",
        "expires_in": 3600,
    }


class TestHealth:
    def test_degraded_without_database(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert "pending_stages" in body


class TestStartSyncRoute:
    """Tests for POST /sync/start."""

    def test_requires_token(self, client, google_org):
        response = client.post(f"{API_BASE}/sync/start", json=start_payload(google_org.id))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "NOT_AUTHENTICATED"

    def test_rejects_invalid_token(self, client, google_org):
        response = client.post(
            f"{API_BASE}/sync/start",
            json=start_payload(google_org.id),
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"

    def test_other_organization_is_forbidden(self, client, user_headers, microsoft_org):
        response = client.post(
            f"{API_BASE}/sync/start",
            json=start_payload(microsoft_org.id, "microsoft"),
            headers=user_headers,
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    def test_accepted(self, client, user_headers, google_org, job_queue):
        response = client.post(
            f"{API_BASE}/sync/start", json=start_payload(google_org.id), headers=user_headers
        )

        assert response.status_code == 202
        data = response.json()["data"]
        assert data["organization_id"] == google_org.id
        assert data["status"] == "IN_PROGRESS"
        assert data["stage"] == "CONNECTED"
        assert job_queue.pending == 1

    def test_validation_envelope(self, client, user_headers):
        response = client.post(
            f"{API_BASE}/sync/start", json={"organization_id": 0}, headers=user_headers
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert {d["field"] for d in error["details"]} >= {"organization_id", "provider"}


class TestProgressRoute:
    def test_own_job(self, client, user_headers, google_org):
        started = client.post(
            f"{API_BASE}/sync/start", json=start_payload(google_org.id), headers=user_headers
        ).json()["data"]

        response = client.get(
            f"{API_BASE}/sync/{started['sync_job_id']}/progress", headers=user_headers
        )

        assert response.status_code == 200
        assert response.json()["data"] == {
            "status": "IN_PROGRESS",
            "progress": 0,
            "message": "Starting Google Workspace data sync...",
        }

    def test_other_organizations_job_is_not_found(
        self, client, user_headers, google_org, microsoft_org
    ):
        started = client.post(
            f"{API_BASE}/sync/start", json=start_payload(google_org.id), headers=user_headers
        ).json()["data"]
        outsider = token_service.create_access_token("eve@contoso.com", microsoft_org.id)

        response = client.get(
            f"{API_BASE}/sync/{started['sync_job_id']}/progress",
            headers={"Authorization": f"Bearer {outsider}"},
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SYNC_JOB_NOT_FOUND"


class TestCronRoutes:
    """Tests for the routes driven by the scheduler."""

    def test_missing_secret(self, client, google_org):
        response = client.post(
            f"{API_BASE}/sync/continue", json={"organization_id": google_org.id}
        )

        assert response.status_code == 401

    def test_user_token_is_not_a_cron_secret(self, client, user_headers):
        response = client.post(f"{API_BASE}/sync/expire-stale", headers=user_headers)

        assert response.status_code == 401

    def test_continue_with_nothing_in_progress(self, client, cron_headers, google_org):
        response = client.post(
            f"{API_BASE}/sync/continue",
            json={"organization_id": google_org.id},
            headers=cron_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"resumed": False, "sync_job": None}

    def test_expire_stale(self, client, cron_headers):
        response = client.post(f"{API_BASE}/sync/expire-stale", headers=cron_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {"expired": 0, "sync_job_ids": []}

    def test_cleanup_on_wrong_provider(self, client, cron_headers, google_org):
        response = client.post(
            f"{API_BASE}/cleanup/guest-disabled-users",
            json={"organization_id": google_org.id, "dry_run": True},
            headers=cron_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Microsoft Entra ID organization not found"

    def test_cleanup_reports_missing_credentials(self, client, cron_headers, microsoft_org):
        response = client.post(
            f"{API_BASE}/cleanup/guest-disabled-users",
            json={"organization_id": microsoft_org.id},
            headers=cron_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["dry_run"] is True
        assert data["results"][0]["error_code"] == "CREDENTIALS_NOT_FOUND"

    def test_recalculate_risk(self, client, cron_headers, microsoft_org):
        response = client.post(
            f"{API_BASE}/cleanup/recalculate-risk",
            json={"organization_id": microsoft_org.id},
            headers=cron_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"] == {
            "organization_id": microsoft_org.id,
            "applications_updated": 0,
            "risk_changes": {},
        }

    def test_suspicious_applications_without_candidates(
        self, client, cron_headers, microsoft_org
    ):
        response = client.post(
            f"{API_BASE}/cleanup/suspicious-applications",
            json={"organization_id": microsoft_org.id},
            headers=cron_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["suspicious_applications"] == 0

    def test_stale_relationships_without_credentials(self, client, cron_headers, microsoft_org):
        response = client.post(
            f"{API_BASE}/cleanup/stale-relationships",
            json={"organization_id": microsoft_org.id},
            headers=cron_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CREDENTIALS_NOT_FOUND"
