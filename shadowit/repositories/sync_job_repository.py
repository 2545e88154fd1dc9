import json
from datetime import datetime
from typing import Any

import asyncpg

from shadowit.constants.enums import SyncJobStatus
from shadowit.database.query_builder import bind_named
from shadowit.dtos.sync_job_dtos import (
    CreateSyncJobDTO,
    UpdateSyncProgressDTO,
    UpdateSyncTokensDTO,
)
from shadowit.models.sync_job import SyncJob


class SyncJobRepository:

    _SELECT_FIELDS = """
        id, organization_id, user_email, provider, status, stage, progress,
        message, access_token, refresh_token, scope, token_expiry,
        error_details, created_at, updated_at
    """

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def create(self, dto: CreateSyncJobDTO) -> SyncJob:
        query = f"""
            INSERT INTO sync_status (
                organization_id, user_email, provider, status, stage, progress,
                message, access_token, refresh_token, scope, token_expiry
            ) VALUES (
                :organization_id, :user_email, :provider, :status, :stage, :progress,
                :message, :access_token, :refresh_token, :scope, :token_expiry
            )
            RETURNING {self._SELECT_FIELDS}
        """
        params = {
            "organization_id": dto.organization_id,
            "user_email": dto.user_email,
            "provider": dto.provider.value,
            "status": dto.status.value,
            "stage": dto.stage.value,
            "progress": dto.progress,
            "message": dto.message,
            "access_token": dto.access_token,
            "refresh_token": dto.refresh_token,
            "scope": dto.scope,
            "token_expiry": dto.token_expiry,
        }
        query, values = bind_named(query, params)
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def find_by_id(self, sync_job_id: int) -> SyncJob | None:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM sync_status
            WHERE id = :sync_job_id
        """
        query, values = bind_named(query, {"sync_job_id": sync_job_id})
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def update_progress(
        self, sync_job_id: int, dto: UpdateSyncProgressDTO
    ) -> SyncJob | None:
        update_data = dto.model_dump(exclude_none=True)
        if not update_data:
            return await self.find_by_id(sync_job_id)

        params: dict[str, Any] = {"sync_job_id": sync_job_id}
        set_clauses = []
        for key, value in update_data.items():
            if key == "error_details":
                value = json.dumps(value)
                set_clauses.append(f"{key} = :{key}::jsonb")
            else:
                if hasattr(value, "value"):
                    value = value.value
                set_clauses.append(f"{key} = :{key}")
            params[key] = value

        query = f"""
            UPDATE sync_status
            SET {', '.join(set_clauses)}, updated_at = NOW()
            WHERE id = :sync_job_id
            RETURNING {self._SELECT_FIELDS}
        """
        query, values = bind_named(query, params)
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def update_tokens(self, sync_job_id: int, dto: UpdateSyncTokensDTO) -> None:
        query = """
            UPDATE sync_status
            SET access_token = :access_token,
                refresh_token = COALESCE(:refresh_token, refresh_token),
                scope = COALESCE(:scope, scope),
                token_expiry = :token_expiry,
                updated_at = NOW()
            WHERE id = :sync_job_id
        """
        params = {
            "sync_job_id": sync_job_id,
            "access_token": dto.access_token,
            "refresh_token": dto.refresh_token,
            "scope": dto.scope,
            "token_expiry": dto.token_expiry,
        }
        query, values = bind_named(query, params)
        await self._conn.execute(query, *values)

    async def find_latest_in_progress(self, organization_id: int) -> SyncJob | None:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM sync_status
            WHERE organization_id = :organization_id AND status = :status
            ORDER BY created_at DESC
            LIMIT 1
        """
        query, values = bind_named(
            query,
            {
                "organization_id": organization_id,
                "status": SyncJobStatus.IN_PROGRESS.value,
            },
        )
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def find_latest_with_refresh_token(
        self, organization_id: int
    ) -> SyncJob | None:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM sync_status
            WHERE organization_id = :organization_id AND refresh_token IS NOT NULL
            ORDER BY created_at DESC
            LIMIT 1
        """
        query, values = bind_named(query, {"organization_id": organization_id})
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def find_stale_in_progress(self, updated_before: datetime) -> list[SyncJob]:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM sync_status
            WHERE status = :status AND updated_at < :updated_before
            ORDER BY updated_at
        """
        query, values = bind_named(
            query,
            {
                "status": SyncJobStatus.IN_PROGRESS.value,
                "updated_before": updated_before,
            },
        )
        rows = await self._conn.fetch(query, *values)
        return [self._map_to_model(row) for row in rows if row]

    def _map_to_model(self, row: asyncpg.Record | None) -> SyncJob | None:
        if row is None:
            return None

        error_details = row["error_details"]
        if isinstance(error_details, str):
            error_details = json.loads(error_details)

        return SyncJob(
            id=row["id"],
            organization_id=row["organization_id"],
            user_email=row["user_email"],
            provider=row["provider"],
            status=row["status"],
            stage=row["stage"],
            progress=row["progress"],
            message=row["message"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            scope=row["scope"],
            token_expiry=row["token_expiry"],
            error_details=error_details or {},
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
