import json

import asyncpg

from shadowit.database.query_builder import bind_named
from shadowit.dtos.user_application_dtos import UpsertUserApplicationDTO
from shadowit.models.user_application import (
    UserApplication,
    UserApplicationWithEmail,
)


class UserApplicationRepository:

    _SELECT_FIELDS = """
        ua.id, ua.user_id, ua.application_id, ua.scopes,
        ua.created_at, ua.updated_at
    """

    _SELECT_WITH_USER_FIELDS = """
        ua.id, ua.user_id, ua.application_id, ua.scopes,
        ua.created_at, ua.updated_at,
        u.email AS user_email, u.provider_user_id AS user_provider_id
    """

    # Scopes on an existing edge are only ever unioned
    _MERGE_SCOPES = """
        scopes = ARRAY(
            SELECT DISTINCT s
            FROM unnest(user_applications.scopes || EXCLUDED.scopes) AS s
            ORDER BY s
        ),
        updated_at = NOW()
    """

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def upsert(self, dto: UpsertUserApplicationDTO) -> UserApplication:
        query = f"""
            INSERT INTO user_applications (user_id, application_id, scopes)
            VALUES (:user_id, :application_id, :scopes::text[])
            ON CONFLICT (user_id, application_id) DO UPDATE SET
                {self._MERGE_SCOPES}
            RETURNING id, user_id, application_id, scopes, created_at, updated_at
        """
        params = {
            "user_id": dto.user_id,
            "application_id": dto.application_id,
            "scopes": sorted(set(dto.scopes)),
        }
        query, values = bind_named(query, params)
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def bulk_upsert(self, dtos: list[UpsertUserApplicationDTO]) -> int:
        """Merge a batch of edges in one statement.

        Each (user_id, application_id) pair must appear at most once per batch.
        """
        if not dtos:
            return 0

        # text[][] cannot be unnested per row, so scopes travel as jsonb
        query = f"""
            INSERT INTO user_applications (user_id, application_id, scopes)
            SELECT t.user_id, t.application_id,
                   ARRAY(SELECT jsonb_array_elements_text(t.scopes))
            FROM unnest($1::bigint[], $2::bigint[], $3::jsonb[])
                AS t(user_id, application_id, scopes)
            ON CONFLICT (user_id, application_id) DO UPDATE SET
                {self._MERGE_SCOPES}
        """
        user_ids = [dto.user_id for dto in dtos]
        app_ids = [dto.application_id for dto in dtos]
        scopes = [json.dumps(sorted(set(dto.scopes))) for dto in dtos]
        result = await self._conn.execute(query, user_ids, app_ids, scopes)
        return int(result.split()[-1]) if result else 0

    async def find_by_application(
        self, application_id: int, limit: int | None = None
    ) -> list[UserApplicationWithEmail]:
        query = f"""
            SELECT {self._SELECT_WITH_USER_FIELDS}
            FROM user_applications ua
            JOIN users u ON u.id = ua.user_id
            WHERE ua.application_id = :application_id
            ORDER BY ua.id
        """
        params: dict = {"application_id": application_id}
        if limit is not None:
            query += " LIMIT :limit"
            params["limit"] = limit
        query, values = bind_named(query, params)
        rows = await self._conn.fetch(query, *values)
        return [self._map_to_model_with_email(row) for row in rows if row]

    async def find_by_application_ids(
        self, application_ids: list[int]
    ) -> list[UserApplication]:
        if not application_ids:
            return []
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM user_applications ua
            WHERE ua.application_id = ANY(:application_ids::bigint[])
        """
        query, values = bind_named(query, {"application_ids": application_ids})
        rows = await self._conn.fetch(query, *values)
        return [self._map_to_model(row) for row in rows if row]

    async def find_by_user_ids(self, user_ids: list[int]) -> list[UserApplication]:
        if not user_ids:
            return []
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM user_applications ua
            WHERE ua.user_id = ANY(:user_ids::bigint[])
        """
        query, values = bind_named(query, {"user_ids": user_ids})
        rows = await self._conn.fetch(query, *values)
        return [self._map_to_model(row) for row in rows if row]

    async def count_by_application(self, application_id: int) -> int:
        query = """
            SELECT COUNT(*) AS count
            FROM user_applications
            WHERE application_id = :application_id
        """
        query, values = bind_named(query, {"application_id": application_id})
        row = await self._conn.fetchrow(query, *values)
        return row["count"] if row else 0

    async def delete_by_ids(self, edge_ids: list[int]) -> int:
        if not edge_ids:
            return 0
        query = "DELETE FROM user_applications WHERE id = ANY(:edge_ids::bigint[])"
        query, values = bind_named(query, {"edge_ids": edge_ids})
        result = await self._conn.execute(query, *values)
        return int(result.split()[-1]) if result else 0

    def _map_to_model(self, row: asyncpg.Record | None) -> UserApplication | None:
        if row is None:
            return None
        return UserApplication(
            id=row["id"],
            user_id=row["user_id"],
            application_id=row["application_id"],
            scopes=list(row["scopes"] or []),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _map_to_model_with_email(
        self, row: asyncpg.Record | None
    ) -> UserApplicationWithEmail | None:
        if row is None:
            return None
        return UserApplicationWithEmail(
            id=row["id"],
            user_id=row["user_id"],
            application_id=row["application_id"],
            scopes=list(row["scopes"] or []),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            user_email=row["user_email"],
            user_provider_id=row["user_provider_id"],
        )
