import asyncpg

from shadowit.constants.enums import RiskLevel
from shadowit.database.query_builder import bind_named
from shadowit.dtos.application_dtos import (
    RecalculatedApplicationDTO,
    UpsertApplicationDTO,
)
from shadowit.models.application import Application


class ApplicationRepository:

    _SELECT_FIELDS = """
        id, organization_id, name, provider_app_id, category, risk_level,
        management_status, total_permissions, all_scopes, user_count,
        created_at, updated_at
    """

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def find_by_id(self, app_id: int) -> Application | None:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM applications
            WHERE id = :app_id
        """
        query, values = bind_named(query, {"app_id": app_id})
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def find_by_organization(self, organization_id: int) -> list[Application]:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM applications
            WHERE organization_id = :organization_id
            ORDER BY name
        """
        query, values = bind_named(query, {"organization_id": organization_id})
        rows = await self._conn.fetch(query, *values)
        return [self._map_to_model(row) for row in rows if row]

    async def find_with_user_count_above(
        self, organization_id: int, threshold: int
    ) -> list[Application]:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM applications
            WHERE organization_id = :organization_id AND user_count > :threshold
            ORDER BY user_count DESC
        """
        query, values = bind_named(
            query, {"organization_id": organization_id, "threshold": threshold}
        )
        rows = await self._conn.fetch(query, *values)
        return [self._map_to_model(row) for row in rows if row]

    async def count_by_organization(self, organization_id: int) -> int:
        query = """
            SELECT COUNT(*) AS count
            FROM applications
            WHERE organization_id = :organization_id
        """
        query, values = bind_named(query, {"organization_id": organization_id})
        row = await self._conn.fetchrow(query, *values)
        return row["count"] if row else 0

    async def upsert(self, dto: UpsertApplicationDTO) -> Application:
        """Insert or merge an application keyed by (organization_id, name).

        ``all_scopes`` is unioned with what is stored. ``management_status``
        and an existing category are never overwritten by a sync.
        """
        query = f"""
            INSERT INTO applications (
                organization_id, name, provider_app_id, category, risk_level,
                management_status, total_permissions, all_scopes, user_count
            ) VALUES (
                :organization_id, :name, :provider_app_id, :category, :risk_level,
                :management_status, cardinality(:all_scopes::text[]),
                :all_scopes::text[], :user_count
            )
            ON CONFLICT (organization_id, name) DO UPDATE SET
                provider_app_id = COALESCE(EXCLUDED.provider_app_id, applications.provider_app_id),
                category = COALESCE(applications.category, EXCLUDED.category),
                all_scopes = ARRAY(
                    SELECT DISTINCT s
                    FROM unnest(applications.all_scopes || EXCLUDED.all_scopes) AS s
                    ORDER BY s
                ),
                total_permissions = cardinality(ARRAY(
                    SELECT DISTINCT unnest(applications.all_scopes || EXCLUDED.all_scopes)
                )),
                user_count = GREATEST(applications.user_count, EXCLUDED.user_count),
                updated_at = NOW()
            RETURNING {self._SELECT_FIELDS}
        """
        params = {
            "organization_id": dto.organization_id,
            "name": dto.name,
            "provider_app_id": dto.provider_app_id,
            "category": dto.category,
            "risk_level": dto.risk_level.value,
            "management_status": dto.management_status,
            "all_scopes": sorted(set(dto.all_scopes)),
            "user_count": dto.user_count,
        }
        query, values = bind_named(query, params)
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def update_risk_level(self, app_id: int, risk_level: RiskLevel) -> None:
        query = """
            UPDATE applications
            SET risk_level = :risk_level, updated_at = NOW()
            WHERE id = :app_id
        """
        query, values = bind_named(
            query, {"app_id": app_id, "risk_level": risk_level.value}
        )
        await self._conn.execute(query, *values)

    async def update_user_count(self, app_id: int, user_count: int) -> None:
        query = """
            UPDATE applications
            SET user_count = :user_count, updated_at = NOW()
            WHERE id = :app_id
        """
        query, values = bind_named(query, {"app_id": app_id, "user_count": user_count})
        await self._conn.execute(query, *values)

    async def apply_recalculation(self, dto: RecalculatedApplicationDTO) -> None:
        """Replace derived fields. The only path allowed to shrink ``all_scopes``."""
        query = """
            UPDATE applications
            SET all_scopes = :all_scopes::text[],
                total_permissions = :total_permissions,
                user_count = :user_count,
                risk_level = :risk_level,
                updated_at = NOW()
            WHERE id = :app_id
        """
        params = {
            "app_id": dto.application_id,
            "all_scopes": dto.all_scopes,
            "total_permissions": dto.total_permissions,
            "user_count": dto.user_count,
            "risk_level": dto.risk_level.value,
        }
        query, values = bind_named(query, params)
        await self._conn.execute(query, *values)

    async def delete_without_users(self, organization_id: int) -> list[Application]:
        query = f"""
            DELETE FROM applications a
            WHERE a.organization_id = :organization_id
              AND NOT EXISTS (
                  SELECT 1 FROM user_applications ua WHERE ua.application_id = a.id
              )
            RETURNING {self._SELECT_FIELDS}
        """
        query, values = bind_named(query, {"organization_id": organization_id})
        rows = await self._conn.fetch(query, *values)
        return [self._map_to_model(row) for row in rows if row]

    def _map_to_model(self, row: asyncpg.Record | None) -> Application | None:
        if row is None:
            return None
        return Application(
            id=row["id"],
            organization_id=row["organization_id"],
            name=row["name"],
            provider_app_id=row["provider_app_id"],
            category=row["category"],
            risk_level=row["risk_level"],
            management_status=row["management_status"],
            total_permissions=row["total_permissions"],
            all_scopes=list(row["all_scopes"] or []),
            user_count=row["user_count"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
