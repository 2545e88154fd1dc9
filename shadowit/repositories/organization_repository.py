import asyncpg

from shadowit.constants.enums import AuthProvider
from shadowit.database.query_builder import bind_named
from shadowit.models.organization import Organization


class OrganizationRepository:

    _SELECT_FIELDS = """
        id, name, domain, auth_provider, first_sync_completed_at,
        created_at, updated_at
    """

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def find_by_id(self, org_id: int) -> Organization | None:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM organizations
            WHERE id = :org_id
        """
        query, values = bind_named(query, {"org_id": org_id})
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def find_by_domain(self, domain: str) -> Organization | None:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM organizations
            WHERE LOWER(domain) = LOWER(:domain)
        """
        query, values = bind_named(query, {"domain": domain})
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def find_by_provider(self, auth_provider: AuthProvider) -> list[Organization]:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM organizations
            WHERE auth_provider = :auth_provider
            ORDER BY id
        """
        query, values = bind_named(query, {"auth_provider": auth_provider.value})
        rows = await self._conn.fetch(query, *values)
        return [self._map_to_model(row) for row in rows if row]

    async def mark_first_sync_completed(self, org_id: int) -> bool:
        """Stamp the first completed sync. Returns False if it was already stamped."""
        query = """
            UPDATE organizations
            SET first_sync_completed_at = NOW(), updated_at = NOW()
            WHERE id = :org_id AND first_sync_completed_at IS NULL
            RETURNING id
        """
        query, values = bind_named(query, {"org_id": org_id})
        row = await self._conn.fetchrow(query, *values)
        return row is not None

    def _map_to_model(self, row: asyncpg.Record | None) -> Organization | None:
        if row is None:
            return None
        return Organization(
            id=row["id"],
            name=row["name"],
            domain=row["domain"],
            auth_provider=row["auth_provider"],
            first_sync_completed_at=row["first_sync_completed_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
