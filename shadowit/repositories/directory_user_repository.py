import asyncpg

from shadowit.database.query_builder import bind_named
from shadowit.dtos.user_dtos import UpsertDirectoryUserDTO
from shadowit.models.directory_user import DirectoryUser


class DirectoryUserRepository:

    _SELECT_FIELDS = """
        id, organization_id, provider_user_id, email, name, role,
        department, user_type, account_enabled, created_at, updated_at
    """

    # (organization_id, email) is the conflict target; provider ids can be
    # reissued by the vendor while the mailbox stays the same
    _UPSERT_SET = """
        provider_user_id = EXCLUDED.provider_user_id,
        name = COALESCE(EXCLUDED.name, users.name),
        role = COALESCE(EXCLUDED.role, users.role),
        department = COALESCE(EXCLUDED.department, users.department),
        user_type = EXCLUDED.user_type,
        account_enabled = EXCLUDED.account_enabled,
        updated_at = NOW()
    """

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def find_by_id(self, user_id: int) -> DirectoryUser | None:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM users
            WHERE id = :user_id
        """
        query, values = bind_named(query, {"user_id": user_id})
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def find_by_email(
        self, organization_id: int, email: str
    ) -> DirectoryUser | None:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM users
            WHERE organization_id = :organization_id
              AND LOWER(email) = LOWER(:email)
        """
        query, values = bind_named(
            query, {"organization_id": organization_id, "email": email}
        )
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def find_by_organization(self, organization_id: int) -> list[DirectoryUser]:
        query = f"""
            SELECT {self._SELECT_FIELDS}
            FROM users
            WHERE organization_id = :organization_id
            ORDER BY email
        """
        query, values = bind_named(query, {"organization_id": organization_id})
        rows = await self._conn.fetch(query, *values)
        return [self._map_to_model(row) for row in rows if row]

    async def count_by_organization(self, organization_id: int) -> int:
        query = """
            SELECT COUNT(*) AS count
            FROM users
            WHERE organization_id = :organization_id
        """
        query, values = bind_named(query, {"organization_id": organization_id})
        row = await self._conn.fetchrow(query, *values)
        return row["count"] if row else 0

    async def upsert(self, dto: UpsertDirectoryUserDTO) -> DirectoryUser:
        query = f"""
            INSERT INTO users (
                organization_id, provider_user_id, email, name, role,
                department, user_type, account_enabled
            ) VALUES (
                :organization_id, :provider_user_id, :email, :name, :role,
                :department, :user_type, :account_enabled
            )
            ON CONFLICT (organization_id, email) DO UPDATE SET
                {self._UPSERT_SET}
            RETURNING {self._SELECT_FIELDS}
        """
        params = {
            "organization_id": dto.organization_id,
            "provider_user_id": dto.provider_user_id,
            "email": dto.email.lower(),
            "name": dto.name,
            "role": dto.role,
            "department": dto.department,
            "user_type": dto.user_type.value,
            "account_enabled": dto.account_enabled,
        }
        query, values = bind_named(query, params)
        row = await self._conn.fetchrow(query, *values)
        return self._map_to_model(row)

    async def bulk_upsert(self, dtos: list[UpsertDirectoryUserDTO]) -> list[DirectoryUser]:
        """Upsert one batch in a single statement.

        Callers must not pass two DTOs with the same email in one batch.
        """
        if not dtos:
            return []

        values_list = [
            (
                dto.organization_id,
                dto.provider_user_id,
                dto.email.lower(),
                dto.name,
                dto.role,
                dto.department,
                dto.user_type.value,
                dto.account_enabled,
            )
            for dto in dtos
        ]

        query = f"""
            INSERT INTO users (
                organization_id, provider_user_id, email, name, role,
                department, user_type, account_enabled
            )
            SELECT * FROM unnest(
                $1::bigint[], $2::varchar[], $3::varchar[], $4::varchar[],
                $5::varchar[], $6::varchar[], $7::varchar[], $8::boolean[]
            )
            ON CONFLICT (organization_id, email) DO UPDATE SET
                {self._UPSERT_SET}
            RETURNING {self._SELECT_FIELDS}
        """
        columns = [list(column) for column in zip(*values_list)]
        rows = await self._conn.fetch(query, *columns)
        return [self._map_to_model(row) for row in rows if row]

    async def delete_by_ids(self, user_ids: list[int]) -> int:
        if not user_ids:
            return 0
        query = "DELETE FROM users WHERE id = ANY(:user_ids::bigint[])"
        query, values = bind_named(query, {"user_ids": user_ids})
        result = await self._conn.execute(query, *values)
        return int(result.split()[-1]) if result else 0

    def _map_to_model(self, row: asyncpg.Record | None) -> DirectoryUser | None:
        if row is None:
            return None
        return DirectoryUser(
            id=row["id"],
            organization_id=row["organization_id"],
            provider_user_id=row["provider_user_id"],
            email=row["email"],
            name=row["name"],
            role=row["role"],
            department=row["department"],
            user_type=row["user_type"],
            account_enabled=row["account_enabled"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
