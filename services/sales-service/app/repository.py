"""Database repository for accounts and the authorization lookups."""

from __future__ import annotations

from typing import Any

from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg_pool import AsyncConnectionPool

from .domain.account import Account, Role
from .domain.contracts import CreateAccountInput, UpdateAccountInput, UpdateProfileInput
from .errors import ConflictError, ValidationError

_ACCOUNT_COLUMNS = """
    u.id, u.email, u.first_name, u.last_name, r.name, u.is_active,
    u.phone, u.real_estate_id, u.created_at
"""


class AccountRepository:
    """Postgres-backed account persistence; also serves the authorization stages."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    async def _fetchone(self, query: str, params: tuple[Any, ...]) -> tuple | None:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute(query, params)
                return await cur.fetchone()

    async def _fetchall(self, query: str, params: tuple[Any, ...] | list[Any]) -> list[tuple]:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute(query, params)
                return await cur.fetchall()

    async def get_active_account(self, account_id: int) -> Account | None:
        """Return the account only when it exists and is active."""
        row = await self._fetchone(
            f"""
            SELECT {_ACCOUNT_COLUMNS}
            FROM users u
            JOIN roles r ON u.role_id = r.id
            WHERE u.id = %s AND u.is_active = true
            """,
            (account_id,),
        )
        return self._map_account(row) if row else None

    async def get_account(self, account_id: int) -> Account | None:
        row = await self._fetchone(
            f"""
            SELECT {_ACCOUNT_COLUMNS}
            FROM users u
            JOIN roles r ON u.role_id = r.id
            WHERE u.id = %s
            """,
            (account_id,),
        )
        return self._map_account(row) if row else None

    async def real_estate_exists(self, real_estate_id: int) -> bool:
        row = await self._fetchone("SELECT 1 FROM real_estates WHERE id = %s", (real_estate_id,))
        return row is not None

    async def client_assigned_to_seller(self, client_id: int, seller_id: int) -> bool:
        row = await self._fetchone(
            "SELECT 1 FROM clients WHERE id = %s AND assigned_seller_id = %s",
            (client_id, seller_id),
        )
        return row is not None

    async def is_real_estate_member(self, real_estate_id: int, account_id: int) -> bool:
        row = await self._fetchone(
            "SELECT 1 FROM users WHERE id = %s AND real_estate_id = %s AND is_active = true",
            (account_id, real_estate_id),
        )
        return row is not None

    async def find_credentials(self, email: str) -> tuple[Account, str] | None:
        """Return the account with its password hash for a login attempt."""
        row = await self._fetchone(
            f"""
            SELECT {_ACCOUNT_COLUMNS}, u.password_hash
            FROM users u
            JOIN roles r ON u.role_id = r.id
            WHERE lower(u.email) = lower(%s)
            """,
            (email,),
        )
        if not row:
            return None
        return self._map_account(row[:-1]), row[-1]

    async def create_account(self, payload: CreateAccountInput, password_hash: str) -> Account:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute("SELECT id FROM users WHERE lower(email) = lower(%s)", (payload.email,))
                if await cur.fetchone():
                    raise ConflictError("Email already exists", details={"email": payload.email})
                try:
                    await cur.execute(
                        """
                        INSERT INTO users (email, password_hash, first_name, last_name, phone, role_id, real_estate_id)
                        VALUES (%s, %s, %s, %s, %s, (SELECT id FROM roles WHERE name = %s), %s)
                        RETURNING id
                        """,
                        (
                            payload.email,
                            password_hash,
                            payload.first_name,
                            payload.last_name,
                            payload.phone,
                            payload.role.value,
                            payload.real_estate_id,
                        ),
                    )
                except pg_errors.NotNullViolation as exc:
                    raise ValidationError("Unknown role", field="role") from exc
                (account_id,) = await cur.fetchone()
                await conn.commit()
        account = await self.get_account(account_id)
        assert account is not None
        return account

    async def update_profile(self, account_id: int, payload: UpdateProfileInput) -> Account | None:
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE users
                    SET first_name = %s, last_name = %s, phone = %s, updated_at = CURRENT_TIMESTAMP
                    WHERE id = %s
                    """,
                    (payload.first_name, payload.last_name, payload.phone, account_id),
                )
                await conn.commit()
        return await self.get_account(account_id)

    async def update_account(self, account_id: int, payload: UpdateAccountInput) -> Account | None:
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE users
                    SET first_name = COALESCE(%s, first_name),
                        last_name = COALESCE(%s, last_name),
                        phone = COALESCE(%s, phone),
                        is_active = COALESCE(%s, is_active),
                        real_estate_id = COALESCE(%s, real_estate_id),
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id = %s
                    """,
                    (
                        payload.first_name,
                        payload.last_name,
                        payload.phone,
                        payload.active,
                        payload.real_estate_id,
                        account_id,
                    ),
                )
                await conn.commit()
        return await self.get_account(account_id)

    async def get_password_hash(self, account_id: int) -> str | None:
        row = await self._fetchone("SELECT password_hash FROM users WHERE id = %s", (account_id,))
        return row[0] if row else None

    async def set_password_hash(self, account_id: int, password_hash: str) -> None:
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "UPDATE users SET password_hash = %s, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                    (password_hash, account_id),
                )
                await conn.commit()

    async def set_active(self, account_id: int, active: bool) -> Account | None:
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "UPDATE users SET is_active = %s, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                    (active, account_id),
                )
                await conn.commit()
        return await self.get_account(account_id)

    async def list_accounts(self, role: Role | None = None) -> list[Account]:
        clauses = ["1=1"]
        params: list[Any] = []
        if role is not None:
            clauses.append("r.name = %s")
            params.append(role.value)
        rows = await self._fetchall(
            f"""
            SELECT {_ACCOUNT_COLUMNS}
            FROM users u
            JOIN roles r ON u.role_id = r.id
            WHERE {" AND ".join(clauses)}
            ORDER BY u.created_at DESC
            """,
            params,
        )
        return [self._map_account(row) for row in rows]

    async def list_available_sellers(self, real_estate_id: int) -> list[Account]:
        """Active seller accounts that belong to ``real_estate_id``."""
        rows = await self._fetchall(
            f"""
            SELECT {_ACCOUNT_COLUMNS}
            FROM users u
            JOIN roles r ON u.role_id = r.id
            WHERE r.name = 'seller' AND u.real_estate_id = %s AND u.is_active = true
            ORDER BY u.created_at DESC
            """,
            (real_estate_id,),
        )
        return [self._map_account(row) for row in rows]

    async def list_available_clients(self, real_estate_id: int) -> list[Account]:
        """Active client accounts of ``real_estate_id`` that have no client record yet."""
        rows = await self._fetchall(
            f"""
            SELECT {_ACCOUNT_COLUMNS}
            FROM users u
            JOIN roles r ON u.role_id = r.id
            WHERE r.name = 'client' AND u.real_estate_id = %s AND u.is_active = true
              AND NOT EXISTS (SELECT 1 FROM clients c WHERE c.user_id = u.id)
            ORDER BY u.created_at DESC
            """,
            (real_estate_id,),
        )
        return [self._map_account(row) for row in rows]

    def _map_account(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            email=row[1],
            first_name=row[2],
            last_name=row[3],
            role=Role(row[4]),
            active=row[5],
            phone=row[6],
            real_estate_id=row[7],
            created_at=row[8],
        )
