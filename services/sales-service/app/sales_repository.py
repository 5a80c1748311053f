"""Database repository for real estates, properties, clients, installments, payments and notifications."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from psycopg import AsyncCursor
from psycopg import errors as pg_errors
from psycopg.rows import dict_row, tuple_row
from psycopg_pool import AsyncConnectionPool

from .domain.contracts import (
    CreateClientInput,
    NotificationInput,
    PaymentSubmission,
    PropertyInput,
    RealEstateInput,
    SellerInput,
    UpdateClientInput,
    UpdatePropertyInput,
    UpdateSellerInput,
)
from .domain.sales import (
    Client,
    Installment,
    InstallmentStatus,
    Notification,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Property,
    RealEstate,
    Seller,
)
from .errors import ConflictError

_REAL_ESTATE_COLUMNS = "re.id, re.name, re.address, re.city, re.country, re.phone, re.email, re.created_by, re.created_at"
_PROPERTY_COLUMNS = """
    p.id, p.real_estate_id, p.title, p.price, p.total_installments, p.installment_amount,
    p.status, p.description, p.property_type, p.address, p.city, p.down_payment_percentage
"""
_SELLER_COLUMNS = """
    s.id, s.user_id, s.real_estate_id, s.commission_rate, s.is_active, s.total_sales,
    s.total_commission, u.email, u.first_name, u.last_name, re.name, s.created_at
"""
_CLIENT_COLUMNS = """
    c.id, c.user_id, c.property_id, c.real_estate_id, c.assigned_seller_id, c.contract_signed,
    c.contract_date, c.total_down_payment, c.remaining_balance, u.email, u.first_name, u.last_name,
    c.created_at
"""
_INSTALLMENT_COLUMNS = "i.id, i.client_id, i.installment_number, i.amount, i.due_date, i.status"
_PAYMENT_COLUMNS = """
    pay.id, pay.installment_id, pay.client_id, pay.amount, pay.payment_method, pay.status,
    pay.reference_number, pay.proof_file_path, pay.notes, pay.approved_by, pay.approved_at,
    pay.payment_date
"""
_NOTIFICATION_COLUMNS = """
    n.id, n.recipient_id, n.type, n.title, n.message, n.sender_id, n.related_client_id,
    n.related_payment_id, n.is_read, n.created_at
"""


class SalesRepository:
    """Postgres-backed persistence for everything hanging off a real estate."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def _fetchall(self, query: str, params: Iterable[Any] = ()) -> list[tuple]:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute(query, list(params))
                return await cur.fetchall()

    async def _fetchone(self, query: str, params: Iterable[Any] = ()) -> tuple | None:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute(query, list(params))
                return await cur.fetchone()

    async def _fetch_dicts(self, query: str, params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, list(params))
                return await cur.fetchall()

    # -- real estates -----------------------------------------------------

    async def list_real_estates(
        self, *, search: str | None = None, created_by: int | None = None
    ) -> list[RealEstate]:
        clauses = ["1=1"]
        params: list[Any] = []
        if search:
            clauses.append("(re.name ILIKE %s OR re.city ILIKE %s OR re.country ILIKE %s)")
            params.extend([f"%{search}%"] * 3)
        if created_by is not None:
            clauses.append("re.created_by = %s")
            params.append(created_by)
        rows = await self._fetchall(
            f"""
            SELECT {_REAL_ESTATE_COLUMNS}
            FROM real_estates re
            WHERE {" AND ".join(clauses)}
            ORDER BY re.created_at DESC
            """,
            params,
        )
        return [self._map_real_estate(row) for row in rows]

    async def get_real_estate(self, real_estate_id: int) -> RealEstate | None:
        row = await self._fetchone(
            f"SELECT {_REAL_ESTATE_COLUMNS} FROM real_estates re WHERE re.id = %s",
            (real_estate_id,),
        )
        return self._map_real_estate(row) if row else None

    async def create_real_estate(self, payload: RealEstateInput, created_by: int) -> RealEstate:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute(
                    f"""
                    INSERT INTO real_estates AS re (name, address, city, country, phone, email, created_by)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_REAL_ESTATE_COLUMNS}
                    """,
                    (
                        payload.name,
                        payload.address,
                        payload.city,
                        payload.country,
                        payload.phone,
                        payload.email,
                        created_by,
                    ),
                )
                row = await cur.fetchone()
                await conn.commit()
        return self._map_real_estate(row)

    async def update_real_estate(self, real_estate_id: int, payload: RealEstateInput) -> RealEstate | None:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute(
                    f"""
                    UPDATE real_estates AS re
                    SET name = %s, address = %s, city = %s, country = %s, phone = %s, email = %s,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE re.id = %s
                    RETURNING {_REAL_ESTATE_COLUMNS}
                    """,
                    (
                        payload.name,
                        payload.address,
                        payload.city,
                        payload.country,
                        payload.phone,
                        payload.email,
                        real_estate_id,
                    ),
                )
                row = await cur.fetchone()
                await conn.commit()
        return self._map_real_estate(row) if row else None

    async def delete_real_estate(self, real_estate_id: int) -> bool:
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        """
                        SELECT
                          (SELECT COUNT(*) FROM clients WHERE real_estate_id = %s),
                          (SELECT COUNT(*) FROM properties WHERE real_estate_id = %s)
                        """,
                        (real_estate_id, real_estate_id),
                    )
                    client_count, property_count = await cur.fetchone()
                    if client_count or property_count:
                        raise ConflictError(
                            "Cannot delete real estate with associated clients or properties",
                            details={"client_count": client_count, "property_count": property_count},
                        )
                    await cur.execute("DELETE FROM real_estates WHERE id = %s RETURNING id", (real_estate_id,))
                    return await cur.fetchone() is not None

    async def real_estate_statistics(self, real_estate_id: int | None = None) -> list[dict[str, Any]]:
        where_sql = "WHERE re.id = %s" if real_estate_id is not None else ""
        params = [real_estate_id] if real_estate_id is not None else []
        return await self._fetch_dicts(
            f"""
            SELECT
              re.id AS real_estate_id,
              re.name,
              COUNT(DISTINCT p.id) AS property_count,
              COUNT(DISTINCT c.id) AS client_count,
              COUNT(DISTINCT CASE WHEN c.contract_signed THEN c.id END) AS signed_contracts_count,
              COALESCE(SUM(c.total_down_payment), 0) AS total_down_payments,
              COALESCE(SUM(c.remaining_balance), 0) AS total_remaining_balance
            FROM real_estates re
            LEFT JOIN properties p ON re.id = p.real_estate_id
            LEFT JOIN clients c ON re.id = c.real_estate_id
            {where_sql}
            GROUP BY re.id, re.name
            ORDER BY re.name
            """,
            params,
        )

    # -- properties -------------------------------------------------------

    async def list_properties(
        self,
        real_estate_id: int | None = None,
        *,
        status: str | None = None,
        property_type: str | None = None,
        search: str | None = None,
    ) -> list[Property]:
        clauses = ["1=1"]
        params: list[Any] = []
        if real_estate_id is not None:
            clauses.append("p.real_estate_id = %s")
            params.append(real_estate_id)
        if status is not None:
            clauses.append("p.status = %s")
            params.append(status)
        if property_type is not None:
            clauses.append("p.property_type = %s")
            params.append(property_type)
        if search:
            clauses.append("(p.title ILIKE %s OR p.description ILIKE %s)")
            params.extend([f"%{search}%"] * 2)
        rows = await self._fetchall(
            f"""
            SELECT {_PROPERTY_COLUMNS}
            FROM properties p
            WHERE {" AND ".join(clauses)}
            ORDER BY p.title
            """,
            params,
        )
        return [self._map_property(row) for row in rows]

    async def get_property(self, property_id: int) -> Property | None:
        row = await self._fetchone(f"SELECT {_PROPERTY_COLUMNS} FROM properties p WHERE p.id = %s", (property_id,))
        return self._map_property(row) if row else None

    async def create_property(self, payload: PropertyInput, created_by: int) -> Property:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute(
                    f"""
                    INSERT INTO properties AS p (
                      real_estate_id, title, description, property_type, address, city, price,
                      down_payment_percentage, total_installments, installment_amount, status, created_by
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_PROPERTY_COLUMNS}
                    """,
                    (
                        payload.real_estate_id,
                        payload.title,
                        payload.description,
                        payload.property_type,
                        payload.address,
                        payload.city,
                        payload.price,
                        payload.down_payment_percentage,
                        payload.total_installments,
                        payload.installment_amount,
                        payload.status,
                        created_by,
                    ),
                )
                row = await cur.fetchone()
                await conn.commit()
        return self._map_property(row)

    async def update_property(self, property_id: int, payload: UpdatePropertyInput) -> Property | None:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute(
                    f"""
                    UPDATE properties AS p
                    SET title = COALESCE(%s, title),
                        description = COALESCE(%s, description),
                        property_type = COALESCE(%s, property_type),
                        address = COALESCE(%s, address),
                        city = COALESCE(%s, city),
                        price = COALESCE(%s, price),
                        down_payment_percentage = COALESCE(%s, down_payment_percentage),
                        total_installments = COALESCE(%s, total_installments),
                        installment_amount = COALESCE(%s, installment_amount),
                        status = COALESCE(%s, status),
                        updated_at = CURRENT_TIMESTAMP
                    WHERE p.id = %s
                    RETURNING {_PROPERTY_COLUMNS}
                    """,
                    (
                        payload.title,
                        payload.description,
                        payload.property_type,
                        payload.address,
                        payload.city,
                        payload.price,
                        payload.down_payment_percentage,
                        payload.total_installments,
                        payload.installment_amount,
                        payload.status,
                        property_id,
                    ),
                )
                row = await cur.fetchone()
                await conn.commit()
        return self._map_property(row) if row else None

    async def delete_property(self, property_id: int) -> bool:
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute("SELECT COUNT(*) FROM clients WHERE property_id = %s", (property_id,))
                    (client_count,) = await cur.fetchone()
                    if client_count:
                        raise ConflictError(
                            "Cannot delete property with associated clients",
                            details={"client_count": client_count},
                        )
                    await cur.execute("DELETE FROM properties WHERE id = %s RETURNING id", (property_id,))
                    return await cur.fetchone() is not None

    async def property_statistics(self, real_estate_id: int | None = None) -> dict[str, Any]:
        where_sql = "WHERE p.real_estate_id = %s" if real_estate_id is not None else ""
        params = [real_estate_id] if real_estate_id is not None else []
        rows = await self._fetch_dicts(
            f"""
            SELECT
              COUNT(*) AS total_properties,
              COUNT(CASE WHEN p.status = 'available' THEN 1 END) AS available_properties,
              COUNT(CASE WHEN p.status = 'sold' THEN 1 END) AS sold_properties,
              COUNT(CASE WHEN p.status = 'under_construction' THEN 1 END) AS under_construction_properties,
              COALESCE(SUM(p.price), 0) AS total_property_value,
              COALESCE(AVG(p.price), 0) AS average_property_price
            FROM properties p
            {where_sql}
            """,
            params,
        )
        return rows[0]

    # -- sellers ----------------------------------------------------------

    async def list_sellers(
        self,
        *,
        real_estate_id: int | None = None,
        active: bool | None = None,
        search: str | None = None,
    ) -> list[Seller]:
        clauses = ["1=1"]
        params: list[Any] = []
        if real_estate_id is not None:
            clauses.append("s.real_estate_id = %s")
            params.append(real_estate_id)
        if active is not None:
            clauses.append("s.is_active = %s")
            params.append(active)
        if search:
            clauses.append("(u.first_name ILIKE %s OR u.last_name ILIKE %s OR u.email ILIKE %s)")
            params.extend([f"%{search}%"] * 3)
        rows = await self._fetchall(
            f"""
            SELECT {_SELLER_COLUMNS}
            FROM sellers s
            JOIN users u ON s.user_id = u.id
            LEFT JOIN real_estates re ON s.real_estate_id = re.id
            WHERE {" AND ".join(clauses)}
            ORDER BY s.created_at DESC
            """,
            params,
        )
        return [self._map_seller(row) for row in rows]

    async def get_seller(self, seller_id: int) -> Seller | None:
        row = await self._fetchone(
            f"""
            SELECT {_SELLER_COLUMNS}
            FROM sellers s
            JOIN users u ON s.user_id = u.id
            LEFT JOIN real_estates re ON s.real_estate_id = re.id
            WHERE s.id = %s
            """,
            (seller_id,),
        )
        return self._map_seller(row) if row else None

    async def get_seller_by_user(self, user_id: int) -> Seller | None:
        row = await self._fetchone(
            f"""
            SELECT {_SELLER_COLUMNS}
            FROM sellers s
            JOIN users u ON s.user_id = u.id
            LEFT JOIN real_estates re ON s.real_estate_id = re.id
            WHERE s.user_id = %s
            ORDER BY s.created_at DESC
            LIMIT 1
            """,
            (user_id,),
        )
        return self._map_seller(row) if row else None

    async def create_seller(self, payload: SellerInput, created_by: int) -> Seller:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                try:
                    await cur.execute(
                        """
                        INSERT INTO sellers (user_id, real_estate_id, commission_rate, created_by)
                        VALUES (%s, %s, %s, %s)
                        RETURNING id
                        """,
                        (payload.user_id, payload.real_estate_id, payload.commission_rate, created_by),
                    )
                except pg_errors.UniqueViolation as exc:
                    raise ConflictError(
                        "User is already a seller for this real estate",
                        details={"user_id": payload.user_id, "real_estate_id": payload.real_estate_id},
                    ) from exc
                (seller_id,) = await cur.fetchone()
                await conn.commit()
        seller = await self.get_seller(seller_id)
        assert seller is not None
        return seller

    async def update_seller(self, seller_id: int, payload: UpdateSellerInput) -> Seller | None:
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE sellers
                    SET commission_rate = COALESCE(%s, commission_rate),
                        is_active = COALESCE(%s, is_active),
                        total_sales = COALESCE(%s, total_sales),
                        total_commission = COALESCE(%s, total_commission),
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id = %s
                    """,
                    (
                        payload.commission_rate,
                        payload.active,
                        payload.total_sales,
                        payload.total_commission,
                        seller_id,
                    ),
                )
                await conn.commit()
        return await self.get_seller(seller_id)

    async def delete_seller(self, seller_id: int) -> bool:
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        """
                        SELECT COUNT(c.id)
                        FROM sellers s
                        JOIN clients c ON c.assigned_seller_id = s.user_id AND c.real_estate_id = s.real_estate_id
                        WHERE s.id = %s
                        """,
                        (seller_id,),
                    )
                    (client_count,) = await cur.fetchone()
                    if client_count:
                        raise ConflictError(
                            "Cannot delete seller with assigned clients",
                            details={"client_count": client_count},
                        )
                    await cur.execute("DELETE FROM sellers WHERE id = %s RETURNING id", (seller_id,))
                    return await cur.fetchone() is not None

    async def seller_statistics(self, real_estate_id: int | None = None) -> dict[str, Any]:
        where_sql = "WHERE s.real_estate_id = %s" if real_estate_id is not None else ""
        params = [real_estate_id] if real_estate_id is not None else []
        rows = await self._fetch_dicts(
            f"""
            SELECT
              COUNT(*) AS total_sellers,
              COUNT(CASE WHEN s.is_active THEN 1 END) AS active_sellers,
              COUNT(CASE WHEN NOT s.is_active THEN 1 END) AS inactive_sellers,
              COALESCE(SUM(s.total_sales), 0) AS total_sales,
              COALESCE(SUM(s.total_commission), 0) AS total_commissions,
              COALESCE(AVG(s.commission_rate), 0) AS average_commission_rate
            FROM sellers s
            {where_sql}
            """,
            params,
        )
        return rows[0]

    async def seller_performance(self, seller_id: int) -> dict[str, Any] | None:
        rows = await self._fetch_dicts(
            """
            SELECT
              s.id AS seller_id,
              s.total_sales,
              s.total_commission,
              s.commission_rate,
              COUNT(c.id) AS total_clients,
              COUNT(CASE WHEN c.contract_signed THEN 1 END) AS signed_clients
            FROM sellers s
            LEFT JOIN clients c ON c.assigned_seller_id = s.user_id AND c.real_estate_id = s.real_estate_id
            WHERE s.id = %s
            GROUP BY s.id, s.total_sales, s.total_commission, s.commission_rate
            """,
            (seller_id,),
        )
        return rows[0] if rows else None

    # -- clients ----------------------------------------------------------

    async def list_clients(
        self,
        *,
        real_estate_id: int | None = None,
        seller_id: int | None = None,
        contract_signed: bool | None = None,
        search: str | None = None,
    ) -> list[Client]:
        clauses = ["1=1"]
        params: list[Any] = []
        if real_estate_id is not None:
            clauses.append("c.real_estate_id = %s")
            params.append(real_estate_id)
        if seller_id is not None:
            clauses.append("c.assigned_seller_id = %s")
            params.append(seller_id)
        if contract_signed is not None:
            clauses.append("c.contract_signed = %s")
            params.append(contract_signed)
        if search:
            clauses.append("(u.first_name ILIKE %s OR u.last_name ILIKE %s OR u.email ILIKE %s)")
            params.extend([f"%{search}%"] * 3)
        rows = await self._fetchall(
            f"""
            SELECT {_CLIENT_COLUMNS}
            FROM clients c
            JOIN users u ON c.user_id = u.id
            WHERE {" AND ".join(clauses)}
            ORDER BY c.created_at DESC
            """,
            params,
        )
        return [self._map_client(row) for row in rows]

    async def get_client(self, client_id: int) -> Client | None:
        row = await self._fetchone(
            f"SELECT {_CLIENT_COLUMNS} FROM clients c JOIN users u ON c.user_id = u.id WHERE c.id = %s",
            (client_id,),
        )
        return self._map_client(row) if row else None

    async def get_client_by_user(self, user_id: int) -> Client | None:
        row = await self._fetchone(
            f"SELECT {_CLIENT_COLUMNS} FROM clients c JOIN users u ON c.user_id = u.id WHERE c.user_id = %s",
            (user_id,),
        )
        return self._map_client(row) if row else None

    async def create_client(
        self,
        payload: CreateClientInput,
        remaining_balance: Decimal,
        schedule: list[tuple[int, Decimal, date]],
    ) -> Client:
        """Insert the client and its installment schedule in one transaction."""
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        """
                        INSERT INTO clients (
                          user_id, property_id, real_estate_id, assigned_seller_id, contract_signed,
                          contract_date, total_down_payment, remaining_balance
                        )
                        VALUES (%s, %s, %s, %s, false, %s, %s, %s)
                        RETURNING id
                        """,
                        (
                            payload.user_id,
                            payload.property_id,
                            payload.real_estate_id,
                            payload.assigned_seller_id,
                            payload.contract_date,
                            payload.total_down_payment,
                            remaining_balance,
                        ),
                    )
                    (client_id,) = await cur.fetchone()
                    if schedule:
                        await cur.executemany(
                            """
                            INSERT INTO installments (client_id, installment_number, amount, due_date, status)
                            VALUES (%s, %s, %s, %s, 'pending')
                            """,
                            [(client_id, number, amount, due) for number, amount, due in schedule],
                        )
        client = await self.get_client(client_id)
        assert client is not None
        return client

    async def update_client(self, client_id: int, payload: UpdateClientInput) -> Client | None:
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE clients
                    SET contract_signed = COALESCE(%s, contract_signed),
                        contract_date = COALESCE(%s, contract_date),
                        assigned_seller_id = COALESCE(%s, assigned_seller_id),
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id = %s
                    """,
                    (payload.contract_signed, payload.contract_date, payload.assigned_seller_id, client_id),
                )
                await conn.commit()
        return await self.get_client(client_id)

    async def delete_client(self, client_id: int) -> bool:
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute("SELECT COUNT(*) FROM payments WHERE client_id = %s", (client_id,))
                    (payment_count,) = await cur.fetchone()
                    if payment_count:
                        raise ConflictError(
                            "Cannot delete client with existing payments",
                            details={"payment_count": payment_count},
                        )
                    await cur.execute("DELETE FROM installments WHERE client_id = %s", (client_id,))
                    await cur.execute("DELETE FROM clients WHERE id = %s RETURNING id", (client_id,))
                    return await cur.fetchone() is not None

    async def client_statistics(self, real_estate_id: int | None = None) -> dict[str, Any]:
        where_sql = "WHERE c.real_estate_id = %s" if real_estate_id is not None else ""
        params = [real_estate_id] if real_estate_id is not None else []
        rows = await self._fetch_dicts(
            f"""
            SELECT
              COUNT(*) AS total_clients,
              COUNT(CASE WHEN c.contract_signed THEN 1 END) AS signed_contracts,
              COUNT(CASE WHEN NOT c.contract_signed THEN 1 END) AS pending_contracts
            FROM clients c
            {where_sql}
            """,
            params,
        )
        return rows[0]

    # -- installments -----------------------------------------------------

    async def list_installments(
        self,
        *,
        client_id: int | None = None,
        real_estate_id: int | None = None,
        seller_id: int | None = None,
        statuses: Iterable[InstallmentStatus] | None = None,
        due_from: date | None = None,
        due_to: date | None = None,
    ) -> list[Installment]:
        clauses = ["1=1"]
        params: list[Any] = []
        if client_id is not None:
            clauses.append("i.client_id = %s")
            params.append(client_id)
        if real_estate_id is not None:
            clauses.append("c.real_estate_id = %s")
            params.append(real_estate_id)
        if seller_id is not None:
            clauses.append("c.assigned_seller_id = %s")
            params.append(seller_id)
        if statuses is not None:
            clauses.append("i.status = ANY(%s)")
            params.append([status.value for status in statuses])
        if due_from is not None:
            clauses.append("i.due_date >= %s")
            params.append(due_from)
        if due_to is not None:
            clauses.append("i.due_date <= %s")
            params.append(due_to)
        rows = await self._fetchall(
            f"""
            SELECT {_INSTALLMENT_COLUMNS}
            FROM installments i
            JOIN clients c ON i.client_id = c.id
            WHERE {" AND ".join(clauses)}
            ORDER BY i.due_date ASC, i.installment_number ASC
            """,
            params,
        )
        return [self._map_installment(row) for row in rows]

    async def get_installment(self, installment_id: int) -> Installment | None:
        row = await self._fetchone(
            f"SELECT {_INSTALLMENT_COLUMNS} FROM installments i WHERE i.id = %s",
            (installment_id,),
        )
        return self._map_installment(row) if row else None

    async def update_installment_status(self, installment_id: int, status: InstallmentStatus) -> Installment | None:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute(
                    f"""
                    UPDATE installments AS i SET status = %s, updated_at = CURRENT_TIMESTAMP
                    WHERE i.id = %s
                    RETURNING {_INSTALLMENT_COLUMNS}
                    """,
                    (status.value, installment_id),
                )
                row = await cur.fetchone()
                await conn.commit()
        return self._map_installment(row) if row else None

    # -- payments ---------------------------------------------------------

    async def list_payments(
        self,
        *,
        client_id: int | None = None,
        status: PaymentStatus | None = None,
        installment_id: int | None = None,
        real_estate_id: int | None = None,
        seller_id: int | None = None,
    ) -> list[Payment]:
        clauses = ["1=1"]
        params: list[Any] = []
        if client_id is not None:
            clauses.append("pay.client_id = %s")
            params.append(client_id)
        if status is not None:
            clauses.append("pay.status = %s")
            params.append(status.value)
        if installment_id is not None:
            clauses.append("pay.installment_id = %s")
            params.append(installment_id)
        if real_estate_id is not None:
            clauses.append("c.real_estate_id = %s")
            params.append(real_estate_id)
        if seller_id is not None:
            clauses.append("c.assigned_seller_id = %s")
            params.append(seller_id)
        rows = await self._fetchall(
            f"""
            SELECT {_PAYMENT_COLUMNS}
            FROM payments pay
            JOIN clients c ON pay.client_id = c.id
            WHERE {" AND ".join(clauses)}
            ORDER BY pay.payment_date DESC
            """,
            params,
        )
        return [self._map_payment(row) for row in rows]

    async def get_payment(self, payment_id: int) -> Payment | None:
        row = await self._fetchone(f"SELECT {_PAYMENT_COLUMNS} FROM payments pay WHERE pay.id = %s", (payment_id,))
        return self._map_payment(row) if row else None

    async def record_payment(
        self,
        client: Client,
        submission: PaymentSubmission,
        proof_path: str | None,
        notification: NotificationInput | None,
    ) -> Payment:
        """Insert a pending payment, hold its installment for approval and notify the seller."""
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor(row_factory=tuple_row) as cur:
                    await cur.execute(
                        f"""
                        INSERT INTO payments AS pay (
                          installment_id, client_id, amount, payment_method, reference_number,
                          proof_file_path, status, notes
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, 'pending', %s)
                        RETURNING {_PAYMENT_COLUMNS}
                        """,
                        (
                            submission.installment_id,
                            client.client_id,
                            submission.amount,
                            submission.payment_method,
                            submission.reference_number,
                            proof_path,
                            submission.notes,
                        ),
                    )
                    payment = self._map_payment(await cur.fetchone())
                    await cur.execute(
                        """
                        UPDATE installments SET status = 'pending_approval', updated_at = CURRENT_TIMESTAMP
                        WHERE id = %s AND client_id = %s AND status IN ('pending', 'overdue', 'late')
                        """,
                        (submission.installment_id, client.client_id),
                    )
                    if cur.rowcount == 0:
                        # Another submission got there first; the transaction rolls back the insert.
                        raise ConflictError(
                            "Installment is no longer awaiting payment",
                            details={"installment_id": submission.installment_id},
                        )
                    if notification is not None:
                        notification.related_payment_id = payment.payment_id
                        await self._insert_notification(cur, notification)
        return payment

    async def approve_payment(
        self,
        payment: Payment,
        approved_by: int,
        notes: str | None,
        notification: NotificationInput,
    ) -> tuple[Payment, bool]:
        """Approve ``payment``; returns the updated row and whether the contract is now fully paid."""
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor(row_factory=tuple_row) as cur:
                    updated = await self._set_payment_status(cur, payment.payment_id, PaymentStatus.approved, approved_by, notes)
                    await cur.execute(
                        "UPDATE installments SET status = 'paid', updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                        (payment.installment_id,),
                    )
                    await cur.execute(
                        """
                        UPDATE clients SET remaining_balance = remaining_balance - %s, updated_at = CURRENT_TIMESTAMP
                        WHERE id = %s
                        """,
                        (payment.amount, payment.client_id),
                    )
                    # Credit the assigned seller's profile in the client's real estate.
                    await cur.execute(
                        """
                        UPDATE sellers AS s
                        SET total_sales = s.total_sales + %s,
                            total_commission = s.total_commission + %s * s.commission_rate / 100,
                            updated_at = CURRENT_TIMESTAMP
                        FROM clients c
                        WHERE c.id = %s AND s.user_id = c.assigned_seller_id AND s.real_estate_id = c.real_estate_id
                        """,
                        (payment.amount, payment.amount, payment.client_id),
                    )
                    await cur.execute(
                        "SELECT COUNT(*), COUNT(CASE WHEN status = 'paid' THEN 1 END) FROM installments WHERE client_id = %s",
                        (payment.client_id,),
                    )
                    total, paid = await cur.fetchone()
                    completed = total > 0 and total == paid
                    if completed:
                        await cur.execute(
                            "UPDATE clients SET contract_signed = true, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                            (payment.client_id,),
                        )
                    await self._insert_notification(cur, notification)
        return updated, completed

    async def reject_payment(
        self,
        payment: Payment,
        approved_by: int,
        notes: str | None,
        notification: NotificationInput,
    ) -> Payment:
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor(row_factory=tuple_row) as cur:
                    updated = await self._set_payment_status(cur, payment.payment_id, PaymentStatus.rejected, approved_by, notes)
                    await cur.execute(
                        "UPDATE installments SET status = 'pending', updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                        (payment.installment_id,),
                    )
                    await self._insert_notification(cur, notification)
        return updated

    async def clear_payment_proof(self, payment_id: int) -> None:
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "UPDATE payments SET proof_file_path = NULL, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                    (payment_id,),
                )
                await conn.commit()

    async def payment_statistics(self, client_id: int | None = None) -> dict[str, Any]:
        where_sql = "WHERE pay.client_id = %s" if client_id is not None else ""
        params = [client_id] if client_id is not None else []
        rows = await self._fetch_dicts(
            f"""
            SELECT
              COUNT(*) AS total_payments,
              COUNT(CASE WHEN pay.status = 'approved' THEN 1 END) AS approved_payments,
              COUNT(CASE WHEN pay.status = 'pending' THEN 1 END) AS pending_payments,
              COUNT(CASE WHEN pay.status = 'rejected' THEN 1 END) AS rejected_payments,
              COALESCE(SUM(CASE WHEN pay.status = 'approved' THEN pay.amount END), 0) AS total_approved_amount,
              COALESCE(SUM(pay.amount), 0) AS total_amount
            FROM payments pay
            {where_sql}
            """,
            params,
        )
        return rows[0]

    async def _set_payment_status(
        self,
        cur: AsyncCursor,
        payment_id: int,
        status: PaymentStatus,
        approved_by: int,
        notes: str | None,
    ) -> Payment:
        await cur.execute(
            f"""
            UPDATE payments AS pay
            SET status = %s, approved_by = %s, approved_at = CURRENT_TIMESTAMP, notes = %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE pay.id = %s AND pay.status = 'pending'
            RETURNING {_PAYMENT_COLUMNS}
            """,
            (status.value, approved_by, notes, payment_id),
        )
        row = await cur.fetchone()
        if row is None:
            raise ConflictError("Payment has already been processed", details={"payment_id": payment_id})
        return self._map_payment(row)

    # -- notifications ----------------------------------------------------

    async def list_notifications(
        self,
        recipient_id: int,
        *,
        is_read: bool | None = None,
        type_: str | None = None,
        limit: int | None = None,
    ) -> list[Notification]:
        clauses = ["n.recipient_id = %s"]
        params: list[Any] = [recipient_id]
        if is_read is not None:
            clauses.append("n.is_read = %s")
            params.append(is_read)
        if type_:
            clauses.append("n.type = %s")
            params.append(type_)
        query = f"""
            SELECT {_NOTIFICATION_COLUMNS}
            FROM notifications n
            WHERE {" AND ".join(clauses)}
            ORDER BY n.created_at DESC
        """
        if limit:
            query += " LIMIT %s"
            params.append(limit)
        rows = await self._fetchall(query, params)
        return [self._map_notification(row) for row in rows]

    async def get_notification(self, notification_id: int, recipient_id: int) -> Notification | None:
        row = await self._fetchone(
            f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications n WHERE n.id = %s AND n.recipient_id = %s",
            (notification_id, recipient_id),
        )
        return self._map_notification(row) if row else None

    async def create_notification(self, payload: NotificationInput) -> Notification:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                row = await self._insert_notification(cur, payload)
                await conn.commit()
        return self._map_notification(row)

    async def mark_notification_read(self, notification_id: int, recipient_id: int) -> Notification | None:
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=tuple_row) as cur:
                await cur.execute(
                    f"""
                    UPDATE notifications AS n SET is_read = true, updated_at = CURRENT_TIMESTAMP
                    WHERE n.id = %s AND n.recipient_id = %s
                    RETURNING {_NOTIFICATION_COLUMNS}
                    """,
                    (notification_id, recipient_id),
                )
                row = await cur.fetchone()
                await conn.commit()
        return self._map_notification(row) if row else None

    async def mark_all_notifications_read(self, recipient_id: int) -> int:
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE notifications SET is_read = true, updated_at = CURRENT_TIMESTAMP
                    WHERE recipient_id = %s AND is_read = false
                    """,
                    (recipient_id,),
                )
                count = cur.rowcount
                await conn.commit()
        return count

    async def delete_notification(self, notification_id: int, recipient_id: int) -> bool:
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "DELETE FROM notifications WHERE id = %s AND recipient_id = %s RETURNING id",
                    (notification_id, recipient_id),
                )
                deleted = await cur.fetchone() is not None
                await conn.commit()
        return deleted

    async def notification_statistics(self, recipient_id: int) -> dict[str, Any]:
        rows = await self._fetch_dicts(
            """
            SELECT
              COUNT(*) AS total_notifications,
              COUNT(CASE WHEN is_read = false THEN 1 END) AS unread_notifications,
              COUNT(CASE WHEN type = 'payment_uploaded' THEN 1 END) AS payment_uploads,
              COUNT(CASE WHEN type = 'payment_approved' THEN 1 END) AS payment_approvals,
              COUNT(CASE WHEN type = 'payment_rejected' THEN 1 END) AS payment_rejections,
              COUNT(CASE WHEN type = 'payment_overdue' THEN 1 END) AS overdue_alerts
            FROM notifications
            WHERE recipient_id = %s
            """,
            (recipient_id,),
        )
        return rows[0]

    async def _insert_notification(self, cur: AsyncCursor, payload: NotificationInput) -> tuple:
        await cur.execute(
            f"""
            INSERT INTO notifications AS n (
              recipient_id, sender_id, type, title, message, related_client_id, related_payment_id
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING {_NOTIFICATION_COLUMNS}
            """,
            (
                payload.recipient_id,
                payload.sender_id,
                payload.type,
                payload.title,
                payload.message,
                payload.related_client_id,
                payload.related_payment_id,
            ),
        )
        return await cur.fetchone()

    # -- row mapping ------------------------------------------------------

    def _map_real_estate(self, row: tuple) -> RealEstate:
        return RealEstate(*row)

    def _map_property(self, row: tuple) -> Property:
        return Property(*row)

    def _map_seller(self, row: tuple) -> Seller:
        return Seller(*row)

    def _map_client(self, row: tuple) -> Client:
        return Client(*row)

    def _map_installment(self, row: tuple) -> Installment:
        return Installment(
            installment_id=row[0],
            client_id=row[1],
            installment_number=row[2],
            amount=row[3],
            due_date=row[4],
            status=InstallmentStatus(row[5]),
        )

    def _map_payment(self, row: tuple) -> Payment:
        return Payment(
            payment_id=row[0],
            installment_id=row[1],
            client_id=row[2],
            amount=row[3],
            payment_method=PaymentMethod(row[4]),
            status=PaymentStatus(row[5]),
            reference_number=row[6],
            proof_file_path=row[7],
            notes=row[8],
            approved_by=row[9],
            approved_at=row[10],
            payment_date=row[11],
        )

    def _map_notification(self, row: tuple) -> Notification:
        return Notification(*row)
