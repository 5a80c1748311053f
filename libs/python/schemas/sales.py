"""Sales DTOs: real estates, properties, clients and their installment plans."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class RealEstate(_FromDomain):
    real_estate_id: int
    name: str
    address: str
    city: str
    country: str
    phone: str | None = None
    email: str | None = None
    created_by: int | None = None
    created_at: datetime | None = None


class Property(_FromDomain):
    property_id: int
    real_estate_id: int
    title: str
    price: Decimal
    total_installments: int
    installment_amount: Decimal
    status: str
    description: str | None = None
    property_type: str | None = None
    address: str | None = None
    city: str | None = None
    down_payment_percentage: Decimal = Decimal("0")


class Seller(_FromDomain):
    seller_id: int
    user_id: int
    real_estate_id: int
    commission_rate: Decimal
    active: bool = True
    total_sales: Decimal = Decimal("0")
    total_commission: Decimal = Decimal("0")
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    real_estate_name: str | None = None
    created_at: datetime | None = None


class Client(_FromDomain):
    client_id: int
    user_id: int
    property_id: int | None = None
    real_estate_id: int | None = None
    assigned_seller_id: int | None = None
    contract_signed: bool = False
    contract_date: date | None = None
    total_down_payment: Decimal = Decimal("0")
    remaining_balance: Decimal = Decimal("0")
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    created_at: datetime | None = None


class Installment(_FromDomain):
    installment_id: int
    client_id: int
    installment_number: int
    amount: Decimal
    due_date: date
    status: str


class InstallmentSummary(BaseModel):
    total_installments: int
    paid_installments: int
    pending_installments: int
    pending_approval_installments: int
    overdue_installments: int
    late_installments: int
    total_paid: Decimal
    total_remaining: Decimal
    next_due_date: date | None = None
    last_payment_date: date | None = None
