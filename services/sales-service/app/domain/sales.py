"""Aggregates for the sales side of the domain: tenants, properties, clients, money."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class InstallmentStatus(str, Enum):
    pending = "pending"
    pending_approval = "pending_approval"
    paid = "paid"
    overdue = "overdue"
    late = "late"


class PaymentStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class PaymentMethod(str, Enum):
    bank_transfer = "bank_transfer"
    deposit = "deposit"


PROPERTY_AVAILABLE = "available"
PROPERTY_STATUSES = frozenset({PROPERTY_AVAILABLE, "reserved", "sold", "under_construction"})


class NotificationType(str, Enum):
    payment_uploaded = "payment_uploaded"
    payment_approved = "payment_approved"
    payment_rejected = "payment_rejected"
    payment_overdue = "payment_overdue"
    general = "general"


@dataclass(slots=True)
class RealEstate:
    real_estate_id: int
    name: str
    address: str
    city: str
    country: str
    phone: str | None = None
    email: str | None = None
    created_by: int | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class Property:
    property_id: int
    real_estate_id: int
    title: str
    price: Decimal
    total_installments: int
    installment_amount: Decimal
    status: str = "available"
    description: str | None = None
    property_type: str | None = None
    address: str | None = None
    city: str | None = None
    down_payment_percentage: Decimal = Decimal("0")


@dataclass(slots=True)
class Seller:
    """A seller's commission profile within one real estate."""

    seller_id: int
    user_id: int
    real_estate_id: int
    commission_rate: Decimal = Decimal("5")
    active: bool = True
    total_sales: Decimal = Decimal("0")
    total_commission: Decimal = Decimal("0")
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    real_estate_name: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class Client:
    client_id: int
    user_id: int
    property_id: int | None
    real_estate_id: int | None
    assigned_seller_id: int | None = None
    contract_signed: bool = False
    contract_date: date | None = None
    total_down_payment: Decimal = Decimal("0")
    remaining_balance: Decimal = Decimal("0")
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class Installment:
    installment_id: int
    client_id: int
    installment_number: int
    amount: Decimal
    due_date: date
    status: InstallmentStatus


@dataclass(slots=True)
class Payment:
    payment_id: int
    installment_id: int
    client_id: int
    amount: Decimal
    payment_method: PaymentMethod
    status: PaymentStatus
    reference_number: str | None = None
    proof_file_path: str | None = None
    notes: str | None = None
    approved_by: int | None = None
    approved_at: datetime | None = None
    payment_date: datetime | None = None


@dataclass(slots=True)
class Notification:
    notification_id: int
    recipient_id: int
    type: str
    title: str
    message: str
    sender_id: int | None = None
    related_client_id: int | None = None
    related_payment_id: int | None = None
    is_read: bool = False
    created_at: datetime | None = None
