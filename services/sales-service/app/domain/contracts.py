"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from .account import Role


@dataclass(slots=True)
class CreateAccountInput:
    """Validated inputs required to register an account."""

    email: str
    password: str
    first_name: str
    last_name: str
    role: Role
    phone: str | None = None
    real_estate_id: int | None = None


@dataclass(slots=True)
class UpdateProfileInput:
    first_name: str
    last_name: str
    phone: str | None = None


@dataclass(slots=True)
class RealEstateInput:
    name: str
    address: str
    city: str
    country: str
    phone: str | None = None
    email: str | None = None


@dataclass(slots=True)
class PropertyInput:
    real_estate_id: int
    title: str
    price: Decimal
    total_installments: int
    installment_amount: Decimal
    description: str | None = None
    property_type: str | None = None
    address: str | None = None
    city: str | None = None
    down_payment_percentage: Decimal = Decimal("0")
    status: str = "available"


@dataclass(slots=True)
class CreateClientInput:
    """Inputs for attaching a client account to a property."""

    user_id: int
    property_id: int
    real_estate_id: int
    assigned_seller_id: int | None = None
    contract_date: date | None = None
    total_down_payment: Decimal = Decimal("0")


@dataclass(slots=True)
class UpdateClientInput:
    contract_signed: bool | None = None
    contract_date: date | None = None
    assigned_seller_id: int | None = None


@dataclass(slots=True)
class ProofFile:
    """An uploaded payment proof that already passed validation and was stored."""

    original_name: str
    content_type: str
    path: str
    size: int


@dataclass(slots=True)
class PaymentSubmission:
    installment_id: int
    amount: Decimal
    payment_method: str
    reference_number: str | None = None
    notes: str | None = None


@dataclass(slots=True)
class NotificationInput:
    recipient_id: int
    type: str
    title: str
    message: str
    sender_id: int | None = None
    related_client_id: int | None = None
    related_payment_id: int | None = None


@dataclass(slots=True)
class UpdatePropertyInput:
    """Partial property update; ``None`` leaves a field unchanged."""

    title: str | None = None
    description: str | None = None
    property_type: str | None = None
    address: str | None = None
    city: str | None = None
    price: Decimal | None = None
    down_payment_percentage: Decimal | None = None
    total_installments: int | None = None
    installment_amount: Decimal | None = None
    status: str | None = None


@dataclass(slots=True)
class UpdateAccountInput:
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    active: bool | None = None
    real_estate_id: int | None = None


@dataclass(slots=True)
class SellerInput:
    user_id: int
    real_estate_id: int
    commission_rate: Decimal = Decimal("5")


@dataclass(slots=True)
class UpdateSellerInput:
    commission_rate: Decimal | None = None
    active: bool | None = None
    total_sales: Decimal | None = None
    total_commission: Decimal | None = None
