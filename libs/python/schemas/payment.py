"""Payment and notification DTOs."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class Payment(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    payment_id: int
    installment_id: int
    client_id: int
    amount: Decimal
    payment_method: str
    status: str
    reference_number: str | None = None
    has_proof: bool = False
    notes: str | None = None
    approved_by: int | None = None
    approved_at: datetime | None = None
    payment_date: datetime | None = None

    @classmethod
    def from_domain(cls, payment) -> "Payment":
        """Build the DTO without exposing the server-side proof path."""
        dto = cls.model_validate(payment)
        dto.has_proof = bool(payment.proof_file_path)
        return dto


class Notification(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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
