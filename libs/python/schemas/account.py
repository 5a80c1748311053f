"""Account DTOs shared across services."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr


class Account(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    account_id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    active: bool = True
    phone: str | None = None
    real_estate_id: int | None = None
    created_at: datetime | None = None


class Session(BaseModel):
    """Issued bearer token together with the account it belongs to."""

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: Account
