from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Closed set of account roles."""

    system_admin = "system_admin"
    real_estate_admin = "real_estate_admin"
    seller = "seller"
    client = "client"


STAFF_ROLES = frozenset({Role.system_admin, Role.real_estate_admin, Role.seller})
ADMIN_ROLES = frozenset({Role.system_admin, Role.real_estate_admin})


@dataclass(slots=True)
class Account:
    """Authenticated identity joined with its role name."""

    account_id: int
    email: str
    first_name: str
    last_name: str
    role: Role
    active: bool = True
    phone: str | None = None
    real_estate_id: int | None = None
    created_at: datetime | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
