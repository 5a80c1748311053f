from __future__ import annotations

import asyncio
import itertools
from dataclasses import asdict, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.router import api_router
from app.config import Settings
from app.container import wire_services
from app.domain.account import Account, Role
from app.domain.contracts import (
    CreateAccountInput,
    CreateClientInput,
    NotificationInput,
    PaymentSubmission,
    PropertyInput,
    RealEstateInput,
    SellerInput,
    UpdateAccountInput,
    UpdateClientInput,
    UpdateProfileInput,
    UpdatePropertyInput,
    UpdateSellerInput,
)
from app.domain.sales import (
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
from app.errors import ConflictError, install_exception_handlers
from app.security.rate_limiter import SlidingWindowRateLimiter
from app.security.tokens import issue_access_token


class FakeRepository:
    """In-memory stand-in for both Postgres repositories."""

    def __init__(self) -> None:
        self.accounts: dict[int, Account] = {}
        self.password_hashes: dict[int, str] = {}
        self.real_estates: dict[int, RealEstate] = {}
        self.properties: dict[int, Property] = {}
        self.sellers: dict[int, Seller] = {}
        self.clients: dict[int, Client] = {}
        self.installments: dict[int, Installment] = {}
        self.payments: dict[int, Payment] = {}
        self.notifications: dict[int, Notification] = {}
        self.lookups: list[str] = []
        self._ids = itertools.count(1)

    # -- seeding helpers --------------------------------------------------

    def add_account(
        self,
        role: Role,
        *,
        email: str | None = None,
        active: bool = True,
        password_hash: str = "not-a-hash",
        real_estate_id: int | None = None,
        account_id: int | None = None,
    ) -> Account:
        account_id = account_id or next(self._ids)
        account = Account(
            account_id=account_id,
            email=email or f"{role.value}{account_id}@example.com",
            first_name="Test",
            last_name=role.value.title(),
            role=role,
            active=active,
            real_estate_id=real_estate_id,
            created_at=datetime.now(timezone.utc),
        )
        self.accounts[account_id] = account
        self.password_hashes[account_id] = password_hash
        return account

    def add_real_estate(self, name: str = "Sunrise Homes", created_by: int | None = None) -> RealEstate:
        real_estate_id = next(self._ids)
        real_estate = RealEstate(
            real_estate_id=real_estate_id,
            name=name,
            address="12 Harbour Street",
            city="Lima",
            country="Peru",
            created_by=created_by,
        )
        self.real_estates[real_estate_id] = real_estate
        return real_estate

    def add_property(
        self,
        real_estate_id: int,
        *,
        price: Decimal = Decimal("12000"),
        total_installments: int = 3,
        installment_amount: Decimal = Decimal("1000"),
        title: str = "Lot A-1",
        status: str = "available",
    ) -> Property:
        property_id = next(self._ids)
        prop = Property(
            property_id=property_id,
            real_estate_id=real_estate_id,
            title=title,
            price=price,
            total_installments=total_installments,
            installment_amount=installment_amount,
            status=status,
        )
        self.properties[property_id] = prop
        return prop

    def add_seller(
        self,
        user_id: int,
        real_estate_id: int,
        *,
        commission_rate: Decimal = Decimal("5"),
        active: bool = True,
    ) -> Seller:
        user = self.accounts.get(user_id)
        seller = Seller(
            seller_id=next(self._ids),
            user_id=user_id,
            real_estate_id=real_estate_id,
            commission_rate=commission_rate,
            active=active,
            email=user.email if user else None,
            first_name=user.first_name if user else None,
            last_name=user.last_name if user else None,
            created_at=datetime.now(timezone.utc),
        )
        self.sellers[seller.seller_id] = seller
        return seller

    def add_client(
        self,
        user_id: int,
        *,
        real_estate_id: int | None = None,
        seller_id: int | None = None,
        property_id: int | None = None,
        remaining_balance: Decimal = Decimal("0"),
        client_id: int | None = None,
    ) -> Client:
        client_id = client_id or next(self._ids)
        client = Client(
            client_id=client_id,
            user_id=user_id,
            property_id=property_id,
            real_estate_id=real_estate_id,
            assigned_seller_id=seller_id,
            remaining_balance=remaining_balance,
        )
        self.clients[client_id] = client
        return client

    def add_installment(
        self,
        client_id: int,
        number: int,
        due_date: date,
        *,
        amount: Decimal = Decimal("1000"),
        status: InstallmentStatus = InstallmentStatus.pending,
    ) -> Installment:
        installment_id = next(self._ids)
        installment = Installment(
            installment_id=installment_id,
            client_id=client_id,
            installment_number=number,
            amount=amount,
            due_date=due_date,
            status=status,
        )
        self.installments[installment_id] = installment
        return installment

    def add_payment(
        self,
        client_id: int,
        installment_id: int,
        *,
        amount: Decimal = Decimal("1000"),
        status: PaymentStatus = PaymentStatus.pending,
        proof_file_path: str | None = None,
    ) -> Payment:
        payment = Payment(
            payment_id=next(self._ids),
            installment_id=installment_id,
            client_id=client_id,
            amount=amount,
            payment_method=PaymentMethod.bank_transfer,
            status=status,
            proof_file_path=proof_file_path,
            payment_date=datetime.now(timezone.utc),
        )
        self.payments[payment.payment_id] = payment
        return payment

    # -- authorization store ----------------------------------------------

    async def get_active_account(self, account_id: int) -> Account | None:
        self.lookups.append("account")
        account = self.accounts.get(account_id)
        return account if account and account.active else None

    async def real_estate_exists(self, real_estate_id: int) -> bool:
        self.lookups.append("real_estate")
        return real_estate_id in self.real_estates

    async def client_assigned_to_seller(self, client_id: int, seller_id: int) -> bool:
        self.lookups.append("client")
        client = self.clients.get(client_id)
        return client is not None and client.assigned_seller_id == seller_id

    async def is_real_estate_member(self, real_estate_id: int, account_id: int) -> bool:
        self.lookups.append("membership")
        account = self.accounts.get(account_id)
        return account is not None and account.real_estate_id == real_estate_id

    # -- accounts ---------------------------------------------------------

    async def get_account(self, account_id: int) -> Account | None:
        return self.accounts.get(account_id)

    async def find_credentials(self, email: str) -> tuple[Account, str] | None:
        for account in self.accounts.values():
            if account.email.lower() == email.lower():
                return account, self.password_hashes[account.account_id]
        return None

    async def create_account(self, payload: CreateAccountInput, password_hash: str) -> Account:
        if await self.find_credentials(payload.email):
            raise ConflictError("Email already exists", details={"email": payload.email})
        account = self.add_account(
            payload.role,
            email=payload.email,
            password_hash=password_hash,
            real_estate_id=payload.real_estate_id,
        )
        account.first_name = payload.first_name
        account.last_name = payload.last_name
        account.phone = payload.phone
        return account

    async def update_profile(self, account_id: int, payload: UpdateProfileInput) -> Account | None:
        account = self.accounts.get(account_id)
        if account is None:
            return None
        account.first_name = payload.first_name
        account.last_name = payload.last_name
        account.phone = payload.phone
        return account

    async def get_password_hash(self, account_id: int) -> str | None:
        return self.password_hashes.get(account_id)

    async def set_password_hash(self, account_id: int, password_hash: str) -> None:
        self.password_hashes[account_id] = password_hash

    async def set_active(self, account_id: int, active: bool) -> Account | None:
        account = self.accounts.get(account_id)
        if account is not None:
            account.active = active
        return account

    async def list_accounts(self, role: Role | None = None) -> list[Account]:
        return [a for a in self.accounts.values() if role is None or a.role is role]

    async def update_account(self, account_id: int, payload: UpdateAccountInput) -> Account | None:
        account = self.accounts.get(account_id)
        if account is None:
            return None
        for field in ("first_name", "last_name", "phone", "active", "real_estate_id"):
            value = getattr(payload, field)
            if value is not None:
                setattr(account, field, value)
        return account

    async def list_available_sellers(self, real_estate_id: int) -> list[Account]:
        return [
            a
            for a in self.accounts.values()
            if a.role is Role.seller and a.active and a.real_estate_id == real_estate_id
        ]

    async def list_available_clients(self, real_estate_id: int) -> list[Account]:
        taken = {c.user_id for c in self.clients.values()}
        return [
            a
            for a in self.accounts.values()
            if a.role is Role.client and a.active and a.real_estate_id == real_estate_id and a.account_id not in taken
        ]

    # -- real estates and properties --------------------------------------

    async def list_real_estates(self, *, search: str | None = None, created_by: int | None = None) -> list[RealEstate]:
        items = list(self.real_estates.values())
        if search:
            needle = search.lower()
            items = [r for r in items if needle in f"{r.name} {r.city} {r.country}".lower()]
        if created_by is not None:
            items = [r for r in items if r.created_by == created_by]
        return items

    async def get_real_estate(self, real_estate_id: int) -> RealEstate | None:
        return self.real_estates.get(real_estate_id)

    async def create_real_estate(self, payload: RealEstateInput, created_by: int) -> RealEstate:
        real_estate = self.add_real_estate(payload.name, created_by)
        real_estate.address = payload.address
        real_estate.city = payload.city
        real_estate.country = payload.country
        real_estate.phone = payload.phone
        real_estate.email = payload.email
        return real_estate

    async def update_real_estate(self, real_estate_id: int, payload: RealEstateInput) -> RealEstate | None:
        current = self.real_estates.get(real_estate_id)
        if current is None:
            return None
        updated = replace(current, **{k: getattr(payload, k) for k in ("name", "address", "city", "country", "phone", "email")})
        self.real_estates[real_estate_id] = updated
        return updated

    async def delete_real_estate(self, real_estate_id: int) -> bool:
        clients = sum(1 for c in self.clients.values() if c.real_estate_id == real_estate_id)
        props = sum(1 for p in self.properties.values() if p.real_estate_id == real_estate_id)
        if clients or props:
            raise ConflictError(
                "Cannot delete real estate with associated clients or properties",
                details={"client_count": clients, "property_count": props},
            )
        return self.real_estates.pop(real_estate_id, None) is not None

    async def real_estate_statistics(self, real_estate_id: int | None = None) -> list[dict]:
        rows = []
        for real_estate in self.real_estates.values():
            if real_estate_id is not None and real_estate.real_estate_id != real_estate_id:
                continue
            clients = [c for c in self.clients.values() if c.real_estate_id == real_estate.real_estate_id]
            rows.append(
                {
                    "real_estate_id": real_estate.real_estate_id,
                    "name": real_estate.name,
                    "property_count": sum(
                        1 for p in self.properties.values() if p.real_estate_id == real_estate.real_estate_id
                    ),
                    "client_count": len(clients),
                    "signed_contracts_count": sum(1 for c in clients if c.contract_signed),
                }
            )
        return rows

    async def list_properties(
        self,
        real_estate_id: int | None = None,
        *,
        status: str | None = None,
        property_type: str | None = None,
        search: str | None = None,
    ) -> list[Property]:
        items = list(self.properties.values())
        if real_estate_id is not None:
            items = [p for p in items if p.real_estate_id == real_estate_id]
        if status is not None:
            items = [p for p in items if p.status == status]
        if property_type is not None:
            items = [p for p in items if p.property_type == property_type]
        if search:
            needle = search.lower()
            items = [p for p in items if needle in f"{p.title} {p.description or ''}".lower()]
        return items

    async def update_property(self, property_id: int, payload: UpdatePropertyInput) -> Property | None:
        prop = self.properties.get(property_id)
        if prop is None:
            return None
        changes = {k: v for k, v in asdict(payload).items() if v is not None}
        self.properties[property_id] = replace(prop, **changes)
        return self.properties[property_id]

    async def delete_property(self, property_id: int) -> bool:
        clients = sum(1 for c in self.clients.values() if c.property_id == property_id)
        if clients:
            raise ConflictError("Cannot delete property with associated clients", details={"client_count": clients})
        return self.properties.pop(property_id, None) is not None

    async def property_statistics(self, real_estate_id: int | None = None) -> dict:
        items = await self.list_properties(real_estate_id)
        total_value = sum((p.price for p in items), Decimal("0"))
        return {
            "total_properties": len(items),
            "available_properties": sum(1 for p in items if p.status == "available"),
            "sold_properties": sum(1 for p in items if p.status == "sold"),
            "under_construction_properties": sum(1 for p in items if p.status == "under_construction"),
            "total_property_value": total_value,
            "average_property_price": total_value / len(items) if items else Decimal("0"),
        }

    # -- sellers ----------------------------------------------------------

    async def list_sellers(
        self,
        *,
        real_estate_id: int | None = None,
        active: bool | None = None,
        search: str | None = None,
    ) -> list[Seller]:
        items = list(self.sellers.values())
        if real_estate_id is not None:
            items = [s for s in items if s.real_estate_id == real_estate_id]
        if active is not None:
            items = [s for s in items if s.active == active]
        if search:
            needle = search.lower()
            items = [s for s in items if needle in f"{s.first_name} {s.last_name} {s.email}".lower()]
        return items

    async def get_seller(self, seller_id: int) -> Seller | None:
        return self.sellers.get(seller_id)

    async def get_seller_by_user(self, user_id: int) -> Seller | None:
        return next((s for s in self.sellers.values() if s.user_id == user_id), None)

    async def create_seller(self, payload: SellerInput, created_by: int) -> Seller:
        for seller in self.sellers.values():
            if (seller.user_id, seller.real_estate_id) == (payload.user_id, payload.real_estate_id):
                raise ConflictError(
                    "User is already a seller for this real estate",
                    details={"user_id": payload.user_id, "real_estate_id": payload.real_estate_id},
                )
        return self.add_seller(payload.user_id, payload.real_estate_id, commission_rate=payload.commission_rate)

    async def update_seller(self, seller_id: int, payload: UpdateSellerInput) -> Seller | None:
        seller = self.sellers.get(seller_id)
        if seller is None:
            return None
        for field in ("commission_rate", "active", "total_sales", "total_commission"):
            value = getattr(payload, field)
            if value is not None:
                setattr(seller, field, value)
        return seller

    def _seller_clients(self, seller: Seller) -> list[Client]:
        return [
            c
            for c in self.clients.values()
            if c.assigned_seller_id == seller.user_id and c.real_estate_id == seller.real_estate_id
        ]

    async def delete_seller(self, seller_id: int) -> bool:
        seller = self.sellers.get(seller_id)
        if seller is None:
            return False
        clients = len(self._seller_clients(seller))
        if clients:
            raise ConflictError("Cannot delete seller with assigned clients", details={"client_count": clients})
        del self.sellers[seller_id]
        return True

    async def seller_statistics(self, real_estate_id: int | None = None) -> dict:
        items = await self.list_sellers(real_estate_id=real_estate_id)
        active = sum(1 for s in items if s.active)
        return {
            "total_sellers": len(items),
            "active_sellers": active,
            "inactive_sellers": len(items) - active,
            "total_sales": sum((s.total_sales for s in items), Decimal("0")),
            "total_commissions": sum((s.total_commission for s in items), Decimal("0")),
            "average_commission_rate": (
                sum((s.commission_rate for s in items), Decimal("0")) / len(items) if items else Decimal("0")
            ),
        }

    async def seller_performance(self, seller_id: int) -> dict | None:
        seller = self.sellers.get(seller_id)
        if seller is None:
            return None
        clients = self._seller_clients(seller)
        return {
            "seller_id": seller.seller_id,
            "total_sales": seller.total_sales,
            "total_commission": seller.total_commission,
            "commission_rate": seller.commission_rate,
            "total_clients": len(clients),
            "signed_clients": sum(1 for c in clients if c.contract_signed),
        }

    async def get_property(self, property_id: int) -> Property | None:
        return self.properties.get(property_id)

    async def create_property(self, payload: PropertyInput, created_by: int) -> Property:
        prop = self.add_property(
            payload.real_estate_id,
            price=payload.price,
            total_installments=payload.total_installments,
            installment_amount=payload.installment_amount,
        )
        prop.title = payload.title
        return prop

    # -- clients ----------------------------------------------------------

    async def list_clients(
        self,
        *,
        real_estate_id: int | None = None,
        seller_id: int | None = None,
        contract_signed: bool | None = None,
        search: str | None = None,
    ) -> list[Client]:
        items = list(self.clients.values())
        if real_estate_id is not None:
            items = [c for c in items if c.real_estate_id == real_estate_id]
        if seller_id is not None:
            items = [c for c in items if c.assigned_seller_id == seller_id]
        if contract_signed is not None:
            items = [c for c in items if c.contract_signed == contract_signed]
        return items

    async def get_client(self, client_id: int) -> Client | None:
        return self.clients.get(client_id)

    async def get_client_by_user(self, user_id: int) -> Client | None:
        return next((c for c in self.clients.values() if c.user_id == user_id), None)

    async def create_client(self, payload: CreateClientInput, remaining_balance: Decimal, schedule) -> Client:
        client = self.add_client(
            payload.user_id,
            real_estate_id=payload.real_estate_id,
            seller_id=payload.assigned_seller_id,
            property_id=payload.property_id,
            remaining_balance=remaining_balance,
        )
        client.contract_date = payload.contract_date
        client.total_down_payment = payload.total_down_payment
        for number, amount, due in schedule:
            self.add_installment(client.client_id, number, due, amount=amount)
        return client

    async def update_client(self, client_id: int, payload: UpdateClientInput) -> Client | None:
        client = self.clients.get(client_id)
        if client is None:
            return None
        if payload.contract_signed is not None:
            client.contract_signed = payload.contract_signed
        if payload.contract_date is not None:
            client.contract_date = payload.contract_date
        if payload.assigned_seller_id is not None:
            client.assigned_seller_id = payload.assigned_seller_id
        return client

    async def delete_client(self, client_id: int) -> bool:
        payments = sum(1 for p in self.payments.values() if p.client_id == client_id)
        if payments:
            raise ConflictError("Cannot delete client with existing payments", details={"payment_count": payments})
        for key in [k for k, i in self.installments.items() if i.client_id == client_id]:
            del self.installments[key]
        return self.clients.pop(client_id, None) is not None

    async def client_statistics(self, real_estate_id: int | None = None) -> dict:
        items = await self.list_clients(real_estate_id=real_estate_id)
        signed = sum(1 for c in items if c.contract_signed)
        return {"total_clients": len(items), "signed_contracts": signed, "pending_contracts": len(items) - signed}

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
        wanted = set(statuses) if statuses is not None else None
        items = []
        for item in self.installments.values():
            client = self.clients[item.client_id]
            if client_id is not None and item.client_id != client_id:
                continue
            if real_estate_id is not None and client.real_estate_id != real_estate_id:
                continue
            if seller_id is not None and client.assigned_seller_id != seller_id:
                continue
            if wanted is not None and item.status not in wanted:
                continue
            if due_from is not None and item.due_date < due_from:
                continue
            if due_to is not None and item.due_date > due_to:
                continue
            # Hand out copies so derived statuses never leak into storage.
            items.append(replace(item))
        return sorted(items, key=lambda i: (i.due_date, i.installment_number))

    async def get_installment(self, installment_id: int) -> Installment | None:
        item = self.installments.get(installment_id)
        snapshot = replace(item) if item else None
        await asyncio.sleep(0)
        return snapshot

    async def update_installment_status(self, installment_id: int, status: InstallmentStatus) -> Installment | None:
        item = self.installments.get(installment_id)
        if item is None:
            return None
        item.status = status
        return replace(item)

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
        items = []
        for payment in self.payments.values():
            client = self.clients[payment.client_id]
            if client_id is not None and payment.client_id != client_id:
                continue
            if status is not None and payment.status is not status:
                continue
            if installment_id is not None and payment.installment_id != installment_id:
                continue
            if real_estate_id is not None and client.real_estate_id != real_estate_id:
                continue
            if seller_id is not None and client.assigned_seller_id != seller_id:
                continue
            items.append(payment)
        return items

    async def get_payment(self, payment_id: int) -> Payment | None:
        payment = self.payments.get(payment_id)
        snapshot = replace(payment) if payment else None
        # Yield like a database round trip so concurrent callers can act on stale reads.
        await asyncio.sleep(0)
        return snapshot

    async def record_payment(self, client, submission: PaymentSubmission, proof_path, notification) -> Payment:
        installment = self.installments.get(submission.installment_id)
        if (
            installment is None
            or installment.client_id != client.client_id
            or installment.status not in (InstallmentStatus.pending, InstallmentStatus.overdue, InstallmentStatus.late)
        ):
            raise ConflictError(
                "Installment is no longer awaiting payment",
                details={"installment_id": submission.installment_id},
            )
        payment = Payment(
            payment_id=next(self._ids),
            installment_id=submission.installment_id,
            client_id=client.client_id,
            amount=Decimal(submission.amount),
            payment_method=PaymentMethod(submission.payment_method),
            status=PaymentStatus.pending,
            reference_number=submission.reference_number,
            proof_file_path=proof_path,
            notes=submission.notes,
            payment_date=datetime.now(timezone.utc),
        )
        self.payments[payment.payment_id] = payment
        self.installments[submission.installment_id].status = InstallmentStatus.pending_approval
        if notification is not None:
            notification.related_payment_id = payment.payment_id
            await self.create_notification(notification)
        return payment

    async def approve_payment(self, payment, approved_by, notes, notification):
        updated = self._review(payment, PaymentStatus.approved, approved_by, notes)
        self.installments[payment.installment_id].status = InstallmentStatus.paid
        client = self.clients[payment.client_id]
        client.remaining_balance -= payment.amount
        for seller in self.sellers.values():
            if seller.user_id == client.assigned_seller_id and seller.real_estate_id == client.real_estate_id:
                seller.total_sales += payment.amount
                seller.total_commission += payment.amount * seller.commission_rate / 100
        schedule = [i for i in self.installments.values() if i.client_id == payment.client_id]
        completed = bool(schedule) and all(i.status is InstallmentStatus.paid for i in schedule)
        if completed:
            client.contract_signed = True
        await self.create_notification(notification)
        return updated, completed

    async def reject_payment(self, payment, approved_by, notes, notification):
        updated = self._review(payment, PaymentStatus.rejected, approved_by, notes)
        self.installments[payment.installment_id].status = InstallmentStatus.pending
        await self.create_notification(notification)
        return updated

    def _review(self, payment: Payment, status: PaymentStatus, approved_by: int, notes: str | None) -> Payment:
        stored = self.payments[payment.payment_id]
        if stored.status is not PaymentStatus.pending:
            raise ConflictError("Payment has already been processed", details={"payment_id": payment.payment_id})
        stored.status = status
        stored.approved_by = approved_by
        stored.approved_at = datetime.now(timezone.utc)
        stored.notes = notes
        return replace(stored)

    async def clear_payment_proof(self, payment_id: int) -> None:
        self.payments[payment_id].proof_file_path = None

    async def payment_statistics(self, client_id: int | None = None) -> dict:
        items = await self.list_payments(client_id=client_id)
        return {
            "total_payments": len(items),
            "approved_payments": sum(1 for p in items if p.status is PaymentStatus.approved),
            "pending_payments": sum(1 for p in items if p.status is PaymentStatus.pending),
            "rejected_payments": sum(1 for p in items if p.status is PaymentStatus.rejected),
        }

    # -- notifications ----------------------------------------------------

    async def list_notifications(self, recipient_id: int, *, is_read=None, type_=None, limit=None) -> list[Notification]:
        items = [n for n in self.notifications.values() if n.recipient_id == recipient_id]
        if is_read is not None:
            items = [n for n in items if n.is_read == is_read]
        if type_:
            items = [n for n in items if n.type == type_]
        return items[:limit] if limit else items

    async def get_notification(self, notification_id: int, recipient_id: int) -> Notification | None:
        item = self.notifications.get(notification_id)
        return item if item and item.recipient_id == recipient_id else None

    async def create_notification(self, payload: NotificationInput) -> Notification:
        item = Notification(
            notification_id=next(self._ids),
            recipient_id=payload.recipient_id,
            type=payload.type,
            title=payload.title,
            message=payload.message,
            sender_id=payload.sender_id,
            related_client_id=payload.related_client_id,
            related_payment_id=payload.related_payment_id,
            created_at=datetime.now(timezone.utc),
        )
        self.notifications[item.notification_id] = item
        return item

    async def mark_notification_read(self, notification_id: int, recipient_id: int) -> Notification | None:
        item = await self.get_notification(notification_id, recipient_id)
        if item is not None:
            item.is_read = True
        return item

    async def mark_all_notifications_read(self, recipient_id: int) -> int:
        unread = [n for n in self.notifications.values() if n.recipient_id == recipient_id and not n.is_read]
        for item in unread:
            item.is_read = True
        return len(unread)

    async def delete_notification(self, notification_id: int, recipient_id: int) -> bool:
        if await self.get_notification(notification_id, recipient_id) is None:
            return False
        del self.notifications[notification_id]
        return True

    async def notification_statistics(self, recipient_id: int) -> dict:
        items = await self.list_notifications(recipient_id)
        return {"total_notifications": len(items), "unread_notifications": sum(1 for n in items if not n.is_read)}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        jwt_secret="sales-service-test-secret-0123456789abcdef",
        upload_dir=str(tmp_path / "uploads"),
        max_file_size=1024,
        rate_limit_requests=3,
    )


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def api_client(repository, settings):
    """Provide a FastAPI test client over the in-memory repository."""
    app = FastAPI()
    install_exception_handlers(app)
    app.include_router(api_router)
    wire_services(
        app.state,
        accounts=repository,
        sales=repository,
        settings=settings,
        rate_limiter=SlidingWindowRateLimiter(max_requests=settings.rate_limit_requests, window_seconds=60),
    )
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


@pytest.fixture
def auth(settings):
    """Return ``Authorization`` headers for an account."""

    def _headers(account: Account) -> dict[str, str]:
        token, _ = issue_access_token(account_id=account.account_id, settings=settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers
