"""Workflows for real estates, clients, installments, payments and notifications."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable

from .account import Account, Role
from .contracts import (
    CreateClientInput,
    NotificationInput,
    PaymentSubmission,
    ProofFile,
    PropertyInput,
    RealEstateInput,
    SellerInput,
    UpdateClientInput,
    UpdatePropertyInput,
    UpdateSellerInput,
)
from .installments import build_schedule, summarize, with_effective_status
from .sales import (
    PROPERTY_AVAILABLE,
    PROPERTY_STATUSES,
    Client,
    Installment,
    InstallmentStatus,
    Notification,
    NotificationType,
    Payment,
    PaymentStatus,
    Property,
    RealEstate,
    Seller,
)
from ..errors import ConflictError, NotFoundError, ScopeDenied, ValidationError

if TYPE_CHECKING:
    from ..repository import AccountRepository
    from ..sales_repository import SalesRepository
    from ..security.uploads import ProofStorage

logger = logging.getLogger(__name__)

_OUTSTANDING = (InstallmentStatus.pending, InstallmentStatus.overdue, InstallmentStatus.late)
_SETTABLE_STATUSES = frozenset(
    {InstallmentStatus.pending, InstallmentStatus.paid, InstallmentStatus.overdue, InstallmentStatus.late}
)


def _ensure_client_visible(account: Account, client: Client) -> None:
    """Clients only see their own record and sellers only their assigned clients."""
    match account.role:
        case Role.client if client.user_id != account.account_id:
            raise ScopeDenied(account.role.value, "client", client.client_id)
        case Role.seller if client.assigned_seller_id != account.account_id:
            raise ScopeDenied(account.role.value, "client", client.client_id)


def _ensure_seller_visible(account: Account, seller: Seller) -> None:
    if account.role is Role.seller and seller.user_id != account.account_id:
        raise ScopeDenied(account.role.value, "seller", seller.seller_id)


def _check_property_status(status: str) -> None:
    if status not in PROPERTY_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(sorted(PROPERTY_STATUSES))}", field="status")


class RealEstateService:
    def __init__(self, repository: "SalesRepository") -> None:
        self._repository = repository

    async def list_all(self, *, search: str | None = None) -> list[RealEstate]:
        return await self._repository.list_real_estates(search=search)

    async def search(self, term: str | None) -> list[RealEstate]:
        term = (term or "").strip()
        if len(term) < 2:
            raise ValidationError("Search term must be at least 2 characters long", field="q")
        return await self._repository.list_real_estates(search=term)

    async def list_created_by(self, admin_id: int) -> list[RealEstate]:
        return await self._repository.list_real_estates(created_by=admin_id)

    async def get(self, real_estate_id: int) -> RealEstate:
        real_estate = await self._repository.get_real_estate(real_estate_id)
        if real_estate is None:
            raise NotFoundError("Real estate", real_estate_id)
        return real_estate

    async def create(self, payload: RealEstateInput, actor: Account) -> RealEstate:
        real_estate = await self._repository.create_real_estate(payload, actor.account_id)
        logger.info("real estate %s created by %s", real_estate.real_estate_id, actor.account_id)
        return real_estate

    async def update(self, real_estate_id: int, payload: RealEstateInput) -> RealEstate:
        real_estate = await self._repository.update_real_estate(real_estate_id, payload)
        if real_estate is None:
            raise NotFoundError("Real estate", real_estate_id)
        return real_estate

    async def delete(self, real_estate_id: int) -> None:
        if not await self._repository.delete_real_estate(real_estate_id):
            raise NotFoundError("Real estate", real_estate_id)
        logger.info("real estate %s deleted", real_estate_id)

    async def statistics(self, real_estate_id: int | None = None) -> list[dict[str, Any]]:
        if real_estate_id is not None:
            await self.get(real_estate_id)
        return await self._repository.real_estate_statistics(real_estate_id)

    async def list_properties(self, real_estate_id: int) -> list[Property]:
        await self.get(real_estate_id)
        return await self._repository.list_properties(real_estate_id)

    async def get_property(self, property_id: int) -> Property:
        prop = await self._repository.get_property(property_id)
        if prop is None:
            raise NotFoundError("Property", property_id)
        return prop

    async def create_property(self, payload: PropertyInput, actor: Account) -> Property:
        await self.get(payload.real_estate_id)
        if payload.total_installments < 0:
            raise ValidationError("Total installments cannot be negative", field="total_installments")
        _check_property_status(payload.status)
        return await self._repository.create_property(payload, actor.account_id)

    async def find_properties(
        self,
        *,
        real_estate_id: int | None = None,
        status: str | None = None,
        property_type: str | None = None,
        search: str | None = None,
    ) -> list[Property]:
        return await self._repository.list_properties(
            real_estate_id, status=status, property_type=property_type, search=search
        )

    async def search_properties(self, term: str | None) -> list[Property]:
        term = (term or "").strip()
        if len(term) < 2:
            raise ValidationError("Search term must be at least 2 characters long", field="q")
        return await self._repository.list_properties(search=term)

    async def available_properties(self) -> list[Property]:
        return await self._repository.list_properties(status=PROPERTY_AVAILABLE)

    async def update_property(self, property_id: int, payload: UpdatePropertyInput) -> Property:
        if payload.status is not None:
            _check_property_status(payload.status)
        prop = await self._repository.update_property(property_id, payload)
        if prop is None:
            raise NotFoundError("Property", property_id)
        logger.info("property %s updated", property_id)
        return prop

    async def delete_property(self, property_id: int) -> None:
        if not await self._repository.delete_property(property_id):
            raise NotFoundError("Property", property_id)
        logger.info("property %s deleted", property_id)

    async def property_statistics(self, real_estate_id: int | None = None) -> dict[str, Any]:
        if real_estate_id is not None:
            await self.get(real_estate_id)
        return await self._repository.property_statistics(real_estate_id)


class SellerService:
    """Seller commission profiles and their performance figures."""

    def __init__(self, repository: "SalesRepository", accounts: "AccountRepository") -> None:
        self._repository = repository
        self._accounts = accounts

    async def list_all(
        self,
        *,
        real_estate_id: int | None = None,
        active: bool | None = None,
        search: str | None = None,
    ) -> list[Seller]:
        return await self._repository.list_sellers(real_estate_id=real_estate_id, active=active, search=search)

    async def search(self, term: str | None) -> list[Seller]:
        term = (term or "").strip()
        if len(term) < 2:
            raise ValidationError("Search term must be at least 2 characters long", field="q")
        return await self._repository.list_sellers(search=term)

    async def get(self, seller_id: int) -> Seller:
        seller = await self._repository.get_seller(seller_id)
        if seller is None:
            raise NotFoundError("Seller", seller_id)
        return seller

    async def get_visible(self, actor: Account, seller_id: int) -> Seller:
        seller = await self.get(seller_id)
        _ensure_seller_visible(actor, seller)
        return seller

    async def for_user(self, actor: Account, user_id: int) -> Seller:
        seller = await self._repository.get_seller_by_user(user_id)
        if seller is None:
            raise NotFoundError("Seller", user_id)
        _ensure_seller_visible(actor, seller)
        return seller

    async def create(self, payload: SellerInput, actor: Account) -> Seller:
        user = await self._accounts.get_account(payload.user_id)
        if user is None:
            raise NotFoundError("User", payload.user_id)
        if user.role is not Role.seller:
            raise ValidationError("User must have the seller role", field="user_id")
        if await self._repository.get_real_estate(payload.real_estate_id) is None:
            raise NotFoundError("Real estate", payload.real_estate_id)
        seller = await self._repository.create_seller(payload, actor.account_id)
        logger.info("seller %s created for user %s by %s", seller.seller_id, payload.user_id, actor.account_id)
        return seller

    async def update(self, seller_id: int, payload: UpdateSellerInput) -> Seller:
        seller = await self._repository.update_seller(seller_id, payload)
        if seller is None:
            raise NotFoundError("Seller", seller_id)
        return seller

    async def delete(self, seller_id: int) -> None:
        if not await self._repository.delete_seller(seller_id):
            raise NotFoundError("Seller", seller_id)
        logger.info("seller %s deleted", seller_id)

    async def statistics(self, real_estate_id: int | None = None) -> dict[str, Any]:
        return await self._repository.seller_statistics(real_estate_id)

    async def performance(self, actor: Account, seller_id: int) -> dict[str, Any]:
        await self.get_visible(actor, seller_id)
        figures = await self._repository.seller_performance(seller_id)
        if figures is None:
            raise NotFoundError("Seller", seller_id)
        return figures

    async def my_performance(self, actor: Account) -> dict[str, Any]:
        seller = await self.for_user(actor, actor.account_id)
        return await self.performance(actor, seller.seller_id)


class ClientService:
    def __init__(
        self,
        repository: "SalesRepository",
        accounts: "AccountRepository",
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._repository = repository
        self._accounts = accounts
        self._clock = clock

    async def list_all(
        self,
        actor: Account,
        *,
        real_estate_id: int | None = None,
        seller_id: int | None = None,
        contract_signed: bool | None = None,
        search: str | None = None,
    ) -> list[Client]:
        if actor.role is Role.seller:
            seller_id = actor.account_id
        return await self._repository.list_clients(
            real_estate_id=real_estate_id,
            seller_id=seller_id,
            contract_signed=contract_signed,
            search=search,
        )

    async def assigned_to(self, seller: Account) -> list[Client]:
        return await self._repository.list_clients(seller_id=seller.account_id)

    async def get(self, client_id: int) -> Client:
        client = await self._repository.get_client(client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    async def get_visible(self, actor: Account, client_id: int) -> Client:
        client = await self.get(client_id)
        _ensure_client_visible(actor, client)
        return client

    async def for_account(self, account: Account) -> Client:
        client = await self._repository.get_client_by_user(account.account_id)
        if client is None:
            raise NotFoundError("Client", account.account_id)
        return client

    async def create(self, payload: CreateClientInput, actor: Account) -> Client:
        owner = await self._accounts.get_account(payload.user_id)
        if owner is None:
            raise NotFoundError("User", payload.user_id)
        if owner.role is not Role.client:
            raise ValidationError("User must have the client role", field="user_id")
        if await self._repository.get_client_by_user(payload.user_id) is not None:
            raise ConflictError("Client record already exists for this user", details={"user_id": payload.user_id})

        prop = await self._repository.get_property(payload.property_id)
        if prop is None:
            raise NotFoundError("Property", payload.property_id)
        if prop.real_estate_id != payload.real_estate_id:
            raise ValidationError("Property does not belong to this real estate", field="property_id")
        await self._ensure_seller(payload.assigned_seller_id)

        start = payload.contract_date or self._clock()
        schedule = build_schedule(prop.total_installments, prop.installment_amount, start)
        remaining = Decimal(prop.price) - Decimal(payload.total_down_payment or 0)
        client = await self._repository.create_client(payload, remaining, schedule)
        logger.info(
            "client %s created by %s with %d installments",
            client.client_id,
            actor.account_id,
            len(schedule),
        )
        return client

    async def update(self, client_id: int, payload: UpdateClientInput) -> Client:
        await self._ensure_seller(payload.assigned_seller_id)
        client = await self._repository.update_client(client_id, payload)
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    async def delete(self, client_id: int) -> None:
        if not await self._repository.delete_client(client_id):
            raise NotFoundError("Client", client_id)
        logger.info("client %s deleted", client_id)

    async def statistics(self, real_estate_id: int | None = None) -> dict[str, Any]:
        return await self._repository.client_statistics(real_estate_id)

    async def _ensure_seller(self, seller_id: int | None) -> None:
        if seller_id is None:
            return
        seller = await self._accounts.get_account(seller_id)
        if seller is None or seller.role is not Role.seller or not seller.active:
            raise ValidationError("Assigned seller must be an active seller account", field="assigned_seller_id")


class InstallmentService:
    def __init__(
        self,
        repository: "SalesRepository",
        *,
        late_after_days: int = 30,
        upcoming_window_days: int = 30,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._repository = repository
        self._late_after_days = late_after_days
        self._upcoming_window_days = upcoming_window_days
        self._clock = clock

    def _effective(self, installments: list[Installment]) -> list[Installment]:
        today = self._clock()
        return [with_effective_status(item, today, self._late_after_days) for item in installments]

    async def for_client(self, client_id: int) -> list[Installment]:
        return self._effective(await self._repository.list_installments(client_id=client_id))

    async def summary_for_client(self, client_id: int) -> dict[str, Any]:
        return asdict(summarize(await self.for_client(client_id)))

    async def overdue(self, *, real_estate_id: int | None = None, seller_id: int | None = None) -> list[Installment]:
        today = self._clock()
        rows = await self._repository.list_installments(
            real_estate_id=real_estate_id,
            seller_id=seller_id,
            statuses=_OUTSTANDING,
            due_to=today - timedelta(days=1),
        )
        return self._effective(rows)

    async def upcoming(self, *, real_estate_id: int | None = None, seller_id: int | None = None) -> list[Installment]:
        today = self._clock()
        rows = await self._repository.list_installments(
            real_estate_id=real_estate_id,
            seller_id=seller_id,
            statuses=(InstallmentStatus.pending,),
            due_from=today,
            due_to=today + timedelta(days=self._upcoming_window_days),
        )
        return self._effective(rows)

    async def statistics(self, real_estate_id: int | None = None) -> dict[str, Any]:
        rows = self._effective(await self._repository.list_installments(real_estate_id=real_estate_id))
        return asdict(summarize(rows))

    async def update_status(self, installment_id: int, status: InstallmentStatus) -> Installment:
        if status not in _SETTABLE_STATUSES:
            raise ValidationError("Status must be pending, paid, overdue, or late", field="status")
        installment = await self._repository.update_installment_status(installment_id, status)
        if installment is None:
            raise NotFoundError("Installment", installment_id)
        logger.info("installment %s set to %s", installment_id, status.value)
        return installment


class PaymentService:
    """Payment proof submission and the approval workflow."""

    def __init__(self, repository: "SalesRepository", storage: "ProofStorage") -> None:
        self._repository = repository
        self._storage = storage

    async def submit(self, account: Account, submission: PaymentSubmission, proof: ProofFile | None) -> Payment:
        """Record a payment against one of the caller's pending installments.

        The stored proof file is removed again when the submission is refused.
        """
        try:
            client = await self._repository.get_client_by_user(account.account_id)
            if client is None:
                raise NotFoundError("Client", account.account_id)
            installment = await self._repository.get_installment(submission.installment_id)
            if (
                installment is None
                or installment.client_id != client.client_id
                or installment.status not in _OUTSTANDING
            ):
                raise ValidationError("Invalid installment or installment not pending", field="installment_id")
            if Decimal(submission.amount) != Decimal(installment.amount):
                raise ValidationError("Payment amount must match installment amount", field="amount")

            notification = None
            if client.assigned_seller_id is not None:
                notification = NotificationInput(
                    recipient_id=client.assigned_seller_id,
                    sender_id=account.account_id,
                    type=NotificationType.payment_uploaded.value,
                    title="New Payment Proof Uploaded",
                    message=f"Client has uploaded payment proof for installment #{installment.installment_number}",
                    related_client_id=client.client_id,
                )
            payment = await self._repository.record_payment(
                client, submission, proof.path if proof else None, notification
            )
        except Exception:
            if proof is not None:
                self._storage.discard(proof.path)
            raise
        logger.info("payment %s submitted for installment %s", payment.payment_id, submission.installment_id)
        return payment

    async def list_for_client(
        self,
        client_id: int,
        *,
        status: PaymentStatus | None = None,
        installment_id: int | None = None,
    ) -> list[Payment]:
        return await self._repository.list_payments(client_id=client_id, status=status, installment_id=installment_id)

    async def list_pending(
        self,
        actor: Account,
        *,
        real_estate_id: int | None = None,
        seller_id: int | None = None,
    ) -> list[Payment]:
        if actor.role is Role.seller:
            seller_id = actor.account_id
        return await self._repository.list_payments(
            status=PaymentStatus.pending,
            real_estate_id=real_estate_id,
            seller_id=seller_id,
        )

    async def get(self, actor: Account, payment_id: int) -> Payment:
        payment = await self._repository.get_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        client = await self._repository.get_client(payment.client_id)
        if client is not None:
            _ensure_client_visible(actor, client)
        return payment

    async def proof_path(self, actor: Account, payment_id: int) -> str:
        payment = await self.get(actor, payment_id)
        if not payment.proof_file_path:
            raise NotFoundError("Payment proof", payment_id)
        if not self._storage.exists(payment.proof_file_path):
            raise NotFoundError("Payment proof file", payment_id)
        return payment.proof_file_path

    async def review(self, actor: Account, payment_id: int, status: PaymentStatus, notes: str | None) -> Payment:
        """Approve or reject a pending payment and notify the client."""
        if status not in (PaymentStatus.approved, PaymentStatus.rejected):
            raise ValidationError("Status must be approved or rejected", field="status")
        payment = await self.get(actor, payment_id)
        if payment.status is not PaymentStatus.pending:
            raise ConflictError("Payment has already been processed", details={"status": payment.status.value})

        client = await self._repository.get_client(payment.client_id)
        if client is None:
            raise NotFoundError("Client", payment.client_id)
        installment = await self._repository.get_installment(payment.installment_id)
        number = installment.installment_number if installment else payment.installment_id

        if status is PaymentStatus.approved:
            notification = NotificationInput(
                recipient_id=client.user_id,
                sender_id=actor.account_id,
                type=NotificationType.payment_approved.value,
                title="Payment Approved",
                message=f"Your payment for installment #{number} has been approved.",
                related_client_id=client.client_id,
                related_payment_id=payment.payment_id,
            )
            updated, completed = await self._repository.approve_payment(payment, actor.account_id, notes, notification)
            if completed:
                logger.info("client %s has paid every installment", client.client_id)
        else:
            notification = NotificationInput(
                recipient_id=client.user_id,
                sender_id=actor.account_id,
                type=NotificationType.payment_rejected.value,
                title="Payment Rejected",
                message=f"Your payment for installment #{number} has been rejected. {notes or ''}".rstrip(),
                related_client_id=client.client_id,
                related_payment_id=payment.payment_id,
            )
            updated = await self._repository.reject_payment(payment, actor.account_id, notes, notification)
        logger.info("payment %s %s by %s", payment_id, status.value, actor.account_id)
        return updated

    async def delete_proof(self, payment_id: int) -> None:
        payment = await self._repository.get_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        self._storage.discard(payment.proof_file_path)
        await self._repository.clear_payment_proof(payment_id)

    async def statistics(self, client_id: int | None = None) -> dict[str, Any]:
        return await self._repository.payment_statistics(client_id)


class NotificationService:
    def __init__(self, repository: "SalesRepository", accounts: "AccountRepository") -> None:
        self._repository = repository
        self._accounts = accounts

    async def list_all(
        self,
        account: Account,
        *,
        is_read: bool | None = None,
        type_: str | None = None,
        limit: int | None = None,
    ) -> list[Notification]:
        return await self._repository.list_notifications(account.account_id, is_read=is_read, type_=type_, limit=limit)

    async def get(self, account: Account, notification_id: int) -> Notification:
        notification = await self._repository.get_notification(notification_id, account.account_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        return notification

    async def mark_read(self, account: Account, notification_id: int) -> Notification:
        notification = await self._repository.mark_notification_read(notification_id, account.account_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        return notification

    async def mark_all_read(self, account: Account) -> int:
        return await self._repository.mark_all_notifications_read(account.account_id)

    async def delete(self, account: Account, notification_id: int) -> None:
        if not await self._repository.delete_notification(notification_id, account.account_id):
            raise NotFoundError("Notification", notification_id)

    async def statistics(self, account: Account) -> dict[str, Any]:
        return await self._repository.notification_statistics(account.account_id)

    async def send(self, sender: Account, payload: NotificationInput) -> Notification:
        if await self._accounts.get_account(payload.recipient_id) is None:
            raise NotFoundError("User", payload.recipient_id)
        payload.sender_id = sender.account_id
        return await self._repository.create_notification(payload)
