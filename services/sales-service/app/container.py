"""Builds the service graph and attaches it to application state."""

from __future__ import annotations

from typing import Any

from .config import Settings, get_settings
from .domain.sales_service import (
    ClientService,
    InstallmentService,
    NotificationService,
    PaymentService,
    RealEstateService,
    SellerService,
)
from .domain.service import AccountService
from .security.authorization import CredentialVerifier, RequestPipeline, ScopeResolver
from .security.rate_limiter import RateLimiter, build_rate_limiter
from .security.uploads import ProofStorage


def wire_services(
    state: Any,
    *,
    accounts,
    sales,
    settings: Settings | None = None,
    rate_limiter: RateLimiter | None = None,
    storage: ProofStorage | None = None,
) -> None:
    """Populate ``state`` (normally ``app.state``) with services over the given repositories.

    ``accounts`` must also satisfy the authorization store protocol.
    """
    settings = settings or get_settings()
    storage = storage or ProofStorage.from_settings(settings)

    state.pipeline = RequestPipeline(
        CredentialVerifier(accounts, settings),
        ScopeResolver(accounts, enforce_membership=settings.tenant_membership_enforced),
    )
    state.proof_storage = storage
    state.account_service = AccountService(
        accounts,
        rate_limiter if rate_limiter is not None else build_rate_limiter(settings),
        settings,
    )
    state.real_estate_service = RealEstateService(sales)
    state.seller_service = SellerService(sales, accounts)
    state.client_service = ClientService(sales, accounts)
    state.installment_service = InstallmentService(
        sales,
        late_after_days=settings.installment_late_after_days,
        upcoming_window_days=settings.upcoming_window_days,
    )
    state.payment_service = PaymentService(sales, storage)
    state.notification_service = NotificationService(sales, accounts)
