"""FastAPI dependencies: service lookup and per-route authorization."""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Mapping, Sequence

from fastapi import Header, Request

from ..domain.account import Role
from ..domain.sales_service import (
    ClientService,
    InstallmentService,
    NotificationService,
    PaymentService,
    RealEstateService,
    SellerService,
)
from ..domain.service import AccountService
from ..errors import ValidationError
from ..security.authorization import (
    AuthorizationContext,
    EntityKind,
    EntityReference,
    RequestPipeline,
    pick_entity_id,
)

ENTITY_ID_NAMES: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.real_estate: ("real_estate_id", "realEstateId"),
    EntityKind.client: ("client_id", "clientId"),
}


def get_pipeline(request: Request) -> RequestPipeline:
    return request.app.state.pipeline


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_real_estate_service(request: Request) -> RealEstateService:
    return request.app.state.real_estate_service


def get_seller_service(request: Request) -> SellerService:
    return request.app.state.seller_service


def get_client_service(request: Request) -> ClientService:
    return request.app.state.client_service


def get_installment_service(request: Request) -> InstallmentService:
    return request.app.state.installment_service


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


async def _request_body(request: Request) -> Mapping[str, Any] | None:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        raw = await request.body()
        if not raw:
            return None
        try:
            body = json.loads(raw)
        except ValueError as exc:
            raise ValidationError("Request body is not valid JSON") from exc
        return body if isinstance(body, dict) else None
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}
    return None


async def requested_entity_id(request: Request, names: Sequence[str]) -> int | None:
    """Find the targeted entity id in the path, then the body, then the query string."""
    entity_id = pick_entity_id(names, request.path_params)
    if entity_id is not None:
        return entity_id
    entity_id = pick_entity_id(names, await _request_body(request))
    if entity_id is not None:
        return entity_id
    return pick_entity_id(names, request.query_params)


def require(
    *roles: Role,
    scope: EntityKind | None = None,
    names: Sequence[str] = (),
) -> Callable[..., Awaitable[AuthorizationContext]]:
    """Build a dependency that admits the request or raises the rejection reason.

    ``roles`` empty means any authenticated account. With ``scope`` set, the
    entity id is read from the request and checked against the caller's role.
    """
    id_names = tuple(names) or (ENTITY_ID_NAMES[scope] if scope else ())

    async def dependency(
        request: Request,
        authorization: str | None = Header(default=None),
    ) -> AuthorizationContext:
        reference = None
        malformed: ValidationError | None = None
        if scope is not None:
            try:
                entity_id = await requested_entity_id(request, id_names)
            except ValidationError as exc:
                # Reported only once the caller is known to be authenticated.
                malformed, entity_id = exc, None
            reference = EntityReference(scope, entity_id)
        context = await get_pipeline(request).admit(authorization, roles, reference)
        if malformed is not None:
            raise malformed
        return context

    return dependency
