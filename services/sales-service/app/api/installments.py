"""Installment routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from schemas import Envelope, Installment as InstallmentOut, InstallmentSummary, ListEnvelope

from ..domain.account import ADMIN_ROLES, STAFF_ROLES, Role
from ..domain.sales import InstallmentStatus
from ..domain.sales_service import ClientService, InstallmentService
from ..security.authorization import AuthorizationContext, EntityKind
from .dependencies import get_client_service, get_installment_service, require

router = APIRouter(prefix="/installments")


class StatusUpdateRequest(BaseModel):
    status: InstallmentStatus


def _installments(items) -> list[InstallmentOut]:
    return [InstallmentOut.model_validate(item) for item in items]


def _seller_filter(ctx: AuthorizationContext) -> int | None:
    return ctx.account_id if ctx.role is Role.seller else None


@router.get("/my-installments/all", response_model=ListEnvelope[InstallmentOut])
async def my_installments(
    ctx: AuthorizationContext = Depends(require(Role.client)),
    clients: ClientService = Depends(get_client_service),
    service: InstallmentService = Depends(get_installment_service),
) -> ListEnvelope[InstallmentOut]:
    client = await clients.for_account(ctx.account)
    items = await service.for_client(client.client_id)
    return ListEnvelope[InstallmentOut].of("Installments retrieved successfully", _installments(items))


@router.get("/summary/my", response_model=Envelope[InstallmentSummary])
async def my_summary(
    ctx: AuthorizationContext = Depends(require(Role.client)),
    clients: ClientService = Depends(get_client_service),
    service: InstallmentService = Depends(get_installment_service),
) -> Envelope[InstallmentSummary]:
    client = await clients.for_account(ctx.account)
    summary = await service.summary_for_client(client.client_id)
    return Envelope[InstallmentSummary](message="Installment summary retrieved successfully", data=summary)


@router.get("/client/{client_id}", response_model=ListEnvelope[InstallmentOut])
async def client_installments(
    client_id: int,
    _: AuthorizationContext = Depends(require(*STAFF_ROLES, scope=EntityKind.client)),
    clients: ClientService = Depends(get_client_service),
    service: InstallmentService = Depends(get_installment_service),
) -> ListEnvelope[InstallmentOut]:
    await clients.get(client_id)
    items = await service.for_client(client_id)
    return ListEnvelope[InstallmentOut].of("Client installments retrieved successfully", _installments(items))


@router.get("/summary/client/{client_id}", response_model=Envelope[InstallmentSummary])
async def client_summary(
    client_id: int,
    _: AuthorizationContext = Depends(require(*STAFF_ROLES, scope=EntityKind.client)),
    clients: ClientService = Depends(get_client_service),
    service: InstallmentService = Depends(get_installment_service),
) -> Envelope[InstallmentSummary]:
    await clients.get(client_id)
    summary = await service.summary_for_client(client_id)
    return Envelope[InstallmentSummary](message="Client installment summary retrieved successfully", data=summary)


@router.get("/overdue/all", response_model=ListEnvelope[InstallmentOut])
async def all_overdue(
    ctx: AuthorizationContext = Depends(require(*STAFF_ROLES)),
    service: InstallmentService = Depends(get_installment_service),
) -> ListEnvelope[InstallmentOut]:
    items = await service.overdue(seller_id=_seller_filter(ctx))
    return ListEnvelope[InstallmentOut].of("Overdue installments retrieved successfully", _installments(items))


@router.get("/upcoming/all", response_model=ListEnvelope[InstallmentOut])
async def all_upcoming(
    ctx: AuthorizationContext = Depends(require(*STAFF_ROLES)),
    service: InstallmentService = Depends(get_installment_service),
) -> ListEnvelope[InstallmentOut]:
    items = await service.upcoming(seller_id=_seller_filter(ctx))
    return ListEnvelope[InstallmentOut].of("Upcoming installments retrieved successfully", _installments(items))


@router.get("/overdue/real-estate/{real_estate_id}", response_model=ListEnvelope[InstallmentOut])
async def overdue_for_real_estate(
    real_estate_id: int,
    ctx: AuthorizationContext = Depends(require(*STAFF_ROLES, scope=EntityKind.real_estate)),
    service: InstallmentService = Depends(get_installment_service),
) -> ListEnvelope[InstallmentOut]:
    items = await service.overdue(real_estate_id=real_estate_id, seller_id=_seller_filter(ctx))
    return ListEnvelope[InstallmentOut].of("Overdue installments retrieved successfully", _installments(items))


@router.get("/upcoming/real-estate/{real_estate_id}", response_model=ListEnvelope[InstallmentOut])
async def upcoming_for_real_estate(
    real_estate_id: int,
    ctx: AuthorizationContext = Depends(require(*STAFF_ROLES, scope=EntityKind.real_estate)),
    service: InstallmentService = Depends(get_installment_service),
) -> ListEnvelope[InstallmentOut]:
    items = await service.upcoming(real_estate_id=real_estate_id, seller_id=_seller_filter(ctx))
    return ListEnvelope[InstallmentOut].of("Upcoming installments retrieved successfully", _installments(items))


@router.get("/statistics/all", response_model=Envelope[InstallmentSummary])
async def installment_statistics(
    real_estate_id: int | None = Query(default=None, ge=1),
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: InstallmentService = Depends(get_installment_service),
) -> Envelope[InstallmentSummary]:
    stats = await service.statistics(real_estate_id)
    return Envelope[InstallmentSummary](message="Installment statistics retrieved successfully", data=stats)


@router.put("/{installment_id}/status", response_model=Envelope[InstallmentOut])
async def update_installment_status(
    installment_id: int,
    payload: StatusUpdateRequest,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES)),
    service: InstallmentService = Depends(get_installment_service),
) -> Envelope[InstallmentOut]:
    installment = await service.update_status(installment_id, payload.status)
    return Envelope[InstallmentOut](
        message="Installment status updated successfully",
        data=InstallmentOut.model_validate(installment),
    )
