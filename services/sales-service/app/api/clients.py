"""Client routes."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from schemas import Client as ClientOut, Envelope, ListEnvelope

from ..domain.account import ADMIN_ROLES, STAFF_ROLES, Role
from ..domain.contracts import CreateClientInput, UpdateClientInput
from ..domain.sales_service import ClientService
from ..security.authorization import AuthorizationContext, EntityKind
from .dependencies import get_client_service, require

router = APIRouter(prefix="/clients")


class CreateClientRequest(BaseModel):
    user_id: int = Field(..., ge=1)
    property_id: int = Field(..., ge=1)
    real_estate_id: int = Field(..., ge=1)
    assigned_seller_id: int | None = Field(default=None, ge=1)
    contract_date: date | None = None
    total_down_payment: Decimal = Field(default=Decimal("0"), ge=0)


class UpdateClientRequest(BaseModel):
    contract_signed: bool | None = None
    contract_date: date | None = None
    assigned_seller_id: int | None = Field(default=None, ge=1)


def _clients(items) -> list[ClientOut]:
    return [ClientOut.model_validate(item) for item in items]


@router.get("/my-info", response_model=Envelope[ClientOut])
async def my_client_info(
    ctx: AuthorizationContext = Depends(require(Role.client)),
    service: ClientService = Depends(get_client_service),
) -> Envelope[ClientOut]:
    client = await service.for_account(ctx.account)
    return Envelope[ClientOut](message="Client information retrieved successfully", data=ClientOut.model_validate(client))


@router.get("/assigned", response_model=ListEnvelope[ClientOut])
async def assigned_clients(
    ctx: AuthorizationContext = Depends(require(Role.seller)),
    service: ClientService = Depends(get_client_service),
) -> ListEnvelope[ClientOut]:
    items = await service.assigned_to(ctx.account)
    return ListEnvelope[ClientOut].of("Assigned clients retrieved successfully", _clients(items))


@router.get("/all", response_model=ListEnvelope[ClientOut])
async def all_clients(
    real_estate_id: int | None = Query(default=None, ge=1),
    seller_id: int | None = Query(default=None, ge=1),
    contract_signed: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    ctx: AuthorizationContext = Depends(require(*STAFF_ROLES)),
    service: ClientService = Depends(get_client_service),
) -> ListEnvelope[ClientOut]:
    items = await service.list_all(
        ctx.account,
        real_estate_id=real_estate_id,
        seller_id=seller_id,
        contract_signed=contract_signed,
        search=search,
    )
    return ListEnvelope[ClientOut].of("Clients retrieved successfully", _clients(items))


@router.get("/statistics/overview", response_model=Envelope[dict[str, Any]])
async def client_statistics(
    real_estate_id: int | None = Query(default=None, ge=1),
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES)),
    service: ClientService = Depends(get_client_service),
) -> Envelope[dict[str, Any]]:
    stats = await service.statistics(real_estate_id)
    return Envelope[dict[str, Any]](message="Client statistics retrieved successfully", data=stats)


@router.get("/{client_id}", response_model=Envelope[ClientOut])
async def get_client(
    client_id: int,
    _: AuthorizationContext = Depends(require(*STAFF_ROLES, scope=EntityKind.client)),
    service: ClientService = Depends(get_client_service),
) -> Envelope[ClientOut]:
    client = await service.get(client_id)
    return Envelope[ClientOut](message="Client retrieved successfully", data=ClientOut.model_validate(client))


@router.post("", response_model=Envelope[ClientOut], status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: CreateClientRequest,
    ctx: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: ClientService = Depends(get_client_service),
) -> Envelope[ClientOut]:
    client = await service.create(CreateClientInput(**payload.model_dump()), ctx.account)
    return Envelope[ClientOut](message="Client created successfully", data=ClientOut.model_validate(client))


@router.put("/{client_id}", response_model=Envelope[ClientOut])
async def update_client(
    client_id: int,
    payload: UpdateClientRequest,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.client)),
    service: ClientService = Depends(get_client_service),
) -> Envelope[ClientOut]:
    client = await service.update(client_id, UpdateClientInput(**payload.model_dump()))
    return Envelope[ClientOut](message="Client updated successfully", data=ClientOut.model_validate(client))


@router.delete("/{client_id}", response_model=Envelope[None])
async def delete_client(
    client_id: int,
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: ClientService = Depends(get_client_service),
) -> Envelope[None]:
    await service.delete(client_id)
    return Envelope[None](message="Client deleted successfully")
