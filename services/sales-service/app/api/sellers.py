"""Seller profile routes."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from schemas import Envelope, ListEnvelope, Seller as SellerOut

from ..domain.account import ADMIN_ROLES, STAFF_ROLES, Role
from ..domain.contracts import SellerInput, UpdateSellerInput
from ..domain.sales_service import SellerService
from ..security.authorization import AuthorizationContext, EntityKind
from .dependencies import get_seller_service, require

router = APIRouter(prefix="/sellers")


class CreateSellerRequest(BaseModel):
    user_id: int = Field(..., ge=1)
    real_estate_id: int = Field(..., ge=1)
    commission_rate: Decimal = Field(default=Decimal("5"), ge=0, le=100)


class UpdateSellerRequest(BaseModel):
    commission_rate: Decimal | None = Field(default=None, ge=0, le=100)
    active: bool | None = None
    total_sales: Decimal | None = Field(default=None, ge=0)
    total_commission: Decimal | None = Field(default=None, ge=0)


def _sellers(items) -> list[SellerOut]:
    return [SellerOut.model_validate(item) for item in items]


@router.get("", response_model=ListEnvelope[SellerOut])
async def list_sellers(
    real_estate_id: int | None = Query(default=None, ge=1),
    active: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: SellerService = Depends(get_seller_service),
) -> ListEnvelope[SellerOut]:
    items = await service.list_all(real_estate_id=real_estate_id, active=active, search=search)
    return ListEnvelope[SellerOut].of("Sellers retrieved successfully", _sellers(items))


@router.get("/search", response_model=ListEnvelope[SellerOut])
async def search_sellers(
    q: str | None = Query(default=None),
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES)),
    service: SellerService = Depends(get_seller_service),
) -> ListEnvelope[SellerOut]:
    items = await service.search(q)
    return ListEnvelope[SellerOut].of("Search results retrieved successfully", _sellers(items))


@router.get("/statistics/all", response_model=Envelope[dict[str, Any]])
async def all_seller_statistics(
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: SellerService = Depends(get_seller_service),
) -> Envelope[dict[str, Any]]:
    data = await service.statistics()
    return Envelope[dict[str, Any]](message="Seller statistics retrieved successfully", data=data)


@router.get("/statistics/real-estate/{real_estate_id}", response_model=Envelope[dict[str, Any]])
async def real_estate_seller_statistics(
    real_estate_id: int,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: SellerService = Depends(get_seller_service),
) -> Envelope[dict[str, Any]]:
    data = await service.statistics(real_estate_id)
    return Envelope[dict[str, Any]](message="Seller statistics retrieved successfully", data=data)


@router.get("/real-estate/{real_estate_id}/sellers", response_model=ListEnvelope[SellerOut])
async def sellers_of_real_estate(
    real_estate_id: int,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: SellerService = Depends(get_seller_service),
) -> ListEnvelope[SellerOut]:
    items = await service.list_all(real_estate_id=real_estate_id)
    return ListEnvelope[SellerOut].of("Sellers retrieved successfully", _sellers(items))


@router.get("/profile/my", response_model=Envelope[SellerOut])
async def my_seller_profile(
    ctx: AuthorizationContext = Depends(require(Role.seller)),
    service: SellerService = Depends(get_seller_service),
) -> Envelope[SellerOut]:
    seller = await service.for_user(ctx.account, ctx.account_id)
    return Envelope[SellerOut](message="Seller profile retrieved successfully", data=SellerOut.model_validate(seller))


@router.get("/performance/my", response_model=Envelope[dict[str, Any]])
async def my_seller_performance(
    ctx: AuthorizationContext = Depends(require(Role.seller)),
    service: SellerService = Depends(get_seller_service),
) -> Envelope[dict[str, Any]]:
    data = await service.my_performance(ctx.account)
    return Envelope[dict[str, Any]](message="Seller performance retrieved successfully", data=data)


@router.get("/user/{user_id}", response_model=Envelope[SellerOut])
async def seller_by_user(
    user_id: int,
    ctx: AuthorizationContext = Depends(require(*STAFF_ROLES)),
    service: SellerService = Depends(get_seller_service),
) -> Envelope[SellerOut]:
    seller = await service.for_user(ctx.account, user_id)
    return Envelope[SellerOut](message="Seller retrieved successfully", data=SellerOut.model_validate(seller))


@router.get("/{seller_id}", response_model=Envelope[SellerOut])
async def get_seller(
    seller_id: int,
    ctx: AuthorizationContext = Depends(require(*STAFF_ROLES)),
    service: SellerService = Depends(get_seller_service),
) -> Envelope[SellerOut]:
    seller = await service.get_visible(ctx.account, seller_id)
    return Envelope[SellerOut](message="Seller retrieved successfully", data=SellerOut.model_validate(seller))


@router.get("/{seller_id}/performance", response_model=Envelope[dict[str, Any]])
async def seller_performance(
    seller_id: int,
    ctx: AuthorizationContext = Depends(require(*STAFF_ROLES)),
    service: SellerService = Depends(get_seller_service),
) -> Envelope[dict[str, Any]]:
    data = await service.performance(ctx.account, seller_id)
    return Envelope[dict[str, Any]](message="Seller performance retrieved successfully", data=data)


@router.post("", response_model=Envelope[SellerOut], status_code=status.HTTP_201_CREATED)
async def create_seller(
    payload: CreateSellerRequest,
    ctx: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: SellerService = Depends(get_seller_service),
) -> Envelope[SellerOut]:
    seller = await service.create(SellerInput(**payload.model_dump()), ctx.account)
    return Envelope[SellerOut](message="Seller created successfully", data=SellerOut.model_validate(seller))


@router.put("/{seller_id}", response_model=Envelope[SellerOut])
async def update_seller(
    seller_id: int,
    payload: UpdateSellerRequest,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES)),
    service: SellerService = Depends(get_seller_service),
) -> Envelope[SellerOut]:
    seller = await service.update(seller_id, UpdateSellerInput(**payload.model_dump()))
    return Envelope[SellerOut](message="Seller updated successfully", data=SellerOut.model_validate(seller))


@router.delete("/{seller_id}", response_model=Envelope[None])
async def delete_seller(
    seller_id: int,
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: SellerService = Depends(get_seller_service),
) -> Envelope[None]:
    await service.delete(seller_id)
    return Envelope[None](message="Seller deleted successfully")
