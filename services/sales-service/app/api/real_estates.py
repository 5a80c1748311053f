"""Real estate and property routes."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field

from schemas import Envelope, ListEnvelope, Property as PropertyOut, RealEstate as RealEstateOut

from ..domain.account import ADMIN_ROLES, STAFF_ROLES, Role
from ..domain.contracts import PropertyInput, RealEstateInput, UpdatePropertyInput
from ..domain.sales_service import RealEstateService
from ..security.authorization import AuthorizationContext, EntityKind
from .dependencies import get_real_estate_service, require

router = APIRouter()


class RealEstateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    address: str = Field(..., min_length=5, max_length=255)
    city: str = Field(..., min_length=2, max_length=100)
    country: str = Field(..., min_length=2, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    email: EmailStr | None = None

    def to_input(self) -> RealEstateInput:
        return RealEstateInput(**self.model_dump())


class PropertyRequest(BaseModel):
    real_estate_id: int = Field(..., ge=1)
    title: str = Field(..., min_length=2, max_length=200)
    price: Decimal = Field(..., gt=0)
    total_installments: int = Field(..., ge=0)
    installment_amount: Decimal = Field(..., ge=0)
    description: str | None = None
    property_type: str | None = None
    address: str | None = None
    city: str | None = None
    down_payment_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    status: str = "available"


class UpdatePropertyRequest(BaseModel):
    title: str | None = Field(default=None, min_length=2, max_length=200)
    description: str | None = None
    property_type: str | None = None
    address: str | None = None
    city: str | None = None
    price: Decimal | None = Field(default=None, gt=0)
    down_payment_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    total_installments: int | None = Field(default=None, ge=0)
    installment_amount: Decimal | None = Field(default=None, ge=0)
    status: str | None = None


def _real_estates(items) -> list[RealEstateOut]:
    return [RealEstateOut.model_validate(item) for item in items]


def _properties(items) -> list[PropertyOut]:
    return [PropertyOut.model_validate(item) for item in items]


@router.get("/real-estates", response_model=ListEnvelope[RealEstateOut])
async def list_real_estates(
    search: str | None = Query(default=None),
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> ListEnvelope[RealEstateOut]:
    items = await service.list_all(search=search)
    return ListEnvelope[RealEstateOut].of("Real estates retrieved successfully", _real_estates(items))


@router.get("/real-estates/search", response_model=ListEnvelope[RealEstateOut])
async def search_real_estates(
    q: str | None = Query(default=None),
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> ListEnvelope[RealEstateOut]:
    items = await service.search(q)
    return ListEnvelope[RealEstateOut].of("Search results retrieved successfully", _real_estates(items))


@router.get("/real-estates/statistics/all", response_model=ListEnvelope[dict[str, Any]])
async def all_real_estate_statistics(
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> ListEnvelope[dict[str, Any]]:
    rows = await service.statistics()
    return ListEnvelope[dict[str, Any]].of("Real estate statistics retrieved successfully", rows)


@router.get("/real-estates/admin/my-real-estates", response_model=ListEnvelope[RealEstateOut])
async def my_real_estates(
    ctx: AuthorizationContext = Depends(require(Role.real_estate_admin)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> ListEnvelope[RealEstateOut]:
    items = await service.list_created_by(ctx.account_id)
    return ListEnvelope[RealEstateOut].of("Real estates retrieved successfully", _real_estates(items))


@router.get("/real-estates/{real_estate_id}", response_model=Envelope[RealEstateOut])
async def get_real_estate(
    real_estate_id: int,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[RealEstateOut]:
    item = await service.get(real_estate_id)
    return Envelope[RealEstateOut](message="Real estate retrieved successfully", data=RealEstateOut.model_validate(item))


@router.get("/real-estates/{real_estate_id}/statistics", response_model=Envelope[dict[str, Any]])
async def real_estate_statistics(
    real_estate_id: int,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[dict[str, Any]]:
    rows = await service.statistics(real_estate_id)
    return Envelope[dict[str, Any]](
        message="Real estate statistics retrieved successfully",
        data=rows[0] if rows else None,
    )


@router.post("/real-estates", response_model=Envelope[RealEstateOut], status_code=status.HTTP_201_CREATED)
async def create_real_estate(
    payload: RealEstateRequest,
    ctx: AuthorizationContext = Depends(require(Role.system_admin)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[RealEstateOut]:
    item = await service.create(payload.to_input(), ctx.account)
    return Envelope[RealEstateOut](message="Real estate created successfully", data=RealEstateOut.model_validate(item))


@router.put("/real-estates/{real_estate_id}", response_model=Envelope[RealEstateOut])
async def update_real_estate(
    real_estate_id: int,
    payload: RealEstateRequest,
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[RealEstateOut]:
    item = await service.update(real_estate_id, payload.to_input())
    return Envelope[RealEstateOut](message="Real estate updated successfully", data=RealEstateOut.model_validate(item))


@router.delete("/real-estates/{real_estate_id}", response_model=Envelope[None])
async def delete_real_estate(
    real_estate_id: int,
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[None]:
    await service.delete(real_estate_id)
    return Envelope[None](message="Real estate deleted successfully")


@router.get("/properties/real-estate/{real_estate_id}", response_model=ListEnvelope[PropertyOut])
async def list_properties(
    real_estate_id: int,
    _: AuthorizationContext = Depends(require(*STAFF_ROLES, scope=EntityKind.real_estate)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> ListEnvelope[PropertyOut]:
    items = await service.list_properties(real_estate_id)
    return ListEnvelope[PropertyOut].of("Properties retrieved successfully", _properties(items))


@router.get("/properties", response_model=ListEnvelope[PropertyOut])
async def find_properties(
    real_estate_id: int | None = Query(default=None, ge=1),
    status_: str | None = Query(default=None, alias="status"),
    property_type: str | None = Query(default=None),
    search: str | None = Query(default=None),
    _: AuthorizationContext = Depends(require(*STAFF_ROLES, scope=EntityKind.real_estate)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> ListEnvelope[PropertyOut]:
    items = await service.find_properties(
        real_estate_id=real_estate_id, status=status_, property_type=property_type, search=search
    )
    return ListEnvelope[PropertyOut].of("Properties retrieved successfully", _properties(items))


@router.get("/properties/search", response_model=ListEnvelope[PropertyOut])
async def search_properties(
    q: str | None = Query(default=None),
    _: AuthorizationContext = Depends(require()),
    service: RealEstateService = Depends(get_real_estate_service),
) -> ListEnvelope[PropertyOut]:
    items = await service.search_properties(q)
    return ListEnvelope[PropertyOut].of("Search results retrieved successfully", _properties(items))


@router.get("/properties/available/all", response_model=ListEnvelope[PropertyOut])
async def available_properties(
    _: AuthorizationContext = Depends(require()),
    service: RealEstateService = Depends(get_real_estate_service),
) -> ListEnvelope[PropertyOut]:
    items = await service.available_properties()
    return ListEnvelope[PropertyOut].of("Available properties retrieved successfully", _properties(items))


@router.get("/properties/statistics/all", response_model=Envelope[dict[str, Any]])
async def all_property_statistics(
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[dict[str, Any]]:
    data = await service.property_statistics()
    return Envelope[dict[str, Any]](message="Property statistics retrieved successfully", data=data)


@router.get("/properties/statistics/real-estate/{real_estate_id}", response_model=Envelope[dict[str, Any]])
async def real_estate_property_statistics(
    real_estate_id: int,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[dict[str, Any]]:
    data = await service.property_statistics(real_estate_id)
    return Envelope[dict[str, Any]](message="Property statistics retrieved successfully", data=data)


@router.get("/properties/{property_id}", response_model=Envelope[PropertyOut])
async def get_property(
    property_id: int,
    _: AuthorizationContext = Depends(require()),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[PropertyOut]:
    item = await service.get_property(property_id)
    return Envelope[PropertyOut](message="Property retrieved successfully", data=PropertyOut.model_validate(item))


@router.post("/properties", response_model=Envelope[PropertyOut], status_code=status.HTTP_201_CREATED)
async def create_property(
    payload: PropertyRequest,
    ctx: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[PropertyOut]:
    item = await service.create_property(PropertyInput(**payload.model_dump()), ctx.account)
    return Envelope[PropertyOut](message="Property created successfully", data=PropertyOut.model_validate(item))


@router.put("/properties/{property_id}", response_model=Envelope[PropertyOut])
async def update_property(
    property_id: int,
    payload: UpdatePropertyRequest,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[PropertyOut]:
    item = await service.update_property(property_id, UpdatePropertyInput(**payload.model_dump()))
    return Envelope[PropertyOut](message="Property updated successfully", data=PropertyOut.model_validate(item))


@router.delete("/properties/{property_id}", response_model=Envelope[None])
async def delete_property(
    property_id: int,
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: RealEstateService = Depends(get_real_estate_service),
) -> Envelope[None]:
    await service.delete_property(property_id)
    return Envelope[None](message="Property deleted successfully")
