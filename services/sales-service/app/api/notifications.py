"""Notification routes; every read and write is limited to the caller's own inbox."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from schemas import Envelope, ListEnvelope, Notification as NotificationOut

from ..domain.account import Role
from ..domain.contracts import NotificationInput
from ..domain.sales import NotificationType
from ..domain.sales_service import NotificationService
from ..security.authorization import AuthorizationContext
from .dependencies import get_notification_service, require

router = APIRouter(prefix="/notifications")


class CreateNotificationRequest(BaseModel):
    recipient_id: int = Field(..., ge=1)
    type: NotificationType = NotificationType.general
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1000)
    related_client_id: int | None = Field(default=None, ge=1)
    related_payment_id: int | None = Field(default=None, ge=1)


@router.get("", response_model=ListEnvelope[NotificationOut])
async def list_notifications(
    is_read: bool | None = Query(default=None),
    type_filter: NotificationType | None = Query(default=None, alias="type"),
    limit: int | None = Query(default=None, ge=1, le=200),
    ctx: AuthorizationContext = Depends(require()),
    service: NotificationService = Depends(get_notification_service),
) -> ListEnvelope[NotificationOut]:
    items = await service.list_all(
        ctx.account,
        is_read=is_read,
        type_=type_filter.value if type_filter else None,
        limit=limit,
    )
    return ListEnvelope[NotificationOut].of(
        "Notifications retrieved successfully", [NotificationOut.model_validate(item) for item in items]
    )


@router.get("/statistics/overview", response_model=Envelope[dict[str, Any]])
async def notification_statistics(
    ctx: AuthorizationContext = Depends(require()),
    service: NotificationService = Depends(get_notification_service),
) -> Envelope[dict[str, Any]]:
    stats = await service.statistics(ctx.account)
    return Envelope[dict[str, Any]](message="Notification statistics retrieved successfully", data=stats)


@router.put("/read-all", response_model=Envelope[dict[str, int]])
async def mark_all_read(
    ctx: AuthorizationContext = Depends(require()),
    service: NotificationService = Depends(get_notification_service),
) -> Envelope[dict[str, int]]:
    updated = await service.mark_all_read(ctx.account)
    return Envelope[dict[str, int]](message="All notifications marked as read", data={"updated": updated})


@router.get("/{notification_id}", response_model=Envelope[NotificationOut])
async def get_notification(
    notification_id: int,
    ctx: AuthorizationContext = Depends(require()),
    service: NotificationService = Depends(get_notification_service),
) -> Envelope[NotificationOut]:
    item = await service.get(ctx.account, notification_id)
    return Envelope[NotificationOut](message="Notification retrieved successfully", data=NotificationOut.model_validate(item))


@router.put("/{notification_id}/read", response_model=Envelope[NotificationOut])
async def mark_read(
    notification_id: int,
    ctx: AuthorizationContext = Depends(require()),
    service: NotificationService = Depends(get_notification_service),
) -> Envelope[NotificationOut]:
    item = await service.mark_read(ctx.account, notification_id)
    return Envelope[NotificationOut](message="Notification marked as read", data=NotificationOut.model_validate(item))


@router.delete("/{notification_id}", response_model=Envelope[None])
async def delete_notification(
    notification_id: int,
    ctx: AuthorizationContext = Depends(require()),
    service: NotificationService = Depends(get_notification_service),
) -> Envelope[None]:
    await service.delete(ctx.account, notification_id)
    return Envelope[None](message="Notification deleted successfully")


@router.post("", response_model=Envelope[NotificationOut], status_code=status.HTTP_201_CREATED)
async def create_notification(
    payload: CreateNotificationRequest,
    ctx: AuthorizationContext = Depends(require(Role.system_admin)),
    service: NotificationService = Depends(get_notification_service),
) -> Envelope[NotificationOut]:
    item = await service.send(
        ctx.account,
        NotificationInput(
            recipient_id=payload.recipient_id,
            type=payload.type.value,
            title=payload.title,
            message=payload.message,
            related_client_id=payload.related_client_id,
            related_payment_id=payload.related_payment_id,
        ),
    )
    return Envelope[NotificationOut](message="Notification created successfully", data=NotificationOut.model_validate(item))
