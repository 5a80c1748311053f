"""Payment routes: proof upload, review and reporting."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from schemas import Envelope, ListEnvelope, Payment as PaymentOut

from ..domain.account import ADMIN_ROLES, STAFF_ROLES, Role
from ..domain.contracts import PaymentSubmission
from ..domain.sales import PaymentMethod, PaymentStatus
from ..domain.sales_service import ClientService, PaymentService
from ..security.authorization import AuthorizationContext, EntityKind
from ..security.uploads import ProofStorage
from .dependencies import get_client_service, get_payment_service, require

router = APIRouter(prefix="/payments")


class ReviewRequest(BaseModel):
    status: PaymentStatus
    notes: str | None = Field(default=None, max_length=500)


def get_proof_storage(request: Request) -> ProofStorage:
    return request.app.state.proof_storage


def _payments(items) -> list[PaymentOut]:
    return [PaymentOut.from_domain(item) for item in items]


@router.post("/upload", response_model=Envelope[PaymentOut], status_code=status.HTTP_201_CREATED)
async def upload_payment(
    installment_id: int = Form(..., ge=1),
    amount: Decimal = Form(..., ge=0),
    payment_method: PaymentMethod = Form(...),
    reference_number: str | None = Form(default=None, min_length=1, max_length=100),
    notes: str | None = Form(default=None, max_length=500),
    proof: list[UploadFile] | None = File(default=None),
    ctx: AuthorizationContext = Depends(require(Role.client)),
    storage: ProofStorage = Depends(get_proof_storage),
    service: PaymentService = Depends(get_payment_service),
) -> Envelope[PaymentOut]:
    upload = storage.select(proof)
    stored = await storage.save(upload) if upload is not None else None
    payment = await service.submit(
        ctx.account,
        PaymentSubmission(
            installment_id=installment_id,
            amount=amount,
            payment_method=payment_method.value,
            reference_number=reference_number,
            notes=notes,
        ),
        stored,
    )
    return Envelope[PaymentOut](message="Payment proof uploaded successfully", data=PaymentOut.from_domain(payment))


@router.get("/my-payments", response_model=ListEnvelope[PaymentOut])
async def my_payments(
    status_filter: PaymentStatus | None = Query(default=None, alias="status"),
    installment_id: int | None = Query(default=None, ge=1),
    ctx: AuthorizationContext = Depends(require(Role.client)),
    clients: ClientService = Depends(get_client_service),
    service: PaymentService = Depends(get_payment_service),
) -> ListEnvelope[PaymentOut]:
    client = await clients.for_account(ctx.account)
    items = await service.list_for_client(client.client_id, status=status_filter, installment_id=installment_id)
    return ListEnvelope[PaymentOut].of("Payments retrieved successfully", _payments(items))


@router.get("/pending/approvals", response_model=ListEnvelope[PaymentOut])
async def pending_approvals(
    real_estate_id: int | None = Query(default=None, ge=1),
    seller_id: int | None = Query(default=None, ge=1),
    ctx: AuthorizationContext = Depends(require(*STAFF_ROLES)),
    service: PaymentService = Depends(get_payment_service),
) -> ListEnvelope[PaymentOut]:
    items = await service.list_pending(ctx.account, real_estate_id=real_estate_id, seller_id=seller_id)
    return ListEnvelope[PaymentOut].of("Pending payments retrieved successfully", _payments(items))


@router.get("/statistics/overview", response_model=Envelope[dict[str, Any]])
async def payment_statistics(
    client_id: int | None = Query(default=None, ge=1),
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES)),
    service: PaymentService = Depends(get_payment_service),
) -> Envelope[dict[str, Any]]:
    stats = await service.statistics(client_id)
    return Envelope[dict[str, Any]](message="Payment statistics retrieved successfully", data=stats)


@router.get("/client/{client_id}", response_model=ListEnvelope[PaymentOut])
async def client_payments(
    client_id: int,
    status_filter: PaymentStatus | None = Query(default=None, alias="status"),
    installment_id: int | None = Query(default=None, ge=1),
    _: AuthorizationContext = Depends(require(*STAFF_ROLES, scope=EntityKind.client)),
    service: PaymentService = Depends(get_payment_service),
) -> ListEnvelope[PaymentOut]:
    items = await service.list_for_client(client_id, status=status_filter, installment_id=installment_id)
    return ListEnvelope[PaymentOut].of("Payments retrieved successfully", _payments(items))


@router.get("/{payment_id}", response_model=Envelope[PaymentOut])
async def get_payment(
    payment_id: int,
    ctx: AuthorizationContext = Depends(require()),
    service: PaymentService = Depends(get_payment_service),
) -> Envelope[PaymentOut]:
    payment = await service.get(ctx.account, payment_id)
    return Envelope[PaymentOut](message="Payment retrieved successfully", data=PaymentOut.from_domain(payment))


@router.get("/{payment_id}/download")
async def download_proof(
    payment_id: int,
    ctx: AuthorizationContext = Depends(require()),
    service: PaymentService = Depends(get_payment_service),
) -> FileResponse:
    path = await service.proof_path(ctx.account, payment_id)
    return FileResponse(path, filename=Path(path).name)


@router.put("/{payment_id}/approve", response_model=Envelope[PaymentOut])
async def review_payment(
    payment_id: int,
    payload: ReviewRequest,
    ctx: AuthorizationContext = Depends(require(*STAFF_ROLES)),
    service: PaymentService = Depends(get_payment_service),
) -> Envelope[PaymentOut]:
    payment = await service.review(ctx.account, payment_id, payload.status, payload.notes)
    return Envelope[PaymentOut](
        message=f"Payment {payload.status.value} successfully",
        data=PaymentOut.from_domain(payment),
    )


@router.delete("/{payment_id}/proof", response_model=Envelope[None])
async def delete_proof(
    payment_id: int,
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: PaymentService = Depends(get_payment_service),
) -> Envelope[None]:
    await service.delete_proof(payment_id)
    return Envelope[None](message="Payment proof deleted successfully")
