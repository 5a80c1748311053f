"""Aggregate router mounted under ``/api``."""

from __future__ import annotations

from fastapi import APIRouter

from . import clients, installments, notifications, payments, real_estates, routes, sellers

api_router = APIRouter(prefix="/api")
api_router.include_router(routes.router, tags=["auth"])
api_router.include_router(real_estates.router, tags=["real-estates"])
api_router.include_router(sellers.router, tags=["sellers"])
api_router.include_router(clients.router, tags=["clients"])
api_router.include_router(installments.router, tags=["installments"])
api_router.include_router(payments.router, tags=["payments"])
api_router.include_router(notifications.router, tags=["notifications"])


@api_router.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "OK", "message": "Installment sales API is running"}
