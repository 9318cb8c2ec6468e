"""v1 API router."""

from fastapi import APIRouter

from fundraiser.api.v1.endpoints import admin, payments

router = APIRouter(prefix="/v1")
router.include_router(payments.router, prefix="/payments", tags=["v1-payments"])
router.include_router(admin.router, prefix="/payments", tags=["v1-payments-admin"])
