"""v1 operator endpoints: payment listing, audit view, manual charity credit."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fundraiser.core.dependencies import require_admin
from fundraiser.core.errors import NotFoundError
from fundraiser.database import get_db
from fundraiser.schemas import (
    CharityCreditResponse,
    ManualCreditResponse,
    PaymentDebugResponse,
    PaymentListResponse,
    PaymentSummaryResponse,
)
from fundraiser.services import payment_service, payment_store
from fundraiser.services.charity_service import list_credits_for_payment

router = APIRouter()


@router.get("/admin", response_model=PaymentListResponse)
async def admin_list_payments(
    status: Optional[str] = Query(default=None, pattern="^(pending|success|failed)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    _: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows = await payment_store.list_payments(db, status=status, limit=limit, offset=offset)
    return PaymentListResponse(
        items=[PaymentSummaryResponse.model_validate(r) for r in rows],
        limit=limit,
        offset=offset,
    )


@router.get("/debug/{payment_id}", response_model=PaymentDebugResponse)
async def admin_debug_payment(
    payment_id: int,
    _: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    payment = await payment_store.get_payment(db, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    credits = await list_credits_for_payment(db, payment.id)
    return PaymentDebugResponse(
        **PaymentSummaryResponse.model_validate(payment).model_dump(),
        email=payment.email,
        phone=payment.phone,
        note=payment.note,
        invoice_id=payment.invoice_id,
        provider_request=payment.provider_request,
        provider_response=payment.provider_response,
        provider_webhook=payment.provider_webhook,
        credits=[CharityCreditResponse.model_validate(c) for c in credits],
    )


@router.post("/manual-credit/{payment_id}", response_model=ManualCreditResponse)
async def admin_manual_credit(
    payment_id: int,
    _: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await payment_service.manual_credit(db, payment_id)
    return ManualCreditResponse(
        charity_id=result.charity_id,
        amount_added=result.amount_added,
        new_total=result.new_total,
    )
