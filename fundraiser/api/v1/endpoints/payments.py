"""v1 public payment endpoints: initiate, status, provider webhook."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from fundraiser.config import get_settings
from fundraiser.core.dependencies import get_provider_registry, get_webhook_signature
from fundraiser.core.errors import ProviderNotConfiguredError
from fundraiser.core.rate_limit import enforce_rate_limit
from fundraiser.database import get_db
from fundraiser.schemas import (
    ChargeInitiateRequest,
    ChargeInitiateResponse,
    PaymentStatusResponse,
    WebhookAckResponse,
)
from fundraiser.services import payment_service, webhook_service
from fundraiser.services.providers import ProviderRegistry
from fundraiser.utils.phone import format_phone

router = APIRouter()
settings = get_settings()


def _initiate_status_code(result: payment_service.InitiateResult) -> int:
    if isinstance(result.error, ProviderNotConfiguredError):
        return status.HTTP_501_NOT_IMPLEMENTED
    if result.error is not None:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    if result.status == "failed":
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_201_CREATED


@router.post("/mobile/initiate", response_model=ChargeInitiateResponse, status_code=status.HTTP_201_CREATED)
async def initiate_payment(
    payload: ChargeInitiateRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    payer = format_phone(payload.phone, settings.PHONE_COUNTRY_CODE)
    if payer:
        await enforce_rate_limit(f"initiate:{payer}", settings.RATE_LIMIT_INITIATE_PER_MINUTE, 60)

    result = await payment_service.initiate(db, registry, payload.model_dump(), settings)
    response.status_code = _initiate_status_code(result)
    return ChargeInitiateResponse(
        id=result.id,
        reference=result.reference,
        status=result.status,
        message=result.message,
        warnings=[warning.message for warning in result.warnings],
    )


@router.get("/status/{token}", response_model=PaymentStatusResponse)
async def payment_status(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    result = await payment_service.get_status(db, token)
    return PaymentStatusResponse(id=result.id, reference=result.reference, status=result.status)


@router.post("/webhook", response_model=WebhookAckResponse)
async def payment_webhook(
    request: Request,
    signature: Optional[str] = Depends(get_webhook_signature),
    db: AsyncSession = Depends(get_db),
):
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    await webhook_service.handle_webhook(db, payload, signature, settings.WEBHOOK_SECRET)
    return WebhookAckResponse(ok=True)
