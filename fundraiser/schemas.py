"""Pydantic schemas for the payments API."""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class MessageResponse(BaseModel):
    message: str


class ChargeInitiateRequest(BaseModel):
    """Loosely typed on purpose: the service validates and answers 400."""

    model_config = ConfigDict(populate_by_name=True)

    method: Optional[str] = "EVC"
    amount: Any = None
    currency: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[Union[str, int]] = None
    email: Optional[str] = None
    note: Optional[str] = None
    charity_id: Optional[Union[int, str]] = Field(default=None, alias="charityId")


class ChargeInitiateResponse(BaseModel):
    id: int
    reference: str
    status: str
    message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class PaymentStatusResponse(BaseModel):
    id: int
    reference: str
    status: str


class WebhookAckResponse(BaseModel):
    ok: bool = True


class ManualCreditResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    charity_id: int = Field(alias="charityId")
    amount_added: Decimal = Field(alias="amountAdded")
    new_total: Decimal = Field(alias="newTotal")


class PaymentSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reference: str
    method: str
    amount: Decimal
    currency: str
    status: str
    charity_id: Optional[int] = None
    name: Optional[str] = None
    phone_formatted: Optional[str] = None
    provider_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentListResponse(BaseModel):
    items: List[PaymentSummaryResponse]
    limit: int
    offset: int


class CharityCreditResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    charity_id: int
    source: str
    amount: Decimal
    before_raised: Decimal
    after_raised: Decimal
    created_at: Optional[datetime] = None


class PaymentDebugResponse(PaymentSummaryResponse):
    email: Optional[str] = None
    phone: Optional[str] = None
    note: Optional[str] = None
    invoice_id: str
    provider_request: Optional[Any] = None
    provider_response: Optional[Any] = None
    provider_webhook: Optional[List[Any]] = None
    credits: List[CharityCreditResponse] = Field(default_factory=list)
