"""Mobile-money provider adapters.

Every adapter turns a generic ``ChargeRequest`` into the provider's wire
payload, performs the call and classifies the loosely-typed reply into a
``MappedResult`` (pending | success | failed). WaafiPay (EVC Plus) is live;
E-Dahab is a placeholder that always refuses with ``ProviderNotConfiguredError``.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from fundraiser.config import Settings
from fundraiser.core.errors import (
    ProviderConfigError,
    ProviderError,
    ProviderNotConfiguredError,
    UnsupportedMethodError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# WaafiPay success / pending sentinels
WAAFI_RESPONSE_CODE_SUCCESS = "0"
WAAFI_STATUS_CODE_SUCCESS = "2001"
WAAFI_STATUS_CODE_PENDING = "2000"
WAAFI_MESSAGE_SUCCESS = "RCS_SUCCESS"


class PaymentMethod(str, Enum):
    EVC = "EVC"
    EDAHAB = "EDAHAB"


def parse_method(method: Any) -> PaymentMethod:
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(str(method).strip().upper())
    except ValueError:
        raise UnsupportedMethodError(method)


@dataclass(frozen=True)
class ChargeRequest:
    phone: str
    amount: Decimal
    invoice_id: str
    description: str
    currency: str = "USD"


@dataclass(frozen=True)
class MappedResult:
    status: str  # pending | success | failed
    provider_ref: Optional[str] = None
    message: str = ""
    diagnostics: Dict[str, str] = field(default_factory=dict)


@dataclass
class ChargeResult:
    payload: dict
    raw: Any
    mapped: MappedResult


class PaymentProvider:
    method: PaymentMethod

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        raise NotImplementedError


# --- WaafiPay ---

@dataclass(frozen=True)
class WaafiConfig:
    api_url: str
    merchant_uid: str
    api_user_id: str
    api_key: str
    timeout_seconds: float = 30.0

    def __post_init__(self):
        for name in ("api_url", "merchant_uid", "api_user_id", "api_key"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ProviderConfigError(f"WaafiPay setting '{name}' is missing")
            object.__setattr__(self, name, value.strip())
        if not self.api_url.lower().startswith(("http://", "https://")):
            raise ProviderConfigError(f"WaafiPay api_url is not a valid URL: {self.api_url}")
        if self.timeout_seconds <= 0:
            raise ProviderConfigError("WaafiPay timeout must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> "WaafiConfig":
        return cls(
            api_url=settings.WAAFI_API_URL or "",
            merchant_uid=settings.WAAFI_MERCHANT_UID or "",
            api_user_id=settings.WAAFI_API_USER_ID or "",
            api_key=settings.WAAFI_API_KEY or "",
            timeout_seconds=settings.WAAFI_TIMEOUT_SECONDS,
        )


def _first(obj: dict, *keys: str) -> Any:
    for key in keys:
        value = obj.get(key)
        if value is not None:
            return value
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def map_waafi_response(raw: Any) -> MappedResult:
    """Classify a WaafiPay reply (charge response or callback body).

    WaafiPay spreads the outcome over several fields and fills them
    inconsistently, so any single success signal wins.
    """
    resp = raw if isinstance(raw, dict) else {}
    tx_info = resp.get("transactionInfo")
    if not isinstance(tx_info, dict):
        tx_info = {}

    response_code = _as_text(_first(resp, "responseCode", "code"))
    status_code = _as_text(resp.get("statusCode"))
    response_msg = _as_text(_first(resp, "responseMsg", "responseMessage")).upper()
    tx_status = _as_text(tx_info.get("status")).upper()

    is_success = (
        response_code == WAAFI_RESPONSE_CODE_SUCCESS
        or status_code == WAAFI_STATUS_CODE_SUCCESS
        or tx_status == "SUCCESS"
        or response_msg == WAAFI_MESSAGE_SUCCESS
    )
    is_pending = (
        tx_status == "PENDING"
        or "PENDING" in response_msg
        or status_code == WAAFI_STATUS_CODE_PENDING
    )

    if is_success:
        status = "success"
    elif is_pending:
        status = "pending"
    else:
        status = "failed"

    provider_ref = tx_info.get("referenceId") or resp.get("referenceId") or None
    message = (
        resp.get("responseMessage")
        or resp.get("responseMsg")
        or resp.get("message")
        or status.upper()
    )

    return MappedResult(
        status=status,
        provider_ref=str(provider_ref) if provider_ref is not None else None,
        message=str(message),
        diagnostics={
            "responseCode": response_code,
            "statusCode": status_code,
            "responseMsg": response_msg,
            "txStatus": tx_status,
        },
    )


def redact_payload(payload: dict) -> dict:
    """Copy of an outbound WaafiPay payload with the API key masked."""
    audit = copy.deepcopy(payload)
    params = audit.get("serviceParams") or {}
    if params.get("apiKey"):
        params["apiKey"] = "***"
    return audit


def _safe_json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


class WaafiPayProvider(PaymentProvider):
    method = PaymentMethod.EVC

    def __init__(self, config: WaafiConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def build_payload(self, request: ChargeRequest) -> dict:
        amount = Decimal(request.amount)
        if not amount.is_finite() or amount <= 0:
            raise ValidationError("Amount must be greater than 0")

        now_ms = int(time.time() * 1000)
        return {
            "schemaVersion": "1.0",
            "requestId": str(now_ms),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "channelName": "WEB",
            "serviceName": "API_PURCHASE",
            "serviceParams": {
                "merchantUid": self.config.merchant_uid,
                "apiUserId": self.config.api_user_id,
                "apiKey": self.config.api_key,
                "paymentMethod": "MWALLET_ACCOUNT",
                "payerInfo": {"accountNo": request.phone},
                "transactionInfo": {
                    "referenceId": f"ref-{now_ms}",
                    "invoiceId": request.invoice_id,
                    "amount": float(amount.quantize(Decimal("0.01"))),
                    "currency": request.currency,
                    "description": request.description,
                },
            },
        }

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        payload = self.build_payload(request)
        audit_payload = redact_payload(payload)
        logger.info("[WaafiPay] charge invoice=%s url=%s", request.invoice_id, self.config.api_url)

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self._transport) as client:
                resp = await client.post(self.config.api_url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("[WaafiPay] request error invoice=%s: %s", request.invoice_id, exc)
            message = str(exc) or exc.__class__.__name__
            raise ProviderError(
                message,
                mapped=MappedResult(status="failed", message=message),
                payload=audit_payload,
            )

        body = _safe_json(resp)
        if resp.status_code >= 400:
            logger.error("[WaafiPay] HTTP %s invoice=%s body=%s", resp.status_code, request.invoice_id, body)
            if isinstance(body, dict):
                mapped = map_waafi_response(body)
            else:
                mapped = MappedResult(status="failed", message=f"WaafiPay HTTP {resp.status_code}")
            raise ProviderError(
                mapped.message or "Payment request failed",
                mapped=mapped,
                payload=audit_payload,
                provider_body=body,
            )

        mapped = map_waafi_response(body)
        logger.info("[WaafiPay] invoice=%s mapped status=%s", request.invoice_id, mapped.status)
        return ChargeResult(payload=audit_payload, raw=body, mapped=mapped)


# --- E-Dahab / unconfigured rails ---

class EDahabProvider(PaymentProvider):
    """Placeholder until the E-Dahab merchant integration exists."""

    method = PaymentMethod.EDAHAB

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        message = "E-Dahab integration not yet configured"
        raise ProviderNotConfiguredError(message, mapped=MappedResult(status="failed", message=message))


class UnconfiguredProvider(PaymentProvider):
    """Stands in for a rail whose settings failed validation at startup."""

    def __init__(self, method: PaymentMethod, reason: str):
        self.method = method
        self.reason = reason

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        message = f"{self.method.value} payments are not configured"
        raise ProviderNotConfiguredError(message, mapped=MappedResult(status="failed", message=message))


class ProviderRegistry:
    def __init__(self, providers: Dict[PaymentMethod, PaymentProvider]):
        self._providers = dict(providers)

    def get(self, method: Any) -> PaymentProvider:
        key = parse_method(method)
        provider = self._providers.get(key)
        if provider is None:
            raise UnsupportedMethodError(method)
        return provider


def build_provider_registry(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderRegistry:
    try:
        evc: PaymentProvider = WaafiPayProvider(WaafiConfig.from_settings(settings), transport=transport)
    except ProviderConfigError as exc:
        logger.error("WaafiPay disabled: %s", exc.message)
        evc = UnconfiguredProvider(PaymentMethod.EVC, exc.message)

    return ProviderRegistry({
        PaymentMethod.EVC: evc,
        PaymentMethod.EDAHAB: EDahabProvider(),
    })
