"""Provider callback reconciliation."""

import hmac
import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fundraiser.core.errors import AuthorizationError, CreditError, NotFoundError, ValidationError
from fundraiser.core.locks import payment_lock
from fundraiser.services import payment_store
from fundraiser.services.payment_service import credit_payment_charity

logger = logging.getLogger(__name__)

SUCCESS_MARKERS = ("SUCCESS", "APPROVED", '"CODE":0')
FAILURE_MARKERS = ("DECLINED", "CANCELLED", "FAILED")


@dataclass
class WebhookResult:
    payment_id: int
    reference: str
    prior_status: str
    status: str
    credited: bool = False
    warnings: List[CreditError] = field(default_factory=list)


def verify_signature(secret: Optional[str], signature: Optional[str]) -> None:
    if not secret:
        return
    if not signature or not hmac.compare_digest(signature.encode("utf-8"), secret.encode("utf-8")):
        raise AuthorizationError("Invalid signature")


def extract_reference(payload: Any) -> str:
    """First non-empty of transactionInfo.invoiceId, invoiceId, reference, referenceId."""
    if not isinstance(payload, dict):
        raise ValidationError("Missing reference")

    tx_info = payload.get("transactionInfo")
    candidates = [
        tx_info.get("invoiceId") if isinstance(tx_info, dict) else None,
        payload.get("invoiceId"),
        payload.get("reference"),
        payload.get("referenceId"),
    ]
    for candidate in candidates:
        if candidate is None:
            continue
        token = str(candidate).strip()
        if token:
            return token
    raise ValidationError("Missing reference")


def classify_webhook(payload: Any) -> str:
    """Coarse status guess over the serialized callback body."""
    upper = json.dumps(payload, separators=(",", ":"), default=str).upper()
    if any(marker in upper for marker in SUCCESS_MARKERS):
        return "success"
    if any(marker in upper for marker in FAILURE_MARKERS):
        return "failed"
    return "pending"


async def handle_webhook(
    db: AsyncSession,
    payload: Any,
    signature: Optional[str],
    secret: Optional[str],
) -> WebhookResult:
    verify_signature(secret, signature)
    token = extract_reference(payload)
    new_status = classify_webhook(payload)

    async with payment_lock(token):
        payment = await payment_store.find_by_reference_or_invoice(db, token, for_update=True)
        if not payment:
            raise NotFoundError("Payment not found")

        prior_status = payment.status
        await payment_store.append_webhook(db, payment, payload)
        moved = await payment_store.transition_status(db, payment, new_status)
        await db.commit()

        result = WebhookResult(
            payment_id=payment.id,
            reference=payment.reference,
            prior_status=prior_status,
            status=payment.status,
        )
        if moved and prior_status != "success" and new_status == "success" and payment.charity_id is not None:
            result.credited = True
            warning = await credit_payment_charity(db, payment, source="webhook")
            if warning:
                result.credited = False
                result.warnings.append(warning)

    logger.info(
        "Webhook payment=%s reference=%s %s -> %s credited=%s",
        result.payment_id, result.reference, prior_status, result.status, result.credited,
    )
    return result
