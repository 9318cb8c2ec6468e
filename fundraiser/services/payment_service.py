"""Payment orchestration: charge initiation, status lookup and manual credit."""

import logging
import re
import secrets
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fundraiser.config import Settings, get_settings
from fundraiser.core.errors import (
    CreditError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from fundraiser.core.locks import payment_lock
from fundraiser.models import Payment
from fundraiser.services import payment_store
from fundraiser.services.charity_service import increment_raised
from fundraiser.services.providers import (
    ChargeRequest,
    MappedResult,
    PaymentMethod,
    PaymentProvider,
    ProviderRegistry,
)
from fundraiser.utils.phone import format_phone

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "don-"
CENT = Decimal("0.01")
# Numeric(12, 2) upper bound
MAX_AMOUNT = Decimal("10000000000")
_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")


@dataclass
class ChargeInput:
    method: PaymentMethod
    amount: Decimal
    currency: str
    phone: str
    phone_formatted: str
    name: Optional[str] = None
    email: Optional[str] = None
    note: Optional[str] = None
    charity_id: Optional[int] = None


@dataclass
class InitiateResult:
    id: int
    reference: str
    status: str
    message: Optional[str] = None
    error: Optional[ProviderError] = None
    warnings: List[CreditError] = field(default_factory=list)


@dataclass
class StatusResult:
    id: int
    reference: str
    status: str


@dataclass
class ManualCreditResult:
    charity_id: int
    amount_added: Decimal
    new_total: Decimal


def new_reference() -> str:
    return f"{REFERENCE_PREFIX}{secrets.token_hex(16)}"


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _clean_text(value: Any) -> Optional[str]:
    if _blank(value):
        return None
    return str(value).strip()


def parse_amount(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("amount must be a positive number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("amount must be a positive number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("amount must be a positive number")
    if amount >= MAX_AMOUNT:
        raise ValidationError("amount is too large")
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        raise ValidationError("amount cannot have more than 2 decimal places")
    if amount != quantized:
        raise ValidationError("amount cannot have more than 2 decimal places")
    return quantized


def parse_charity_id(value: Any) -> Optional[int]:
    if _blank(value):
        return None
    if isinstance(value, bool):
        raise ValidationError("charityId is not a valid identifier")
    if isinstance(value, int):
        charity_id = value
    elif isinstance(value, str) and value.strip().isdigit():
        charity_id = int(value.strip())
    else:
        raise ValidationError("charityId is not a valid identifier")
    if charity_id <= 0:
        raise ValidationError("charityId is not a valid identifier")
    return charity_id


def validate_charge(
    data: Mapping[str, Any],
    registry: ProviderRegistry,
    settings: Settings,
) -> Tuple[ChargeInput, PaymentProvider]:
    """Check an initiate request. Nothing is persisted before this passes."""
    amount_raw = data.get("amount")
    phone_raw = data.get("phone")
    if _blank(amount_raw) or _blank(phone_raw):
        raise ValidationError("amount and phone are required")

    amount = parse_amount(amount_raw)

    phone = str(phone_raw).strip()
    phone_formatted = format_phone(phone, settings.PHONE_COUNTRY_CODE)
    if len(phone_formatted) <= len(settings.PHONE_COUNTRY_CODE):
        raise ValidationError("phone is not a valid number")

    method_raw = data.get("method")
    provider = registry.get(PaymentMethod.EVC.value if _blank(method_raw) else method_raw)

    currency = _clean_text(data.get("currency")) or settings.DEFAULT_CURRENCY
    if not _CURRENCY_RE.match(currency):
        raise ValidationError("currency must be a 3-letter ISO code")

    charge = ChargeInput(
        method=provider.method,
        amount=amount,
        currency=currency.upper(),
        phone=phone,
        phone_formatted=phone_formatted,
        name=_clean_text(data.get("name")),
        email=_clean_text(data.get("email")),
        note=_clean_text(data.get("note")),
        charity_id=parse_charity_id(data.get("charity_id", data.get("charityId"))),
    )
    return charge, provider


async def credit_payment_charity(db: AsyncSession, payment: Payment, source: str) -> Optional[CreditError]:
    """Credit the payment's charity; a failure is returned as a warning, never raised."""
    payment_id = payment.id
    charity_id = payment.charity_id
    amount = payment.amount
    try:
        credit = await increment_raised(db, charity_id, amount, source=source, payment_id=payment_id)
        await db.commit()
    except (NotFoundError, SQLAlchemyError) as exc:
        await db.rollback()
        error = CreditError(
            f"Charity {charity_id} was not credited for payment {payment_id}: {exc}",
            charity_id=charity_id,
            payment_id=payment_id,
        )
        logger.error(
            "Credit failed payment=%s charity=%s amount=%s source=%s: %s",
            payment_id, charity_id, amount, source, exc,
        )
        return error

    logger.info(
        "Credited charity=%s amount=%s payment=%s source=%s raised=%s",
        charity_id, amount, payment_id, source, credit.after_raised,
    )
    return None


async def initiate(
    db: AsyncSession,
    registry: ProviderRegistry,
    data: Mapping[str, Any],
    settings: Optional[Settings] = None,
) -> InitiateResult:
    """Create a pending payment, charge the provider, record the outcome.

    The charity is credited only by the call whose status update actually
    moves the record into ``success``; a webhook that got there first wins
    and this call credits nothing.
    """
    settings = settings or get_settings()
    charge, provider = validate_charge(data, registry, settings)

    reference = new_reference()
    payment = await payment_store.create_payment(
        db,
        payment_store.PaymentDraft(
            method=charge.method.value,
            amount=charge.amount,
            currency=charge.currency,
            phone=charge.phone,
            phone_formatted=charge.phone_formatted,
            reference=reference,
            name=charge.name,
            email=charge.email,
            note=charge.note,
            charity_id=charge.charity_id,
        ),
    )
    await db.commit()
    logger.info(
        "Payment %s created reference=%s method=%s amount=%s %s",
        payment.id, reference, charge.method.value, charge.amount, charge.currency,
    )

    request = ChargeRequest(
        phone=charge.phone_formatted,
        amount=charge.amount,
        invoice_id=payment.invoice_id,
        description=charge.note or f"Donation {reference}",
        currency=charge.currency,
    )

    error: Optional[ProviderError] = None
    try:
        result = await provider.charge(request)
        payload, raw, mapped = result.payload, result.raw, result.mapped
    except ProviderError as exc:
        logger.error("Provider %s failed for payment %s: %s", charge.method.value, payment.id, exc.message)
        error = exc
        payload, raw = exc.payload, exc.provider_body
        mapped = exc.mapped or MappedResult(status="failed", message=exc.message)
    except Exception as exc:
        logger.exception("Unexpected provider error for payment %s", payment.id)
        message = str(exc) or "Payment request failed"
        mapped = MappedResult(status="failed", message=message)
        error = ProviderError(message, mapped=mapped)
        payload, raw = None, None

    new_status = "failed" if error is not None else mapped.status

    warnings: List[CreditError] = []
    async with payment_lock(reference):
        await db.refresh(payment, with_for_update=True)

        changes = {"provider_reference": mapped.provider_ref or payment.provider_reference}
        if payload is not None:
            changes["provider_request"] = payload
        if raw is not None:
            changes["provider_response"] = raw
        await payment_store.save(db, payment, **changes)

        moved = await payment_store.transition_status(db, payment, new_status)
        await db.commit()

        outcome = InitiateResult(
            id=payment.id,
            reference=payment.reference,
            status=payment.status,
            message=mapped.message or None,
            error=error,
            warnings=warnings,
        )
        if moved and new_status == "success" and payment.charity_id is not None:
            warning = await credit_payment_charity(db, payment, source="initiate")
            if warning:
                warnings.append(warning)

    logger.info("Payment %s reference=%s status=%s", outcome.id, outcome.reference, outcome.status)
    return outcome


async def get_status(db: AsyncSession, token: str) -> StatusResult:
    payment = await payment_store.find_by_reference_or_id(db, token)
    if not payment:
        raise NotFoundError("Payment not found")
    return StatusResult(id=payment.id, reference=payment.reference, status=payment.status)


async def manual_credit(db: AsyncSession, payment_id: int) -> ManualCreditResult:
    """Operator override crediting a successful payment's charity.

    Not guarded against repeats: every call adds the amount again.
    """
    payment = await payment_store.get_payment(db, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    if payment.status != "success":
        raise ValidationError("Only successful payments can be credited")
    if payment.charity_id is None:
        raise ValidationError("Payment is not linked to a charity")

    credit = await increment_raised(
        db, payment.charity_id, payment.amount, source="manual", payment_id=payment.id
    )
    await db.commit()
    logger.warning(
        "Manual credit charity=%s amount=%s payment=%s raised=%s",
        credit.charity_id, credit.amount, payment_id, credit.after_raised,
    )
    return ManualCreditResult(
        charity_id=credit.charity_id,
        amount_added=credit.amount,
        new_total=credit.after_raised,
    )
