"""Persistence for payment records. No business rules live here."""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fundraiser.models import Payment

# Fields ``save`` may touch; status changes go through ``transition_status``.
AUDIT_FIELDS = frozenset({"provider_request", "provider_response", "provider_reference"})

# new status -> statuses it may replace; success is terminal
STATUS_TRANSITIONS = {
    "success": ("pending", "failed"),
    "failed": ("pending",),
    "pending": (),
}


@dataclass
class PaymentDraft:
    method: str
    amount: Decimal
    currency: str
    phone: str
    phone_formatted: str
    reference: str
    name: Optional[str] = None
    email: Optional[str] = None
    note: Optional[str] = None
    charity_id: Optional[int] = None


async def create_payment(db: AsyncSession, draft: PaymentDraft) -> Payment:
    payment = Payment(
        method=draft.method,
        amount=draft.amount,
        currency=draft.currency,
        name=draft.name,
        email=draft.email,
        phone=draft.phone,
        phone_formatted=draft.phone_formatted,
        note=draft.note,
        charity_id=draft.charity_id,
        reference=draft.reference,
        invoice_id=draft.reference,
        status="pending",
    )
    db.add(payment)
    await db.flush()
    await db.refresh(payment)
    return payment


def _id_from_token(token: str) -> Optional[int]:
    token = token.strip()
    if token.isdigit():
        return int(token)
    return None


async def find_by_reference_or_id(db: AsyncSession, token: str, for_update: bool = False) -> Optional[Payment]:
    """Lookup by merchant reference first, internal id second."""
    stmt = select(Payment).where(Payment.reference == token)
    if for_update:
        stmt = stmt.with_for_update()
    payment = (await db.execute(stmt)).scalar_one_or_none()
    if payment:
        return payment

    payment_id = _id_from_token(token)
    if payment_id is None:
        return None
    stmt = select(Payment).where(Payment.id == payment_id)
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def find_by_reference_or_invoice(db: AsyncSession, token: str, for_update: bool = False) -> Optional[Payment]:
    stmt = (
        select(Payment)
        .where(or_(Payment.reference == token, Payment.invoice_id == token))
        .order_by(Payment.id)
        .limit(1)
    )
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_payment(db: AsyncSession, payment_id: int) -> Optional[Payment]:
    result = await db.execute(select(Payment).where(Payment.id == payment_id))
    return result.scalar_one_or_none()


async def save(db: AsyncSession, payment: Payment, **changes) -> Payment:
    """Write only the given audit fields, leaving everything else untouched."""
    unknown = set(changes) - AUDIT_FIELDS
    if unknown:
        raise ValueError(f"save() cannot write {sorted(unknown)}")
    for name, value in changes.items():
        setattr(payment, name, value)
    await db.flush()
    return payment


async def append_webhook(db: AsyncSession, payment: Payment, payload) -> Payment:
    payment.provider_webhook = [*(payment.provider_webhook or []), payload]
    await db.flush()
    return payment


async def transition_status(db: AsyncSession, payment: Payment, new_status: str) -> bool:
    """Move ``payment`` forward to ``new_status``.

    Single conditional UPDATE, so two writers can never both observe a
    non-success status and both win. Returns True when a row changed.
    """
    allowed_prior = STATUS_TRANSITIONS.get(new_status, ())
    if not allowed_prior:
        return False
    result = await db.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status.in_(allowed_prior))
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(payment)
    return result.rowcount == 1


async def list_payments(
    db: AsyncSession,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Payment]:
    stmt = select(Payment)
    if status:
        stmt = stmt.where(Payment.status == status)
    stmt = stmt.order_by(Payment.created_at.desc(), Payment.id.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())
