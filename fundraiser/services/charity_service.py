"""Charity raised-total increments and their ledger."""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fundraiser.core.errors import NotFoundError
from fundraiser.models import Charity, CharityCredit


async def increment_raised(
    db: AsyncSession,
    charity_id: int,
    amount: Decimal,
    source: str,
    payment_id: Optional[int] = None,
) -> CharityCredit:
    """Atomically add ``amount`` to a charity's raised total.

    Not idempotent: every call adds. Callers decide whether a credit is due.
    """
    if amount <= 0:
        raise ValueError("Credit amount must be positive")

    charity_stmt = select(Charity).where(Charity.id == charity_id).with_for_update()
    charity = (await db.execute(charity_stmt)).scalar_one_or_none()
    if not charity:
        raise NotFoundError(f"Charity {charity_id} not found")

    before_raised = charity.raised or Decimal("0")
    await db.execute(
        update(Charity)
        .where(Charity.id == charity_id)
        .values(raised=Charity.raised + amount)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(charity)

    credit = CharityCredit(
        charity_id=charity_id,
        payment_id=payment_id,
        source=source,
        amount=amount,
        before_raised=before_raised,
        after_raised=charity.raised,
    )
    db.add(credit)
    await db.flush()
    await db.refresh(credit)
    return credit


async def list_credits_for_payment(db: AsyncSession, payment_id: int) -> List[CharityCredit]:
    result = await db.execute(
        select(CharityCredit)
        .where(CharityCredit.payment_id == payment_id)
        .order_by(CharityCredit.created_at, CharityCredit.id)
    )
    return list(result.scalars().all())
