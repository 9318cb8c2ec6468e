import asyncio
import os
import tempfile
from decimal import Decimal
from pathlib import Path

_TMP_DIR = Path(tempfile.mkdtemp(prefix="fundraiser-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["RATE_LIMIT_INITIATE_PER_MINUTE"] = "0"
os.environ["WEBHOOK_SECRET"] = ""
for _key in ("WAAFI_API_URL", "WAAFI_MERCHANT_UID", "WAAFI_API_USER_ID", "WAAFI_API_KEY"):
    os.environ.pop(_key, None)

import pytest
from sqlalchemy import func, select

from fundraiser import models
from fundraiser.database import AsyncSessionLocal, Base, engine
from fundraiser.services import payment_store
from fundraiser.services.providers import (
    ChargeResult,
    EDahabProvider,
    MappedResult,
    PaymentMethod,
    PaymentProvider,
    ProviderRegistry,
)


@pytest.fixture(autouse=True)
def fresh_db():
    async def reset():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(reset())
    yield


class FakeProvider(PaymentProvider):
    """Records charge requests and answers with a canned result or error."""

    method = PaymentMethod.EVC

    def __init__(self, status="success", provider_ref="WAAFI-1", message="RCS_SUCCESS", error=None, on_charge=None):
        self.mapped = MappedResult(status=status, provider_ref=provider_ref, message=message)
        self.error = error
        self.on_charge = on_charge
        self.calls = []

    async def charge(self, request):
        self.calls.append(request)
        if self.on_charge is not None:
            await self.on_charge(request)
        if self.error is not None:
            raise self.error
        payload = {"invoiceId": request.invoice_id, "accountNo": request.phone, "amount": float(request.amount)}
        raw = {"responseMsg": self.mapped.message, "transactionInfo": {"referenceId": self.mapped.provider_ref}}
        return ChargeResult(payload=payload, raw=raw, mapped=self.mapped)


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def make_registry():
    def _make(provider):
        return ProviderRegistry({PaymentMethod.EVC: provider, PaymentMethod.EDAHAB: EDahabProvider()})

    return _make


@pytest.fixture
def create_charity():
    def _create(title="Clean water for Baidoa", goal="5000.00", raised="0.00"):
        async def run():
            async with AsyncSessionLocal() as db:
                charity = models.Charity(title=title, goal=Decimal(goal), raised=Decimal(raised))
                db.add(charity)
                await db.commit()
                return charity.id

        return asyncio.run(run())

    return _create


@pytest.fixture
def create_payment():
    def _create(reference="don-test-1", amount="10.00", charity_id=None, status="pending"):
        async def run():
            async with AsyncSessionLocal() as db:
                payment = await payment_store.create_payment(
                    db,
                    payment_store.PaymentDraft(
                        method="EVC",
                        amount=Decimal(amount),
                        currency="USD",
                        phone="0612345678",
                        phone_formatted="252612345678",
                        reference=reference,
                        charity_id=charity_id,
                    ),
                )
                if status != "pending":
                    await payment_store.transition_status(db, payment, status)
                await db.commit()
                return payment.id

        return asyncio.run(run())

    return _create


@pytest.fixture
def fetch_payment():
    return _fetch_payment


def _fetch_payment(token):
    async def run():
        async with AsyncSessionLocal() as db:
            return await payment_store.find_by_reference_or_id(db, str(token))

    return asyncio.run(run())


@pytest.fixture
def fetch_charity():
    return _fetch_charity


def _fetch_charity(charity_id):
    async def run():
        async with AsyncSessionLocal() as db:
            result = await db.execute(select(models.Charity).where(models.Charity.id == charity_id))
            return result.scalar_one()

    return asyncio.run(run())


@pytest.fixture
def count_rows():
    return _count_rows


def _count_rows(model, **filters):
    async def run():
        async with AsyncSessionLocal() as db:
            stmt = select(func.count()).select_from(model)
            for name, value in filters.items():
                stmt = stmt.where(getattr(model, name) == value)
            return (await db.execute(stmt)).scalar_one()

    return asyncio.run(run())
