"""SQLAlchemy database models for the fundraising payments core."""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from fundraiser.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")

PAYMENT_STATUSES = ("pending", "success", "failed")


class Charity(Base):
    """Fundraising campaign. Only the raised accumulator is touched by payments."""

    __tablename__ = "charities"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    goal = Column(Numeric(12, 2), nullable=False, default=0)
    raised = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    payments = relationship("Payment", back_populates="charity")
    credits = relationship("CharityCredit", back_populates="charity")


class Payment(Base):
    """One mobile-money donation attempt and its provider audit trail."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    method = Column(String(20), nullable=False)  # EVC | EDAHAB
    currency = Column(String(3), nullable=False, default="USD")
    amount = Column(Numeric(12, 2), nullable=False)
    charity_id = Column(Integer, ForeignKey("charities.id"), nullable=True, index=True)

    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    phone_formatted = Column(String(32), nullable=True)
    note = Column(String(1000), nullable=True)

    reference = Column(String(64), nullable=False, unique=True, index=True)
    invoice_id = Column(String(64), nullable=False, index=True)
    provider_reference = Column(String(255), nullable=True)

    status = Column(String(20), nullable=False, default="pending", index=True)

    provider_request = Column(JSONType, nullable=True)
    provider_response = Column(JSONType, nullable=True)
    provider_webhook = Column(JSONType, nullable=True)  # list of raw deliveries

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    charity = relationship("Charity", back_populates="payments")
    credits = relationship("CharityCredit", back_populates="payment")

    __table_args__ = (
        Index("idx_payments_status_created", "status", "created_at"),
    )


class CharityCredit(Base):
    """Append-only record of every increment applied to a charity's raised total."""

    __tablename__ = "charity_credits"

    id = Column(Integer, primary_key=True, index=True)
    charity_id = Column(Integer, ForeignKey("charities.id"), nullable=False)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)
    source = Column(String(20), nullable=False)  # initiate | webhook | manual
    amount = Column(Numeric(12, 2), nullable=False)
    before_raised = Column(Numeric(12, 2), nullable=False)
    after_raised = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    charity = relationship("Charity", back_populates="credits")
    payment = relationship("Payment", back_populates="credits")

    __table_args__ = (
        Index("idx_credits_payment", "payment_id"),
    )
