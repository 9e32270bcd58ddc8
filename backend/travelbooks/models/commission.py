"""Commission model - what an agent earns on one booked quote line."""

from enum import Enum

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)

from travelbooks.core.database import Base
from travelbooks.models.shared import UUIDType, generate_uuid


class CommissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    DISPUTED = "disputed"


class Commission(Base):
    __tablename__ = "commissions"
    __table_args__ = (
        UniqueConstraint("invoice_id", "booking_id", name="uq_commission_invoice_booking"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    agent_id = Column(String(100), index=True, nullable=False)
    agent_name = Column(String(255), nullable=True)

    # booking_id is the quote item the commission was earned on
    booking_id = Column(String(100), index=True, nullable=False)
    invoice_id = Column(
        UUIDType, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quote_id = Column(String(100), index=True, nullable=False)
    customer_id = Column(String(100), nullable=True)
    customer_name = Column(String(255), nullable=True)

    booking_amount = Column(Numeric(12, 4), nullable=False)
    commission_rate = Column(Numeric(7, 4), nullable=False)
    flat_fee = Column(Numeric(12, 4), nullable=False, default=0)
    commission_amount = Column(Numeric(12, 4), nullable=False)
    clawback_amount = Column(Numeric(12, 4), nullable=False, default=0)
    # reported by an applied cancellation of a paid commission, consumed once
    pending_clawback = Column(Numeric(12, 4), nullable=False, default=0)
    rate_source = Column(String(30), nullable=True)

    status = Column(String(20), nullable=False, default=CommissionStatus.PENDING.value)
    payment_method = Column(String(30), nullable=True)
    notes = Column(Text, nullable=True)

    earned_at = Column(DateTime(timezone=True), nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    clawback_applied_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
