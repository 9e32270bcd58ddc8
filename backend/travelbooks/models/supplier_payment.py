"""SupplierPayment model - the payout owed to a supplier for released escrow."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, func

from travelbooks.core.database import Base
from travelbooks.models.shared import UUIDType, generate_uuid


class SupplierPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class SupplierPayment(Base):
    """One payout per released escrow row with a supplier cost."""

    __tablename__ = "supplier_payments"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    allocation_id = Column(
        UUIDType, ForeignKey("fund_allocations.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    allocation_row_id = Column(
        UUIDType,
        ForeignKey("fund_allocation_rows.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
        index=True,
    )
    payment_id = Column(
        UUIDType, ForeignKey("payments.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quote_id = Column(String(100), index=True, nullable=False)
    quote_item_id = Column(String(100), index=True, nullable=False)
    item_type = Column(String(20), nullable=True)
    source = Column(String(30), nullable=True)

    amount = Column(Numeric(12, 4), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default=SupplierPaymentStatus.PENDING.value)
    release_trigger = Column(String(40), nullable=True)

    payment_method = Column(String(30), nullable=True)
    transfer_reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    released_at = Column(DateTime(timezone=True), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
