"""FundAllocation models - how one completed payment splits across quote items."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, func

from travelbooks.core.database import Base
from travelbooks.models.shared import UUIDType, generate_uuid


class EscrowStatus(str, Enum):
    HELD = "held"
    RELEASED = "released"
    REFUNDED = "refunded"


class ReleaseTrigger(str, Enum):
    BOOKING_CONFIRMED = "booking_confirmed"
    CANCELLATION_WINDOW_CLOSED = "cancellation_window_closed"
    TRAVEL_COMPLETED = "travel_completed"
    MANUAL = "manual"


class PaymentSource(str, Enum):
    """Where the booked rate came from."""

    API_HOTELBEDS = "api_hotelbeds"
    API_AMADEUS = "api_amadeus"
    API_SABRE = "api_sabre"
    OFFLINE_PLATFORM = "offline_platform"
    OFFLINE_AGENT = "offline_agent"


class FundAllocation(Base):
    __tablename__ = "fund_allocations"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    payment_id = Column(
        UUIDType,
        ForeignKey("payments.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
        index=True,
    )
    invoice_id = Column(
        UUIDType, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quote_id = Column(String(100), index=True, nullable=False)
    total_amount = Column(Numeric(12, 4), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class FundAllocationRow(Base):
    """Per-item split. ``client_paid == supplier_cost + platform_fee + agent_commission``."""

    __tablename__ = "fund_allocation_rows"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    allocation_id = Column(
        UUIDType, ForeignKey("fund_allocations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    invoice_item_id = Column(
        UUIDType, ForeignKey("invoice_items.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quote_item_id = Column(String(100), index=True, nullable=False)
    item_type = Column(String(20), nullable=True)
    source = Column(String(30), nullable=True)

    client_paid = Column(Numeric(12, 4), nullable=False)
    supplier_cost = Column(Numeric(12, 4), nullable=False)
    platform_fee = Column(Numeric(12, 4), nullable=False)
    agent_commission = Column(Numeric(12, 4), nullable=False, default=0)
    commission_rate = Column(Numeric(7, 4), nullable=False, default=0)

    escrow_status = Column(String(20), nullable=False, default=EscrowStatus.HELD.value)
    release_trigger = Column(String(40), nullable=True)
    released_at = Column(DateTime(timezone=True), nullable=True)
    escrow_release_date = Column(DateTime(timezone=True), nullable=True)
