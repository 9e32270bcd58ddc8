from enum import Enum

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)

from travelbooks.core.database import Base
from travelbooks.models.shared import UUIDType, generate_uuid


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


TERMINAL_INVOICE_STATUSES = frozenset({InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value})

INVOICE_TRANSITIONS: dict[str, frozenset[str]] = {
    InvoiceStatus.DRAFT.value: frozenset(
        {
            InvoiceStatus.SENT.value,
            InvoiceStatus.PARTIAL.value,
            InvoiceStatus.PAID.value,
            InvoiceStatus.CANCELLED.value,
        }
    ),
    InvoiceStatus.SENT.value: frozenset(
        {
            InvoiceStatus.PARTIAL.value,
            InvoiceStatus.PAID.value,
            InvoiceStatus.OVERDUE.value,
            InvoiceStatus.CANCELLED.value,
        }
    ),
    InvoiceStatus.PARTIAL.value: frozenset(
        {InvoiceStatus.PAID.value, InvoiceStatus.OVERDUE.value, InvoiceStatus.CANCELLED.value}
    ),
    InvoiceStatus.OVERDUE.value: frozenset(
        {InvoiceStatus.PARTIAL.value, InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value}
    ),
    InvoiceStatus.PAID.value: frozenset(),
    InvoiceStatus.CANCELLED.value: frozenset(),
}


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_number = Column(String(50), unique=True, index=True, nullable=False)
    quote_id = Column(String(100), unique=True, index=True, nullable=False)

    # Customer reference (contacts live outside the ledger)
    customer_id = Column(String(100), index=True, nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=True)

    # Selling agent and quote-level commission override
    agent_id = Column(String(100), index=True, nullable=True)
    agent_name = Column(String(255), nullable=True)
    commission_override_rate = Column(Numeric(7, 4), nullable=True)

    status = Column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value)

    # Amounts (stored as Decimal with 4 decimal places for precision)
    subtotal = Column(Numeric(12, 4), nullable=False, default=0)
    tax_rate = Column(Numeric(7, 4), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 4), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 4), nullable=False, default=0)
    total = Column(Numeric(12, 4), nullable=False, default=0)
    paid_amount = Column(Numeric(12, 4), nullable=False, default=0)
    remaining_amount = Column(Numeric(12, 4), nullable=False, default=0)
    refunded_amount = Column(Numeric(12, 4), nullable=False, default=0)

    currency = Column(String(3), nullable=False, default="USD")
    terms = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Dates
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    last_sent_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class InvoiceItem(Base):
    """One priced quote line on an invoice, with the supplier cost behind it."""

    __tablename__ = "invoice_items"
    __table_args__ = (
        UniqueConstraint("invoice_id", "quote_item_id", name="uq_invoice_quote_item"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_id = Column(
        UUIDType, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    quote_item_id = Column(String(100), index=True, nullable=False)

    description = Column(String(500), nullable=False)
    item_type = Column(String(20), nullable=True)
    payment_source = Column(String(30), nullable=True)

    quantity = Column(Numeric(12, 4), nullable=False, default=1)
    unit_price = Column(Numeric(12, 4), nullable=False)
    total = Column(Numeric(12, 4), nullable=False)
    supplier_cost = Column(Numeric(12, 4), nullable=False)

    travel_date = Column(Date, nullable=True)
    cancellation_policy = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
