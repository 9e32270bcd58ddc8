"""Payment model for tracking invoice payments."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, func

from travelbooks.core.database import Base
from travelbooks.models.shared import UUIDType, generate_uuid


class PaymentStatus(str, Enum):
    """Payment status enum."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """How the customer paid."""

    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    CHECK = "check"
    PAYPAL = "paypal"
    STRIPE = "stripe"


class Payment(Base):
    """Payment model - one gateway payment intent applied to an invoice.

    Completed payments are never edited; a refund is recorded as a separate
    ``refunded`` payment pointing back at the original through
    ``refund_of_payment_id``.
    """

    __tablename__ = "payments"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_id = Column(
        UUIDType, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # Gateway natural key, unique so a replayed event cannot create a second payment
    payment_intent_id = Column(String(255), unique=True, index=True, nullable=False)

    amount = Column(Numeric(12, 4), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    method = Column(String(30), nullable=False, default=PaymentMethod.CREDIT_CARD.value)
    processing_fee = Column(Numeric(12, 4), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    failure_reason = Column(Text, nullable=True)
    refund_of_payment_id = Column(
        UUIDType, ForeignKey("payments.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)
