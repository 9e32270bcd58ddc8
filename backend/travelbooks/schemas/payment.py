"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from travelbooks.models.payment import PaymentMethod, PaymentStatus


class PaymentConfirmation(BaseModel):
    """Event delivered by the payment processor once an intent settles (or fails)."""

    payment_intent_id: str = Field(min_length=1)
    invoice_id: UUID
    amount: Decimal
    method: PaymentMethod = PaymentMethod.CREDIT_CARD
    processing_fee: Decimal = Decimal("0")
    status: PaymentStatus
    failure_reason: str | None = None


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_id: UUID
    payment_intent_id: str
    amount: Decimal
    currency: str
    method: str
    processing_fee: Decimal
    status: str
    failure_reason: str | None = None
    refund_of_payment_id: UUID | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None


class PaymentApplicationResponse(BaseModel):
    payment: PaymentResponse
    invoice_status: str
    paid_amount: Decimal
    remaining_amount: Decimal
    allocation_id: UUID | None = None
    commission_ids: list[UUID] = Field(default_factory=list)
    replayed: bool = False
