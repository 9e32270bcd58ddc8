from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from travelbooks.models.fund_allocation import PaymentSource
from travelbooks.models.invoice import InvoiceStatus
from travelbooks.models.payment import PaymentMethod
from travelbooks.models.shared import BookingType
from travelbooks.schemas.cancellation import CancellationPolicy
from travelbooks.schemas.payment import PaymentResponse


class CustomerRef(BaseModel):
    customer_id: str
    customer_name: str
    customer_email: str | None = None


class QuoteItemInput(BaseModel):
    quote_item_id: str
    description: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal
    supplier_cost: Decimal
    item_type: BookingType | None = None
    payment_source: PaymentSource | None = None
    travel_date: date | None = None
    cancellation_policy: CancellationPolicy | None = None


class QuoteAcceptance(BaseModel):
    """Produced by the quote module when a customer accepts a quote."""

    quote_id: str
    customer_id: str
    customer_name: str
    customer_email: str | None = None
    items: list[QuoteItemInput] = Field(min_length=1)
    tax_rate: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    due_in_days: int | None = Field(default=None, ge=0)
    terms: str | None = None
    notes: str | None = None
    currency: str = Field(default="USD", min_length=3, max_length=3)
    agent_id: str | None = None
    agent_name: str | None = None
    commission_override_rate: Decimal | None = None

    @property
    def customer(self) -> CustomerRef:
        return CustomerRef(
            customer_id=self.customer_id,
            customer_name=self.customer_name,
            customer_email=self.customer_email,
        )


class ManualPaymentCreate(BaseModel):
    """Offline payment keyed in by staff (cash, check, bank transfer)."""

    payment_intent_id: str
    amount: Decimal
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    processing_fee: Decimal = Decimal("0")


class InvoiceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    position: int
    quote_item_id: str
    description: str
    item_type: str | None
    payment_source: str | None
    quantity: Decimal
    unit_price: Decimal
    total: Decimal
    supplier_cost: Decimal
    travel_date: date | None
    cancellation_policy: dict | None


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    quote_id: str
    customer_id: str
    customer_name: str
    customer_email: str | None
    agent_id: str | None
    commission_override_rate: Decimal | None
    status: InvoiceStatus
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    refunded_amount: Decimal
    currency: str
    terms: str | None
    issue_date: date
    due_date: date
    last_sent_at: datetime | None
    paid_at: datetime | None
    cancelled_at: datetime | None
    is_overdue: bool = False


class InvoiceDetailResponse(InvoiceResponse):
    items: list[InvoiceItemResponse] = Field(default_factory=list)
    payments: list[PaymentResponse] = Field(default_factory=list)
