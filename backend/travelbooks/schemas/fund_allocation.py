from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from travelbooks.models.fund_allocation import ReleaseTrigger
from travelbooks.models.payment import PaymentMethod
from travelbooks.models.supplier_payment import SupplierPaymentStatus


class EscrowRelease(BaseModel):
    """Escrow-release trigger for one allocation (optionally one item of it)."""

    trigger: ReleaseTrigger
    effective_date: datetime | None = None
    quote_item_id: str | None = None


class FundAllocationRowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    position: int
    quote_item_id: str
    item_type: str | None
    source: str | None
    client_paid: Decimal
    supplier_cost: Decimal
    platform_fee: Decimal
    agent_commission: Decimal
    commission_rate: Decimal
    escrow_status: str
    release_trigger: str | None
    released_at: datetime | None


class FundAllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payment_id: UUID
    invoice_id: UUID
    quote_id: str
    total_amount: Decimal
    created_at: datetime | None = None
    rows: list[FundAllocationRowResponse] = Field(default_factory=list)


class EscrowSummary(BaseModel):
    quote_id: str
    held: Decimal
    released: Decimal
    refunded: Decimal
    supplier_cost_held: Decimal
    platform_fee_held: Decimal
    agent_commission_held: Decimal


class SupplierPaymentDue(BaseModel):
    quote_id: str
    quote_item_id: str
    item_type: str | None
    source: str | None
    amount: Decimal


class SupplierPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    allocation_id: UUID
    allocation_row_id: UUID
    payment_id: UUID
    quote_id: str
    quote_item_id: str
    item_type: str | None
    source: str | None
    amount: Decimal
    currency: str
    status: SupplierPaymentStatus
    release_trigger: str | None
    payment_method: str | None
    transfer_reference: str | None
    notes: str | None
    released_at: datetime
    paid_at: datetime | None


class SupplierPaymentPay(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    transfer_reference: str | None = Field(default=None, max_length=255)
    paid_at: datetime | None = None
    notes: str | None = None
    actor_id: str | None = None
