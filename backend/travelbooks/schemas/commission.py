from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from travelbooks.models.commission import CommissionStatus
from travelbooks.models.payment import PaymentMethod
from travelbooks.models.shared import BookingType


class CommissionRuleCreate(BaseModel):
    agent_id: str | None = None
    booking_type: BookingType | None = None
    min_booking_amount: Decimal | None = Field(default=None, ge=0)
    max_booking_amount: Decimal | None = Field(default=None, ge=0)
    commission_rate: Decimal
    flat_fee: Decimal = Field(default=Decimal("0"), ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def check_range(self) -> "CommissionRuleCreate":
        if (
            self.min_booking_amount is not None
            and self.max_booking_amount is not None
            and self.min_booking_amount > self.max_booking_amount
        ):
            raise ValueError("min_booking_amount must not exceed max_booking_amount")
        return self


class CommissionRuleUpdate(BaseModel):
    commission_rate: Decimal | None = None
    flat_fee: Decimal | None = Field(default=None, ge=0)
    min_booking_amount: Decimal | None = Field(default=None, ge=0)
    max_booking_amount: Decimal | None = Field(default=None, ge=0)
    is_active: bool | None = None

    @model_validator(mode="after")
    def check_range(self) -> "CommissionRuleUpdate":
        if (
            self.min_booking_amount is not None
            and self.max_booking_amount is not None
            and self.min_booking_amount > self.max_booking_amount
        ):
            raise ValueError("min_booking_amount must not exceed max_booking_amount")
        return self


class CommissionRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    agent_id: str | None
    booking_type: str | None
    min_booking_amount: Decimal | None
    max_booking_amount: Decimal | None
    commission_rate: Decimal
    flat_fee: Decimal
    is_active: bool
    created_at: datetime | None = None


class RateResolutionRequest(BaseModel):
    agent_id: str | None = None
    booking_amount: Decimal = Field(ge=0)
    booking_type: BookingType | None = None
    quote_override_rate: Decimal | None = None


class RateResolutionResponse(BaseModel):
    rate: Decimal
    flat_fee: Decimal
    source: str
    rule_id: UUID | None = None
    commission_amount: Decimal


class CommissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    agent_id: str
    agent_name: str | None
    booking_id: str
    invoice_id: UUID
    quote_id: str
    booking_amount: Decimal
    commission_rate: Decimal
    flat_fee: Decimal
    commission_amount: Decimal
    clawback_amount: Decimal
    pending_clawback: Decimal
    rate_source: str | None
    status: CommissionStatus
    payment_method: str | None
    notes: str | None
    earned_at: datetime
    approved_at: datetime | None
    paid_at: datetime | None
    clawback_applied_at: datetime | None = None


class CommissionPay(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER


class BulkCommissionRequest(BaseModel):
    commission_ids: list[UUID] = Field(min_length=1)
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER


class ClawbackRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0)
    reason: str = Field(min_length=1)
    actor_id: str | None = None


class AgentCommissionSummary(BaseModel):
    agent_id: str
    total_earned: Decimal
    total_paid: Decimal
    total_pending: Decimal
    total_clawed_back: Decimal
    average_rate: Decimal
    total_bookings: int
