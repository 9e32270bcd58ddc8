"""Cancellation policy and refund calculation schemas."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class RefundRule(BaseModel):
    """One tier: cancelling at least ``days_before_travel`` days out refunds this percentage."""

    days_before_travel: int = Field(ge=0)
    refund_percentage: Decimal = Field(ge=0, le=100)


class CancellationPolicy(BaseModel):
    refund_rules: list[RefundRule] = Field(default_factory=list)
    non_refundable: bool = False
    cancellation_deadline: date | None = None
    free_cancellation_until: date | None = None

    @model_validator(mode="after")
    def check_tiers(self) -> "CancellationPolicy":
        days = [rule.days_before_travel for rule in self.refund_rules]
        if len(days) != len(set(days)):
            raise ValueError("refund_rules must not repeat days_before_travel")
        ordered = sorted(self.refund_rules, key=lambda r: r.days_before_travel)
        for closer, further in zip(ordered, ordered[1:], strict=False):
            if closer.refund_percentage > further.refund_percentage:
                raise ValueError(
                    "refund_rules must not refund more closer to travel "
                    f"({closer.days_before_travel}d > {further.days_before_travel}d)"
                )
        return self

    def sorted_rules(self) -> list[RefundRule]:
        """Tiers ordered from furthest to closest to travel."""
        return sorted(self.refund_rules, key=lambda r: r.days_before_travel, reverse=True)


DEFAULT_CANCELLATION_POLICY = CancellationPolicy(
    refund_rules=[
        RefundRule(days_before_travel=30, refund_percentage=Decimal("100")),
        RefundRule(days_before_travel=14, refund_percentage=Decimal("50")),
        RefundRule(days_before_travel=7, refund_percentage=Decimal("25")),
        RefundRule(days_before_travel=0, refund_percentage=Decimal("0")),
    ]
)


class CancellationRequest(BaseModel):
    """Cancellation of a single quote item."""

    quote_item_id: str
    cancellation_date: date
    travel_date: date | None = None


class QuoteCancellationRequest(BaseModel):
    """Cancellation of every item on an invoice."""

    invoice_id: UUID
    cancellation_date: date


class RefundBreakdownItem(BaseModel):
    item_id: str
    item_name: str
    paid_amount: Decimal
    refund_percentage: Decimal
    gross_refund: Decimal
    service_fee: Decimal
    refund_amount: Decimal
    agent_commission: Decimal
    should_clawback_commission: bool
    commission_clawback: Decimal
    days_before_travel: int | None = None


class RefundCalculationResponse(BaseModel):
    refund_amount: Decimal
    refund_percentage: Decimal
    service_fee: Decimal
    should_clawback_commission: bool
    commission_clawback: Decimal
    breakdown: list[RefundBreakdownItem]
