"""Refunds for cancelled quote items.

``calculate_item_refund`` is the pure core. ``RefundCalculator`` loads the
ledger state around it and, through ``apply_cancellation``, turns a
calculation into refunded escrow rows and compensating payments. A clawback owed
on a paid commission is recorded on it here and applied later, once, by
``CommissionService.apply_clawback``.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from travelbooks.core.database import transaction
from travelbooks.core.errors import ConflictError, NotFoundError, ValidationError
from travelbooks.core.locks import entity_lock
from travelbooks.core.money import HUNDRED, ZERO, percent_of, round_money, safe_ratio, to_decimal
from travelbooks.models.commission import Commission, CommissionStatus
from travelbooks.models.fund_allocation import EscrowStatus, FundAllocationRow
from travelbooks.models.invoice import InvoiceItem
from travelbooks.models.payment import PaymentStatus
from travelbooks.models.shared import utc_now
from travelbooks.repositories.commission_repository import CommissionRepository
from travelbooks.repositories.fund_allocation_repository import FundAllocationRepository
from travelbooks.repositories.invoice_repository import InvoiceRepository
from travelbooks.repositories.payment_repository import PaymentRepository
from travelbooks.schemas.cancellation import (
    DEFAULT_CANCELLATION_POLICY,
    CancellationPolicy,
    RefundBreakdownItem,
    RefundCalculationResponse,
)
from travelbooks.services.audit_service import AuditService
from travelbooks.services.commission_service import CommissionService
from travelbooks.services.fund_allocation import FundAllocationEngine, split_proportionally
from travelbooks.services.policy import PolicyProvider, SettingsPolicyProvider

logger = logging.getLogger(__name__)

FLAT_FEE = "flat"
PERCENTAGE_FEE = "percentage"


@dataclass(frozen=True)
class ServiceFeePolicy:
    fee_type: str = PERCENTAGE_FEE
    value: Decimal = ZERO

    def fee_for(self, gross_refund: Decimal) -> Decimal:
        """Service fee on a gross refund, never more than the refund itself."""
        if gross_refund <= ZERO:
            return ZERO
        if self.fee_type == FLAT_FEE:
            fee = round_money(self.value)
        elif self.fee_type == PERCENTAGE_FEE:
            fee = round_money(percent_of(gross_refund, self.value))
        else:
            raise ValidationError(f"Unknown service fee type {self.fee_type!r}")
        return min(max(fee, ZERO), gross_refund)


@dataclass
class RefundCalculation:
    refund_amount: Decimal
    refund_percentage: Decimal
    service_fee: Decimal
    should_clawback_commission: bool
    commission_clawback: Decimal
    breakdown: list[RefundBreakdownItem] = field(default_factory=list)

    @classmethod
    def from_items(cls, items: list[RefundBreakdownItem]) -> "RefundCalculation":
        paid = sum((i.paid_amount for i in items), ZERO)
        gross = sum((i.gross_refund for i in items), ZERO)
        return cls(
            refund_amount=sum((i.refund_amount for i in items), ZERO),
            refund_percentage=round_money(safe_ratio(gross, paid) * HUNDRED),
            service_fee=sum((i.service_fee for i in items), ZERO),
            should_clawback_commission=any(i.should_clawback_commission for i in items),
            commission_clawback=sum((i.commission_clawback for i in items), ZERO),
            breakdown=items,
        )

    def to_response(self) -> RefundCalculationResponse:
        return RefundCalculationResponse(
            refund_amount=self.refund_amount,
            refund_percentage=self.refund_percentage,
            service_fee=self.service_fee,
            should_clawback_commission=self.should_clawback_commission,
            commission_clawback=self.commission_clawback,
            breakdown=self.breakdown,
        )


def refund_percentage(
    policy: CancellationPolicy, cancellation_date: date, travel_date: date
) -> tuple[Decimal, int]:
    """Refund percentage and days-before-travel for a cancellation."""
    days = (travel_date - cancellation_date).days
    if policy.non_refundable:
        return ZERO, days
    if policy.cancellation_deadline and cancellation_date > policy.cancellation_deadline:
        return ZERO, days
    if policy.free_cancellation_until and cancellation_date <= policy.free_cancellation_until:
        return HUNDRED, days
    for rule in policy.sorted_rules():
        if rule.days_before_travel <= days:
            return to_decimal(rule.refund_percentage), days
    return ZERO, days


def calculate_item_refund(
    policy: CancellationPolicy,
    client_paid: Any,
    cancellation_date: date,
    travel_date: date,
    agent_commission: Any,
    commission_paid: bool,
    service_fee_policy: ServiceFeePolicy,
    item_id: str = "",
    item_name: str = "",
) -> RefundBreakdownItem:
    client_paid = round_money(client_paid)
    agent_commission = round_money(agent_commission)
    if client_paid < ZERO:
        raise ValidationError("Paid amount must not be negative")

    pct, days = refund_percentage(policy, cancellation_date, travel_date)
    gross = round_money(percent_of(client_paid, pct))
    fee = service_fee_policy.fee_for(gross)

    clawback = ZERO
    should_clawback = commission_paid and pct < HUNDRED and agent_commission > ZERO
    if should_clawback:
        clawback = round_money(agent_commission * (HUNDRED - pct) / HUNDRED)

    return RefundBreakdownItem(
        item_id=item_id,
        item_name=item_name,
        paid_amount=client_paid,
        refund_percentage=pct,
        gross_refund=gross,
        service_fee=fee,
        refund_amount=gross - fee,
        agent_commission=agent_commission,
        should_clawback_commission=should_clawback,
        commission_clawback=clawback,
        days_before_travel=days,
    )


def load_policy(item: InvoiceItem) -> CancellationPolicy:
    if not item.cancellation_policy:
        return DEFAULT_CANCELLATION_POLICY
    try:
        return CancellationPolicy.model_validate(item.cancellation_policy)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Cancellation policy of {item.quote_item_id} is invalid: {e}"
        ) from None


class RefundCalculator:
    def __init__(self, db: Session, policy: PolicyProvider | None = None):
        self.db = db
        self.policy = policy or SettingsPolicyProvider()
        self.invoice_repo = InvoiceRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.allocation_repo = FundAllocationRepository(db)
        self.commission_repo = CommissionRepository(db)
        self.audit_service = AuditService(db)

    def service_fee_policy(self) -> ServiceFeePolicy:
        fee_type, value = self.policy.refund_service_fee()
        return ServiceFeePolicy(fee_type=fee_type, value=to_decimal(value))

    def calculate_cancellation(
        self,
        quote_item_id: str,
        cancellation_date: date,
        travel_date: date | None = None,
    ) -> RefundCalculation:
        """Refund owed if this quote item were cancelled. Read-only."""
        item = self._get_item(quote_item_id)
        return RefundCalculation.from_items(
            [self._item_refund(item, cancellation_date, travel_date)]
        )

    def calculate_quote_cancellation(
        self, invoice_id: UUID, cancellation_date: date
    ) -> RefundCalculation:
        """Refund owed if every item on the invoice were cancelled. Read-only."""
        invoice = self.invoice_repo.get_by_id(invoice_id)
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        items = self.invoice_repo.get_items(invoice_id)
        return RefundCalculation.from_items(
            [self._item_refund(item, cancellation_date) for item in items]
        )

    def apply_cancellation(
        self,
        quote_item_id: str,
        cancellation_date: date,
        travel_date: date | None = None,
        actor_id: str | None = None,
    ) -> RefundCalculation:
        """Refund a cancelled item.

        Marks its escrow rows refunded and records one compensating
        ``refunded`` payment per source payment. Any unpaid commission on the
        item is disputed. A clawback on a paid commission is recorded on it,
        to be applied through ``CommissionService.apply_clawback``.
        """
        item = self._get_item(quote_item_id)
        invoice_id: UUID = item.invoice_id  # type: ignore[assignment]
        engine = FundAllocationEngine(self.db, self.policy)
        commission_service = CommissionService(self.db, self.policy)
        now = utc_now()

        with entity_lock("invoice", invoice_id), transaction(self.db):
            invoice = self.invoice_repo.get_for_update(invoice_id)
            if not invoice:
                raise NotFoundError(f"Invoice {invoice_id} not found")

            rows = self.allocation_repo.get_rows_for_item(item.id)  # type: ignore[arg-type]
            if rows and all(r.escrow_status == EscrowStatus.REFUNDED.value for r in rows):
                raise ConflictError(f"Cancellation of {quote_item_id} was already applied")

            calculation = RefundCalculation.from_items(
                [self._item_refund(item, cancellation_date, travel_date)]
            )
            refunded_rows = engine.mark_refunded(item.id, now, actor_id)  # type: ignore[arg-type]
            self._record_refund_payments(refunded_rows, calculation.refund_amount, quote_item_id)

            invoice.refunded_amount = (  # type: ignore[assignment]
                to_decimal(invoice.refunded_amount) + calculation.refund_amount
            )
            self.invoice_repo.save(invoice)

            commission = self._commission_for(item)
            if commission and commission.status in (
                CommissionStatus.PENDING.value,
                CommissionStatus.APPROVED.value,
            ):
                commission_service.mark_disputed(
                    commission, f"Booking {quote_item_id} cancelled", actor_id
                )
            elif commission and calculation.commission_clawback > ZERO:
                commission_service.record_clawback(
                    commission,
                    calculation.commission_clawback,
                    f"Booking {quote_item_id} cancelled",
                    actor_id,
                )

            self.audit_service.log_action(
                "invoice",
                invoice_id,
                action="refund_applied",
                changes={
                    "quote_item_id": quote_item_id,
                    "refund_amount": calculation.refund_amount,
                    "refund_percentage": calculation.refund_percentage,
                    "service_fee": calculation.service_fee,
                    "commission_clawback": calculation.commission_clawback,
                },
                actor_type="user" if actor_id else "system",
                actor_id=actor_id,
            )

        logger.info(
            "Applied cancellation of %s: refund %s (%s%%), clawback %s",
            quote_item_id,
            calculation.refund_amount,
            calculation.refund_percentage,
            calculation.commission_clawback,
        )
        return calculation

    def _record_refund_payments(
        self, rows: list[FundAllocationRow], refund_amount: Decimal, quote_item_id: str
    ) -> None:
        if refund_amount <= ZERO:
            return
        paid_by_payment: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        for row in rows:
            allocation = self.allocation_repo.get_by_id(row.allocation_id)  # type: ignore[arg-type]
            if allocation:
                paid_by_payment[allocation.payment_id] += to_decimal(row.client_paid)  # type: ignore[index]

        payment_ids = sorted(paid_by_payment, key=str)
        shares = split_proportionally(refund_amount, [paid_by_payment[p] for p in payment_ids])
        for payment_id, share in zip(payment_ids, shares, strict=True):
            if share <= ZERO:
                continue
            source = self.payment_repo.get_by_id(payment_id)
            if not source:
                raise NotFoundError(f"Payment {payment_id} not found")
            refund_intent_id = f"refund:{quote_item_id}:{source.payment_intent_id}"
            if self.payment_repo.get_by_intent_id(refund_intent_id):
                raise ConflictError(f"Refund {refund_intent_id} was already recorded")
            self.payment_repo.create(
                invoice_id=source.invoice_id,
                payment_intent_id=refund_intent_id,
                amount=share,
                currency=source.currency,
                method=source.method,
                processing_fee=ZERO,
                status=PaymentStatus.REFUNDED.value,
                refund_of_payment_id=source.id,
                notes=f"Refund for cancelled booking {quote_item_id}",
                processed_at=utc_now(),
            )

    def _item_refund(
        self,
        item: InvoiceItem,
        cancellation_date: date,
        travel_date: date | None = None,
    ) -> RefundBreakdownItem:
        travel = travel_date or item.travel_date
        if travel is None:
            raise ValidationError(f"Quote item {item.quote_item_id} has no travel date")

        all_rows = self.allocation_repo.get_rows_for_item(item.id)  # type: ignore[arg-type]
        rows = [
            r
            for r in all_rows
            if r.escrow_status in (EscrowStatus.HELD.value, EscrowStatus.RELEASED.value)
        ]
        client_paid = sum((to_decimal(r.client_paid) for r in rows), ZERO)
        # a cancellation already applied has reported its clawback
        cancelled = bool(all_rows) and not rows

        commission = self._commission_for(item)
        if commission:
            agent_commission = to_decimal(commission.commission_amount)
            commission_paid = commission.status == CommissionStatus.PAID.value and not cancelled
        else:
            agent_commission = sum((to_decimal(r.agent_commission) for r in rows), ZERO)
            commission_paid = False

        return calculate_item_refund(
            policy=load_policy(item),
            client_paid=client_paid,
            cancellation_date=cancellation_date,
            travel_date=travel,  # type: ignore[arg-type]
            agent_commission=agent_commission,
            commission_paid=commission_paid,
            service_fee_policy=self.service_fee_policy(),
            item_id=str(item.quote_item_id),
            item_name=str(item.description),
        )

    def _get_item(self, quote_item_id: str) -> InvoiceItem:
        item = self.invoice_repo.get_item_by_quote_item_id(quote_item_id)
        if not item:
            raise NotFoundError(f"Quote item {quote_item_id} not found")
        return item

    def _commission_for(self, item: InvoiceItem) -> Commission | None:
        return self.commission_repo.get_by_booking(
            item.invoice_id, item.quote_item_id  # type: ignore[arg-type]
        )
