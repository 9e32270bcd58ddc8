"""Fund allocation engine.

A completed payment is split per invoice item into supplier cost, agent
commission and platform fee, held in escrow until a release trigger fires.
``apply_payment_confirmation`` is the one entry point for gateway events.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.core.database import transaction
from travelbooks.core.errors import (
    ConflictError,
    ConsistencyError,
    ExternalGatewayError,
    NotFoundError,
    ValidationError,
)
from travelbooks.core.locks import entity_lock
from travelbooks.core.money import ZERO, round_money, to_decimal
from travelbooks.models.commission import Commission
from travelbooks.models.fund_allocation import (
    EscrowStatus,
    FundAllocation,
    FundAllocationRow,
    ReleaseTrigger,
)
from travelbooks.models.invoice import Invoice, InvoiceItem
from travelbooks.models.payment import Payment, PaymentMethod, PaymentStatus
from travelbooks.models.shared import utc_now
from travelbooks.models.supplier_payment import SupplierPayment, SupplierPaymentStatus
from travelbooks.repositories.fund_allocation_repository import FundAllocationRepository
from travelbooks.repositories.invoice_repository import InvoiceRepository
from travelbooks.repositories.payment_repository import PaymentRepository
from travelbooks.repositories.supplier_payment_repository import SupplierPaymentRepository
from travelbooks.schemas.cancellation import CancellationPolicy
from travelbooks.schemas.fund_allocation import EscrowSummary, SupplierPaymentDue
from travelbooks.schemas.payment import PaymentConfirmation
from travelbooks.services.audit_service import AuditService
from travelbooks.services.commission_calculator import CommissionCalculator
from travelbooks.services.commission_rules import CommissionRuleResolver
from travelbooks.services.commission_service import CommissionService
from travelbooks.services.invoice_ledger import InvoiceLedger
from travelbooks.services.policy import PolicyProvider, SettingsPolicyProvider

logger = logging.getLogger(__name__)

CANCELLATION_TRIGGER = "cancellation"


@dataclass
class PaymentApplication:
    payment: Payment
    invoice: Invoice
    allocation: FundAllocation | None = None
    commissions: list[Commission] = field(default_factory=list)
    replayed: bool = False


def split_proportionally(amount: Decimal, weights: Sequence[Decimal]) -> list[Decimal]:
    """Split ``amount`` by ``weights`` in cents; the last weighted share absorbs rounding."""
    total_weight = sum(weights, ZERO)
    if not weights or total_weight == ZERO:
        return [ZERO for _ in weights]
    last = max(i for i, w in enumerate(weights) if w > ZERO)
    shares = [
        round_money(amount * w / total_weight) if i != last else ZERO
        for i, w in enumerate(weights)
    ]
    shares[last] = amount - sum(shares, ZERO)
    return shares


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


class FundAllocationEngine:
    def __init__(self, db: Session, policy: PolicyProvider | None = None):
        self.db = db
        self.policy = policy or SettingsPolicyProvider()
        self.repo = FundAllocationRepository(db)
        self.invoice_repo = InvoiceRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.supplier_payment_repo = SupplierPaymentRepository(db)
        self.ledger = InvoiceLedger(db, self.policy)
        self.commission_service = CommissionService(db, self.policy)
        self.calculator = CommissionCalculator(self.policy)
        self.audit_service = AuditService(db)

    # -- gateway events -----------------------------------------------------

    def apply_payment_confirmation(self, event: PaymentConfirmation) -> PaymentApplication:
        """Apply a payment-processor event exactly once per payment intent."""
        amount = round_money(event.amount)
        if amount <= ZERO:
            raise ValidationError("Payment amount must be positive")
        if event.status == PaymentStatus.REFUNDED:
            raise ValidationError("Refunds are applied through a cancellation, not an event")

        with entity_lock("payment_intent", event.payment_intent_id):
            existing = self.payment_repo.get_by_intent_id(event.payment_intent_id)
            if existing:
                if existing.invoice_id != event.invoice_id or to_decimal(existing.amount) != amount:
                    raise ConflictError(
                        f"Payment intent {event.payment_intent_id} was already applied "
                        "with a different invoice or amount"
                    )
                if existing.status in (
                    PaymentStatus.COMPLETED.value,
                    PaymentStatus.REFUNDED.value,
                ) or existing.status == event.status.value:
                    logger.info("Replay of payment intent %s ignored", event.payment_intent_id)
                    return self._replay(existing)

            invoice = self.invoice_repo.get_by_id(event.invoice_id)
            if not invoice:
                raise NotFoundError(f"Invoice {event.invoice_id} not found")

            if event.status == PaymentStatus.FAILED:
                with transaction(self.db):
                    self._upsert_payment(existing, event, amount)
                logger.warning(
                    "Payment intent %s failed for invoice %s: %s",
                    event.payment_intent_id,
                    invoice.invoice_number,
                    event.failure_reason,
                )
                raise ExternalGatewayError(
                    f"Payment {event.payment_intent_id} failed: "
                    f"{event.failure_reason or 'declined by processor'}"
                )

            if event.status in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
                with transaction(self.db):
                    payment = self._upsert_payment(existing, event, amount)
                self.db.refresh(payment)
                return PaymentApplication(payment=payment, invoice=invoice)

            try:
                with transaction(self.db):
                    payment = self._upsert_payment(existing, event, amount)
                    invoice = self.ledger.record_payment(
                        invoice.id, payment  # type: ignore[arg-type]
                    )
                    allocation = self.allocate(invoice, payment)
                    commissions = self._ensure_commissions(invoice)
            except ConsistencyError:
                logger.error(
                    "Allocation for payment intent %s did not balance; rolled back",
                    event.payment_intent_id,
                    exc_info=True,
                )
                raise

        for obj in (payment, invoice, allocation, *commissions):
            self.db.refresh(obj)
        return PaymentApplication(
            payment=payment, invoice=invoice, allocation=allocation, commissions=commissions
        )

    def _upsert_payment(
        self, existing: Payment | None, event: PaymentConfirmation, amount: Decimal
    ) -> Payment:
        processed_at = utc_now() if event.status == PaymentStatus.COMPLETED else None
        if existing:
            old_status = str(existing.status)
            existing.status = event.status.value  # type: ignore[assignment]
            existing.failure_reason = event.failure_reason  # type: ignore[assignment]
            existing.processed_at = processed_at  # type: ignore[assignment]
            self.payment_repo.save(existing)
            self.audit_service.log_status_change(
                "payment",
                existing.id,  # type: ignore[arg-type]
                old_status=old_status,
                new_status=event.status.value,
                actor_type="gateway",
            )
            return existing

        invoice = self.invoice_repo.get_by_id(event.invoice_id)
        return self.payment_repo.create(
            invoice_id=event.invoice_id,
            payment_intent_id=event.payment_intent_id,
            amount=amount,
            currency=invoice.currency if invoice else "USD",
            method=event.method.value,
            processing_fee=round_money(event.processing_fee),
            status=event.status.value,
            failure_reason=event.failure_reason,
            processed_at=processed_at,
        )

    def _replay(self, payment: Payment) -> PaymentApplication:
        invoice = self.invoice_repo.get_by_id(payment.invoice_id)  # type: ignore[arg-type]
        if not invoice:
            raise NotFoundError(f"Invoice {payment.invoice_id} not found")
        allocation = self.repo.get_by_payment_id(payment.id)  # type: ignore[arg-type]
        commissions = self.commission_service.repo.get_by_invoice_id(
            invoice.id  # type: ignore[arg-type]
        )
        return PaymentApplication(
            payment=payment,
            invoice=invoice,
            allocation=allocation,
            commissions=commissions if allocation else [],
            replayed=True,
        )

    # -- allocation ---------------------------------------------------------

    def allocate(self, invoice: Invoice, payment: Payment) -> FundAllocation:
        """Split one completed payment across the invoice's items.

        Runs inside the caller's transaction.
        """
        if self.repo.get_by_payment_id(payment.id):  # type: ignore[arg-type]
            raise ConflictError(f"Payment {payment.payment_intent_id} is already allocated")

        items = self.invoice_repo.get_items(invoice.id)  # type: ignore[arg-type]
        total = to_decimal(invoice.total)
        amount = to_decimal(payment.amount)
        if not items or total <= ZERO:
            raise ConsistencyError(f"Invoice {invoice.invoice_number} has nothing to allocate")

        fraction = amount / total
        client_shares = split_proportionally(amount, [to_decimal(i.total) for i in items])
        resolver = CommissionRuleResolver.from_session(self.db, self.policy)

        allocation = self.repo.create(
            payment_id=payment.id,
            invoice_id=invoice.id,
            quote_id=invoice.quote_id,
            total_amount=amount,
        )
        for position, (item, client_paid) in enumerate(zip(items, client_shares, strict=True)):
            supplier_cost = round_money(to_decimal(item.supplier_cost) * fraction)
            rate = ZERO
            agent_commission = ZERO
            if invoice.agent_id:
                resolved = resolver.resolve(
                    invoice.agent_id,
                    item.total,
                    item.item_type,
                    invoice.commission_override_rate,
                )
                rate = resolved.rate
                agent_commission = self.calculator.calculate(
                    client_paid, rate, to_decimal(resolved.flat_fee) * fraction
                )

            platform_fee = client_paid - supplier_cost - agent_commission
            if platform_fee < ZERO:
                raise ConsistencyError(
                    f"Item {item.quote_item_id} on invoice {invoice.invoice_number} would "
                    f"allocate a negative platform fee ({platform_fee}): paid {client_paid}, "
                    f"supplier {supplier_cost}, commission {agent_commission}"
                )

            self.repo.add_row(
                allocation.id,  # type: ignore[arg-type]
                position,
                invoice_item_id=item.id,
                quote_item_id=item.quote_item_id,
                item_type=item.item_type,
                source=item.payment_source,
                client_paid=client_paid,
                supplier_cost=supplier_cost,
                platform_fee=platform_fee,
                agent_commission=agent_commission,
                commission_rate=rate,
                escrow_status=EscrowStatus.HELD.value,
                escrow_release_date=(
                    _start_of_day(item.travel_date) if item.travel_date else None  # type: ignore[arg-type]
                ),
            )

        self.check_allocation(allocation, payment)
        logger.info(
            "Allocated payment %s (%s) across %d items of invoice %s",
            payment.payment_intent_id,
            amount,
            len(items),
            invoice.invoice_number,
        )
        return allocation

    def check_allocation(self, allocation: FundAllocation, payment: Payment) -> None:
        rows = self.repo.get_rows(allocation.id)  # type: ignore[arg-type]
        for row in rows:
            parts = (
                to_decimal(row.supplier_cost)
                + to_decimal(row.platform_fee)
                + to_decimal(row.agent_commission)
            )
            if to_decimal(row.client_paid) != parts:
                raise ConsistencyError(
                    f"Allocation row {row.quote_item_id}: client_paid != supplier + fee + commission"
                )
        paid = sum((to_decimal(r.client_paid) for r in rows), ZERO)
        if paid != to_decimal(payment.amount):
            raise ConsistencyError(
                f"Allocation for {payment.payment_intent_id} sums to {paid}, "
                f"payment was {payment.amount}"
            )

    def _ensure_commissions(self, invoice: Invoice) -> list[Commission]:
        if not invoice.agent_id:
            return []
        items = self.invoice_repo.get_items(invoice.id)  # type: ignore[arg-type]
        resolver = CommissionRuleResolver.from_session(self.db, self.policy)
        booking_amounts = split_proportionally(
            to_decimal(invoice.total), [to_decimal(i.total) for i in items]
        )
        commissions = []
        for item, booking_amount in zip(items, booking_amounts, strict=True):
            resolved = resolver.resolve(
                invoice.agent_id,
                item.total,
                item.item_type,
                invoice.commission_override_rate,
            )
            commissions.append(
                self.commission_service.create_for_booking(invoice, item, booking_amount, resolved)
            )
        return commissions

    # -- escrow -------------------------------------------------------------

    def release(
        self,
        allocation_id: UUID,
        trigger: ReleaseTrigger,
        effective_date: datetime | None = None,
        quote_item_id: str | None = None,
        actor_id: str | None = None,
    ) -> FundAllocation:
        """Move held rows of an allocation (or of one item in it) to ``released``."""
        effective_date = effective_date or utc_now()
        with entity_lock("allocation", allocation_id), transaction(self.db):
            allocation = self.repo.get_for_update(allocation_id)
            if not allocation:
                raise NotFoundError(f"Fund allocation {allocation_id} not found")

            rows = self.repo.get_rows(allocation_id)
            if quote_item_id is not None:
                rows = [r for r in rows if r.quote_item_id == quote_item_id]
                if not rows:
                    raise NotFoundError(
                        f"Quote item {quote_item_id} is not part of allocation {allocation_id}"
                    )
                blocked = [r for r in rows if r.escrow_status != EscrowStatus.HELD.value]
                if blocked:
                    raise ConflictError(
                        f"Escrow for {quote_item_id} is already {blocked[0].escrow_status}"
                    )

            held = [r for r in rows if r.escrow_status == EscrowStatus.HELD.value]
            if not held:
                raise ConflictError(f"Allocation {allocation_id} has no held funds to release")
            for row in held:
                self._move_row(row, EscrowStatus.RELEASED, trigger.value, effective_date, actor_id)

        self.db.refresh(allocation)
        logger.info(
            "Released %d escrow rows of allocation %s (%s)",
            len(held),
            allocation_id,
            trigger.value,
        )
        return allocation

    def mark_refunded(
        self, invoice_item_id: UUID, now: datetime | None = None, actor_id: str | None = None
    ) -> list[FundAllocationRow]:
        """Move an item's held rows to ``refunded``. Runs inside the caller's transaction."""
        now = now or utc_now()
        rows = self.repo.get_rows_for_item(invoice_item_id)
        released = [r for r in rows if r.escrow_status == EscrowStatus.RELEASED.value]
        if released:
            raise ConflictError(
                f"Escrow for {released[0].quote_item_id} was already released to the supplier"
            )
        held = [r for r in rows if r.escrow_status == EscrowStatus.HELD.value]
        if not held:
            raise ConflictError(f"No held funds to refund for item {invoice_item_id}")
        for row in held:
            self._move_row(row, EscrowStatus.REFUNDED, CANCELLATION_TRIGGER, now, actor_id)
        return held

    def _move_row(
        self,
        row: FundAllocationRow,
        new_status: EscrowStatus,
        trigger: str,
        when: datetime,
        actor_id: str | None,
    ) -> None:
        old_status = str(row.escrow_status)
        if old_status != EscrowStatus.HELD.value:
            raise ConflictError(f"Escrow row {row.id} is already {old_status}")
        row.escrow_status = new_status.value  # type: ignore[assignment]
        row.release_trigger = trigger  # type: ignore[assignment]
        row.released_at = when  # type: ignore[assignment]
        self.repo.save_row(row)
        self.audit_service.log_status_change(
            "fund_allocation_row",
            row.id,  # type: ignore[arg-type]
            old_status=old_status,
            new_status=new_status.value,
            actor_type="user" if actor_id else "system",
            actor_id=actor_id,
            metadata={"trigger": trigger, "quote_item_id": row.quote_item_id},
        )
        if new_status == EscrowStatus.RELEASED:
            self._record_supplier_payment(row, trigger, when)

    def _record_supplier_payment(
        self, row: FundAllocationRow, trigger: str, when: datetime
    ) -> SupplierPayment | None:
        """Open the payout for a released row's supplier cost, once per row."""
        cost = round_money(row.supplier_cost)
        if cost <= ZERO:
            return None
        existing = self.supplier_payment_repo.get_by_row_id(row.id)  # type: ignore[arg-type]
        if existing:
            return existing

        allocation = self.repo.get_by_id(row.allocation_id)  # type: ignore[arg-type]
        if not allocation:
            raise NotFoundError(f"Fund allocation {row.allocation_id} not found")
        payment = self.payment_repo.get_by_id(allocation.payment_id)  # type: ignore[arg-type]
        supplier_payment = self.supplier_payment_repo.create(
            allocation_id=allocation.id,
            allocation_row_id=row.id,
            payment_id=allocation.payment_id,
            quote_id=allocation.quote_id,
            quote_item_id=row.quote_item_id,
            item_type=row.item_type,
            source=row.source,
            amount=cost,
            currency=payment.currency if payment else "USD",
            status=SupplierPaymentStatus.PENDING.value,
            release_trigger=trigger,
            released_at=when,
        )
        self.audit_service.log_create(
            "supplier_payment",
            supplier_payment.id,  # type: ignore[arg-type]
            data={"quote_item_id": row.quote_item_id, "amount": cost, "trigger": trigger},
        )
        return supplier_payment

    # -- supplier payouts ---------------------------------------------------

    def mark_supplier_payment_paid(
        self,
        supplier_payment_id: UUID,
        payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        transfer_reference: str | None = None,
        paid_at: datetime | None = None,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> SupplierPayment:
        """Record that a released supplier cost was paid out. A payout is paid once."""
        with entity_lock("supplier_payment", supplier_payment_id), transaction(self.db):
            supplier_payment = self.supplier_payment_repo.get_for_update(supplier_payment_id)
            if not supplier_payment:
                raise NotFoundError(f"Supplier payment {supplier_payment_id} not found")
            old_status = str(supplier_payment.status)
            if old_status != SupplierPaymentStatus.PENDING.value:
                raise ConflictError(
                    f"Supplier payment {supplier_payment_id} is already {old_status}"
                )

            supplier_payment.status = SupplierPaymentStatus.PAID.value  # type: ignore[assignment]
            supplier_payment.paid_at = paid_at or utc_now()  # type: ignore[assignment]
            supplier_payment.payment_method = payment_method.value  # type: ignore[assignment]
            supplier_payment.transfer_reference = transfer_reference  # type: ignore[assignment]
            if notes:
                supplier_payment.notes = notes  # type: ignore[assignment]
            self.supplier_payment_repo.save(supplier_payment)
            self.audit_service.log_status_change(
                "supplier_payment",
                supplier_payment.id,  # type: ignore[arg-type]
                old_status=old_status,
                new_status=SupplierPaymentStatus.PAID.value,
                actor_type="user" if actor_id else "system",
                actor_id=actor_id,
                metadata={"transfer_reference": transfer_reference},
            )

        self.db.refresh(supplier_payment)
        logger.info(
            "Supplier payment %s of %s for %s marked paid",
            supplier_payment.id,
            supplier_payment.amount,
            supplier_payment.quote_item_id,
        )
        return supplier_payment

    def get_supplier_payment(self, supplier_payment_id: UUID) -> SupplierPayment:
        supplier_payment = self.supplier_payment_repo.get_by_id(supplier_payment_id)
        if not supplier_payment:
            raise NotFoundError(f"Supplier payment {supplier_payment_id} not found")
        return supplier_payment

    def list_supplier_payments(
        self,
        skip: int = 0,
        limit: int = 100,
        status: SupplierPaymentStatus | None = None,
        quote_id: str | None = None,
    ) -> list[SupplierPayment]:
        return self.supplier_payment_repo.get_all(
            skip=skip, limit=limit, status=status, quote_id=quote_id
        )

    def release_due(self, now: datetime | None = None) -> list[FundAllocationRow]:
        """Release held rows whose travel date or cancellation deadline has passed."""
        now = now or utc_now()
        today = now.date()
        released: list[FundAllocationRow] = []
        for row, allocation in self.repo.get_held_rows():
            item = self.invoice_repo.get_item(row.invoice_item_id)  # type: ignore[arg-type]
            if not item:
                continue
            trigger = self._due_trigger(item, today)
            if trigger is None:
                continue
            with entity_lock("allocation", allocation.id), transaction(self.db):
                self._move_row(row, EscrowStatus.RELEASED, trigger.value, now, None)
            released.append(row)

        if released:
            logger.info("Escrow sweep released %d rows", len(released))
        return released

    @staticmethod
    def _due_trigger(item: InvoiceItem, today: date) -> ReleaseTrigger | None:
        if item.travel_date and item.travel_date < today:
            return ReleaseTrigger.TRAVEL_COMPLETED
        if item.cancellation_policy:
            policy = CancellationPolicy.model_validate(item.cancellation_policy)
            if policy.cancellation_deadline and policy.cancellation_deadline < today:
                return ReleaseTrigger.CANCELLATION_WINDOW_CLOSED
        return None

    # -- queries ------------------------------------------------------------

    def get_allocation(self, allocation_id: UUID) -> FundAllocation:
        allocation = self.repo.get_by_id(allocation_id)
        if not allocation:
            raise NotFoundError(f"Fund allocation {allocation_id} not found")
        return allocation

    def list_allocations(
        self,
        skip: int = 0,
        limit: int = 100,
        quote_id: str | None = None,
        invoice_id: UUID | None = None,
    ) -> list[FundAllocation]:
        return self.repo.get_all(skip=skip, limit=limit, quote_id=quote_id, invoice_id=invoice_id)

    def get_rows(self, allocation_id: UUID) -> list[FundAllocationRow]:
        return self.repo.get_rows(allocation_id)

    def escrow_summary(self, quote_id: str) -> EscrowSummary:
        rows = self.repo.get_rows_for_quote(quote_id)

        def total(status: EscrowStatus, attr: str = "client_paid") -> Decimal:
            return sum(
                (to_decimal(getattr(r, attr)) for r in rows if r.escrow_status == status.value),
                ZERO,
            )

        return EscrowSummary(
            quote_id=quote_id,
            held=total(EscrowStatus.HELD),
            released=total(EscrowStatus.RELEASED),
            refunded=total(EscrowStatus.REFUNDED),
            supplier_cost_held=total(EscrowStatus.HELD, "supplier_cost"),
            platform_fee_held=total(EscrowStatus.HELD, "platform_fee"),
            agent_commission_held=total(EscrowStatus.HELD, "agent_commission"),
        )

    def supplier_payments_due(self) -> list[SupplierPaymentDue]:
        return [
            SupplierPaymentDue(
                quote_id=str(allocation.quote_id),
                quote_item_id=str(row.quote_item_id),
                item_type=row.item_type,  # type: ignore[arg-type]
                source=row.source,  # type: ignore[arg-type]
                amount=to_decimal(row.supplier_cost),
            )
            for row, allocation in self.repo.get_held_rows()
            if to_decimal(row.supplier_cost) > ZERO
        ]
