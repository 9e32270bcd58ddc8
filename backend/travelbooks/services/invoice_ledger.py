"""Invoice ledger: invoices from accepted quotes, payments against them, status."""

import logging
from collections.abc import Sequence
from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.core.database import transaction
from travelbooks.core.errors import ConflictError, ConsistencyError, NotFoundError, ValidationError
from travelbooks.core.locks import entity_lock
from travelbooks.core.money import HUNDRED, ZERO, percent_of, round_money, to_decimal
from travelbooks.models.invoice import (
    INVOICE_TRANSITIONS,
    TERMINAL_INVOICE_STATUSES,
    Invoice,
    InvoiceStatus,
)
from travelbooks.models.payment import Payment, PaymentStatus
from travelbooks.models.shared import utc_now
from travelbooks.repositories.invoice_repository import InvoiceRepository
from travelbooks.repositories.payment_repository import PaymentRepository
from travelbooks.schemas.invoice import CustomerRef, QuoteAcceptance, QuoteItemInput
from travelbooks.services.audit_service import AuditService
from travelbooks.services.commission_calculator import CommissionCalculator
from travelbooks.services.policy import PolicyProvider, SettingsPolicyProvider

logger = logging.getLogger(__name__)


def _as_date(now: date | datetime) -> date:
    return now.date() if isinstance(now, datetime) else now


def is_overdue(invoice: Invoice, now: date | datetime) -> bool:
    """Derived on every read, never stored."""
    if invoice.status in TERMINAL_INVOICE_STATUSES:
        return False
    return _as_date(now) > invoice.due_date


class InvoiceLedger:
    def __init__(self, db: Session, policy: PolicyProvider | None = None):
        self.db = db
        self.policy = policy or SettingsPolicyProvider()
        self.invoice_repo = InvoiceRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.audit_service = AuditService(db)
        self.calculator = CommissionCalculator(self.policy)

    # -- creation -----------------------------------------------------------

    def create_from_acceptance(self, acceptance: QuoteAcceptance) -> Invoice:
        return self.create_invoice(
            quote_id=acceptance.quote_id,
            customer=acceptance.customer,
            items=acceptance.items,
            tax_rate=acceptance.tax_rate,
            terms=acceptance.terms,
            due_in_days=acceptance.due_in_days,
            discount_amount=acceptance.discount_amount,
            agent_id=acceptance.agent_id,
            agent_name=acceptance.agent_name,
            commission_override_rate=acceptance.commission_override_rate,
            notes=acceptance.notes,
            currency=acceptance.currency,
        )

    def create_invoice(
        self,
        quote_id: str,
        customer: CustomerRef,
        items: Sequence[QuoteItemInput],
        tax_rate: Any,
        terms: str | None = None,
        due_in_days: int | None = None,
        discount_amount: Any = ZERO,
        agent_id: str | None = None,
        agent_name: str | None = None,
        commission_override_rate: Any = None,
        notes: str | None = None,
        currency: str = "USD",
        issue_date: date | None = None,
    ) -> Invoice:
        """Build a draft invoice from the lines of an accepted quote."""
        tax_rate = to_decimal(tax_rate)
        discount_amount = round_money(discount_amount)
        self._validate_items(items)
        if tax_rate < ZERO or tax_rate > HUNDRED:
            raise ValidationError("Tax rate must be between 0 and 100")
        if discount_amount < ZERO:
            raise ValidationError("Discount must not be negative")
        if due_in_days is not None and due_in_days < 0:
            raise ValidationError("due_in_days must not be negative")
        if commission_override_rate is not None:
            commission_override_rate = self.calculator.validate_rate(commission_override_rate)

        line_totals = [round_money(to_decimal(i.quantity) * to_decimal(i.unit_price)) for i in items]
        subtotal = sum(line_totals, ZERO)
        if discount_amount > subtotal:
            raise ValidationError("Discount must not exceed the subtotal")
        taxable = subtotal - discount_amount
        tax_amount = round_money(percent_of(taxable, tax_rate))
        total = taxable + tax_amount

        issued = issue_date or utc_now().date()
        terms_days = due_in_days if due_in_days is not None else self.policy.payment_terms_days()

        with entity_lock("quote", quote_id), transaction(self.db):
            if self.invoice_repo.get_by_quote_id(quote_id):
                raise ConflictError(f"Quote {quote_id} has already been invoiced")

            invoice = self.invoice_repo.create(
                quote_id=quote_id,
                customer_id=customer.customer_id,
                customer_name=customer.customer_name,
                customer_email=customer.customer_email,
                agent_id=agent_id,
                agent_name=agent_name,
                commission_override_rate=commission_override_rate,
                status=InvoiceStatus.DRAFT.value,
                subtotal=subtotal,
                tax_rate=tax_rate,
                tax_amount=tax_amount,
                discount_amount=discount_amount,
                total=total,
                paid_amount=ZERO,
                remaining_amount=total,
                refunded_amount=ZERO,
                currency=currency,
                terms=terms,
                notes=notes,
                issue_date=issued,
                due_date=issued + timedelta(days=terms_days),
            )
            for position, (item, line_total) in enumerate(zip(items, line_totals, strict=True)):
                self.invoice_repo.add_item(
                    invoice.id,  # type: ignore[arg-type]
                    position,
                    quote_item_id=item.quote_item_id,
                    description=item.description,
                    item_type=item.item_type.value if item.item_type else None,
                    payment_source=item.payment_source.value if item.payment_source else None,
                    quantity=to_decimal(item.quantity),
                    unit_price=to_decimal(item.unit_price),
                    total=line_total,
                    supplier_cost=round_money(item.supplier_cost),
                    travel_date=item.travel_date,
                    cancellation_policy=(
                        item.cancellation_policy.model_dump(mode="json")
                        if item.cancellation_policy
                        else None
                    ),
                )
            self.check_invariants(invoice)
            self.audit_service.log_create(
                "invoice",
                invoice.id,  # type: ignore[arg-type]
                data={"quote_id": quote_id, "total": total, "invoice_number": invoice.invoice_number},
            )

        self.db.refresh(invoice)
        logger.info(
            "Created invoice %s for quote %s (total %s)", invoice.invoice_number, quote_id, total
        )
        return invoice

    @staticmethod
    def _validate_items(items: Sequence[QuoteItemInput]) -> None:
        if not items:
            raise ValidationError("An invoice needs at least one item")
        seen: set[str] = set()
        for item in items:
            if item.quote_item_id in seen:
                raise ValidationError(f"Quote item {item.quote_item_id} appears twice")
            seen.add(item.quote_item_id)
            if to_decimal(item.quantity) <= ZERO:
                raise ValidationError(f"Quantity for {item.quote_item_id} must be positive")
            if to_decimal(item.unit_price) < ZERO:
                raise ValidationError(f"Unit price for {item.quote_item_id} must not be negative")
            if to_decimal(item.supplier_cost) < ZERO:
                raise ValidationError(
                    f"Supplier cost for {item.quote_item_id} must not be negative"
                )

    # -- payments -----------------------------------------------------------

    def record_payment(self, invoice_id: UUID, payment: Payment) -> Invoice:
        """Apply a completed payment to the invoice.

        Runs inside the caller's transaction; the payment must already be
        flushed with status ``completed``.
        """
        with entity_lock("invoice", invoice_id):
            invoice = self._get_for_update(invoice_id)
            amount = to_decimal(payment.amount)

            if amount <= ZERO:
                raise ValidationError("Payment amount must be positive")
            if payment.status != PaymentStatus.COMPLETED.value:
                raise ValidationError("Only completed payments can be recorded")
            if payment.invoice_id != invoice.id:
                raise ValidationError("Payment belongs to a different invoice")
            if invoice.status == InvoiceStatus.CANCELLED.value:
                raise ConflictError(f"Invoice {invoice.invoice_number} is cancelled")
            if invoice.status == InvoiceStatus.PAID.value:
                raise ConflictError(f"Invoice {invoice.invoice_number} is already paid")

            total = to_decimal(invoice.total)
            paid = to_decimal(invoice.paid_amount) + amount
            overpaid = paid - total
            if overpaid > self.policy.payment_tolerance():
                raise ConflictError(
                    f"Payment of {amount} would overpay invoice {invoice.invoice_number} "
                    f"by {overpaid}"
                )

            invoice.paid_amount = paid  # type: ignore[assignment]
            invoice.remaining_amount = max(total - paid, ZERO)  # type: ignore[assignment]

            if invoice.remaining_amount <= ZERO:
                self._transition(invoice, InvoiceStatus.PAID)
                invoice.paid_at = utc_now()  # type: ignore[assignment]
            elif paid > ZERO:
                self._transition(invoice, InvoiceStatus.PARTIAL)

            self.invoice_repo.save(invoice)
            self.check_invariants(invoice)

        logger.info(
            "Recorded payment %s of %s on invoice %s (status %s)",
            payment.payment_intent_id,
            amount,
            invoice.invoice_number,
            invoice.status,
        )
        return invoice

    def check_invariants(self, invoice: Invoice) -> None:
        """Raise ConsistencyError if the invoice's stored figures disagree."""
        items = self.invoice_repo.get_items(invoice.id)  # type: ignore[arg-type]
        subtotal = sum((to_decimal(i.total) for i in items), ZERO)
        total = to_decimal(invoice.total)
        paid = to_decimal(invoice.paid_amount)
        remaining = to_decimal(invoice.remaining_amount)
        tolerance = self.policy.payment_tolerance()

        if items and subtotal != to_decimal(invoice.subtotal):
            raise ConsistencyError(f"Invoice {invoice.invoice_number}: subtotal != sum of items")
        expected_total = (
            to_decimal(invoice.subtotal)
            - to_decimal(invoice.discount_amount)
            + to_decimal(invoice.tax_amount)
        )
        if expected_total != total:
            raise ConsistencyError(
                f"Invoice {invoice.invoice_number}: total != subtotal - discount + tax"
            )
        if remaining < ZERO:
            raise ConsistencyError(f"Invoice {invoice.invoice_number}: negative remaining amount")
        if abs(paid + remaining - total) > tolerance:
            raise ConsistencyError(
                f"Invoice {invoice.invoice_number}: paid + remaining != total"
            )
        completed = self.payment_repo.sum_completed(invoice.id)  # type: ignore[arg-type]
        if completed != paid:
            raise ConsistencyError(
                f"Invoice {invoice.invoice_number}: paid amount {paid} != "
                f"completed payments {completed}"
            )

    # -- status transitions -------------------------------------------------

    def mark_as_sent(self, invoice_id: UUID, now: datetime | None = None) -> Invoice:
        now = now or utc_now()
        with entity_lock("invoice", invoice_id), transaction(self.db):
            invoice = self._get_for_update(invoice_id)
            if invoice.status in TERMINAL_INVOICE_STATUSES:
                raise ConflictError(
                    f"Cannot send invoice {invoice.invoice_number} in status {invoice.status}"
                )
            if invoice.status == InvoiceStatus.DRAFT.value:
                self._transition(invoice, InvoiceStatus.SENT)
            invoice.last_sent_at = now  # type: ignore[assignment]
            self.invoice_repo.save(invoice)

        self.db.refresh(invoice)
        logger.info("Invoice %s sent", invoice.invoice_number)
        return invoice

    def cancel(self, invoice_id: UUID, now: datetime | None = None) -> Invoice:
        now = now or utc_now()
        with entity_lock("invoice", invoice_id), transaction(self.db):
            invoice = self._get_for_update(invoice_id)
            self._transition(invoice, InvoiceStatus.CANCELLED)
            invoice.cancelled_at = now  # type: ignore[assignment]
            self.invoice_repo.save(invoice)

        self.db.refresh(invoice)
        logger.info("Invoice %s cancelled", invoice.invoice_number)
        return invoice

    def mark_overdue(self, invoice_id: UUID, now: date | datetime) -> Invoice:
        with entity_lock("invoice", invoice_id), transaction(self.db):
            invoice = self._get_for_update(invoice_id)
            if invoice.status == InvoiceStatus.OVERDUE.value:
                return invoice
            if not is_overdue(invoice, now):
                raise ConflictError(f"Invoice {invoice.invoice_number} is not past due")
            self._transition(invoice, InvoiceStatus.OVERDUE)
            self.invoice_repo.save(invoice)

        self.db.refresh(invoice)
        logger.info("Invoice %s marked overdue", invoice.invoice_number)
        return invoice

    def mark_all_overdue(self, now: date | datetime) -> list[Invoice]:
        """Move every past-due sent or partial invoice to ``overdue``."""
        marked = []
        for invoice in self.list_overdue(now):
            if invoice.status in (InvoiceStatus.SENT.value, InvoiceStatus.PARTIAL.value):
                marked.append(self.mark_overdue(invoice.id, now))  # type: ignore[arg-type]
        return marked

    def _transition(self, invoice: Invoice, new_status: InvoiceStatus) -> None:
        old_status = str(invoice.status)
        if old_status == new_status.value:
            return
        if new_status.value not in INVOICE_TRANSITIONS.get(old_status, frozenset()):
            raise ConflictError(
                f"Invoice {invoice.invoice_number} cannot move from {old_status} "
                f"to {new_status.value}"
            )
        invoice.status = new_status.value  # type: ignore[assignment]
        self.audit_service.log_status_change(
            "invoice",
            invoice.id,  # type: ignore[arg-type]
            old_status=old_status,
            new_status=new_status.value,
        )

    # -- queries ------------------------------------------------------------

    def _get_for_update(self, invoice_id: UUID) -> Invoice:
        invoice = self.invoice_repo.get_for_update(invoice_id)
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return invoice

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.invoice_repo.get_by_id(invoice_id)
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return invoice

    def list_invoices(
        self,
        skip: int = 0,
        limit: int = 100,
        status: InvoiceStatus | None = None,
        customer_id: str | None = None,
        quote_id: str | None = None,
    ) -> list[Invoice]:
        return self.invoice_repo.get_all(
            skip=skip, limit=limit, status=status, customer_id=customer_id, quote_id=quote_id
        )

    def list_overdue(self, now: date | datetime) -> list[Invoice]:
        return self.invoice_repo.get_unsettled_due_before(_as_date(now))

    def is_overdue(self, invoice: Invoice, now: date | datetime) -> bool:
        return is_overdue(invoice, now)
