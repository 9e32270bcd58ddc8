"""Commission lifecycle: earn, approve, pay, dispute, claw back."""

import logging
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.core.database import transaction
from travelbooks.core.errors import ConflictError, NotFoundError, ValidationError
from travelbooks.core.locks import entity_lock
from travelbooks.core.money import ZERO, round_money, safe_ratio, to_decimal
from travelbooks.models.commission import Commission, CommissionStatus
from travelbooks.models.invoice import Invoice, InvoiceItem
from travelbooks.models.payment import PaymentMethod
from travelbooks.models.shared import utc_now
from travelbooks.repositories.commission_repository import CommissionRepository
from travelbooks.schemas.commission import AgentCommissionSummary
from travelbooks.services.audit_service import AuditService
from travelbooks.services.commission_calculator import CommissionCalculator
from travelbooks.services.commission_rules import ResolvedRate
from travelbooks.services.policy import PolicyProvider, SettingsPolicyProvider

logger = logging.getLogger(__name__)

COMMISSION_TRANSITIONS: dict[str, frozenset[str]] = {
    CommissionStatus.PENDING.value: frozenset(
        {
            CommissionStatus.APPROVED.value,
            CommissionStatus.PAID.value,
            CommissionStatus.DISPUTED.value,
        }
    ),
    CommissionStatus.APPROVED.value: frozenset(
        {CommissionStatus.PAID.value, CommissionStatus.DISPUTED.value}
    ),
    CommissionStatus.DISPUTED.value: frozenset({CommissionStatus.APPROVED.value}),
    CommissionStatus.PAID.value: frozenset(),
}


class CommissionService:
    def __init__(self, db: Session, policy: PolicyProvider | None = None):
        self.db = db
        self.policy = policy or SettingsPolicyProvider()
        self.repo = CommissionRepository(db)
        self.audit_service = AuditService(db)
        self.calculator = CommissionCalculator(self.policy)

    def create_for_booking(
        self,
        invoice: Invoice,
        item: InvoiceItem,
        booking_amount: Any,
        resolved: ResolvedRate,
        earned_at: datetime | None = None,
    ) -> Commission:
        """Record the commission earned on one invoice item.

        Idempotent per (invoice, quote item). Runs inside the caller's
        transaction.
        """
        if not invoice.agent_id:
            raise ValidationError(f"Invoice {invoice.invoice_number} has no selling agent")

        existing = self.repo.get_by_booking(invoice.id, item.quote_item_id)  # type: ignore[arg-type]
        if existing:
            return existing

        amount = self.calculator.calculate(booking_amount, resolved.rate, resolved.flat_fee)
        commission = self.repo.create(
            agent_id=invoice.agent_id,
            agent_name=invoice.agent_name,
            booking_id=item.quote_item_id,
            invoice_id=invoice.id,
            quote_id=invoice.quote_id,
            customer_id=invoice.customer_id,
            customer_name=invoice.customer_name,
            booking_amount=round_money(booking_amount),
            commission_rate=resolved.rate,
            flat_fee=resolved.flat_fee,
            commission_amount=amount,
            clawback_amount=ZERO,
            rate_source=resolved.source.value,
            status=CommissionStatus.PENDING.value,
            earned_at=earned_at or utc_now(),
        )
        self.audit_service.log_create(
            "commission",
            commission.id,  # type: ignore[arg-type]
            data={
                "agent_id": invoice.agent_id,
                "booking_id": item.quote_item_id,
                "commission_amount": amount,
                "rate": resolved.rate,
                "source": resolved.source.value,
            },
        )
        logger.info(
            "Commission %s earned by agent %s on %s (rate %s, source %s)",
            amount,
            invoice.agent_id,
            item.quote_item_id,
            resolved.rate,
            resolved.source.value,
        )
        return commission

    def get_commission(self, commission_id: UUID) -> Commission:
        commission = self.repo.get_by_id(commission_id)
        if not commission:
            raise NotFoundError(f"Commission {commission_id} not found")
        return commission

    def list_commissions(
        self,
        skip: int = 0,
        limit: int = 100,
        agent_id: str | None = None,
        status: CommissionStatus | None = None,
        invoice_id: UUID | None = None,
        quote_id: str | None = None,
    ) -> list[Commission]:
        return self.repo.get_all(
            skip=skip,
            limit=limit,
            agent_id=agent_id,
            status=status,
            invoice_id=invoice_id,
            quote_id=quote_id,
        )

    def approve(self, commission_id: UUID, actor_id: str | None = None) -> Commission:
        with entity_lock("commission", commission_id), transaction(self.db):
            commission = self._approve(commission_id, actor_id)
        self.db.refresh(commission)
        return commission

    def mark_paid(
        self,
        commission_id: UUID,
        payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        actor_id: str | None = None,
    ) -> Commission:
        with entity_lock("commission", commission_id), transaction(self.db):
            commission = self._mark_paid(commission_id, payment_method, actor_id)
        self.db.refresh(commission)
        return commission

    def dispute(
        self, commission_id: UUID, reason: str, actor_id: str | None = None
    ) -> Commission:
        with entity_lock("commission", commission_id), transaction(self.db):
            commission = self._get_for_update(commission_id)
            self.mark_disputed(commission, reason, actor_id)
        self.db.refresh(commission)
        return commission

    def bulk_approve(
        self, commission_ids: Sequence[UUID], actor_id: str | None = None
    ) -> list[Commission]:
        """Approve every commission or none of them."""
        with transaction(self.db):
            approved = [self._approve(cid, actor_id) for cid in commission_ids]
        for commission in approved:
            self.db.refresh(commission)
        return approved

    def bulk_pay(
        self,
        commission_ids: Sequence[UUID],
        payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        actor_id: str | None = None,
    ) -> list[Commission]:
        """Pay every commission or none of them."""
        with transaction(self.db):
            paid = [self._mark_paid(cid, payment_method, actor_id) for cid in commission_ids]
        for commission in paid:
            self.db.refresh(commission)
        return paid

    def mark_disputed(
        self, commission: Commission, reason: str, actor_id: str | None = None
    ) -> Commission:
        """Flag a commission for review. Runs inside the caller's transaction."""
        self._transition(commission, CommissionStatus.DISPUTED, actor_id)
        commission.notes = reason  # type: ignore[assignment]
        self.repo.save(commission)
        logger.warning("Commission %s disputed: %s", commission.id, reason)
        return commission

    def record_clawback(
        self,
        commission: Commission,
        amount: Any,
        reason: str,
        actor_id: str | None = None,
    ) -> Commission:
        """Hold a clawback reported by a cancellation until it is applied.

        Runs inside the caller's transaction. Only a paid commission owes a
        clawback, and each commission owes at most one.
        """
        amount = round_money(amount)
        if amount <= ZERO:
            raise ValidationError("Clawback amount must be positive")
        if commission.status != CommissionStatus.PAID.value:
            raise ConflictError(
                f"Commission {commission.id} is {commission.status}; only paid commissions "
                "are clawed back"
            )
        if to_decimal(commission.pending_clawback) > ZERO or commission.clawback_applied_at:
            raise ConflictError(f"A clawback was already recorded on commission {commission.id}")
        if amount > to_decimal(commission.commission_amount):
            raise ConflictError(
                f"Clawback {amount} exceeds commission {commission.commission_amount} "
                f"on {commission.id}"
            )

        commission.pending_clawback = amount  # type: ignore[assignment]
        self.repo.save(commission)
        self.audit_service.log_action(
            "commission",
            commission.id,  # type: ignore[arg-type]
            action="clawback_recorded",
            changes={"amount": amount, "booking_id": commission.booking_id, "reason": reason},
            actor_type="user" if actor_id else "system",
            actor_id=actor_id,
        )
        return commission

    def apply_clawback(
        self,
        commission_id: UUID,
        reason: str,
        amount: Any = None,
        actor_id: str | None = None,
    ) -> Commission:
        """Apply the clawback recorded by the booking's cancellation, exactly once.

        ``amount``, when given, must match the recorded clawback.
        """
        if not reason:
            raise ValidationError("A clawback needs a reason")

        with entity_lock("commission", commission_id), transaction(self.db):
            commission = self._get_for_update(commission_id)
            if commission.status != CommissionStatus.PAID.value:
                raise ConflictError(
                    f"Commission {commission.id} is {commission.status}; only paid "
                    "commissions are clawed back"
                )
            if commission.clawback_applied_at:
                raise ConflictError(
                    f"Clawback on {commission.booking_id} was already applied to "
                    f"commission {commission.id}"
                )
            pending = round_money(commission.pending_clawback)
            if pending <= ZERO:
                raise ConflictError(f"No clawback is pending on commission {commission.id}")
            if amount is not None and round_money(amount) != pending:
                raise ConflictError(
                    f"Clawback {round_money(amount)} does not match the {pending} recorded "
                    f"for {commission.booking_id}"
                )

            current = to_decimal(commission.commission_amount)
            commission.commission_amount = current - pending  # type: ignore[assignment]
            commission.clawback_amount = (  # type: ignore[assignment]
                to_decimal(commission.clawback_amount) + pending
            )
            commission.pending_clawback = ZERO  # type: ignore[assignment]
            commission.clawback_applied_at = utc_now()  # type: ignore[assignment]
            self.repo.save(commission)
            self.audit_service.log_action(
                "commission",
                commission.id,  # type: ignore[arg-type]
                action="clawback_applied",
                changes={
                    "amount": pending,
                    "booking_id": commission.booking_id,
                    "reason": reason,
                    "commission_amount": {"old": str(current), "new": str(current - pending)},
                },
                actor_type="user" if actor_id else "system",
                actor_id=actor_id,
            )

        self.db.refresh(commission)
        logger.info("Clawed back %s from commission %s: %s", pending, commission.id, reason)
        return commission

    def agent_summary(self, agent_id: str) -> AgentCommissionSummary:
        commissions = self.repo.snapshot(agent_id)
        earned = sum((to_decimal(c.commission_amount) for c in commissions), ZERO)
        paid = sum(
            (
                to_decimal(c.commission_amount)
                for c in commissions
                if c.status == CommissionStatus.PAID.value
            ),
            ZERO,
        )
        pending = sum(
            (
                to_decimal(c.commission_amount)
                for c in commissions
                if c.status in (CommissionStatus.PENDING.value, CommissionStatus.APPROVED.value)
            ),
            ZERO,
        )
        clawed_back = sum((to_decimal(c.clawback_amount) for c in commissions), ZERO)
        return AgentCommissionSummary(
            agent_id=agent_id,
            total_earned=round_money(earned),
            total_paid=round_money(paid),
            total_pending=round_money(pending),
            total_clawed_back=round_money(clawed_back),
            average_rate=average_rate(commissions),
            total_bookings=len(commissions),
        )

    def _approve(self, commission_id: UUID, actor_id: str | None) -> Commission:
        commission = self._get_for_update(commission_id)
        self._transition(commission, CommissionStatus.APPROVED, actor_id)
        commission.approved_at = utc_now()  # type: ignore[assignment]
        return self.repo.save(commission)

    def _mark_paid(
        self, commission_id: UUID, payment_method: PaymentMethod, actor_id: str | None
    ) -> Commission:
        commission = self._get_for_update(commission_id)
        self._transition(commission, CommissionStatus.PAID, actor_id)
        commission.paid_at = utc_now()  # type: ignore[assignment]
        commission.payment_method = payment_method.value  # type: ignore[assignment]
        return self.repo.save(commission)

    def _get_for_update(self, commission_id: UUID) -> Commission:
        commission = self.repo.get_for_update(commission_id)
        if not commission:
            raise NotFoundError(f"Commission {commission_id} not found")
        return commission

    def _transition(
        self, commission: Commission, new_status: CommissionStatus, actor_id: str | None
    ) -> None:
        old_status = str(commission.status)
        if new_status.value not in COMMISSION_TRANSITIONS.get(old_status, frozenset()):
            raise ConflictError(
                f"Commission {commission.id} cannot move from {old_status} to {new_status.value}"
            )
        self.calculator.validate_rate(commission.commission_rate)
        commission.status = new_status.value  # type: ignore[assignment]
        self.audit_service.log_status_change(
            "commission",
            commission.id,  # type: ignore[arg-type]
            old_status=old_status,
            new_status=new_status.value,
            actor_type="user" if actor_id else "system",
            actor_id=actor_id,
        )


def average_rate(commissions: Sequence[Commission]) -> Decimal:
    rate_total = sum((to_decimal(c.commission_rate) for c in commissions), ZERO)
    return round_money(safe_ratio(rate_total, len(commissions)))
