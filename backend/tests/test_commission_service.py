"""Tests for the commission lifecycle."""

from decimal import Decimal
from uuid import uuid4

import pytest

from tests.conftest import AGENT_ID, confirmation, quote_acceptance, quote_item
from travelbooks.core.database import transaction
from travelbooks.core.errors import ConflictError, NotFoundError, ValidationError
from travelbooks.models.commission import CommissionStatus
from travelbooks.models.payment import PaymentMethod
from travelbooks.repositories.audit_log_repository import AuditLogRepository
from travelbooks.repositories.commission_repository import CommissionRepository
from travelbooks.services.commission_service import CommissionService
from travelbooks.services.fund_allocation import FundAllocationEngine
from travelbooks.services.invoice_ledger import InvoiceLedger


@pytest.fixture
def service(db_session):
    return CommissionService(db_session)


@pytest.fixture
def commissions(db_session):
    """A paid hotel (1000.00) and flight (500.00) sold by one agent."""
    invoice = InvoiceLedger(db_session).create_from_acceptance(
        quote_acceptance(
            items=[
                quote_item("QI-H", "1000.00", "850.00"),
                quote_item("QI-F", "500.00", "450.00", item_type="flight"),
            ]
        )
    )
    application = FundAllocationEngine(db_session).apply_payment_confirmation(
        confirmation(invoice.id, "1500.00")
    )
    return {c.booking_id: c for c in application.commissions}


class TestEarnedCommissions:
    def test_one_commission_per_booking(self, commissions):
        assert set(commissions) == {"QI-H", "QI-F"}
        assert commissions["QI-H"].commission_amount == Decimal("120.00")
        assert commissions["QI-F"].commission_amount == Decimal("40.00")
        assert {c.status for c in commissions.values()} == {CommissionStatus.PENDING.value}

    def test_booking_amount_and_rate_recorded(self, commissions):
        hotel = commissions["QI-H"]
        assert hotel.booking_amount == Decimal("1000.00")
        assert hotel.commission_rate == Decimal("12")
        assert hotel.rate_source == "type_default"
        assert hotel.agent_id == AGENT_ID

    def test_creation_is_audited(self, db_session, commissions):
        logs = AuditLogRepository(db_session).get_by_resource("commission", commissions["QI-H"].id)
        assert [log.action for log in logs] == ["created"]


class TestTransitions:
    def test_approve_then_pay(self, service, commissions):
        approved = service.approve(commissions["QI-H"].id)
        assert approved.status == CommissionStatus.APPROVED.value
        assert approved.approved_at is not None

        paid = service.mark_paid(approved.id, PaymentMethod.CASH)
        assert paid.status == CommissionStatus.PAID.value
        assert paid.payment_method == "cash"
        assert paid.paid_at is not None

    def test_paid_is_terminal(self, service, commissions):
        service.mark_paid(commissions["QI-H"].id)
        with pytest.raises(ConflictError):
            service.approve(commissions["QI-H"].id)
        with pytest.raises(ConflictError):
            service.dispute(commissions["QI-H"].id, "late cancellation")

    def test_disputed_can_be_approved_again(self, service, commissions):
        disputed = service.dispute(commissions["QI-F"].id, "fare mismatch")
        assert disputed.status == CommissionStatus.DISPUTED.value
        assert disputed.notes == "fare mismatch"

        approved = service.approve(disputed.id)
        assert approved.status == CommissionStatus.APPROVED.value

    def test_disputed_cannot_be_paid(self, service, commissions):
        service.dispute(commissions["QI-F"].id, "fare mismatch")
        with pytest.raises(ConflictError):
            service.mark_paid(commissions["QI-F"].id)

    def test_unknown_commission(self, service):
        with pytest.raises(NotFoundError):
            service.approve(uuid4())

    def test_transitions_are_audited(self, db_session, service, commissions):
        service.approve(commissions["QI-H"].id, actor_id="finance-1")
        logs = AuditLogRepository(db_session).get_by_resource("commission", commissions["QI-H"].id)
        changed = [log for log in logs if log.action == "status_changed"]
        assert len(changed) == 1
        assert changed[0].actor_id == "finance-1"
        assert changed[0].changes["status"] == {"old": "pending", "new": "approved"}


class TestBulkOperations:
    def test_bulk_approve(self, service, commissions):
        ids = [c.id for c in commissions.values()]
        approved = service.bulk_approve(ids)
        assert {c.status for c in approved} == {CommissionStatus.APPROVED.value}

    def test_bulk_approve_is_all_or_nothing(self, db_session, service, commissions):
        hotel, flight = commissions["QI-H"], commissions["QI-F"]
        service.mark_paid(flight.id)
        with pytest.raises(ConflictError):
            service.bulk_approve([hotel.id, flight.id])

        refreshed = CommissionRepository(db_session).get_by_id(hotel.id)
        assert refreshed.status == CommissionStatus.PENDING.value

    def test_bulk_pay(self, service, commissions):
        paid = service.bulk_pay([c.id for c in commissions.values()], PaymentMethod.BANK_TRANSFER)
        assert {c.status for c in paid} == {CommissionStatus.PAID.value}

    def test_bulk_pay_unknown_id_rolls_back(self, db_session, service, commissions):
        with pytest.raises(NotFoundError):
            service.bulk_pay([commissions["QI-H"].id, uuid4()])
        refreshed = CommissionRepository(db_session).get_by_id(commissions["QI-H"].id)
        assert refreshed.status == CommissionStatus.PENDING.value


def record_clawback(db_session, service, commission_id, amount):
    commission = CommissionRepository(db_session).get_by_id(commission_id)
    with transaction(db_session):
        service.record_clawback(commission, amount, "Booking cancelled")
    return commission


class TestClawback:
    def test_clawback_reduces_commission(self, db_session, service, commissions):
        hotel = service.mark_paid(commissions["QI-H"].id)
        record_clawback(db_session, service, hotel.id, Decimal("60.00"))

        clawed = service.apply_clawback(hotel.id, "50% refund")
        assert clawed.commission_amount == Decimal("60.00")
        assert clawed.clawback_amount == Decimal("60.00")
        assert clawed.pending_clawback == Decimal("0")
        assert clawed.clawback_applied_at is not None

        logs = AuditLogRepository(db_session).get_by_resource("commission", hotel.id)
        actions = [log.action for log in logs]
        assert "clawback_recorded" in actions
        clawbacks = [log for log in logs if log.action == "clawback_applied"]
        assert clawbacks[0].changes["amount"] == "60.00"
        assert clawbacks[0].changes["booking_id"] == "QI-H"

    def test_retry_does_not_claw_back_twice(self, db_session, service, commissions):
        hotel = service.mark_paid(commissions["QI-H"].id)
        record_clawback(db_session, service, hotel.id, Decimal("60.00"))
        service.apply_clawback(hotel.id, "50% refund", amount=Decimal("60.00"))

        with pytest.raises(ConflictError, match="already applied"):
            service.apply_clawback(hotel.id, "50% refund", amount=Decimal("60.00"))

        refreshed = CommissionRepository(db_session).get_by_id(hotel.id)
        assert refreshed.commission_amount == Decimal("60.00")
        assert refreshed.clawback_amount == Decimal("60.00")

    def test_nothing_recorded_nothing_to_apply(self, service, commissions):
        hotel = service.mark_paid(commissions["QI-H"].id)
        with pytest.raises(ConflictError, match="No clawback is pending"):
            service.apply_clawback(hotel.id, "goodwill")

    def test_amount_must_match_recorded_clawback(self, db_session, service, commissions):
        hotel = service.mark_paid(commissions["QI-H"].id)
        record_clawback(db_session, service, hotel.id, Decimal("60.00"))
        with pytest.raises(ConflictError, match="does not match"):
            service.apply_clawback(hotel.id, "50% refund", amount=Decimal("30.00"))
        refreshed = CommissionRepository(db_session).get_by_id(hotel.id)
        assert refreshed.commission_amount == Decimal("120.00")
        assert refreshed.pending_clawback == Decimal("60.00")

    @pytest.mark.parametrize("approve", [False, True])
    def test_unpaid_commission_cannot_be_clawed_back(self, service, commissions, approve):
        commission_id = commissions["QI-F"].id
        if approve:
            service.approve(commission_id)
        with pytest.raises(ConflictError, match="only paid"):
            service.apply_clawback(commission_id, "refund")

    def test_record_requires_paid_commission(self, db_session, service, commissions):
        with pytest.raises(ConflictError):
            record_clawback(db_session, service, commissions["QI-F"].id, Decimal("10"))

    def test_record_once_per_commission(self, db_session, service, commissions):
        flight = service.mark_paid(commissions["QI-F"].id)
        record_clawback(db_session, service, flight.id, Decimal("20"))
        with pytest.raises(ConflictError, match="already recorded"):
            record_clawback(db_session, service, flight.id, Decimal("20"))

    def test_record_over_amount_rejected(self, db_session, service, commissions):
        flight = service.mark_paid(commissions["QI-F"].id)
        with pytest.raises(ConflictError):
            record_clawback(db_session, service, flight.id, Decimal("40.01"))

    def test_record_must_be_positive(self, db_session, service, commissions):
        flight = service.mark_paid(commissions["QI-F"].id)
        with pytest.raises(ValidationError):
            record_clawback(db_session, service, flight.id, Decimal("0"))

    def test_clawback_needs_reason(self, service, commissions):
        with pytest.raises(ValidationError):
            service.apply_clawback(commissions["QI-F"].id, "")


class TestAgentSummary:
    def test_summary_totals(self, db_session, service, commissions):
        service.mark_paid(commissions["QI-H"].id)
        record_clawback(db_session, service, commissions["QI-H"].id, Decimal("20"))
        service.apply_clawback(commissions["QI-H"].id, "partial refund")

        summary = service.agent_summary(AGENT_ID)
        assert summary.total_bookings == 2
        assert summary.total_earned == Decimal("140.00")
        assert summary.total_paid == Decimal("100.00")
        assert summary.total_pending == Decimal("40.00")
        assert summary.total_clawed_back == Decimal("20.00")
        assert summary.average_rate == Decimal("10.00")

    def test_unknown_agent(self, service):
        summary = service.agent_summary("nobody")
        assert summary.total_bookings == 0
        assert summary.total_earned == Decimal("0")
        assert summary.average_rate == Decimal("0")
