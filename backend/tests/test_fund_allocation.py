"""Tests for FundAllocationEngine: payment events, per-item splits and escrow."""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from tests.conftest import confirmation, quote_acceptance, quote_item
from travelbooks.core.database import transaction
from travelbooks.core.errors import (
    ConflictError,
    ConsistencyError,
    ExternalGatewayError,
    NotFoundError,
    ValidationError,
)
from travelbooks.models.commission import CommissionStatus
from travelbooks.models.fund_allocation import EscrowStatus, ReleaseTrigger
from travelbooks.models.invoice import InvoiceStatus
from travelbooks.models.payment import PaymentMethod, PaymentStatus
from travelbooks.models.supplier_payment import SupplierPaymentStatus
from travelbooks.repositories.audit_log_repository import AuditLogRepository
from travelbooks.repositories.commission_repository import CommissionRepository
from travelbooks.repositories.fund_allocation_repository import FundAllocationRepository
from travelbooks.repositories.invoice_repository import InvoiceRepository
from travelbooks.repositories.payment_repository import PaymentRepository
from travelbooks.services.fund_allocation import FundAllocationEngine, split_proportionally
from travelbooks.services.invoice_ledger import InvoiceLedger


@pytest.fixture
def engine(db_session):
    return FundAllocationEngine(db_session)


@pytest.fixture
def invoice(db_session):
    """A hotel (600, supplier 450) and a flight (400, supplier 340) sold by an agent."""
    return InvoiceLedger(db_session).create_from_acceptance(
        quote_acceptance(
            items=[
                quote_item("QI-H", "600.00", "450.00", travel_date=date(2026, 1, 10)),
                quote_item("QI-F", "400.00", "340.00", item_type="flight"),
            ]
        )
    )


def rows_by_item(db_session, allocation):
    return {r.quote_item_id: r for r in FundAllocationRepository(db_session).get_rows(allocation.id)}


class TestSplitProportionally:
    def test_even_split_absorbs_rounding_in_last(self):
        shares = split_proportionally(
            Decimal("1000.00"), [Decimal("1"), Decimal("1"), Decimal("1")]
        )
        assert shares == [Decimal("333.33"), Decimal("333.33"), Decimal("333.34")]
        assert sum(shares) == Decimal("1000.00")

    def test_zero_weight_gets_nothing(self):
        shares = split_proportionally(Decimal("50.00"), [Decimal("10"), Decimal("0")])
        assert shares == [Decimal("50.00"), Decimal("0")]

    def test_all_zero_weights(self):
        assert split_proportionally(Decimal("5"), [Decimal("0"), Decimal("0")]) == [
            Decimal("0"),
            Decimal("0"),
        ]


class TestAllocation:
    def test_full_payment_split_per_item(self, db_session, engine, invoice):
        application = engine.apply_payment_confirmation(confirmation(invoice.id, "1000.00"))
        rows = rows_by_item(db_session, application.allocation)

        hotel, flight = rows["QI-H"], rows["QI-F"]
        assert hotel.client_paid == Decimal("600.00")
        assert hotel.supplier_cost == Decimal("450.00")
        assert hotel.agent_commission == Decimal("72.00")
        assert hotel.platform_fee == Decimal("78.00")
        assert hotel.commission_rate == Decimal("12")
        assert flight.client_paid == Decimal("400.00")
        assert flight.agent_commission == Decimal("32.00")
        assert flight.platform_fee == Decimal("28.00")

    def test_rows_balance_and_sum_to_payment(self, db_session, engine, invoice):
        application = engine.apply_payment_confirmation(confirmation(invoice.id, "333.33"))
        rows = FundAllocationRepository(db_session).get_rows(application.allocation.id)
        for row in rows:
            assert row.client_paid == row.supplier_cost + row.platform_fee + row.agent_commission
            assert row.escrow_status == EscrowStatus.HELD.value
        assert sum(r.client_paid for r in rows) == Decimal("333.33")

    def test_partial_payment_scales_supplier_cost(self, db_session, engine, invoice):
        application = engine.apply_payment_confirmation(confirmation(invoice.id, "500.00"))
        rows = rows_by_item(db_session, application.allocation)
        assert rows["QI-H"].client_paid == Decimal("300.00")
        assert rows["QI-H"].supplier_cost == Decimal("225.00")
        assert rows["QI-H"].agent_commission == Decimal("36.00")
        assert rows["QI-F"].supplier_cost == Decimal("170.00")

    def test_no_agent_no_commission(self, db_session, engine):
        invoice = InvoiceLedger(db_session).create_from_acceptance(
            quote_acceptance(quote_id="Q-direct", agent_id=None)
        )
        application = engine.apply_payment_confirmation(confirmation(invoice.id, "1000.00"))
        row = FundAllocationRepository(db_session).get_rows(application.allocation.id)[0]
        assert row.agent_commission == Decimal("0")
        assert row.platform_fee == Decimal("200.00")
        assert application.commissions == []

    def test_escrow_release_date_from_travel_date(self, db_session, engine, invoice):
        application = engine.apply_payment_confirmation(confirmation(invoice.id, "1000.00"))
        rows = rows_by_item(db_session, application.allocation)
        assert rows["QI-H"].escrow_release_date.date() == date(2026, 1, 10)
        assert rows["QI-F"].escrow_release_date is None

    def test_negative_platform_fee_rolls_back(self, db_session, engine):
        """Supplier cost plus commission above the price aborts the whole payment."""
        invoice = InvoiceLedger(db_session).create_from_acceptance(
            quote_acceptance(quote_id="Q-thin", items=[quote_item("QI-1", "100.00", "95.00")])
        )
        with pytest.raises(ConsistencyError):
            engine.apply_payment_confirmation(confirmation(invoice.id, "100.00"))

        reloaded = InvoiceRepository(db_session).get_by_id(invoice.id)
        assert reloaded.paid_amount == Decimal("0")
        assert reloaded.status == InvoiceStatus.DRAFT.value
        assert PaymentRepository(db_session).get_by_intent_id("pi_0001") is None
        assert FundAllocationRepository(db_session).get_all(invoice_id=invoice.id) == []


class TestCommissionsFromPayments:
    def test_one_commission_per_item(self, db_session, engine, invoice):
        application = engine.apply_payment_confirmation(confirmation(invoice.id, "1000.00"))
        by_booking = {c.booking_id: c for c in application.commissions}
        assert by_booking["QI-H"].commission_amount == Decimal("72.00")
        assert by_booking["QI-H"].booking_amount == Decimal("600.00")
        assert by_booking["QI-F"].commission_amount == Decimal("32.00")
        assert all(c.status == CommissionStatus.PENDING.value for c in application.commissions)

    def test_second_payment_adds_no_commissions(self, db_session, engine, invoice):
        engine.apply_payment_confirmation(confirmation(invoice.id, "400.00", "pi_a"))
        engine.apply_payment_confirmation(confirmation(invoice.id, "600.00", "pi_b"))
        commissions = CommissionRepository(db_session).get_by_invoice_id(invoice.id)
        assert len(commissions) == 2


class TestPaymentEvents:
    def test_replay_is_idempotent(self, db_session, engine, invoice):
        first = engine.apply_payment_confirmation(confirmation(invoice.id, "400.00"))
        second = engine.apply_payment_confirmation(confirmation(invoice.id, "400.00"))

        assert second.replayed
        assert second.payment.id == first.payment.id
        assert second.allocation.id == first.allocation.id
        assert second.invoice.paid_amount == Decimal("400.00")
        assert len(PaymentRepository(db_session).get_by_invoice_id(invoice.id)) == 1

    def test_replay_with_different_amount_conflicts(self, engine, invoice):
        engine.apply_payment_confirmation(confirmation(invoice.id, "400.00"))
        with pytest.raises(ConflictError):
            engine.apply_payment_confirmation(confirmation(invoice.id, "401.00"))

    def test_failed_event_leaves_invoice_unchanged(self, db_session, engine, invoice):
        with pytest.raises(ExternalGatewayError):
            engine.apply_payment_confirmation(
                confirmation(
                    invoice.id,
                    "1000.00",
                    status=PaymentStatus.FAILED,
                    failure_reason="card_declined",
                )
            )
        reloaded = InvoiceRepository(db_session).get_by_id(invoice.id)
        assert reloaded.status == InvoiceStatus.DRAFT.value
        assert reloaded.paid_amount == Decimal("0")
        payment = PaymentRepository(db_session).get_by_intent_id("pi_0001")
        assert payment.status == PaymentStatus.FAILED.value
        assert payment.failure_reason == "card_declined"

    def test_failed_then_completed(self, engine, invoice):
        with pytest.raises(ExternalGatewayError):
            engine.apply_payment_confirmation(
                confirmation(invoice.id, "1000.00", status=PaymentStatus.FAILED)
            )
        application = engine.apply_payment_confirmation(confirmation(invoice.id, "1000.00"))
        assert not application.replayed
        assert application.invoice.status == InvoiceStatus.PAID.value

    def test_pending_event_only_recorded(self, db_session, engine, invoice):
        application = engine.apply_payment_confirmation(
            confirmation(invoice.id, "1000.00", status=PaymentStatus.PENDING)
        )
        assert application.allocation is None
        assert application.payment.status == PaymentStatus.PENDING.value
        assert InvoiceRepository(db_session).get_by_id(invoice.id).paid_amount == Decimal("0")

    def test_pending_then_completed(self, engine, invoice):
        engine.apply_payment_confirmation(
            confirmation(invoice.id, "1000.00", status=PaymentStatus.PROCESSING)
        )
        application = engine.apply_payment_confirmation(confirmation(invoice.id, "1000.00"))
        assert application.allocation is not None
        assert application.invoice.paid_amount == Decimal("1000.00")

    def test_refunded_event_rejected(self, engine, invoice):
        with pytest.raises(ValidationError):
            engine.apply_payment_confirmation(
                confirmation(invoice.id, "10.00", status=PaymentStatus.REFUNDED)
            )

    def test_unknown_invoice(self, engine):
        with pytest.raises(NotFoundError):
            engine.apply_payment_confirmation(confirmation(uuid4(), "10.00"))

    def test_non_positive_amount_rejected(self, engine, invoice):
        with pytest.raises(ValidationError):
            engine.apply_payment_confirmation(confirmation(invoice.id, "0"))


class TestEscrow:
    @pytest.fixture
    def allocation(self, engine, invoice):
        return engine.apply_payment_confirmation(confirmation(invoice.id, "1000.00")).allocation

    def test_release_all_rows(self, db_session, engine, allocation):
        engine.release(allocation.id, ReleaseTrigger.BOOKING_CONFIRMED)
        rows = FundAllocationRepository(db_session).get_rows(allocation.id)
        assert {r.escrow_status for r in rows} == {EscrowStatus.RELEASED.value}
        assert {r.release_trigger for r in rows} == {"booking_confirmed"}
        assert all(r.released_at is not None for r in rows)

    def test_release_twice_conflicts(self, engine, allocation):
        engine.release(allocation.id, ReleaseTrigger.MANUAL)
        with pytest.raises(ConflictError):
            engine.release(allocation.id, ReleaseTrigger.MANUAL)

    def test_release_one_item(self, db_session, engine, allocation):
        engine.release(allocation.id, ReleaseTrigger.MANUAL, quote_item_id="QI-F")
        rows = rows_by_item(db_session, allocation)
        assert rows["QI-F"].escrow_status == EscrowStatus.RELEASED.value
        assert rows["QI-H"].escrow_status == EscrowStatus.HELD.value

        with pytest.raises(ConflictError):
            engine.release(allocation.id, ReleaseTrigger.MANUAL, quote_item_id="QI-F")

    def test_release_unknown_item(self, engine, allocation):
        with pytest.raises(NotFoundError):
            engine.release(allocation.id, ReleaseTrigger.MANUAL, quote_item_id="QI-X")

    def test_escrow_summary(self, engine, allocation):
        engine.release(allocation.id, ReleaseTrigger.MANUAL, quote_item_id="QI-F")
        summary = engine.escrow_summary("Q-1001")
        assert summary.held == Decimal("600.00")
        assert summary.released == Decimal("400.00")
        assert summary.refunded == Decimal("0")
        assert summary.supplier_cost_held == Decimal("450.00")
        assert summary.agent_commission_held == Decimal("72.00")

    def test_supplier_payments_due(self, engine, allocation):
        due = engine.supplier_payments_due()
        assert {d.quote_item_id: d.amount for d in due} == {
            "QI-H": Decimal("450.00"),
            "QI-F": Decimal("340.00"),
        }

    def test_release_due_after_travel(self, db_session, engine, allocation):
        released = engine.release_due(datetime(2026, 1, 11, 8, 0, tzinfo=UTC))
        assert [r.quote_item_id for r in released] == ["QI-H"]
        assert released[0].release_trigger == ReleaseTrigger.TRAVEL_COMPLETED.value

    def test_release_due_after_cancellation_deadline(self, db_session, engine):
        invoice = InvoiceLedger(db_session).create_from_acceptance(
            quote_acceptance(
                quote_id="Q-deadline",
                items=[
                    quote_item(
                        "QI-D",
                        "500.00",
                        "400.00",
                        travel_date=date(2026, 3, 1),
                        cancellation_policy={"cancellation_deadline": "2026-01-05"},
                    )
                ],
            )
        )
        engine.apply_payment_confirmation(confirmation(invoice.id, "500.00", "pi_d"))
        released = engine.release_due(datetime(2026, 1, 6, tzinfo=UTC))
        assert len(released) == 1
        assert released[0].release_trigger == ReleaseTrigger.CANCELLATION_WINDOW_CLOSED.value

    def test_release_due_leaves_future_trips(self, engine, allocation):
        assert engine.release_due(datetime(2026, 1, 9, tzinfo=UTC)) == []


class TestSupplierPayments:
    @pytest.fixture
    def allocation(self, engine, invoice):
        return engine.apply_payment_confirmation(confirmation(invoice.id, "1000.00")).allocation

    def test_held_escrow_opens_no_payout(self, engine, allocation):
        assert engine.list_supplier_payments() == []

    def test_release_opens_one_payout_per_row(self, db_session, engine, allocation):
        engine.release(allocation.id, ReleaseTrigger.BOOKING_CONFIRMED)
        payouts = {p.quote_item_id: p for p in engine.list_supplier_payments()}
        assert set(payouts) == {"QI-H", "QI-F"}

        hotel = payouts["QI-H"]
        rows = rows_by_item(db_session, allocation)
        assert hotel.amount == Decimal("450.00")
        assert hotel.currency == "USD"
        assert hotel.status == SupplierPaymentStatus.PENDING.value
        assert hotel.allocation_id == allocation.id
        assert hotel.allocation_row_id == rows["QI-H"].id
        assert hotel.payment_id == allocation.payment_id
        assert hotel.release_trigger == "booking_confirmed"
        assert hotel.released_at is not None
        assert hotel.paid_at is None

    def test_released_payouts_leave_held_cost_due(self, engine, allocation):
        engine.release(allocation.id, ReleaseTrigger.MANUAL, quote_item_id="QI-F")
        assert [p.quote_item_id for p in engine.list_supplier_payments()] == ["QI-F"]
        assert [d.quote_item_id for d in engine.supplier_payments_due()] == ["QI-H"]

    def test_sweep_opens_payout(self, engine, allocation):
        engine.release_due(datetime(2026, 1, 11, 8, 0, tzinfo=UTC))
        payouts = engine.list_supplier_payments(status=SupplierPaymentStatus.PENDING)
        assert [(p.quote_item_id, p.release_trigger) for p in payouts] == [
            ("QI-H", ReleaseTrigger.TRAVEL_COMPLETED.value)
        ]

    def test_refunded_escrow_opens_no_payout(self, db_session, engine, allocation):
        item = InvoiceRepository(db_session).get_item_by_quote_item_id("QI-F")
        with transaction(db_session):
            engine.mark_refunded(item.id)
        assert engine.list_supplier_payments() == []

    def test_mark_paid_once(self, db_session, engine, allocation):
        engine.release(allocation.id, ReleaseTrigger.MANUAL, quote_item_id="QI-H")
        payout = engine.list_supplier_payments()[0]
        paid_at = datetime(2026, 1, 15, 9, 30, tzinfo=UTC)

        paid = engine.mark_supplier_payment_paid(
            payout.id,
            PaymentMethod.BANK_TRANSFER,
            transfer_reference="TRF-2026-0115",
            paid_at=paid_at,
            actor_id="finance-1",
        )
        assert paid.status == SupplierPaymentStatus.PAID.value
        assert paid.transfer_reference == "TRF-2026-0115"
        assert paid.payment_method == "bank_transfer"
        assert paid.paid_at.replace(tzinfo=UTC) == paid_at

        with pytest.raises(ConflictError, match="already paid"):
            engine.mark_supplier_payment_paid(payout.id, transfer_reference="TRF-dup")
        assert engine.get_supplier_payment(payout.id).transfer_reference == "TRF-2026-0115"
        assert engine.list_supplier_payments(status=SupplierPaymentStatus.PENDING) == []

    def test_mark_paid_is_audited(self, db_session, engine, allocation):
        engine.release(allocation.id, ReleaseTrigger.MANUAL, quote_item_id="QI-F")
        payout = engine.list_supplier_payments()[0]
        engine.mark_supplier_payment_paid(payout.id, actor_id="finance-1")

        logs = AuditLogRepository(db_session).get_by_resource("supplier_payment", payout.id)
        assert sorted(log.action for log in logs) == ["created", "status_changed"]
        changed = next(log for log in logs if log.action == "status_changed")
        assert changed.changes["status"] == {"old": "pending", "new": "paid"}
        assert changed.actor_id == "finance-1"

    def test_unknown_payout(self, engine):
        with pytest.raises(NotFoundError):
            engine.mark_supplier_payment_paid(uuid4())
