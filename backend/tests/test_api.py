"""API tests for travelbooks."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from tests.conftest import AGENT_ID, confirmation, quote_acceptance, quote_item
from travelbooks.main import app
from travelbooks.models.payment import PaymentStatus


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


def create_invoice(client: TestClient, **kwargs) -> dict:
    response = client.post(
        "/v1/invoices/from-quote", json=quote_acceptance(**kwargs).model_dump(mode="json")
    )
    assert response.status_code == 201, response.text
    return response.json()


def post_confirmation(client: TestClient, invoice_id: str, amount: str, **kwargs):
    return client.post(
        "/v1/payments/confirmations",
        json=confirmation(invoice_id, amount, **kwargs).model_dump(mode="json"),
    )


class TestRoot:
    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["app"] == "travelbooks"


class TestInvoicesAPI:
    def test_create_from_quote(self, client: TestClient):
        data = create_invoice(client)
        assert data["status"] == "draft"
        assert data["quote_id"] == "Q-1001"
        assert Decimal(data["total"]) == Decimal("1000")
        assert Decimal(data["remaining_amount"]) == Decimal("1000")
        assert data["is_overdue"] is False

    def test_create_without_items_rejected(self, client: TestClient):
        payload = quote_acceptance().model_dump(mode="json")
        payload["items"] = []
        response = client.post("/v1/invoices/from-quote", json=payload)
        assert response.status_code == 422

    def test_duplicate_quote_conflict(self, client: TestClient):
        create_invoice(client)
        response = client.post(
            "/v1/invoices/from-quote", json=quote_acceptance().model_dump(mode="json")
        )
        assert response.status_code == 409
        assert response.json()["error"] == "ConflictError"

    def test_get_detail(self, client: TestClient):
        invoice = create_invoice(client)
        response = client.get(f"/v1/invoices/{invoice['id']}")
        assert response.status_code == 200
        data = response.json()
        assert [i["quote_item_id"] for i in data["items"]] == ["QI-1"]
        assert data["payments"] == []

    def test_get_unknown(self, client: TestClient):
        response = client.get(f"/v1/invoices/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_list_by_status(self, client: TestClient):
        invoice = create_invoice(client)
        client.post(f"/v1/invoices/{invoice['id']}/send")
        assert len(client.get("/v1/invoices/", params={"status": "sent"}).json()) == 1
        assert client.get("/v1/invoices/", params={"status": "paid"}).json() == []

    def test_send_and_cancel(self, client: TestClient):
        invoice = create_invoice(client)
        sent = client.post(f"/v1/invoices/{invoice['id']}/send")
        assert sent.json()["status"] == "sent"
        cancelled = client.post(f"/v1/invoices/{invoice['id']}/cancel")
        assert cancelled.json()["status"] == "cancelled"

    def test_manual_payment(self, client: TestClient):
        invoice = create_invoice(client)
        response = client.post(
            f"/v1/invoices/{invoice['id']}/payments",
            json={"payment_intent_id": "manual-1", "amount": "400.00", "method": "cash"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["invoice_status"] == "partial"
        assert Decimal(data["remaining_amount"]) == Decimal("600")
        assert data["payment"]["method"] == "cash"
        assert data["allocation_id"] is not None


class TestPaymentsAPI:
    def test_confirmation_and_replay(self, client: TestClient):
        invoice = create_invoice(client)
        first = post_confirmation(client, invoice["id"], "1000.00")
        assert first.status_code == 200
        assert first.json()["invoice_status"] == "paid"
        assert first.json()["replayed"] is False
        assert len(first.json()["commission_ids"]) == 1

        second = post_confirmation(client, invoice["id"], "1000.00")
        assert second.status_code == 200
        assert second.json()["replayed"] is True
        assert second.json()["payment"]["id"] == first.json()["payment"]["id"]

        payments = client.get("/v1/payments/", params={"invoice_id": invoice["id"]}).json()
        assert len(payments) == 1

    def test_replay_with_different_amount_conflicts(self, client: TestClient):
        invoice = create_invoice(client)
        post_confirmation(client, invoice["id"], "500.00")
        response = post_confirmation(client, invoice["id"], "600.00")
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "ConflictError"
        assert "pi_0001" in body["detail"]

    def test_failed_payment_is_a_gateway_error(self, client: TestClient):
        invoice = create_invoice(client)
        response = post_confirmation(
            client,
            invoice["id"],
            "1000.00",
            status=PaymentStatus.FAILED,
            failure_reason="card declined",
        )
        assert response.status_code == 502
        assert response.json()["error"] == "ExternalGatewayError"

        failed = client.get("/v1/payments/", params={"status": "failed"}).json()
        assert len(failed) == 1

    def test_get_payment_not_found(self, client: TestClient):
        response = client.get(f"/v1/payments/{uuid4()}")
        assert response.status_code == 404

    def test_queue_confirmation(self, client: TestClient):
        invoice = create_invoice(client)
        job = MagicMock()
        job.job_id = "payment:pi_async"
        with patch(
            "travelbooks.routers.payments.enqueue_payment_confirmation",
            new_callable=AsyncMock,
        ) as mock_enqueue:
            mock_enqueue.return_value = job
            response = client.post(
                "/v1/payments/confirmations/async",
                json=confirmation(invoice["id"], "10.00", "pi_async").model_dump(mode="json"),
            )

        assert response.status_code == 202
        assert response.json() == {
            "job_id": "payment:pi_async",
            "payment_intent_id": "pi_async",
            "queued": True,
        }
        mock_enqueue.assert_called_once()

    def test_queue_confirmation_already_queued(self, client: TestClient):
        invoice = create_invoice(client)
        with patch(
            "travelbooks.routers.payments.enqueue_payment_confirmation",
            new_callable=AsyncMock,
            return_value=None,
        ):
            response = client.post(
                "/v1/payments/confirmations/async",
                json=confirmation(invoice["id"], "10.00").model_dump(mode="json"),
            )
        assert response.status_code == 202
        assert response.json()["queued"] is False


class TestFundAllocationsAPI:
    def test_escrow_summary_and_release(self, client: TestClient):
        invoice = create_invoice(client)
        application = post_confirmation(client, invoice["id"], "1000.00").json()

        summary = client.get("/v1/fund_allocations/escrow/Q-1001").json()
        assert Decimal(summary["held"]) == Decimal("1000")
        assert Decimal(summary["supplier_cost_held"]) == Decimal("800")
        assert Decimal(summary["agent_commission_held"]) == Decimal("120")
        assert Decimal(summary["platform_fee_held"]) == Decimal("80")

        due = client.get("/v1/fund_allocations/supplier_payments_due").json()
        assert [d["quote_item_id"] for d in due] == ["QI-1"]

        released = client.post(
            f"/v1/fund_allocations/{application['allocation_id']}/release",
            json={"trigger": "booking_confirmed"},
        )
        assert released.status_code == 200
        assert {r["escrow_status"] for r in released.json()["rows"]} == {"released"}

        again = client.post(
            f"/v1/fund_allocations/{application['allocation_id']}/release",
            json={"trigger": "booking_confirmed"},
        )
        assert again.status_code == 409

    def test_supplier_payment_opened_on_release_and_paid_once(self, client: TestClient):
        invoice = create_invoice(client)
        application = post_confirmation(client, invoice["id"], "1000.00").json()
        assert client.get("/v1/fund_allocations/supplier_payments").json() == []

        client.post(
            f"/v1/fund_allocations/{application['allocation_id']}/release",
            json={"trigger": "booking_confirmed"},
        )
        pending = client.get(
            "/v1/fund_allocations/supplier_payments", params={"status": "pending"}
        ).json()
        assert len(pending) == 1
        assert pending[0]["quote_item_id"] == "QI-1"
        assert Decimal(pending[0]["amount"]) == Decimal("800")
        assert pending[0]["release_trigger"] == "booking_confirmed"

        pay_url = f"/v1/fund_allocations/supplier_payments/{pending[0]['id']}/pay"
        paid = client.post(pay_url, json={"transfer_reference": "TRF-881"})
        assert paid.status_code == 200
        assert paid.json()["status"] == "paid"
        assert paid.json()["transfer_reference"] == "TRF-881"
        assert paid.json()["paid_at"] is not None

        assert client.post(pay_url, json={}).status_code == 409
        assert (
            client.get(
                "/v1/fund_allocations/supplier_payments", params={"status": "pending"}
            ).json()
            == []
        )

    def test_unknown_supplier_payment(self, client: TestClient):
        response = client.post(
            f"/v1/fund_allocations/supplier_payments/{uuid4()}/pay", json={}
        )
        assert response.status_code == 404


class TestRefundsAPI:
    @pytest.fixture
    def paid_trip(self, client: TestClient):
        items = [quote_item("QI-1", "1000.00", "800.00", travel_date="2026-06-30")]
        invoice = create_invoice(client, items=items)
        post_confirmation(client, invoice["id"], "1000.00")
        return invoice

    def test_calculate(self, client: TestClient, paid_trip):
        response = client.post(
            "/v1/refunds/calculate",
            json={"quote_item_id": "QI-1", "cancellation_date": "2026-05-01"},
        )
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["refund_percentage"]) == Decimal("100")
        assert Decimal(data["service_fee"]) == Decimal("50")
        assert Decimal(data["refund_amount"]) == Decimal("950")
        assert data["breakdown"][0]["days_before_travel"] == 60

    def test_calculate_quote(self, client: TestClient, paid_trip):
        response = client.post(
            "/v1/refunds/calculate/quote",
            json={"invoice_id": paid_trip["id"], "cancellation_date": "2026-06-20"},
        )
        assert response.status_code == 200
        assert Decimal(response.json()["refund_amount"]) == Decimal("237.50")

    def test_apply_then_reapply(self, client: TestClient, paid_trip):
        body = {"quote_item_id": "QI-1", "cancellation_date": "2026-05-01"}
        assert client.post("/v1/refunds/apply", json=body).status_code == 200
        response = client.post("/v1/refunds/apply", json=body)
        assert response.status_code == 409

        refunds = client.get("/v1/payments/", params={"status": "refunded"}).json()
        assert [r["payment_intent_id"] for r in refunds] == ["refund:QI-1:pi_0001"]

    def test_missing_travel_date(self, client: TestClient):
        create_invoice(client)
        response = client.post(
            "/v1/refunds/calculate",
            json={"quote_item_id": "QI-1", "cancellation_date": "2026-05-01"},
        )
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"


class TestCommissionsAPI:
    def test_lifecycle(self, client: TestClient):
        items = [quote_item("QI-1", "1000.00", "800.00", travel_date="2026-06-30")]
        invoice = create_invoice(client, items=items)
        commission_id = post_confirmation(client, invoice["id"], "1000.00").json()[
            "commission_ids"
        ][0]

        commission = client.get(f"/v1/commissions/{commission_id}").json()
        assert Decimal(commission["commission_amount"]) == Decimal("120")

        approved = client.post(f"/v1/commissions/{commission_id}/approve")
        assert approved.json()["status"] == "approved"

        paid = client.post(
            f"/v1/commissions/{commission_id}/pay", json={"payment_method": "paypal"}
        )
        assert paid.json()["status"] == "paid"

        # 10 days out under the default policy: 25% refunded, 75% of the commission owed back
        refund = client.post(
            "/v1/refunds/apply",
            json={"quote_item_id": "QI-1", "cancellation_date": "2026-06-20"},
        ).json()
        assert Decimal(refund["commission_clawback"]) == Decimal("90")
        pending = client.get(f"/v1/commissions/{commission_id}").json()
        assert Decimal(pending["pending_clawback"]) == Decimal("90")

        body = {"amount": refund["commission_clawback"], "reason": "Booking QI-1 cancelled"}
        clawed = client.post(f"/v1/commissions/{commission_id}/clawback", json=body)
        assert clawed.status_code == 200
        assert Decimal(clawed.json()["commission_amount"]) == Decimal("30")
        assert Decimal(clawed.json()["pending_clawback"]) == Decimal("0")

        replay = client.post(f"/v1/commissions/{commission_id}/clawback", json=body)
        assert replay.status_code == 409

        summary = client.get(f"/v1/commissions/agents/{AGENT_ID}/summary").json()
        assert Decimal(summary["total_paid"]) == Decimal("30")
        assert Decimal(summary["total_clawed_back"]) == Decimal("90")

    def test_clawback_without_cancellation_conflicts(self, client: TestClient):
        invoice = create_invoice(client)
        commission_id = post_confirmation(client, invoice["id"], "1000.00").json()[
            "commission_ids"
        ][0]
        response = client.post(
            f"/v1/commissions/{commission_id}/clawback",
            json={"amount": "20.00", "reason": "partial refund"},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "ConflictError"

    def test_dispute_requires_reason(self, client: TestClient):
        invoice = create_invoice(client)
        commission_id = post_confirmation(client, invoice["id"], "1000.00").json()[
            "commission_ids"
        ][0]
        assert client.post(f"/v1/commissions/{commission_id}/dispute").status_code == 422
        response = client.post(
            f"/v1/commissions/{commission_id}/dispute", params={"reason": "wrong rate"}
        )
        assert response.json()["status"] == "disputed"

    def test_list_by_agent(self, client: TestClient):
        invoice = create_invoice(client)
        post_confirmation(client, invoice["id"], "1000.00")
        assert len(client.get("/v1/commissions/", params={"agent_id": AGENT_ID}).json()) == 1
        assert client.get("/v1/commissions/", params={"agent_id": "other"}).json() == []


class TestCommissionRulesAPI:
    def test_resolve_type_default(self, client: TestClient):
        response = client.post(
            "/v1/commission_rules/resolve",
            json={"booking_amount": "500", "booking_type": "hotel"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "type_default"
        assert Decimal(data["rate"]) == Decimal("12")
        assert Decimal(data["commission_amount"]) == Decimal("60")

    def test_crud_and_resolve_agent_rule(self, client: TestClient):
        created = client.post(
            "/v1/commission_rules/",
            json={"agent_id": AGENT_ID, "commission_rate": "7.5"},
        )
        assert created.status_code == 201
        rule_id = created.json()["id"]

        resolved = client.post(
            "/v1/commission_rules/resolve",
            json={"agent_id": AGENT_ID, "booking_amount": "1000", "booking_type": "flight"},
        ).json()
        assert resolved["source"] == "agent_rule"
        assert resolved["rule_id"] == rule_id
        assert Decimal(resolved["commission_amount"]) == Decimal("75")

        updated = client.put(f"/v1/commission_rules/{rule_id}", json={"commission_rate": "9"})
        assert Decimal(updated.json()["commission_rate"]) == Decimal("9")

        assert client.delete(f"/v1/commission_rules/{rule_id}").status_code == 204
        assert client.get(f"/v1/commission_rules/{rule_id}").status_code == 404

    def test_rate_above_maximum_rejected(self, client: TestClient):
        response = client.post("/v1/commission_rules/", json={"commission_rate": "60"})
        assert response.status_code == 422

    def test_update_cannot_invert_amount_range(self, client: TestClient):
        created = client.post(
            "/v1/commission_rules/",
            json={
                "commission_rate": "8",
                "min_booking_amount": "100",
                "max_booking_amount": "900",
            },
        ).json()
        response = client.put(
            f"/v1/commission_rules/{created['id']}", json={"max_booking_amount": "50"}
        )
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

        stored = client.get(f"/v1/commission_rules/{created['id']}").json()
        assert Decimal(stored["max_booking_amount"]) == Decimal("900")


class TestExpensesAPI:
    def test_create_and_approve_once(self, client: TestClient):
        created = client.post(
            "/v1/expenses/",
            json={
                "category": "marketing",
                "amount": "250.00",
                "description": "Travel fair booth",
                "expense_date": "2026-03-14",
            },
        )
        assert created.status_code == 201
        expense_id = created.json()["id"]

        approved = client.post(
            f"/v1/expenses/{expense_id}/approve", json={"approved_by": "finance-1"}
        )
        assert approved.status_code == 200
        assert approved.json()["approved_by"] == "finance-1"

        again = client.post(
            f"/v1/expenses/{expense_id}/approve", json={"approved_by": "finance-2"}
        )
        assert again.status_code == 409

    def test_filter_by_category(self, client: TestClient):
        for category in ("office", "marketing"):
            client.post(
                "/v1/expenses/",
                json={
                    "category": category,
                    "amount": "10.00",
                    "description": category,
                    "expense_date": "2026-03-14",
                },
            )
        response = client.get("/v1/expenses/", params={"category": "office"})
        assert [e["category"] for e in response.json()] == ["office"]

    def test_approve_unknown(self, client: TestClient):
        response = client.post(f"/v1/expenses/{uuid4()}/approve", json={"approved_by": "x"})
        assert response.status_code == 404


class TestReportsAPI:
    def test_summary_empty(self, client: TestClient):
        response = client.get("/v1/reports/summary")
        assert response.status_code == 200
        assert Decimal(response.json()["revenue"]["total_revenue"]) == Decimal("0")

    def test_revenue_and_profit(self, client: TestClient):
        invoice = create_invoice(client)
        post_confirmation(client, invoice["id"], "1000.00")

        revenue = client.get("/v1/reports/revenue").json()
        assert revenue["metric"] == "total_revenue"
        assert Decimal(revenue["value"]) == Decimal("1000")

        profit = {m["metric"]: Decimal(m["value"]) for m in client.get("/v1/reports/profit").json()}
        assert profit["net_profit"] == Decimal("1000")
        assert profit["collection_rate"] == Decimal("100")

    def test_bad_range(self, client: TestClient):
        response = client.get(
            "/v1/reports/summary", params={"start_date": "2026-05-01", "end_date": "2026-04-01"}
        )
        assert response.status_code == 422


class TestAuditLogsAPI:
    def test_invoice_trail(self, client: TestClient):
        invoice = create_invoice(client)
        client.post(f"/v1/invoices/{invoice['id']}/send")
        response = client.get(f"/v1/audit_logs/invoice/{invoice['id']}")
        assert response.status_code == 200
        actions = sorted(log["action"] for log in response.json())
        assert actions == ["created", "status_changed"]
