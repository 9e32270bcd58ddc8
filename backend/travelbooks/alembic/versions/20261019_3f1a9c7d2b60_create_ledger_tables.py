"""create ledger tables

Revision ID: 3f1a9c7d2b60
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "3f1a9c7d2b60"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "invoices",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("invoice_number", sa.String(length=50), nullable=False),
        sa.Column("quote_id", sa.String(length=100), nullable=False),
        sa.Column("customer_id", sa.String(length=100), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=True),
        sa.Column("agent_id", sa.String(length=100), nullable=True),
        sa.Column("agent_name", sa.String(length=255), nullable=True),
        sa.Column("commission_override_rate", sa.Numeric(precision=7, scale=4), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("subtotal", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("tax_rate", sa.Numeric(precision=7, scale=4), nullable=False),
        sa.Column("tax_amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("discount_amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("total", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("paid_amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("remaining_amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("refunded_amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("last_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_invoices_invoice_number"), "invoices", ["invoice_number"], unique=True
    )
    op.create_index(op.f("ix_invoices_quote_id"), "invoices", ["quote_id"], unique=True)
    op.create_index(op.f("ix_invoices_customer_id"), "invoices", ["customer_id"], unique=False)
    op.create_index(op.f("ix_invoices_agent_id"), "invoices", ["agent_id"], unique=False)

    op.create_table(
        "invoice_items",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("invoice_id", sa.String(length=36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("quote_item_id", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("item_type", sa.String(length=20), nullable=True),
        sa.Column("payment_source", sa.String(length=30), nullable=True),
        sa.Column("quantity", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("unit_price", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("total", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("supplier_cost", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("travel_date", sa.Date(), nullable=True),
        sa.Column("cancellation_policy", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_id", "quote_item_id", name="uq_invoice_quote_item"),
    )
    op.create_index(
        op.f("ix_invoice_items_invoice_id"), "invoice_items", ["invoice_id"], unique=False
    )
    op.create_index(
        op.f("ix_invoice_items_quote_item_id"), "invoice_items", ["quote_item_id"], unique=False
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("invoice_id", sa.String(length=36), nullable=False),
        sa.Column("payment_intent_id", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("method", sa.String(length=30), nullable=False),
        sa.Column("processing_fee", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("refund_of_payment_id", sa.String(length=36), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["refund_of_payment_id"], ["payments.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_payments_invoice_id"), "payments", ["invoice_id"], unique=False)
    op.create_index(
        op.f("ix_payments_payment_intent_id"), "payments", ["payment_intent_id"], unique=True
    )
    op.create_index(
        op.f("ix_payments_refund_of_payment_id"),
        "payments",
        ["refund_of_payment_id"],
        unique=False,
    )

    op.create_table(
        "commission_rules",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("agent_id", sa.String(length=100), nullable=True),
        sa.Column("booking_type", sa.String(length=20), nullable=True),
        sa.Column("min_booking_amount", sa.Numeric(precision=12, scale=4), nullable=True),
        sa.Column("max_booking_amount", sa.Numeric(precision=12, scale=4), nullable=True),
        sa.Column("commission_rate", sa.Numeric(precision=7, scale=4), nullable=False),
        sa.Column("flat_fee", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_commission_rules_agent_id"), "commission_rules", ["agent_id"], unique=False
    )

    op.create_table(
        "commissions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("agent_id", sa.String(length=100), nullable=False),
        sa.Column("agent_name", sa.String(length=255), nullable=True),
        sa.Column("booking_id", sa.String(length=100), nullable=False),
        sa.Column("invoice_id", sa.String(length=36), nullable=False),
        sa.Column("quote_id", sa.String(length=100), nullable=False),
        sa.Column("customer_id", sa.String(length=100), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("booking_amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("commission_rate", sa.Numeric(precision=7, scale=4), nullable=False),
        sa.Column("flat_fee", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("commission_amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("clawback_amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("rate_source", sa.String(length=30), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("payment_method", sa.String(length=30), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("earned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_id", "booking_id", name="uq_commission_invoice_booking"),
    )
    op.create_index(op.f("ix_commissions_agent_id"), "commissions", ["agent_id"], unique=False)
    op.create_index(
        op.f("ix_commissions_booking_id"), "commissions", ["booking_id"], unique=False
    )
    op.create_index(
        op.f("ix_commissions_invoice_id"), "commissions", ["invoice_id"], unique=False
    )
    op.create_index(op.f("ix_commissions_quote_id"), "commissions", ["quote_id"], unique=False)

    op.create_table(
        "fund_allocations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("payment_id", sa.String(length=36), nullable=False),
        sa.Column("invoice_id", sa.String(length=36), nullable=False),
        sa.Column("quote_id", sa.String(length=100), nullable=False),
        sa.Column("total_amount", sa.Numeric(precision=12, scale=4), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_fund_allocations_payment_id"), "fund_allocations", ["payment_id"], unique=True
    )
    op.create_index(
        op.f("ix_fund_allocations_invoice_id"), "fund_allocations", ["invoice_id"], unique=False
    )
    op.create_index(
        op.f("ix_fund_allocations_quote_id"), "fund_allocations", ["quote_id"], unique=False
    )

    op.create_table(
        "fund_allocation_rows",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("allocation_id", sa.String(length=36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("invoice_item_id", sa.String(length=36), nullable=False),
        sa.Column("quote_item_id", sa.String(length=100), nullable=False),
        sa.Column("item_type", sa.String(length=20), nullable=True),
        sa.Column("source", sa.String(length=30), nullable=True),
        sa.Column("client_paid", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("supplier_cost", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("platform_fee", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("agent_commission", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("commission_rate", sa.Numeric(precision=7, scale=4), nullable=False),
        sa.Column("escrow_status", sa.String(length=20), nullable=False),
        sa.Column("release_trigger", sa.String(length=40), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escrow_release_date", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["allocation_id"], ["fund_allocations.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["invoice_item_id"], ["invoice_items.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_fund_allocation_rows_allocation_id"),
        "fund_allocation_rows",
        ["allocation_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_fund_allocation_rows_invoice_item_id"),
        "fund_allocation_rows",
        ["invoice_item_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_fund_allocation_rows_quote_item_id"),
        "fund_allocation_rows",
        ["quote_item_id"],
        unique=False,
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("category", sa.String(length=30), nullable=False),
        sa.Column("subcategory", sa.String(length=100), nullable=True),
        sa.Column("amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("vendor", sa.String(length=255), nullable=True),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("booking_id", sa.String(length=100), nullable=True),
        sa.Column("agent_id", sa.String(length=100), nullable=True),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_expenses_category"), "expenses", ["category"], unique=False)
    op.create_index(op.f("ix_expenses_expense_date"), "expenses", ["expense_date"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("resource_type", sa.String(length=50), nullable=False),
        sa.Column("resource_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("changes", sa.JSON(), nullable=False),
        sa.Column("actor_type", sa.String(length=50), nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_audit_logs_resource_type"), "audit_logs", ["resource_type"], unique=False
    )
    op.create_index(op.f("ix_audit_logs_resource_id"), "audit_logs", ["resource_id"], unique=False)
    op.create_index(op.f("ix_audit_logs_action"), "audit_logs", ["action"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_audit_logs_action"), table_name="audit_logs")
    op.drop_index(op.f("ix_audit_logs_resource_id"), table_name="audit_logs")
    op.drop_index(op.f("ix_audit_logs_resource_type"), table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index(op.f("ix_expenses_expense_date"), table_name="expenses")
    op.drop_index(op.f("ix_expenses_category"), table_name="expenses")
    op.drop_table("expenses")
    op.drop_index(op.f("ix_fund_allocation_rows_quote_item_id"), table_name="fund_allocation_rows")
    op.drop_index(
        op.f("ix_fund_allocation_rows_invoice_item_id"), table_name="fund_allocation_rows"
    )
    op.drop_index(op.f("ix_fund_allocation_rows_allocation_id"), table_name="fund_allocation_rows")
    op.drop_table("fund_allocation_rows")
    op.drop_index(op.f("ix_fund_allocations_quote_id"), table_name="fund_allocations")
    op.drop_index(op.f("ix_fund_allocations_invoice_id"), table_name="fund_allocations")
    op.drop_index(op.f("ix_fund_allocations_payment_id"), table_name="fund_allocations")
    op.drop_table("fund_allocations")
    op.drop_index(op.f("ix_commissions_quote_id"), table_name="commissions")
    op.drop_index(op.f("ix_commissions_invoice_id"), table_name="commissions")
    op.drop_index(op.f("ix_commissions_booking_id"), table_name="commissions")
    op.drop_index(op.f("ix_commissions_agent_id"), table_name="commissions")
    op.drop_table("commissions")
    op.drop_index(op.f("ix_commission_rules_agent_id"), table_name="commission_rules")
    op.drop_table("commission_rules")
    op.drop_index(op.f("ix_payments_refund_of_payment_id"), table_name="payments")
    op.drop_index(op.f("ix_payments_payment_intent_id"), table_name="payments")
    op.drop_index(op.f("ix_payments_invoice_id"), table_name="payments")
    op.drop_table("payments")
    op.drop_index(op.f("ix_invoice_items_quote_item_id"), table_name="invoice_items")
    op.drop_index(op.f("ix_invoice_items_invoice_id"), table_name="invoice_items")
    op.drop_table("invoice_items")
    op.drop_index(op.f("ix_invoices_agent_id"), table_name="invoices")
    op.drop_index(op.f("ix_invoices_customer_id"), table_name="invoices")
    op.drop_index(op.f("ix_invoices_quote_id"), table_name="invoices")
    op.drop_index(op.f("ix_invoices_invoice_number"), table_name="invoices")
    op.drop_table("invoices")
