"""add clawback tracking to commissions and create supplier_payments

Revision ID: 8c2e4b1f6a93
Revises: 3f1a9c7d2b60
Create Date: 2026-10-19 15:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "8c2e4b1f6a93"
down_revision = "3f1a9c7d2b60"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "commissions",
        sa.Column(
            "pending_clawback",
            sa.Numeric(precision=12, scale=4),
            nullable=False,
            server_default="0",
        ),
    )
    op.add_column(
        "commissions",
        sa.Column("clawback_applied_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "supplier_payments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("allocation_id", sa.String(length=36), nullable=False),
        sa.Column("allocation_row_id", sa.String(length=36), nullable=False),
        sa.Column("payment_id", sa.String(length=36), nullable=False),
        sa.Column("quote_id", sa.String(length=100), nullable=False),
        sa.Column("quote_item_id", sa.String(length=100), nullable=False),
        sa.Column("item_type", sa.String(length=20), nullable=True),
        sa.Column("source", sa.String(length=30), nullable=True),
        sa.Column("amount", sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("release_trigger", sa.String(length=40), nullable=True),
        sa.Column("payment_method", sa.String(length=30), nullable=True),
        sa.Column("transfer_reference", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
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
        sa.ForeignKeyConstraint(["allocation_id"], ["fund_allocations.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(
            ["allocation_row_id"], ["fund_allocation_rows.id"], ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_supplier_payments_allocation_id"),
        "supplier_payments",
        ["allocation_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_supplier_payments_allocation_row_id"),
        "supplier_payments",
        ["allocation_row_id"],
        unique=True,
    )
    op.create_index(
        op.f("ix_supplier_payments_payment_id"), "supplier_payments", ["payment_id"], unique=False
    )
    op.create_index(
        op.f("ix_supplier_payments_quote_id"), "supplier_payments", ["quote_id"], unique=False
    )
    op.create_index(
        op.f("ix_supplier_payments_quote_item_id"),
        "supplier_payments",
        ["quote_item_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_supplier_payments_quote_item_id"), table_name="supplier_payments")
    op.drop_index(op.f("ix_supplier_payments_quote_id"), table_name="supplier_payments")
    op.drop_index(op.f("ix_supplier_payments_payment_id"), table_name="supplier_payments")
    op.drop_index(op.f("ix_supplier_payments_allocation_row_id"), table_name="supplier_payments")
    op.drop_index(op.f("ix_supplier_payments_allocation_id"), table_name="supplier_payments")
    op.drop_table("supplier_payments")
    op.drop_column("commissions", "clawback_applied_at")
    op.drop_column("commissions", "pending_clawback")
