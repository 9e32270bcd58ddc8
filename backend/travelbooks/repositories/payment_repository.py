"""Payment repository for data access."""

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.models.payment import Payment, PaymentStatus


class PaymentRepository:
    """Repository for Payment model."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        invoice_id: UUID | None = None,
        status: PaymentStatus | None = None,
    ) -> list[Payment]:
        """Get all payments with optional filters."""
        query = self.db.query(Payment)

        if invoice_id:
            query = query.filter(Payment.invoice_id == invoice_id)
        if status:
            query = query.filter(Payment.status == status.value)

        return query.order_by(Payment.created_at.desc()).offset(skip).limit(limit).all()

    def get_by_invoice_id(self, invoice_id: UUID) -> list[Payment]:
        """Payments for one invoice in the order they were recorded."""
        return (
            self.db.query(Payment)
            .filter(Payment.invoice_id == invoice_id)
            .order_by(Payment.created_at.asc(), Payment.processed_at.asc())
            .all()
        )

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        """Get a payment by ID."""
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def get_by_intent_id(self, payment_intent_id: str) -> Payment | None:
        """Get a payment by the gateway's payment intent ID."""
        return (
            self.db.query(Payment)
            .filter(Payment.payment_intent_id == payment_intent_id)
            .first()
        )

    def sum_completed(self, invoice_id: UUID) -> Decimal:
        # Summed per row: SQLite's SUM() works on floats.
        amounts = (
            self.db.query(Payment.amount)
            .filter(
                Payment.invoice_id == invoice_id,
                Payment.status == PaymentStatus.COMPLETED.value,
            )
            .all()
        )
        return sum((Decimal(str(row[0])) for row in amounts), Decimal("0"))

    def create(self, **fields: Any) -> Payment:
        """Create a new payment."""
        payment = Payment(**fields)
        self.db.add(payment)
        self.db.flush()
        return payment

    def save(self, payment: Payment) -> Payment:
        self.db.add(payment)
        self.db.flush()
        return payment
