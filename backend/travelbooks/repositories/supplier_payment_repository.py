from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.models.supplier_payment import SupplierPayment, SupplierPaymentStatus


class SupplierPaymentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        status: SupplierPaymentStatus | None = None,
        quote_id: str | None = None,
    ) -> list[SupplierPayment]:
        query = self.db.query(SupplierPayment)
        if status:
            query = query.filter(SupplierPayment.status == status.value)
        if quote_id:
            query = query.filter(SupplierPayment.quote_id == quote_id)
        return query.order_by(SupplierPayment.released_at.asc()).offset(skip).limit(limit).all()

    def get_by_id(self, supplier_payment_id: UUID) -> SupplierPayment | None:
        return (
            self.db.query(SupplierPayment)
            .filter(SupplierPayment.id == supplier_payment_id)
            .first()
        )

    def get_for_update(self, supplier_payment_id: UUID) -> SupplierPayment | None:
        return (
            self.db.query(SupplierPayment)
            .filter(SupplierPayment.id == supplier_payment_id)
            .with_for_update()
            .first()
        )

    def get_by_row_id(self, allocation_row_id: UUID) -> SupplierPayment | None:
        return (
            self.db.query(SupplierPayment)
            .filter(SupplierPayment.allocation_row_id == allocation_row_id)
            .first()
        )

    def create(self, **fields: Any) -> SupplierPayment:
        supplier_payment = SupplierPayment(**fields)
        self.db.add(supplier_payment)
        self.db.flush()
        return supplier_payment

    def save(self, supplier_payment: SupplierPayment) -> SupplierPayment:
        self.db.add(supplier_payment)
        self.db.flush()
        return supplier_payment
