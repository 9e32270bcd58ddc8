from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.models.commission import Commission, CommissionStatus


class CommissionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        agent_id: str | None = None,
        status: CommissionStatus | None = None,
        invoice_id: UUID | None = None,
        quote_id: str | None = None,
    ) -> list[Commission]:
        query = self.db.query(Commission)
        if agent_id:
            query = query.filter(Commission.agent_id == agent_id)
        if status:
            query = query.filter(Commission.status == status.value)
        if invoice_id:
            query = query.filter(Commission.invoice_id == invoice_id)
        if quote_id:
            query = query.filter(Commission.quote_id == quote_id)
        return query.order_by(Commission.earned_at.desc()).offset(skip).limit(limit).all()

    def snapshot(self, agent_id: str | None = None) -> list[Commission]:
        query = self.db.query(Commission)
        if agent_id:
            query = query.filter(Commission.agent_id == agent_id)
        return query.order_by(Commission.earned_at.asc()).all()

    def get_by_id(self, commission_id: UUID) -> Commission | None:
        return self.db.query(Commission).filter(Commission.id == commission_id).first()

    def get_for_update(self, commission_id: UUID) -> Commission | None:
        return (
            self.db.query(Commission)
            .filter(Commission.id == commission_id)
            .with_for_update()
            .first()
        )

    def get_by_booking(self, invoice_id: UUID, booking_id: str) -> Commission | None:
        return (
            self.db.query(Commission)
            .filter(Commission.invoice_id == invoice_id, Commission.booking_id == booking_id)
            .first()
        )

    def get_by_invoice_id(self, invoice_id: UUID) -> list[Commission]:
        return self.db.query(Commission).filter(Commission.invoice_id == invoice_id).all()

    def create(self, **fields: Any) -> Commission:
        commission = Commission(**fields)
        self.db.add(commission)
        self.db.flush()
        return commission

    def save(self, commission: Commission) -> Commission:
        self.db.add(commission)
        self.db.flush()
        return commission
