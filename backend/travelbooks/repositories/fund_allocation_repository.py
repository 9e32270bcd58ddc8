from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.models.fund_allocation import EscrowStatus, FundAllocation, FundAllocationRow


class FundAllocationRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        quote_id: str | None = None,
        invoice_id: UUID | None = None,
    ) -> list[FundAllocation]:
        query = self.db.query(FundAllocation)
        if quote_id:
            query = query.filter(FundAllocation.quote_id == quote_id)
        if invoice_id:
            query = query.filter(FundAllocation.invoice_id == invoice_id)
        return query.order_by(FundAllocation.created_at.asc()).offset(skip).limit(limit).all()

    def get_by_id(self, allocation_id: UUID) -> FundAllocation | None:
        return self.db.query(FundAllocation).filter(FundAllocation.id == allocation_id).first()

    def get_for_update(self, allocation_id: UUID) -> FundAllocation | None:
        return (
            self.db.query(FundAllocation)
            .filter(FundAllocation.id == allocation_id)
            .with_for_update()
            .first()
        )

    def get_by_payment_id(self, payment_id: UUID) -> FundAllocation | None:
        return (
            self.db.query(FundAllocation).filter(FundAllocation.payment_id == payment_id).first()
        )

    def create(self, **fields: Any) -> FundAllocation:
        allocation = FundAllocation(**fields)
        self.db.add(allocation)
        self.db.flush()
        return allocation

    def add_row(self, allocation_id: UUID, position: int, **fields: Any) -> FundAllocationRow:
        row = FundAllocationRow(allocation_id=allocation_id, position=position, **fields)
        self.db.add(row)
        self.db.flush()
        return row

    def get_rows(self, allocation_id: UUID) -> list[FundAllocationRow]:
        return (
            self.db.query(FundAllocationRow)
            .filter(FundAllocationRow.allocation_id == allocation_id)
            .order_by(FundAllocationRow.position.asc())
            .all()
        )

    def get_rows_for_item(
        self,
        invoice_item_id: UUID,
        statuses: list[EscrowStatus] | None = None,
    ) -> list[FundAllocationRow]:
        query = self.db.query(FundAllocationRow).filter(
            FundAllocationRow.invoice_item_id == invoice_item_id
        )
        if statuses:
            query = query.filter(FundAllocationRow.escrow_status.in_([s.value for s in statuses]))
        return query.order_by(FundAllocationRow.position.asc()).all()

    def get_rows_for_quote(self, quote_id: str) -> list[FundAllocationRow]:
        return (
            self.db.query(FundAllocationRow)
            .join(FundAllocation, FundAllocation.id == FundAllocationRow.allocation_id)
            .filter(FundAllocation.quote_id == quote_id)
            .order_by(FundAllocation.created_at.asc(), FundAllocationRow.position.asc())
            .all()
        )

    def get_held_rows(self) -> list[tuple[FundAllocationRow, FundAllocation]]:
        return (
            self.db.query(FundAllocationRow, FundAllocation)
            .join(FundAllocation, FundAllocation.id == FundAllocationRow.allocation_id)
            .filter(FundAllocationRow.escrow_status == EscrowStatus.HELD.value)
            .order_by(FundAllocation.created_at.asc(), FundAllocationRow.position.asc())
            .all()
        )

    def snapshot_rows(self) -> list[FundAllocationRow]:
        return self.db.query(FundAllocationRow).all()

    def save_row(self, row: FundAllocationRow) -> FundAllocationRow:
        self.db.add(row)
        self.db.flush()
        return row
