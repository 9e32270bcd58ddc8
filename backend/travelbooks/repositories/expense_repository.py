from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.models.expense import Expense, ExpenseCategory
from travelbooks.models.shared import utc_now
from travelbooks.schemas.expense import ExpenseCreate


class ExpenseRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        category: ExpenseCategory | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Expense]:
        query = self.db.query(Expense)
        if category:
            query = query.filter(Expense.category == category.value)
        if start_date:
            query = query.filter(Expense.expense_date >= start_date)
        if end_date:
            query = query.filter(Expense.expense_date <= end_date)
        return query.order_by(Expense.expense_date.desc()).offset(skip).limit(limit).all()

    def snapshot(self) -> list[Expense]:
        return self.db.query(Expense).order_by(Expense.expense_date.asc()).all()

    def get_by_id(self, expense_id: UUID) -> Expense | None:
        return self.db.query(Expense).filter(Expense.id == expense_id).first()

    def create(self, data: ExpenseCreate) -> Expense:
        expense = Expense(
            category=data.category.value,
            subcategory=data.subcategory,
            amount=data.amount,
            currency=data.currency,
            description=data.description,
            vendor=data.vendor,
            expense_date=data.expense_date,
            booking_id=data.booking_id,
            agent_id=data.agent_id,
            notes=data.notes,
        )
        self.db.add(expense)
        self.db.commit()
        self.db.refresh(expense)
        return expense

    def approve(self, expense_id: UUID, approved_by: str) -> Expense | None:
        expense = self.get_by_id(expense_id)
        if not expense:
            return None
        if expense.approved_at is not None:
            raise ValueError("Expense is already approved")

        expense.approved_by = approved_by  # type: ignore[assignment]
        expense.approved_at = utc_now()  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(expense)
        return expense
