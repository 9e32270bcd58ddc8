from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from travelbooks.models.expense import ExpenseCategory


class ExpenseCreate(BaseModel):
    category: ExpenseCategory
    subcategory: str | None = None
    amount: Decimal = Field(gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    description: str
    vendor: str | None = None
    expense_date: date
    booking_id: str | None = None
    agent_id: str | None = None
    notes: str | None = None


class ExpenseApprove(BaseModel):
    approved_by: str = Field(min_length=1)


class ExpenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    category: str
    subcategory: str | None
    amount: Decimal
    currency: str
    description: str
    vendor: str | None
    expense_date: date
    booking_id: str | None
    agent_id: str | None
    approved_by: str | None
    approved_at: datetime | None
