"""Expense model - business costs, read by the financial reports only."""

from enum import Enum

from sqlalchemy import Column, Date, DateTime, Numeric, String, Text, func

from travelbooks.core.database import Base
from travelbooks.models.shared import UUIDType, generate_uuid


class ExpenseCategory(str, Enum):
    SUPPLIER_PAYMENT = "supplier_payment"
    MARKETING = "marketing"
    OPERATIONAL = "operational"
    COMMISSION = "commission"
    OFFICE = "office"
    TRAVEL = "travel"
    TECHNOLOGY = "technology"
    OTHER = "other"


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    category = Column(String(30), nullable=False, index=True)
    subcategory = Column(String(100), nullable=True)
    amount = Column(Numeric(12, 4), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    description = Column(String(500), nullable=False)
    vendor = Column(String(255), nullable=True)
    expense_date = Column(Date, nullable=False, index=True)

    booking_id = Column(String(100), nullable=True)
    agent_id = Column(String(100), nullable=True)

    approved_by = Column(String(255), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
