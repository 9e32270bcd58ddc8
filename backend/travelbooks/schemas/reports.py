from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class RevenueSection(BaseModel):
    total_revenue: Decimal
    total_bookings: int
    average_booking_value: Decimal


class InvoiceSection(BaseModel):
    total_invoiced: Decimal
    total_paid: Decimal
    total_outstanding: Decimal
    overdue_amount: Decimal
    overdue_count: int
    collection_rate: Decimal


class CommissionSection(BaseModel):
    total_earned: Decimal
    total_paid: Decimal
    total_pending: Decimal


class ExpenseSection(BaseModel):
    total_expenses: Decimal
    by_category: dict[str, Decimal]


class ProfitLossSection(BaseModel):
    net_profit: Decimal
    profit_margin: Decimal


class CashFlowSection(BaseModel):
    cash_inflow: Decimal
    cash_outflow: Decimal
    net_cash_flow: Decimal


class FinancialSummaryResponse(BaseModel):
    start_date: date | None
    end_date: date | None
    revenue: RevenueSection
    invoices: InvoiceSection
    commissions: CommissionSection
    expenses: ExpenseSection
    profit_loss: ProfitLossSection
    cash_flow: CashFlowSection


class MetricResponse(BaseModel):
    metric: str
    value: Decimal


class CommissionAnalyticsItem(BaseModel):
    agent_id: str
    agent_name: str | None
    total_commissions: Decimal
    total_bookings: int
    average_commission: Decimal
    average_rate: Decimal
