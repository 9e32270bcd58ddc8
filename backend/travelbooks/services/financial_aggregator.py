"""Financial reporting.

Every metric is a fold over rows read in one session and recomputed on each
call; nothing is cached. The module-level functions take plain sequences so
they can be used on any snapshot.
"""

from collections import defaultdict
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from travelbooks.core.errors import ValidationError
from travelbooks.core.money import HUNDRED, ZERO, round_money, safe_ratio, to_decimal
from travelbooks.models.commission import Commission, CommissionStatus
from travelbooks.models.expense import Expense
from travelbooks.models.invoice import TERMINAL_INVOICE_STATUSES, Invoice, InvoiceStatus
from travelbooks.models.shared import utc_now
from travelbooks.repositories.commission_repository import CommissionRepository
from travelbooks.repositories.expense_repository import ExpenseRepository
from travelbooks.repositories.invoice_repository import InvoiceRepository
from travelbooks.schemas.reports import (
    CashFlowSection,
    CommissionAnalyticsItem,
    CommissionSection,
    ExpenseSection,
    FinancialSummaryResponse,
    InvoiceSection,
    ProfitLossSection,
    RevenueSection,
)
from travelbooks.services.commission_service import average_rate
from travelbooks.services.invoice_ledger import is_overdue


def _in_range(day: date | datetime | None, start: date | None, end: date | None) -> bool:
    if day is None:
        return start is None and end is None
    if isinstance(day, datetime):
        day = day.date()
    if start and day < start:
        return False
    if end and day > end:
        return False
    return True


def check_range(start: date | None, end: date | None) -> None:
    if start and end and start > end:
        raise ValidationError(f"Start date {start} is after end date {end}")


def _sum(values: list[Decimal]) -> Decimal:
    return round_money(sum(values, ZERO))


def invoices_in_range(
    invoices: Sequence[Invoice], start: date | None = None, end: date | None = None
) -> list[Invoice]:
    return [i for i in invoices if _in_range(i.issue_date, start, end)]  # type: ignore[arg-type]


def total_revenue(
    invoices: Sequence[Invoice], start: date | None = None, end: date | None = None
) -> Decimal:
    check_range(start, end)
    return _sum(
        [
            to_decimal(i.total)
            for i in invoices_in_range(invoices, start, end)
            if i.status == InvoiceStatus.PAID.value
        ]
    )


def total_outstanding(invoices: Sequence[Invoice]) -> Decimal:
    return _sum(
        [to_decimal(i.remaining_amount) for i in invoices if i.status not in TERMINAL_INVOICE_STATUSES]
    )


def overdue_amount(invoices: Sequence[Invoice], now: date | datetime) -> Decimal:
    return _sum([to_decimal(i.remaining_amount) for i in invoices if is_overdue(i, now)])


def paid_commissions(
    commissions: Sequence[Commission], start: date | None = None, end: date | None = None
) -> Decimal:
    return _sum(
        [
            to_decimal(c.commission_amount)
            for c in commissions
            if c.status == CommissionStatus.PAID.value and _in_range(c.paid_at, start, end)  # type: ignore[arg-type]
        ]
    )


def total_expenses(
    expenses: Sequence[Expense], start: date | None = None, end: date | None = None
) -> Decimal:
    return _sum(
        [to_decimal(e.amount) for e in expenses if _in_range(e.expense_date, start, end)]  # type: ignore[arg-type]
    )


def net_profit(revenue: Decimal, expenses: Decimal, commissions_paid: Decimal) -> Decimal:
    return round_money(revenue - expenses - commissions_paid)


def profit_margin(profit: Decimal, revenue: Decimal) -> Decimal:
    """Percentage of revenue kept as profit; zero when there is no revenue."""
    return round_money(safe_ratio(profit, revenue) * HUNDRED)


def collection_rate(revenue: Decimal, invoiced: Decimal) -> Decimal:
    """Percentage of invoiced value collected; zero when nothing was invoiced."""
    return round_money(safe_ratio(revenue, invoiced) * HUNDRED)


class FinancialAggregator:
    def __init__(self, db: Session):
        self.invoice_repo = InvoiceRepository(db)
        self.commission_repo = CommissionRepository(db)
        self.expense_repo = ExpenseRepository(db)

    def total_revenue(self, start: date | None = None, end: date | None = None) -> Decimal:
        return total_revenue(self.invoice_repo.snapshot(), start, end)

    def total_outstanding(self) -> Decimal:
        return total_outstanding(self.invoice_repo.snapshot())

    def overdue_amount(self, now: datetime | None = None) -> Decimal:
        return overdue_amount(self.invoice_repo.snapshot(), now or utc_now())

    def net_profit(self, start: date | None = None, end: date | None = None) -> Decimal:
        check_range(start, end)
        return net_profit(
            total_revenue(self.invoice_repo.snapshot(), start, end),
            total_expenses(self.expense_repo.snapshot(), start, end),
            paid_commissions(self.commission_repo.snapshot(), start, end),
        )

    def profit_margin(self, start: date | None = None, end: date | None = None) -> Decimal:
        revenue = self.total_revenue(start, end)
        return profit_margin(self.net_profit(start, end), revenue)

    def collection_rate(self, start: date | None = None, end: date | None = None) -> Decimal:
        check_range(start, end)
        invoices = invoices_in_range(self.invoice_repo.snapshot(), start, end)
        invoiced = _sum([to_decimal(i.total) for i in invoices])
        return collection_rate(total_revenue(invoices), invoiced)

    def summary(
        self,
        start: date | None = None,
        end: date | None = None,
        now: datetime | None = None,
    ) -> FinancialSummaryResponse:
        check_range(start, end)
        now = now or utc_now()
        all_invoices = self.invoice_repo.snapshot()
        invoices = invoices_in_range(all_invoices, start, end)
        commissions = self.commission_repo.snapshot()
        expenses = [
            e for e in self.expense_repo.snapshot() if _in_range(e.expense_date, start, end)  # type: ignore[arg-type]
        ]

        revenue = total_revenue(invoices)
        paid_invoices = [i for i in invoices if i.status == InvoiceStatus.PAID.value]
        invoiced = _sum([to_decimal(i.total) for i in invoices])
        collected = _sum([to_decimal(i.paid_amount) for i in invoices])
        refunded = _sum([to_decimal(i.refunded_amount) for i in invoices])
        overdue = [i for i in invoices if is_overdue(i, now)]

        earned = _sum(
            [to_decimal(c.commission_amount) for c in commissions if _in_range(c.earned_at, start, end)]  # type: ignore[arg-type]
        )
        commissions_paid = paid_commissions(commissions, start, end)
        pending = _sum(
            [
                to_decimal(c.commission_amount)
                for c in commissions
                if c.status in (CommissionStatus.PENDING.value, CommissionStatus.APPROVED.value)
                and _in_range(c.earned_at, start, end)  # type: ignore[arg-type]
            ]
        )

        by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for expense in expenses:
            by_category[str(expense.category)] += to_decimal(expense.amount)
        expenses_total = _sum([to_decimal(e.amount) for e in expenses])

        profit = net_profit(revenue, expenses_total, commissions_paid)
        outflow = round_money(expenses_total + commissions_paid + refunded)

        return FinancialSummaryResponse(
            start_date=start,
            end_date=end,
            revenue=RevenueSection(
                total_revenue=revenue,
                total_bookings=len(paid_invoices),
                average_booking_value=round_money(safe_ratio(revenue, len(paid_invoices))),
            ),
            invoices=InvoiceSection(
                total_invoiced=invoiced,
                total_paid=collected,
                total_outstanding=total_outstanding(invoices),
                overdue_amount=overdue_amount(invoices, now),
                overdue_count=len(overdue),
                collection_rate=collection_rate(revenue, invoiced),
            ),
            commissions=CommissionSection(
                total_earned=earned,
                total_paid=commissions_paid,
                total_pending=pending,
            ),
            expenses=ExpenseSection(
                total_expenses=expenses_total,
                by_category={k: round_money(v) for k, v in sorted(by_category.items())},
            ),
            profit_loss=ProfitLossSection(
                net_profit=profit,
                profit_margin=profit_margin(profit, revenue),
            ),
            cash_flow=CashFlowSection(
                cash_inflow=collected,
                cash_outflow=outflow,
                net_cash_flow=round_money(collected - outflow),
            ),
        )

    def commission_analytics(self, agent_id: str | None = None) -> list[CommissionAnalyticsItem]:
        by_agent: dict[str, list[Commission]] = defaultdict(list)
        for commission in self.commission_repo.snapshot(agent_id):
            by_agent[str(commission.agent_id)].append(commission)

        analytics = []
        for agent, commissions in sorted(by_agent.items()):
            total = _sum([to_decimal(c.commission_amount) for c in commissions])
            analytics.append(
                CommissionAnalyticsItem(
                    agent_id=agent,
                    agent_name=commissions[-1].agent_name,  # type: ignore[arg-type]
                    total_commissions=total,
                    total_bookings=len(commissions),
                    average_commission=round_money(safe_ratio(total, len(commissions))),
                    average_rate=average_rate(commissions),
                )
            )
        return sorted(analytics, key=lambda a: a.total_commissions, reverse=True)
