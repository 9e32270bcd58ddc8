"""Financial report API endpoints."""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from travelbooks.core.database import get_db
from travelbooks.schemas.reports import (
    CommissionAnalyticsItem,
    FinancialSummaryResponse,
    MetricResponse,
)
from travelbooks.services.financial_aggregator import FinancialAggregator

router = APIRouter()


@router.get("/summary", response_model=FinancialSummaryResponse)
async def get_financial_summary(
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
) -> FinancialSummaryResponse:
    """Revenue, invoices, commissions, expenses and profit for a date range."""
    return FinancialAggregator(db).summary(start_date, end_date)


@router.get("/revenue", response_model=MetricResponse)
async def get_total_revenue(
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
) -> MetricResponse:
    value = FinancialAggregator(db).total_revenue(start_date, end_date)
    return MetricResponse(metric="total_revenue", value=value)


@router.get("/outstanding", response_model=MetricResponse)
async def get_total_outstanding(db: Session = Depends(get_db)) -> MetricResponse:
    return MetricResponse(
        metric="total_outstanding", value=FinancialAggregator(db).total_outstanding()
    )


@router.get("/overdue", response_model=MetricResponse)
async def get_overdue_amount(db: Session = Depends(get_db)) -> MetricResponse:
    return MetricResponse(metric="overdue_amount", value=FinancialAggregator(db).overdue_amount())


@router.get("/profit", response_model=list[MetricResponse])
async def get_profit(
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
) -> list[MetricResponse]:
    aggregator = FinancialAggregator(db)
    return [
        MetricResponse(metric="net_profit", value=aggregator.net_profit(start_date, end_date)),
        MetricResponse(
            metric="profit_margin", value=aggregator.profit_margin(start_date, end_date)
        ),
        MetricResponse(
            metric="collection_rate", value=aggregator.collection_rate(start_date, end_date)
        ),
    ]


@router.get("/commissions", response_model=list[CommissionAnalyticsItem])
async def get_commission_analytics(
    agent_id: str | None = None,
    db: Session = Depends(get_db),
) -> list[CommissionAnalyticsItem]:
    return FinancialAggregator(db).commission_analytics(agent_id)
