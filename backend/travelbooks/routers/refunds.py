"""Refund calculation and cancellation API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from travelbooks.core.database import get_db
from travelbooks.schemas.cancellation import (
    CancellationRequest,
    QuoteCancellationRequest,
    RefundCalculationResponse,
)
from travelbooks.services.refund_calculator import RefundCalculator

router = APIRouter()


@router.post("/calculate", response_model=RefundCalculationResponse)
async def calculate_refund(
    data: CancellationRequest,
    db: Session = Depends(get_db),
) -> RefundCalculationResponse:
    """Preview the refund for cancelling one quote item. Changes nothing."""
    calculation = RefundCalculator(db).calculate_cancellation(
        data.quote_item_id, data.cancellation_date, data.travel_date
    )
    return calculation.to_response()


@router.post("/calculate/quote", response_model=RefundCalculationResponse)
async def calculate_quote_refund(
    data: QuoteCancellationRequest,
    db: Session = Depends(get_db),
) -> RefundCalculationResponse:
    """Preview the refund for cancelling every item on an invoice."""
    calculation = RefundCalculator(db).calculate_quote_cancellation(
        data.invoice_id, data.cancellation_date
    )
    return calculation.to_response()


@router.post("/apply", response_model=RefundCalculationResponse)
async def apply_refund(
    data: CancellationRequest,
    db: Session = Depends(get_db),
) -> RefundCalculationResponse:
    """Cancel a quote item and refund it.

    A clawback on a paid commission is recorded on the commission but not
    applied; post to ``/v1/commissions/{id}/clawback`` to apply it.
    """
    calculation = RefundCalculator(db).apply_cancellation(
        data.quote_item_id, data.cancellation_date, data.travel_date
    )
    return calculation.to_response()
