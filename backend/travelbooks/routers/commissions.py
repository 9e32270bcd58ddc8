"""Agent commission API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from travelbooks.core.database import get_db
from travelbooks.models.commission import Commission, CommissionStatus
from travelbooks.schemas.commission import (
    AgentCommissionSummary,
    BulkCommissionRequest,
    ClawbackRequest,
    CommissionPay,
    CommissionResponse,
)
from travelbooks.services.commission_service import CommissionService

router = APIRouter()


@router.get("/", response_model=list[CommissionResponse])
async def list_commissions(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    agent_id: str | None = None,
    status: CommissionStatus | None = None,
    invoice_id: UUID | None = None,
    quote_id: str | None = None,
    db: Session = Depends(get_db),
) -> list[Commission]:
    return CommissionService(db).list_commissions(
        skip=skip,
        limit=limit,
        agent_id=agent_id,
        status=status,
        invoice_id=invoice_id,
        quote_id=quote_id,
    )


@router.get("/agents/{agent_id}/summary", response_model=AgentCommissionSummary)
async def get_agent_summary(
    agent_id: str,
    db: Session = Depends(get_db),
) -> AgentCommissionSummary:
    """Earned, paid, pending and clawed back totals for one agent."""
    return CommissionService(db).agent_summary(agent_id)


@router.post("/bulk_approve", response_model=list[CommissionResponse])
async def bulk_approve_commissions(
    data: BulkCommissionRequest,
    db: Session = Depends(get_db),
) -> list[Commission]:
    return CommissionService(db).bulk_approve(data.commission_ids)


@router.post("/bulk_pay", response_model=list[CommissionResponse])
async def bulk_pay_commissions(
    data: BulkCommissionRequest,
    db: Session = Depends(get_db),
) -> list[Commission]:
    return CommissionService(db).bulk_pay(data.commission_ids, data.payment_method)


@router.get("/{commission_id}", response_model=CommissionResponse)
async def get_commission(
    commission_id: UUID,
    db: Session = Depends(get_db),
) -> Commission:
    return CommissionService(db).get_commission(commission_id)


@router.post("/{commission_id}/approve", response_model=CommissionResponse)
async def approve_commission(
    commission_id: UUID,
    db: Session = Depends(get_db),
) -> Commission:
    return CommissionService(db).approve(commission_id)


@router.post("/{commission_id}/pay", response_model=CommissionResponse)
async def pay_commission(
    commission_id: UUID,
    data: CommissionPay,
    db: Session = Depends(get_db),
) -> Commission:
    return CommissionService(db).mark_paid(commission_id, data.payment_method)


@router.post("/{commission_id}/dispute", response_model=CommissionResponse)
async def dispute_commission(
    commission_id: UUID,
    reason: str = Query(min_length=1),
    db: Session = Depends(get_db),
) -> Commission:
    return CommissionService(db).dispute(commission_id, reason)


@router.post("/{commission_id}/clawback", response_model=CommissionResponse)
async def clawback_commission(
    commission_id: UUID,
    data: ClawbackRequest,
    db: Session = Depends(get_db),
) -> Commission:
    """Apply the clawback recorded when the booking was cancelled."""
    return CommissionService(db).apply_clawback(
        commission_id, data.reason, amount=data.amount, actor_id=data.actor_id
    )
