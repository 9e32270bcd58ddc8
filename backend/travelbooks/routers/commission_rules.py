"""Commission rule configuration API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from travelbooks.core.database import get_db
from travelbooks.models.commission_rule import CommissionRule
from travelbooks.repositories.commission_rule_repository import CommissionRuleRepository
from travelbooks.schemas.commission import (
    CommissionRuleCreate,
    CommissionRuleResponse,
    CommissionRuleUpdate,
    RateResolutionRequest,
    RateResolutionResponse,
)
from travelbooks.services.commission_calculator import CommissionCalculator
from travelbooks.services.commission_rules import CommissionRuleResolver

router = APIRouter()


@router.get("/", response_model=list[CommissionRuleResponse])
async def list_commission_rules(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    agent_id: str | None = None,
    active_only: bool = False,
    db: Session = Depends(get_db),
) -> list[CommissionRule]:
    repo = CommissionRuleRepository(db)
    return repo.get_all(skip=skip, limit=limit, agent_id=agent_id, active_only=active_only)


@router.post("/", response_model=CommissionRuleResponse, status_code=201)
async def create_commission_rule(
    data: CommissionRuleCreate,
    db: Session = Depends(get_db),
) -> CommissionRule:
    CommissionCalculator().validate_rate(data.commission_rate)
    repo = CommissionRuleRepository(db)
    return repo.create(data)


@router.post("/resolve", response_model=RateResolutionResponse)
async def resolve_commission_rate(
    data: RateResolutionRequest,
    db: Session = Depends(get_db),
) -> RateResolutionResponse:
    """Show which rate a booking would earn and where it came from."""
    resolved = CommissionRuleResolver.from_session(db).resolve(
        data.agent_id, data.booking_amount, data.booking_type, data.quote_override_rate
    )
    amount = CommissionCalculator().calculate(data.booking_amount, resolved.rate, resolved.flat_fee)
    return RateResolutionResponse(
        rate=resolved.rate,
        flat_fee=resolved.flat_fee,
        source=resolved.source.value,
        rule_id=resolved.rule_id,
        commission_amount=amount,
    )


@router.get("/{rule_id}", response_model=CommissionRuleResponse)
async def get_commission_rule(
    rule_id: UUID,
    db: Session = Depends(get_db),
) -> CommissionRule:
    repo = CommissionRuleRepository(db)
    rule = repo.get_by_id(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Commission rule not found")
    return rule


@router.put("/{rule_id}", response_model=CommissionRuleResponse)
async def update_commission_rule(
    rule_id: UUID,
    data: CommissionRuleUpdate,
    db: Session = Depends(get_db),
) -> CommissionRule:
    if data.commission_rate is not None:
        CommissionCalculator().validate_rate(data.commission_rate)
    repo = CommissionRuleRepository(db)
    rule = repo.update(rule_id, data)
    if not rule:
        raise HTTPException(status_code=404, detail="Commission rule not found")
    return rule


@router.delete("/{rule_id}", status_code=204)
async def delete_commission_rule(
    rule_id: UUID,
    db: Session = Depends(get_db),
) -> None:
    repo = CommissionRuleRepository(db)
    if not repo.delete(rule_id):
        raise HTTPException(status_code=404, detail="Commission rule not found")
