"""Expense API endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from travelbooks.core.database import get_db
from travelbooks.models.expense import Expense, ExpenseCategory
from travelbooks.repositories.expense_repository import ExpenseRepository
from travelbooks.schemas.expense import ExpenseApprove, ExpenseCreate, ExpenseResponse

router = APIRouter()


@router.get("/", response_model=list[ExpenseResponse])
async def list_expenses(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    category: ExpenseCategory | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
) -> list[Expense]:
    repo = ExpenseRepository(db)
    return repo.get_all(
        skip=skip, limit=limit, category=category, start_date=start_date, end_date=end_date
    )


@router.post("/", response_model=ExpenseResponse, status_code=201)
async def create_expense(
    data: ExpenseCreate,
    db: Session = Depends(get_db),
) -> Expense:
    repo = ExpenseRepository(db)
    return repo.create(data)


@router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: UUID,
    db: Session = Depends(get_db),
) -> Expense:
    repo = ExpenseRepository(db)
    expense = repo.get_by_id(expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


@router.post("/{expense_id}/approve", response_model=ExpenseResponse)
async def approve_expense(
    expense_id: UUID,
    data: ExpenseApprove,
    db: Session = Depends(get_db),
) -> Expense:
    repo = ExpenseRepository(db)
    try:
        expense = repo.approve(expense_id, data.approved_by)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense
