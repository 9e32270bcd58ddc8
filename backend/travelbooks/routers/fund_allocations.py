"""Fund allocation and escrow API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from travelbooks.core.database import get_db
from travelbooks.models.fund_allocation import FundAllocation
from travelbooks.models.supplier_payment import SupplierPaymentStatus
from travelbooks.schemas.fund_allocation import (
    EscrowRelease,
    EscrowSummary,
    FundAllocationResponse,
    FundAllocationRowResponse,
    SupplierPaymentDue,
    SupplierPaymentPay,
    SupplierPaymentResponse,
)
from travelbooks.services.fund_allocation import FundAllocationEngine

router = APIRouter()


def allocation_response(
    engine: FundAllocationEngine, allocation: FundAllocation
) -> FundAllocationResponse:
    response = FundAllocationResponse.model_validate(allocation)
    response.rows = [
        FundAllocationRowResponse.model_validate(r)
        for r in engine.get_rows(allocation.id)  # type: ignore[arg-type]
    ]
    return response


@router.get("/", response_model=list[FundAllocationResponse])
async def list_fund_allocations(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    quote_id: str | None = None,
    invoice_id: UUID | None = None,
    db: Session = Depends(get_db),
) -> list[FundAllocationResponse]:
    """List fund allocations, optionally for one quote or invoice."""
    engine = FundAllocationEngine(db)
    allocations = engine.list_allocations(
        skip=skip, limit=limit, quote_id=quote_id, invoice_id=invoice_id
    )
    return [allocation_response(engine, a) for a in allocations]


@router.get("/escrow/{quote_id}", response_model=EscrowSummary)
async def get_escrow_summary(
    quote_id: str,
    db: Session = Depends(get_db),
) -> EscrowSummary:
    """Held, released and refunded money for one quote."""
    return FundAllocationEngine(db).escrow_summary(quote_id)


@router.get("/supplier_payments_due", response_model=list[SupplierPaymentDue])
async def list_supplier_payments_due(
    db: Session = Depends(get_db),
) -> list[SupplierPaymentDue]:
    """Supplier cost still held in escrow."""
    return FundAllocationEngine(db).supplier_payments_due()


@router.get("/supplier_payments", response_model=list[SupplierPaymentResponse])
async def list_supplier_payments(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    status: SupplierPaymentStatus | None = None,
    quote_id: str | None = None,
    db: Session = Depends(get_db),
) -> list[SupplierPaymentResponse]:
    """Supplier payouts opened by escrow releases."""
    payments = FundAllocationEngine(db).list_supplier_payments(
        skip=skip, limit=limit, status=status, quote_id=quote_id
    )
    return [SupplierPaymentResponse.model_validate(p) for p in payments]


@router.get("/supplier_payments/{supplier_payment_id}", response_model=SupplierPaymentResponse)
async def get_supplier_payment(
    supplier_payment_id: UUID,
    db: Session = Depends(get_db),
) -> SupplierPaymentResponse:
    return SupplierPaymentResponse.model_validate(
        FundAllocationEngine(db).get_supplier_payment(supplier_payment_id)
    )


@router.post(
    "/supplier_payments/{supplier_payment_id}/pay", response_model=SupplierPaymentResponse
)
async def pay_supplier(
    supplier_payment_id: UUID,
    data: SupplierPaymentPay,
    db: Session = Depends(get_db),
) -> SupplierPaymentResponse:
    """Record the payout of a released supplier cost."""
    supplier_payment = FundAllocationEngine(db).mark_supplier_payment_paid(
        supplier_payment_id,
        payment_method=data.payment_method,
        transfer_reference=data.transfer_reference,
        paid_at=data.paid_at,
        notes=data.notes,
        actor_id=data.actor_id,
    )
    return SupplierPaymentResponse.model_validate(supplier_payment)


@router.get("/{allocation_id}", response_model=FundAllocationResponse)
async def get_fund_allocation(
    allocation_id: UUID,
    db: Session = Depends(get_db),
) -> FundAllocationResponse:
    engine = FundAllocationEngine(db)
    return allocation_response(engine, engine.get_allocation(allocation_id))


@router.post("/{allocation_id}/release", response_model=FundAllocationResponse)
async def release_escrow(
    allocation_id: UUID,
    data: EscrowRelease,
    db: Session = Depends(get_db),
) -> FundAllocationResponse:
    """Release held funds of an allocation, or of one quote item in it."""
    engine = FundAllocationEngine(db)
    allocation = engine.release(
        allocation_id,
        data.trigger,
        effective_date=data.effective_date,
        quote_item_id=data.quote_item_id,
    )
    return allocation_response(engine, allocation)
