"""Payment API endpoints."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from travelbooks.core.database import get_db
from travelbooks.models.payment import Payment, PaymentStatus
from travelbooks.repositories.payment_repository import PaymentRepository
from travelbooks.schemas.payment import (
    PaymentApplicationResponse,
    PaymentConfirmation,
    PaymentResponse,
)
from travelbooks.services.fund_allocation import FundAllocationEngine, PaymentApplication
from travelbooks.tasks import enqueue_payment_confirmation

router = APIRouter()


def application_response(application: PaymentApplication) -> PaymentApplicationResponse:
    invoice = application.invoice
    return PaymentApplicationResponse(
        payment=PaymentResponse.model_validate(application.payment),
        invoice_status=str(invoice.status),
        paid_amount=invoice.paid_amount,  # type: ignore[arg-type]
        remaining_amount=invoice.remaining_amount,  # type: ignore[arg-type]
        allocation_id=application.allocation.id if application.allocation else None,  # type: ignore[arg-type]
        commission_ids=[c.id for c in application.commissions],  # type: ignore[misc]
        replayed=application.replayed,
    )


@router.get("/", response_model=list[PaymentResponse])
async def list_payments(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    invoice_id: UUID | None = None,
    status: PaymentStatus | None = None,
    db: Session = Depends(get_db),
) -> list[Payment]:
    """List payments with optional filters."""
    repo = PaymentRepository(db)
    return repo.get_all(skip=skip, limit=limit, invoice_id=invoice_id, status=status)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
) -> Payment:
    """Get a payment by ID."""
    repo = PaymentRepository(db)
    payment = repo.get_by_id(payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


@router.post("/confirmations", response_model=PaymentApplicationResponse)
async def confirm_payment(
    event: PaymentConfirmation,
    db: Session = Depends(get_db),
) -> PaymentApplicationResponse:
    """Apply a payment-processor confirmation event.

    Idempotent per ``payment_intent_id``: a redelivered event returns the
    original result with ``replayed`` set.
    """
    application = FundAllocationEngine(db).apply_payment_confirmation(event)
    return application_response(application)


@router.post("/confirmations/async", status_code=202)
async def queue_payment_confirmation(event: PaymentConfirmation) -> dict[str, Any]:
    """Queue a confirmation event for the background worker."""
    job = await enqueue_payment_confirmation(event)
    return {
        "job_id": job.job_id if job else None,
        "payment_intent_id": event.payment_intent_id,
        "queued": job is not None,
    }
