"""Invoice API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from travelbooks.core.database import get_db
from travelbooks.models.invoice import Invoice, InvoiceStatus
from travelbooks.models.payment import PaymentStatus
from travelbooks.models.shared import utc_now
from travelbooks.repositories.invoice_repository import InvoiceRepository
from travelbooks.repositories.payment_repository import PaymentRepository
from travelbooks.routers.payments import application_response
from travelbooks.schemas.invoice import (
    InvoiceDetailResponse,
    InvoiceItemResponse,
    InvoiceResponse,
    ManualPaymentCreate,
    QuoteAcceptance,
)
from travelbooks.schemas.payment import (
    PaymentApplicationResponse,
    PaymentConfirmation,
    PaymentResponse,
)
from travelbooks.services.fund_allocation import FundAllocationEngine
from travelbooks.services.invoice_ledger import InvoiceLedger, is_overdue

router = APIRouter()


def invoice_response(invoice: Invoice) -> InvoiceResponse:
    response = InvoiceResponse.model_validate(invoice)
    response.is_overdue = is_overdue(invoice, utc_now())
    return response


@router.post("/from-quote", response_model=InvoiceResponse, status_code=201)
async def create_invoice_from_quote(
    data: QuoteAcceptance,
    db: Session = Depends(get_db),
) -> InvoiceResponse:
    """Create a draft invoice from an accepted quote."""
    invoice = InvoiceLedger(db).create_from_acceptance(data)
    return invoice_response(invoice)


@router.get("/", response_model=list[InvoiceResponse])
async def list_invoices(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    status: InvoiceStatus | None = None,
    customer_id: str | None = None,
    quote_id: str | None = None,
    overdue: bool = False,
    db: Session = Depends(get_db),
) -> list[InvoiceResponse]:
    """List invoices with optional filters."""
    ledger = InvoiceLedger(db)
    if overdue:
        invoices = ledger.list_overdue(utc_now())
    else:
        invoices = ledger.list_invoices(
            skip=skip, limit=limit, status=status, customer_id=customer_id, quote_id=quote_id
        )
    return [invoice_response(i) for i in invoices]


@router.get("/{invoice_id}", response_model=InvoiceDetailResponse)
async def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> InvoiceDetailResponse:
    """Get an invoice with its items and payments."""
    invoice = InvoiceLedger(db).get_invoice(invoice_id)
    items = InvoiceRepository(db).get_items(invoice_id)
    payments = PaymentRepository(db).get_by_invoice_id(invoice_id)
    return InvoiceDetailResponse(
        **invoice_response(invoice).model_dump(),
        items=[InvoiceItemResponse.model_validate(i) for i in items],
        payments=[PaymentResponse.model_validate(p) for p in payments],
    )


@router.post("/{invoice_id}/send", response_model=InvoiceResponse)
async def send_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> InvoiceResponse:
    """Mark an invoice as sent to the customer."""
    return invoice_response(InvoiceLedger(db).mark_as_sent(invoice_id))


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> InvoiceResponse:
    """Cancel an unpaid invoice."""
    return invoice_response(InvoiceLedger(db).cancel(invoice_id))


@router.post(
    "/{invoice_id}/payments", response_model=PaymentApplicationResponse, status_code=201
)
async def record_manual_payment(
    invoice_id: UUID,
    data: ManualPaymentCreate,
    db: Session = Depends(get_db),
) -> PaymentApplicationResponse:
    """Record an offline payment (cash, check, bank transfer) against an invoice.

    Goes through the same path as a gateway confirmation, so the payment is
    allocated to escrow and earns commission like any other.
    """
    event = PaymentConfirmation(
        payment_intent_id=data.payment_intent_id,
        invoice_id=invoice_id,
        amount=data.amount,
        method=data.method,
        processing_fee=data.processing_fee,
        status=PaymentStatus.COMPLETED,
    )
    return application_response(FundAllocationEngine(db).apply_payment_confirmation(event))
