import logging
from datetime import UTC, datetime
from typing import Any

from arq import cron

from travelbooks.core.config import settings
from travelbooks.core.database import SessionLocal
from travelbooks.core.errors import ExternalGatewayError
from travelbooks.schemas.payment import PaymentConfirmation
from travelbooks.services.fund_allocation import FundAllocationEngine
from travelbooks.services.invoice_ledger import InvoiceLedger
from travelbooks.tasks import redis_settings

logger = logging.getLogger(__name__)


async def apply_payment_confirmation_task(ctx: dict[str, Any], payload: dict[str, Any]) -> str:
    """Background task: apply a queued payment-confirmation event.

    Args:
        ctx: ARQ worker context.
        payload: ``PaymentConfirmation`` as JSON.

    Returns:
        Resulting payment status, or ``"replayed"`` for an already applied event.
    """
    event = PaymentConfirmation.model_validate(payload)
    db = SessionLocal()
    try:
        engine = FundAllocationEngine(db)
        try:
            application = engine.apply_payment_confirmation(event)
        except ExternalGatewayError as e:
            # The failed payment is already recorded; retrying will not change it.
            logger.warning("Gateway failure for %s: %s", event.payment_intent_id, e)
            return "failed"
        if application.replayed:
            return "replayed"
        return str(application.payment.status)
    finally:
        db.close()


async def release_due_escrow_task(ctx: dict[str, Any]) -> int:
    """Background task: release escrow for finished trips and closed
    cancellation windows.

    Runs hourly.
    """
    db = SessionLocal()
    try:
        released = FundAllocationEngine(db).release_due(datetime.now(UTC))
        return len(released)
    finally:
        db.close()


async def mark_overdue_invoices_task(ctx: dict[str, Any]) -> int:
    """Background task: move unsettled invoices past their due date to overdue.

    Runs daily.
    """
    db = SessionLocal()
    try:
        invoices = InvoiceLedger(db).mark_all_overdue(datetime.now(UTC))
        if invoices:
            logger.info("Marked %d invoices overdue", len(invoices))
        return len(invoices)
    finally:
        db.close()


class WorkerSettings:
    functions = [
        apply_payment_confirmation_task,
        release_due_escrow_task,
        mark_overdue_invoices_task,
    ]
    cron_jobs = [
        cron(release_due_escrow_task, minute={settings.ESCROW_SWEEP_MINUTE}),  # hourly
        cron(mark_overdue_invoices_task, hour=0, minute=5),  # daily
    ]
    redis_settings = redis_settings
