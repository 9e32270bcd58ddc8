import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.responses import Response

from travelbooks.core.config import settings
from travelbooks.core.errors import ConsistencyError, LedgerError
from travelbooks.routers import (
    audit_logs,
    commission_rules,
    commissions,
    expenses,
    fund_allocations,
    invoices,
    payments,
    refunds,
    reports,
)

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "Invoices", "description": "Invoices created from accepted quotes."},
    {"name": "Payments", "description": "Payment-confirmation events and payment records."},
    {"name": "Fund Allocations", "description": "Per-item payment splits and escrow."},
    {"name": "Refunds", "description": "Cancellation refund calculation and application."},
    {"name": "Commissions", "description": "Agent commission lifecycle and clawbacks."},
    {"name": "Commission Rules", "description": "Configure and resolve commission rates."},
    {"name": "Expenses", "description": "Record and approve operating expenses."},
    {"name": "Reports", "description": "Revenue, profit and collection reporting."},
    {"name": "Audit Logs", "description": "Query the audit trail for ledger entities."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Financial ledger for a travel agency. "
        "Invoices accepted quotes, applies payments, splits funds into escrow, "
        "tracks agent commissions and computes cancellation refunds."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)


@app.middleware("http")
async def options_handler(request: Request, call_next):  # type: ignore[no-untyped-def]
    if request.method == "OPTIONS":
        origin = request.headers.get("origin", "*")
        return Response(
            status_code=200,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": "*",
                "Access-Control-Allow-Headers": "*",
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Max-Age": "86400",
            },
        )
    return await call_next(request)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if isinstance(exc, ConsistencyError):
        logger.error("Ledger inconsistency on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


app.include_router(invoices.router, prefix="/v1/invoices", tags=["Invoices"])
app.include_router(payments.router, prefix="/v1/payments", tags=["Payments"])
app.include_router(
    fund_allocations.router,
    prefix="/v1/fund_allocations",
    tags=["Fund Allocations"],
)
app.include_router(refunds.router, prefix="/v1/refunds", tags=["Refunds"])
app.include_router(commissions.router, prefix="/v1/commissions", tags=["Commissions"])
app.include_router(
    commission_rules.router,
    prefix="/v1/commission_rules",
    tags=["Commission Rules"],
)
app.include_router(expenses.router, prefix="/v1/expenses", tags=["Expenses"])
app.include_router(reports.router, prefix="/v1/reports", tags=["Reports"])
app.include_router(
    audit_logs.router,
    prefix="/v1/audit_logs",
    tags=["Audit Logs"],
)


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
