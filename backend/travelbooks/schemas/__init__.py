from travelbooks.schemas.audit_log import AuditLogResponse
from travelbooks.schemas.cancellation import (
    DEFAULT_CANCELLATION_POLICY,
    CancellationPolicy,
    CancellationRequest,
    QuoteCancellationRequest,
    RefundBreakdownItem,
    RefundCalculationResponse,
    RefundRule,
)
from travelbooks.schemas.commission import (
    AgentCommissionSummary,
    BulkCommissionRequest,
    ClawbackRequest,
    CommissionPay,
    CommissionResponse,
    CommissionRuleCreate,
    CommissionRuleResponse,
    CommissionRuleUpdate,
    RateResolutionRequest,
    RateResolutionResponse,
)
from travelbooks.schemas.expense import ExpenseApprove, ExpenseCreate, ExpenseResponse
from travelbooks.schemas.fund_allocation import (
    EscrowRelease,
    EscrowSummary,
    FundAllocationResponse,
    FundAllocationRowResponse,
    SupplierPaymentDue,
    SupplierPaymentPay,
    SupplierPaymentResponse,
)
from travelbooks.schemas.invoice import (
    CustomerRef,
    InvoiceDetailResponse,
    InvoiceItemResponse,
    InvoiceResponse,
    ManualPaymentCreate,
    QuoteAcceptance,
    QuoteItemInput,
)
from travelbooks.schemas.payment import (
    PaymentApplicationResponse,
    PaymentConfirmation,
    PaymentResponse,
)
from travelbooks.schemas.reports import FinancialSummaryResponse, MetricResponse

__all__ = [
    "DEFAULT_CANCELLATION_POLICY",
    "AgentCommissionSummary",
    "AuditLogResponse",
    "BulkCommissionRequest",
    "CancellationPolicy",
    "CancellationRequest",
    "ClawbackRequest",
    "CommissionPay",
    "CommissionResponse",
    "CommissionRuleCreate",
    "CommissionRuleResponse",
    "CommissionRuleUpdate",
    "CustomerRef",
    "EscrowRelease",
    "EscrowSummary",
    "ExpenseApprove",
    "ExpenseCreate",
    "ExpenseResponse",
    "FinancialSummaryResponse",
    "FundAllocationResponse",
    "FundAllocationRowResponse",
    "InvoiceDetailResponse",
    "InvoiceItemResponse",
    "InvoiceResponse",
    "ManualPaymentCreate",
    "MetricResponse",
    "PaymentApplicationResponse",
    "PaymentConfirmation",
    "PaymentResponse",
    "QuoteAcceptance",
    "QuoteCancellationRequest",
    "QuoteItemInput",
    "RateResolutionRequest",
    "RateResolutionResponse",
    "RefundBreakdownItem",
    "RefundCalculationResponse",
    "RefundRule",
    "SupplierPaymentDue",
    "SupplierPaymentPay",
    "SupplierPaymentResponse",
]
