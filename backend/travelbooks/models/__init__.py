from travelbooks.models.audit_log import AuditLog
from travelbooks.models.commission import Commission, CommissionStatus
from travelbooks.models.commission_rule import CommissionRule
from travelbooks.models.expense import Expense, ExpenseCategory
from travelbooks.models.fund_allocation import (
    EscrowStatus,
    FundAllocation,
    FundAllocationRow,
    PaymentSource,
    ReleaseTrigger,
)
from travelbooks.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from travelbooks.models.payment import Payment, PaymentMethod, PaymentStatus
from travelbooks.models.shared import BookingType
from travelbooks.models.supplier_payment import SupplierPayment, SupplierPaymentStatus

__all__ = [
    "AuditLog",
    "BookingType",
    "Commission",
    "CommissionRule",
    "CommissionStatus",
    "EscrowStatus",
    "Expense",
    "ExpenseCategory",
    "FundAllocation",
    "FundAllocationRow",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "PaymentSource",
    "PaymentStatus",
    "ReleaseTrigger",
    "SupplierPayment",
    "SupplierPaymentStatus",
]
