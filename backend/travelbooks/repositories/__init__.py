from travelbooks.repositories.audit_log_repository import AuditLogRepository
from travelbooks.repositories.commission_repository import CommissionRepository
from travelbooks.repositories.commission_rule_repository import CommissionRuleRepository
from travelbooks.repositories.expense_repository import ExpenseRepository
from travelbooks.repositories.fund_allocation_repository import FundAllocationRepository
from travelbooks.repositories.invoice_repository import InvoiceRepository
from travelbooks.repositories.payment_repository import PaymentRepository
from travelbooks.repositories.supplier_payment_repository import SupplierPaymentRepository

__all__ = [
    "AuditLogRepository",
    "CommissionRepository",
    "CommissionRuleRepository",
    "ExpenseRepository",
    "FundAllocationRepository",
    "InvoiceRepository",
    "PaymentRepository",
    "SupplierPaymentRepository",
]
