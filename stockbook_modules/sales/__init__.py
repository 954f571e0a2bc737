"""
Sales Module (``stockbook_modules.sales``).

Sales invoices: draft -> approved.  Approval issues stock and posts the
revenue and COGS entries at the current average cost.  Customer returns
against an approved invoice: pending -> approved | rejected.
"""

from stockbook_modules.sales.models import (
    ApprovalResult,
    Invoice,
    InvoiceLine,
    SaleItemInput,
    SalesReturn,
    SalesReturnItemInput,
)
from stockbook_modules.sales.service import SalesInvoiceService, SalesReturnService
from stockbook_modules.sales.workflows import SALES_INVOICE_WORKFLOW, SALES_RETURN_WORKFLOW

__all__ = [
    "ApprovalResult",
    "Invoice",
    "InvoiceLine",
    "SaleItemInput",
    "SalesReturn",
    "SalesReturnItemInput",
    "SalesInvoiceService",
    "SalesReturnService",
    "SALES_INVOICE_WORKFLOW",
    "SALES_RETURN_WORKFLOW",
]
