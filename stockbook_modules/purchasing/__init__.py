"""
Purchasing Module (``stockbook_modules.purchasing``).

Responsibility
--------------
Purchase orders, direct purchase orders (DPO), supplier payments against
DPOs, and DPO returns.  Receiving a document is the posting transition:
it costs the lines, updates canonical Part.cost, appends stock movements
and posts the receipt entry.

Architecture
------------
Layer: **Modules** -- ORM tables, frozen DTOs, declarative workflows and
thin services.  Costing lives in ``stockbook_engines.costing``; posting
in ``stockbook_kernel.services.ledger_poster``.

Invariants
----------
- Each service method owns its transaction boundary.
- Receipt is guarded by a status compare-and-swap; a document cannot be
  received twice.

Failure Modes
-------------
- Any exception triggers a session rollback before re-raising.
"""

from stockbook_modules.purchasing.models import (
    ExpenseInput,
    ItemCostFormula,
    OrderItemInput,
    PaymentResult,
    PurchaseDocument,
    ReceiptFormulas,
    ReceiptResult,
    ReturnItemInput,
    ReturnResult,
)
from stockbook_modules.purchasing.service import DirectPurchaseService, PurchaseOrderService
from stockbook_modules.purchasing.workflows import (
    DIRECT_PURCHASE_WORKFLOW,
    PURCHASE_ORDER_WORKFLOW,
    PURCHASE_RETURN_WORKFLOW,
)

__all__ = [
    "ExpenseInput",
    "ItemCostFormula",
    "OrderItemInput",
    "PaymentResult",
    "PurchaseDocument",
    "ReceiptFormulas",
    "ReceiptResult",
    "ReturnItemInput",
    "ReturnResult",
    "DirectPurchaseService",
    "PurchaseOrderService",
    "DIRECT_PURCHASE_WORKFLOW",
    "PURCHASE_ORDER_WORKFLOW",
    "PURCHASE_RETURN_WORKFLOW",
]
