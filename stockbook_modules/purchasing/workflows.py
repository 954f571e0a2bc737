"""
Purchasing Workflows.

State machines for purchase orders, direct purchase orders and DPO
returns.  Receiving is the posting transition; once a document is
received it leaves only by deletion with reversal.
"""

from stockbook_kernel.domain.workflow import Guard, Transition, Workflow
from stockbook_kernel.logging_config import get_logger

logger = get_logger("modules.purchasing.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_ITEMS = Guard(
    name="has_items",
    description="Document has at least one line with positive quantity",
)

FULLY_PAID = Guard(
    name="fully_paid",
    description="Payments cover the document total",
)

STOCK_ON_HAND = Guard(
    name="stock_on_hand",
    description="Returned quantity is still in stock",
)

logger.info(
    "purchasing_workflow_guards_defined",
    extra={"guards": [HAS_ITEMS.name, FULLY_PAID.name, STOCK_ON_HAND.name]},
)


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order receipt",
    initial_state="pending",
    states=("pending", "received"),
    transitions=(
        Transition("pending", "received", action="receive", guard=HAS_ITEMS, posts_entry=True),
    ),
    terminal_states=("received",),
)


# -----------------------------------------------------------------------------
# Direct Purchase Order Workflow
# -----------------------------------------------------------------------------

DIRECT_PURCHASE_WORKFLOW = Workflow(
    name="direct_purchase_order",
    description="Direct purchase receipt and settlement",
    initial_state="pending",
    states=("pending", "received", "completed"),
    transitions=(
        Transition("pending", "received", action="receive", guard=HAS_ITEMS, posts_entry=True),
        Transition("received", "completed", action="settle", guard=FULLY_PAID),
    ),
    terminal_states=("completed",),
)


# -----------------------------------------------------------------------------
# DPO Return Workflow
# -----------------------------------------------------------------------------

PURCHASE_RETURN_WORKFLOW = Workflow(
    name="direct_purchase_return",
    description="Supplier return of received direct-purchase stock",
    initial_state="pending",
    states=("pending", "approved", "rejected"),
    transitions=(
        Transition("pending", "approved", action="approve", guard=STOCK_ON_HAND, posts_entry=True),
        Transition("pending", "rejected", action="reject"),
    ),
    terminal_states=("approved", "rejected"),
)
