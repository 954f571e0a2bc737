"""
Sales Workflows.

Invoices are drafted, then approved.  Approval issues stock and posts the
revenue and COGS entries; an approved invoice leaves only by deletion
with reversal.

Customer returns against an approved invoice are raised pending and then
approved (stock back in, revenue and COGS reversed) or rejected.
"""

from stockbook_kernel.domain.workflow import Guard, Transition, Workflow
from stockbook_kernel.logging_config import get_logger

logger = get_logger("modules.sales.workflows")

STOCK_AVAILABLE = Guard(
    name="stock_available",
    description="Every line is covered by stock on hand",
)

SALES_INVOICE_WORKFLOW = Workflow(
    name="sales_invoice",
    description="Sales invoice approval",
    initial_state="draft",
    states=("draft", "approved"),
    transitions=(
        Transition("draft", "approved", action="approve", guard=STOCK_AVAILABLE, posts_entry=True),
    ),
    terminal_states=("approved",),
)

SALES_RETURN_WORKFLOW = Workflow(
    name="sales_return",
    description="Customer return against an approved invoice",
    initial_state="pending",
    states=("pending", "approved", "rejected"),
    transitions=(
        Transition("pending", "approved", action="approve", posts_entry=True),
        Transition("pending", "rejected", action="reject"),
    ),
    terminal_states=("approved", "rejected"),
)
