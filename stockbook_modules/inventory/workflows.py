"""
Inventory Workflows.

Adjustments are raised pending and approved once.  Approval moves stock,
updates the average cost for inbound adjustments, and posts against the
inventory adjustment account.
"""

from stockbook_kernel.domain.workflow import Guard, Transition, Workflow
from stockbook_kernel.logging_config import get_logger

logger = get_logger("modules.inventory.workflows")

ADJUSTMENT_STOCK_COVERED = Guard(
    name="adjustment_stock_covered",
    description="Outbound adjustment lines are covered by stock on hand",
)

logger.info(
    "inventory_workflow_guards_defined",
    extra={"guards": [ADJUSTMENT_STOCK_COVERED.name]},
)

INVENTORY_ADJUSTMENT_WORKFLOW = Workflow(
    name="inventory_adjustment",
    description="Stock adjustment approval",
    initial_state="pending",
    states=("pending", "approved"),
    transitions=(
        Transition(
            "pending", "approved",
            action="approve", guard=ADJUSTMENT_STOCK_COVERED, posts_entry=True,
        ),
    ),
    terminal_states=("approved",),
)
