"""
Purchasing Domain Models (``stockbook_modules.purchasing.models``).

Responsibility
--------------
Frozen value objects passed into and returned from the purchasing
services: order lines, expense lines, return lines, and the results of
creating, receiving, paying and returning purchases.

Architecture
------------
Layer: **Modules** -- pure data structures.  No database identity beyond
the ids they carry, no I/O.

Invariants
----------
- Quantities are positive integers; prices and amounts are non-negative
  ``Decimal`` (validated on construction).
- ``ReceiptFormulas.items`` follows the order of the document lines.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from stockbook_kernel.domain.amounts import ZERO, non_negative, positive_quantity


# -----------------------------------------------------------------------------
# Inputs
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItemInput:
    """One line of a PO or DPO."""

    part_id: UUID
    quantity: int
    unit_price: Decimal

    def __post_init__(self):
        positive_quantity(self.quantity)
        object.__setattr__(self, "unit_price", non_negative(self.unit_price, "unit_price"))

    @property
    def value(self) -> Decimal:
        return Decimal(self.quantity) * self.unit_price


@dataclass(frozen=True)
class ExpenseInput:
    """Freight, duty or other incidental cost carried by a purchase."""

    expense_type: str
    amount: Decimal
    payable_account_id: UUID | None = None
    description: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "amount", non_negative(self.amount, "amount"))


@dataclass(frozen=True)
class ReturnItemInput:
    part_id: UUID
    quantity: int
    unit_cost: Decimal | None = None

    def __post_init__(self):
        positive_quantity(self.quantity)
        if self.unit_cost is not None:
            object.__setattr__(self, "unit_cost", non_negative(self.unit_cost, "unit_cost"))


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ItemCostFormula:
    """Before/after cost figures for one received line."""

    part_id: UUID
    quantity: int
    unit_price: Decimal
    expense_share: Decimal
    expense_per_unit: Decimal
    landed_cost: Decimal
    old_cost: Decimal
    new_average_cost: Decimal
    applied_cost: Decimal


@dataclass(frozen=True)
class ReceiptFormulas:
    total_expenses: Decimal
    items_processed: int
    items: tuple[ItemCostFormula, ...] = ()

    def as_dict(self) -> dict:
        return {
            "total_expenses": str(self.total_expenses),
            "items_processed": self.items_processed,
            "items": [
                {
                    "part_id": str(item.part_id),
                    "old_cost": str(item.old_cost),
                    "new_average_cost": str(item.new_average_cost),
                    "landed_cost": str(item.landed_cost),
                    "applied_cost": str(item.applied_cost),
                }
                for item in self.items
            ],
        }


@dataclass(frozen=True)
class PurchaseDocument:
    """A PO or DPO header as returned by the services."""

    id: UUID
    number: str
    status: str
    order_date: date
    supplier_id: UUID
    store_id: UUID | None
    items_total: Decimal
    expenses_total: Decimal
    total_amount: Decimal
    paid_amount: Decimal = ZERO
    outstanding: Decimal = ZERO
    line_count: int = 0


@dataclass(frozen=True)
class ReceiptResult:
    document_id: UUID
    number: str
    status: str
    entry_number: str | None
    movements_created: int
    formulas: ReceiptFormulas = field(
        default_factory=lambda: ReceiptFormulas(total_expenses=ZERO, items_processed=0),
    )


@dataclass(frozen=True)
class PaymentResult:
    document_id: UUID
    number: str
    status: str
    voucher_number: str
    amount: Decimal
    paid_amount: Decimal
    outstanding: Decimal


@dataclass(frozen=True)
class ReturnResult:
    id: UUID
    return_number: str
    direct_purchase_order_id: UUID
    status: str
    total_amount: Decimal
    entry_number: str | None = None
