"""
Sales Domain Models (``stockbook_modules.sales.models``).

Frozen DTOs for invoice lines, customer returns and approval results.  All money is Decimal.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from stockbook_kernel.domain.amounts import ZERO, non_negative, positive_quantity


@dataclass(frozen=True)
class SaleItemInput:
    part_id: UUID
    quantity: int
    unit_price: Decimal

    def __post_init__(self):
        positive_quantity(self.quantity)
        object.__setattr__(self, "unit_price", non_negative(self.unit_price, "unit_price"))


@dataclass(frozen=True)
class InvoiceLine:
    part_id: UUID
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal | None
    cogs: Decimal | None


@dataclass(frozen=True)
class Invoice:
    id: UUID
    invoice_no: str
    invoice_date: date
    customer_name: str | None
    store_id: UUID | None
    status: str
    total_amount: Decimal
    cogs_total: Decimal
    lines: tuple[InvoiceLine, ...] = ()
    customer_id: UUID | None = None

    @property
    def gross_profit(self) -> Decimal:
        return self.total_amount - self.cogs_total


@dataclass(frozen=True)
class ApprovalResult:
    invoice: Invoice
    revenue_entry_number: str | None
    cogs_entry_number: str | None
    movements_created: int = 0
    gross_profit: Decimal = ZERO


@dataclass(frozen=True)
class SalesReturnItemInput:
    part_id: UUID
    quantity: int

    def __post_init__(self):
        positive_quantity(self.quantity)


@dataclass(frozen=True)
class SalesReturn:
    id: UUID
    return_number: str
    invoice_id: UUID
    return_date: date
    status: str
    total_amount: Decimal
    cost_total: Decimal
    revenue_entry_number: str | None = None
    cogs_entry_number: str | None = None
