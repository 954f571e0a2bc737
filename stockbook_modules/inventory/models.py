"""
Inventory Domain Models (``stockbook_modules.inventory.models``).

Responsibility
--------------
Frozen value objects for stock adjustments, stock status and inventory
valuation.  They carry no database identity and do no I/O.

Invariants
----------
- Adjustment quantities are positive; ``unit_cost`` when given is a
  non-negative ``Decimal``.
- ``InventoryValuation.total_value`` is the sum of its lines' values.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stockbook_kernel.domain.amounts import ZERO, non_negative, positive_quantity
from stockbook_kernel.selectors.stock_selector import StockStatus


class AdjustmentDirection(str, Enum):
    IN = "in"
    OUT = "out"


@dataclass(frozen=True)
class AdjustmentItemInput:
    """One adjusted part.  ``unit_cost`` applies to inbound lines only."""

    part_id: UUID
    quantity: int
    unit_cost: Decimal | None = None

    def __post_init__(self):
        positive_quantity(self.quantity)
        if self.unit_cost is not None:
            object.__setattr__(self, "unit_cost", non_negative(self.unit_cost, "unit_cost"))


@dataclass(frozen=True)
class AdjustmentLine:
    part_id: UUID
    quantity: int
    unit_cost: Decimal | None


@dataclass(frozen=True)
class Adjustment:
    id: UUID
    adjustment_no: str
    adjustment_date: date
    direction: str
    status: str
    store_id: UUID | None
    reason: str | None
    total_value: Decimal
    lines: tuple[AdjustmentLine, ...] = ()


@dataclass(frozen=True)
class AdjustmentResult:
    adjustment: Adjustment
    entry_number: str | None
    movements_created: int


@dataclass(frozen=True)
class PartStockStatus:
    """Stock position of the canonical row for a part number."""

    part_id: UUID
    part_no: str
    on_hand: int
    reserved: int
    available: int
    reorder_level: int
    status: StockStatus
    unit_cost: Decimal


@dataclass(frozen=True)
class ValuationLine:
    part_id: UUID
    part_no: str
    quantity: int
    unit_cost: Decimal

    @property
    def value(self) -> Decimal:
        return Decimal(self.quantity) * self.unit_cost


@dataclass(frozen=True)
class InventoryValuation:
    lines: tuple[ValuationLine, ...]
    total_value: Decimal = ZERO


@dataclass(frozen=True)
class PurgeResult:
    """Orphaned movements removed, counted per reference type."""

    removed: dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.removed.values())
