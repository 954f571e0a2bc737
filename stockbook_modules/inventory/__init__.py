"""
Inventory Module (``stockbook_modules.inventory``).

Stores, stock adjustments, reservations, stock status, valuation and the
orphaned-movement cleanup.
"""

from stockbook_modules.inventory.models import (
    Adjustment,
    AdjustmentDirection,
    AdjustmentItemInput,
    AdjustmentLine,
    AdjustmentResult,
    InventoryValuation,
    PartStockStatus,
    PurgeResult,
    ValuationLine,
)
from stockbook_modules.inventory.service import InventoryService
from stockbook_modules.inventory.workflows import INVENTORY_ADJUSTMENT_WORKFLOW

__all__ = [
    "Adjustment",
    "AdjustmentDirection",
    "AdjustmentItemInput",
    "AdjustmentLine",
    "AdjustmentResult",
    "InventoryValuation",
    "PartStockStatus",
    "PurgeResult",
    "ValuationLine",
    "InventoryService",
    "INVENTORY_ADJUSTMENT_WORKFLOW",
]
