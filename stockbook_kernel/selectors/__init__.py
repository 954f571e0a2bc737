"""Read-only selectors returning frozen DTOs."""

from stockbook_kernel.selectors.base import BaseSelector
from stockbook_kernel.selectors.ledger_selector import (
    AccountActivity,
    EntryLineView,
    EntryView,
    LedgerLineView,
    LedgerSelector,
)
from stockbook_kernel.selectors.part_selector import (
    PartSelector,
    PartView,
    rank_canonical,
    select_canonical,
)
from stockbook_kernel.selectors.stock_selector import (
    StockLevel,
    StockSelector,
    StockStatus,
    stock_status,
)

__all__ = [
    "AccountActivity",
    "BaseSelector",
    "EntryLineView",
    "EntryView",
    "LedgerLineView",
    "LedgerSelector",
    "PartSelector",
    "PartView",
    "StockLevel",
    "StockSelector",
    "StockStatus",
    "rank_canonical",
    "select_canonical",
    "stock_status",
]
