"""Kernel services: flush-only writers used by the document modules."""

from stockbook_kernel.services.base import BaseService
from stockbook_kernel.services.ledger_poster import LedgerPoster
from stockbook_kernel.services.part_costs import CostChange, PartCostService
from stockbook_kernel.services.stock_ledger import StockLedgerService

__all__ = [
    "BaseService",
    "CostChange",
    "LedgerPoster",
    "PartCostService",
    "StockLedgerService",
]
