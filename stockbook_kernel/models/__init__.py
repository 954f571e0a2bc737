"""Kernel ORM models: chart of accounts, ledger, catalog, stock, suppliers and customers."""

from stockbook_kernel.models.account import (
    DEBIT_NORMAL_TYPES,
    Account,
    AccountStatus,
    AccountType,
    MainGroup,
    Subgroup,
)
from stockbook_kernel.models.ledger import (
    EntryKind,
    EntryStatus,
    LedgerEntry,
    LedgerLine,
    VoucherType,
)
from stockbook_kernel.models.part import (
    Application,
    Brand,
    Category,
    CostSource,
    Part,
    PartStatus,
    Subcategory,
)
from stockbook_kernel.models.party import Customer, Supplier
from stockbook_kernel.models.stock import (
    MovementType,
    ReferenceType,
    StockMovement,
    Store,
)

__all__ = [
    "Account",
    "AccountStatus",
    "AccountType",
    "DEBIT_NORMAL_TYPES",
    "MainGroup",
    "Subgroup",
    "EntryKind",
    "EntryStatus",
    "LedgerEntry",
    "LedgerLine",
    "VoucherType",
    "Application",
    "Brand",
    "Category",
    "CostSource",
    "Part",
    "PartStatus",
    "Subcategory",
    "Customer",
    "Supplier",
    "MovementType",
    "ReferenceType",
    "StockMovement",
    "Store",
]
