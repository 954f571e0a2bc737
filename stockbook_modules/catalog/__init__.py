"""
Catalog Module (``stockbook_modules.catalog``).

Chart of accounts, suppliers, customers and the parts catalog.
"""

from stockbook_modules.catalog.models import (
    AccountView,
    BalanceCorrection,
    BalanceRecalculation,
    ChartInstallResult,
    CustomerView,
    MergeResult,
    SupplierView,
)
from stockbook_modules.catalog.service import (
    ChartOfAccountsService,
    CustomerService,
    PartService,
    SupplierService,
    add_account,
)

__all__ = [
    "AccountView",
    "BalanceCorrection",
    "BalanceRecalculation",
    "ChartInstallResult",
    "CustomerView",
    "MergeResult",
    "SupplierView",
    "ChartOfAccountsService",
    "CustomerService",
    "PartService",
    "SupplierService",
    "add_account",
]
