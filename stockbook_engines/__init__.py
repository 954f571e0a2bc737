"""
Module: stockbook_engines
Responsibility:
    Re-exports the pure calculation engines used by the services and the
    document modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  MUST NOT import
    stockbook_modules or any database code.

Invariants enforced:
    - Engines never read the clock; dates are passed in.
    - Decimal-only arithmetic for money.
    - Identical inputs always produce identical outputs.
"""

from stockbook_engines.balances import (
    balance_change,
    check_balanced,
    is_debit_normal,
    natural_balance,
    trial_balance_columns,
)
from stockbook_engines.costing import (
    ExpenseDistributionMethod,
    ReceiptCosting,
    ReceiptLine,
    SaleCosting,
    SaleLine,
    ZeroValuePolicy,
    calculate_average_cost,
    calculate_average_expense_per_unit,
    calculate_cogs,
    calculate_inventory_valuation,
    calculate_landed_cost,
    calculate_stock_quantity,
    cost_purchase_receipt,
    cost_sale,
    distribute_expenses_by_quantity,
    distribute_expenses_by_value,
)

__all__ = [
    "balance_change",
    "check_balanced",
    "is_debit_normal",
    "natural_balance",
    "trial_balance_columns",
    "ExpenseDistributionMethod",
    "ReceiptCosting",
    "ReceiptLine",
    "SaleCosting",
    "SaleLine",
    "ZeroValuePolicy",
    "calculate_average_cost",
    "calculate_average_expense_per_unit",
    "calculate_cogs",
    "calculate_inventory_valuation",
    "calculate_landed_cost",
    "calculate_stock_quantity",
    "cost_purchase_receipt",
    "cost_sale",
    "distribute_expenses_by_quantity",
    "distribute_expenses_by_value",
]
