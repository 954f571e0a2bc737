"""Statement categories of the chart of accounts and their normal side."""

from enum import Enum


class AccountType(str, Enum):
    """Financial statement category of a main group."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    COST = "cost"


# Accounts of these types grow with debits; the rest grow with credits.
DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE, AccountType.COST})

BALANCE_SHEET_TYPES = frozenset({AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY})
INCOME_STATEMENT_TYPES = frozenset({AccountType.REVENUE, AccountType.EXPENSE, AccountType.COST})
