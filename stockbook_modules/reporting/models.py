"""
Reporting Domain Models (``stockbook_modules.reporting.models``).

Responsibility
--------------
Frozen report DTOs: trial balance, balance sheet, income statement,
account ledger, general journal and the cached-balance drift check.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields are ``Decimal``.
* Every figure is derived from posted ledger lines and opening balances;
  ``cached_balance`` appears only in the drift report.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stockbook_kernel.selectors.ledger_selector import EntryView


class ReportType(str, Enum):
    TRIAL_BALANCE = "trial_balance"
    BALANCE_SHEET = "balance_sheet"
    INCOME_STATEMENT = "income_statement"
    ACCOUNT_LEDGER = "account_ledger"
    GENERAL_JOURNAL = "general_journal"
    BALANCE_DRIFT = "balance_drift"


@dataclass(frozen=True)
class ReportMetadata:
    report_type: ReportType
    generated_at: str  # ISO timestamp from the injected clock
    period_start: date | None = None
    period_end: date | None = None


# =========================================================================
# Trial balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceLine:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    balance: Decimal  # natural balance, positive on the normal side
    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class TrialBalanceSubgroup:
    code: str
    name: str
    lines: tuple[TrialBalanceLine, ...]
    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class TrialBalanceGroup:
    code: str
    name: str
    account_type: str
    subgroups: tuple[TrialBalanceSubgroup, ...]
    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    metadata: ReportMetadata
    groups: tuple[TrialBalanceGroup, ...]
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool

    @property
    def lines(self) -> tuple[TrialBalanceLine, ...]:
        return tuple(
            line
            for group in self.groups
            for subgroup in group.subgroups
            for line in subgroup.lines
        )


# =========================================================================
# Statements
# =========================================================================


@dataclass(frozen=True)
class StatementLine:
    account_id: UUID
    account_code: str
    account_name: str
    amount: Decimal


@dataclass(frozen=True)
class StatementSubgroup:
    code: str
    name: str
    lines: tuple[StatementLine, ...]
    total: Decimal


@dataclass(frozen=True)
class StatementGroup:
    code: str
    name: str
    subgroups: tuple[StatementSubgroup, ...]
    total: Decimal


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Assets = Liabilities + Equity, with current earnings (revenue less
    cost and expense to date) shown inside equity.
    """

    metadata: ReportMetadata
    as_of: date
    assets: tuple[StatementGroup, ...]
    liabilities: tuple[StatementGroup, ...]
    equity: tuple[StatementGroup, ...]
    current_earnings: Decimal
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_liabilities_and_equity: Decimal
    is_balanced: bool


@dataclass(frozen=True)
class IncomeStatementReport:
    metadata: ReportMetadata
    revenue: tuple[StatementSubgroup, ...]
    cost: tuple[StatementSubgroup, ...]
    expense: tuple[StatementSubgroup, ...]
    total_revenue: Decimal
    total_cost: Decimal
    total_expense: Decimal
    gross_profit: Decimal
    net_income: Decimal


# =========================================================================
# Ledgers
# =========================================================================


@dataclass(frozen=True)
class AccountLedgerLine:
    entry_id: UUID
    number: str
    kind: str
    entry_date: date
    reference: str | None
    description: str | None
    debit: Decimal
    credit: Decimal
    running_balance: Decimal


@dataclass(frozen=True)
class AccountLedgerReport:
    metadata: ReportMetadata
    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    brought_forward: Decimal
    lines: tuple[AccountLedgerLine, ...]
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal


@dataclass(frozen=True)
class GeneralJournalReport:
    metadata: ReportMetadata
    entries: tuple[EntryView, ...]
    total_debit: Decimal
    total_credit: Decimal


@dataclass(frozen=True)
class BalanceDrift:
    account_id: UUID
    account_code: str
    account_name: str
    cached_balance: Decimal
    recomputed_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.cached_balance - self.recomputed_balance
