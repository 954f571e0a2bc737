"""
Reporting Module (``stockbook_modules.reporting``).

Read-only financial statements re-derived from posted ledger lines.
"""

from stockbook_modules.reporting.models import (
    AccountLedgerLine,
    AccountLedgerReport,
    BalanceDrift,
    BalanceSheetReport,
    GeneralJournalReport,
    IncomeStatementReport,
    ReportMetadata,
    ReportType,
    StatementGroup,
    StatementLine,
    StatementSubgroup,
    TrialBalanceGroup,
    TrialBalanceLine,
    TrialBalanceReport,
    TrialBalanceSubgroup,
)
from stockbook_modules.reporting.service import ReportingService

__all__ = [
    "AccountLedgerLine",
    "AccountLedgerReport",
    "BalanceDrift",
    "BalanceSheetReport",
    "GeneralJournalReport",
    "IncomeStatementReport",
    "ReportMetadata",
    "ReportType",
    "StatementGroup",
    "StatementLine",
    "StatementSubgroup",
    "TrialBalanceGroup",
    "TrialBalanceLine",
    "TrialBalanceReport",
    "TrialBalanceSubgroup",
    "ReportingService",
]
