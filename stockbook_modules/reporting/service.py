"""
Reporting Module Service (``stockbook_modules.reporting.service``).

Responsibility
--------------
Bridges ``LedgerSelector`` to the pure builders in ``statements.py`` for
the trial balance, balance sheet, income statement, account ledger,
general journal and balance-drift check.  Read-only.

Invariants enforced
-------------------
* Figures are recomputed from posted lines plus opening balances; the
  cached ``Account.current_balance`` is only read by ``balance_drift``.
* All monetary amounts use ``Decimal``.

Failure modes
-------------
* ``ValidationError`` when ``from_date`` is after ``to_date``.
* ``AccountNotFoundError`` for an unknown ledger account.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from stockbook_kernel.domain.account_types import AccountType
from stockbook_kernel.domain.clock import Clock, SystemClock
from stockbook_kernel.exceptions import AccountNotFoundError, ValidationError
from stockbook_kernel.logging_config import get_logger
from stockbook_kernel.selectors.ledger_selector import LedgerSelector
from stockbook_modules.reporting.models import (
    AccountLedgerReport,
    BalanceDrift,
    BalanceSheetReport,
    GeneralJournalReport,
    IncomeStatementReport,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from stockbook_modules.reporting.statements import (
    build_account_ledger,
    build_balance_sheet,
    build_general_journal,
    build_income_statement,
    build_trial_balance,
    find_balance_drift,
    render_to_dict,
)

logger = get_logger("modules.reporting.service")


def _check_period(from_date: date | None, to_date: date | None) -> None:
    if from_date is not None and to_date is not None and from_date > to_date:
        raise ValidationError(
            f"from_date {from_date} is after to_date {to_date}", field="from_date",
        )


class ReportingService:
    """
    Financial statement generation.

    Every public method returns a frozen report DTO and performs no
    writes.  The clock is injectable so ``generated_at`` is deterministic
    in tests.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = LedgerSelector(session)

    def _metadata(
        self,
        report_type: ReportType,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> ReportMetadata:
        return ReportMetadata(
            report_type=report_type,
            generated_at=self._clock.now().isoformat(),
            period_start=period_start,
            period_end=period_end,
        )

    def trial_balance(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        account_type: AccountType | str | None = None,
        include_zero_balances: bool = False,
    ) -> TrialBalanceReport:
        """Closing balances at ``to_date``; ``from_date`` splits brought-forward from period."""
        _check_period(from_date, to_date)
        rows = self._ledger.account_activity(from_date, to_date, account_type)
        report = build_trial_balance(
            rows,
            self._metadata(ReportType.TRIAL_BALANCE, from_date, to_date),
            include_zero_balances=include_zero_balances,
        )
        logger.info(
            "trial_balance_generated",
            extra={
                "from_date": from_date.isoformat() if from_date else None,
                "to_date": to_date.isoformat() if to_date else None,
                "line_count": len(report.lines),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def balance_sheet(self, as_of: date) -> BalanceSheetReport:
        rows = self._ledger.account_activity(to_date=as_of)
        report = build_balance_sheet(rows, as_of, self._metadata(ReportType.BALANCE_SHEET, period_end=as_of))
        logger.info(
            "balance_sheet_generated",
            extra={
                "as_of": as_of.isoformat(),
                "total_assets": str(report.total_assets),
                "total_liabilities_and_equity": str(report.total_liabilities_and_equity),
                "is_balanced": report.is_balanced,
            },
        )
        if not report.is_balanced:
            logger.warning(
                "balance_sheet_out_of_balance",
                extra={"difference": str(report.total_assets - report.total_liabilities_and_equity)},
            )
        return report

    def income_statement(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> IncomeStatementReport:
        _check_period(from_date, to_date)
        rows = self._ledger.account_activity(from_date, to_date)
        report = build_income_statement(
            rows, self._metadata(ReportType.INCOME_STATEMENT, from_date, to_date),
        )
        logger.info(
            "income_statement_generated",
            extra={
                "from_date": from_date.isoformat() if from_date else None,
                "to_date": to_date.isoformat() if to_date else None,
                "net_income": str(report.net_income),
            },
        )
        return report

    def account_ledger(
        self,
        account_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> AccountLedgerReport:
        _check_period(from_date, to_date)
        row = next(
            (r for r in self._ledger.account_activity(from_date, to_date) if r.account_id == account_id),
            None,
        )
        if row is None:
            raise AccountNotFoundError(str(account_id))
        lines = self._ledger.account_lines(account_id, from_date, to_date)
        report = build_account_ledger(
            row, lines, self._metadata(ReportType.ACCOUNT_LEDGER, from_date, to_date),
        )
        logger.info(
            "account_ledger_generated",
            extra={
                "account_code": row.account_code,
                "line_count": len(report.lines),
                "closing_balance": str(report.closing_balance),
            },
        )
        return report

    def general_journal(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        kind: str | None = None,
    ) -> GeneralJournalReport:
        _check_period(from_date, to_date)
        entries = self._ledger.entries(from_date, to_date, kind)
        report = build_general_journal(
            entries, self._metadata(ReportType.GENERAL_JOURNAL, from_date, to_date),
        )
        logger.info("general_journal_generated", extra={"entry_count": len(report.entries)})
        return report

    def balance_drift(self) -> tuple[BalanceDrift, ...]:
        """Accounts whose cached current_balance disagrees with the posted lines."""
        drift = find_balance_drift(self._ledger.account_activity())
        if drift:
            logger.warning(
                "balance_drift_detected",
                extra={"accounts": [d.account_code for d in drift]},
            )
        return drift

    def to_dict(self, report: object) -> dict:
        return render_to_dict(report)
