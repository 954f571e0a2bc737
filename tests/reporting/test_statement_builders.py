"""
Tests for the pure statement builders.

Rows are built by hand; no database is involved.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from stockbook_kernel.domain.account_types import AccountType
from stockbook_kernel.selectors.ledger_selector import AccountActivity, LedgerLineView
from stockbook_modules.reporting.models import ReportMetadata, ReportType
from stockbook_modules.reporting.statements import (
    build_account_ledger,
    build_balance_sheet,
    build_income_statement,
    build_trial_balance,
    find_balance_drift,
    period_change,
    render_to_dict,
)

_GROUPS = {
    AccountType.ASSET: ("1", "Assets", 1),
    AccountType.LIABILITY: ("3", "Liabilities", 2),
    AccountType.EQUITY: ("5", "Equity", 3),
    AccountType.REVENUE: ("7", "Revenue", 4),
    AccountType.EXPENSE: ("8", "Expenses", 5),
    AccountType.COST: ("9", "Cost of Sales", 6),
}


def _row(code, account_type, brought_forward="0", debit="0", credit="0", cached=None):
    group_code, group_name, order = _GROUPS[account_type]
    row = AccountActivity(
        account_id=uuid4(),
        account_code=code,
        account_name=f"Account {code}",
        account_type=account_type,
        main_group_code=group_code,
        main_group_name=group_name,
        main_group_order=order,
        subgroup_code=code[:3],
        subgroup_name=f"Subgroup {code[:3]}",
        opening_balance=Decimal("0"),
        brought_forward=Decimal(brought_forward),
        debit_total=Decimal(debit),
        credit_total=Decimal(credit),
        cached_balance=Decimal("0"),
    )
    return replace(row, cached_balance=row.balance if cached is None else Decimal(cached))


def _meta(report_type=ReportType.TRIAL_BALANCE):
    return ReportMetadata(report_type=report_type, generated_at="2024-01-01T12:00:00+00:00")


class TestTrialBalance:

    def test_balanced_ledger(self):
        rows = [
            _row("102001", AccountType.ASSET, debit="500"),
            _row("501001", AccountType.EQUITY, credit="500"),
        ]

        report = build_trial_balance(rows, _meta())

        assert report.total_debit == report.total_credit == Decimal("500")
        assert report.is_balanced
        assert [g.code for g in report.groups] == ["1", "5"]

    def test_negative_balance_flips_column(self):
        overdrawn = _row("102002", AccountType.ASSET, credit="80")

        report = build_trial_balance([overdrawn], _meta())

        line = report.lines[0]
        assert line.balance == Decimal("-80")
        assert (line.debit, line.credit) == (Decimal("0"), Decimal("80"))

    def test_zero_balances_excluded_by_default(self):
        rows = [_row("102001", AccountType.ASSET), _row("101001", AccountType.ASSET, debit="5", credit="5")]

        assert build_trial_balance(rows, _meta()).lines == ()
        assert len(build_trial_balance(rows, _meta(), include_zero_balances=True).lines) == 2

    def test_brought_forward_counts_toward_closing(self):
        report = build_trial_balance([_row("101001", AccountType.ASSET, brought_forward="300", debit="20")], _meta())

        assert report.lines[0].balance == Decimal("320")

    def test_subgroup_totals(self):
        rows = [
            _row("102001", AccountType.ASSET, debit="10"),
            _row("102002", AccountType.ASSET, debit="15"),
            _row("103001", AccountType.ASSET, debit="7"),
        ]

        report = build_trial_balance(rows, _meta())

        assert [(s.code, s.debit) for s in report.groups[0].subgroups] == [
            ("102", Decimal("25")),
            ("103", Decimal("7")),
        ]


class TestIncomeStatement:

    def test_uses_period_movement_only(self):
        sales = _row("701001", AccountType.REVENUE, brought_forward="1000", credit="600")
        cogs = _row("901001", AccountType.COST, brought_forward="700", debit="400")
        rent = _row("801001", AccountType.EXPENSE, debit="50")

        report = build_income_statement([sales, rent, cogs], _meta(ReportType.INCOME_STATEMENT))

        assert period_change(sales) == Decimal("600")
        assert report.total_revenue == Decimal("600")
        assert report.total_cost == Decimal("400")
        assert report.gross_profit == Decimal("200")
        assert report.net_income == Decimal("150")

    def test_balance_accounts_ignored(self):
        report = build_income_statement(
            [_row("102001", AccountType.ASSET, debit="999")], _meta(ReportType.INCOME_STATEMENT),
        )

        assert report.net_income == Decimal("0")
        assert report.revenue == ()


class TestBalanceSheet:

    def test_current_earnings_fold_into_equity(self):
        rows = [
            _row("101001", AccountType.ASSET, debit="600"),
            _row("102001", AccountType.ASSET, debit="4950"),
            _row("103001", AccountType.ASSET, debit="600"),
            _row("301002", AccountType.LIABILITY, credit="1000"),
            _row("501001", AccountType.EQUITY, credit="5000"),
            _row("701001", AccountType.REVENUE, credit="600"),
            _row("801001", AccountType.EXPENSE, debit="50"),
            _row("901001", AccountType.COST, debit="400"),
        ]

        report = build_balance_sheet(rows, date(2024, 3, 31), _meta(ReportType.BALANCE_SHEET))

        assert report.total_assets == Decimal("6150")
        assert report.total_liabilities == Decimal("1000")
        assert report.current_earnings == Decimal("150")
        assert report.total_equity == Decimal("5150")
        assert report.is_balanced

    def test_out_of_balance_detected(self):
        rows = [_row("101001", AccountType.ASSET, debit="10")]

        report = build_balance_sheet(rows, date(2024, 3, 31), _meta(ReportType.BALANCE_SHEET))

        assert not report.is_balanced


class TestAccountLedger:

    def test_running_balance_on_credit_normal_account(self):
        payable = _row("301002", AccountType.LIABILITY, brought_forward="100", debit="30", credit="200")
        entry_id = uuid4()
        lines = [
            LedgerLineView(entry_id, "JV0004", "journal", date(2024, 2, 1), "PO-2024-001", None, Decimal("0"), Decimal("200")),
            LedgerLineView(entry_id, "PV0001", "voucher", date(2024, 2, 9), "DPO-2024-001", None, Decimal("30"), Decimal("0")),
        ]

        report = build_account_ledger(payable, lines, _meta(ReportType.ACCOUNT_LEDGER))

        assert [l.running_balance for l in report.lines] == [Decimal("300"), Decimal("270")]
        assert report.brought_forward == Decimal("100")
        assert report.closing_balance == payable.balance == Decimal("270")
        assert (report.total_debit, report.total_credit) == (Decimal("30"), Decimal("200"))


class TestDriftAndRendering:

    def test_drift_lists_disagreeing_accounts(self):
        good = _row("101001", AccountType.ASSET, debit="10")
        bad = _row("102001", AccountType.ASSET, debit="10", cached="12")

        drift = find_balance_drift([good, bad])

        assert [d.account_code for d in drift] == ["102001"]
        assert drift[0].difference == Decimal("2")

    def test_render_to_dict(self):
        report = build_trial_balance([_row("102001", AccountType.ASSET, debit="12.50")], _meta())

        data = render_to_dict(report)

        assert data["metadata"]["report_type"] == "trial_balance"
        assert data["total_debit"] == "12.50"
        line = data["groups"][0]["subgroups"][0]["lines"][0]
        assert line["account_code"] == "102001"
        assert UUID(line["account_id"])
