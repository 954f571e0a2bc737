"""
Pure financial statement builders.

These functions turn ``AccountActivity`` rows (opening balance, brought
forward and period totals per account) into report DTOs.  ZERO I/O.
ZERO side effects.

- No database access
- No clock access
- Deterministic: same inputs always produce same outputs

Input rows arrive ordered by main-group display order, then code; the
grouping below preserves that order.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from enum import Enum
from itertools import groupby
from uuid import UUID

from stockbook_engines.balances import balance_change, trial_balance_columns
from stockbook_kernel.domain.account_types import AccountType
from stockbook_kernel.selectors.ledger_selector import AccountActivity, EntryView, LedgerLineView
from stockbook_modules.reporting.models import (
    AccountLedgerLine,
    AccountLedgerReport,
    BalanceDrift,
    BalanceSheetReport,
    GeneralJournalReport,
    IncomeStatementReport,
    ReportMetadata,
    StatementGroup,
    StatementLine,
    StatementSubgroup,
    TrialBalanceGroup,
    TrialBalanceSubgroup,
    TrialBalanceLine,
    TrialBalanceReport,
)

ZERO = Decimal("0")


def period_change(row: AccountActivity) -> Decimal:
    """Natural-side movement within the period, excluding anything brought forward."""
    return balance_change(row.debit_total, row.credit_total, row.account_type)


# =========================================================================
# 1. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    rows: Sequence[AccountActivity],
    metadata: ReportMetadata,
    include_zero_balances: bool = False,
) -> TrialBalanceReport:
    """
    Closing balances grouped main group -> subgroup -> account.

    A positive natural balance sits in the account's normal column; a
    negative one flips to the other column.
    """
    lines: list[tuple[AccountActivity, TrialBalanceLine]] = []
    for row in rows:
        balance = row.balance
        if balance == ZERO and not include_zero_balances:
            continue
        debit, credit = trial_balance_columns(balance, row.account_type)
        lines.append(
            (
                row,
                TrialBalanceLine(
                    account_id=row.account_id,
                    account_code=row.account_code,
                    account_name=row.account_name,
                    account_type=row.account_type.value,
                    balance=balance,
                    debit=debit,
                    credit=credit,
                ),
            )
        )

    groups: list[TrialBalanceGroup] = []
    for (group_code, group_name, group_type), group_items in groupby(
        lines, key=lambda item: (item[0].main_group_code, item[0].main_group_name, item[0].account_type),
    ):
        subgroups: list[TrialBalanceSubgroup] = []
        for (sub_code, sub_name), sub_items in groupby(
            list(group_items), key=lambda item: (item[0].subgroup_code, item[0].subgroup_name),
        ):
            sub_lines = tuple(line for _, line in sub_items)
            subgroups.append(
                TrialBalanceSubgroup(
                    code=sub_code,
                    name=sub_name,
                    lines=sub_lines,
                    debit=sum((l.debit for l in sub_lines), ZERO),
                    credit=sum((l.credit for l in sub_lines), ZERO),
                )
            )
        groups.append(
            TrialBalanceGroup(
                code=group_code,
                name=group_name,
                account_type=group_type.value,
                subgroups=tuple(subgroups),
                debit=sum((s.debit for s in subgroups), ZERO),
                credit=sum((s.credit for s in subgroups), ZERO),
            )
        )

    total_debit = sum((g.debit for g in groups), ZERO)
    total_credit = sum((g.credit for g in groups), ZERO)
    return TrialBalanceReport(
        metadata=metadata,
        groups=tuple(groups),
        total_debit=total_debit,
        total_credit=total_credit,
        is_balanced=total_debit == total_credit,
    )


# =========================================================================
# 2. STATEMENT SECTIONS
# =========================================================================


def _subgroups(rows: Iterable[AccountActivity], amount_of) -> tuple[StatementSubgroup, ...]:
    result: list[StatementSubgroup] = []
    for (code, name), items in groupby(rows, key=lambda r: (r.subgroup_code, r.subgroup_name)):
        lines = tuple(
            StatementLine(
                account_id=r.account_id,
                account_code=r.account_code,
                account_name=r.account_name,
                amount=amount_of(r),
            )
            for r in items
        )
        result.append(
            StatementSubgroup(code=code, name=name, lines=lines, total=sum((l.amount for l in lines), ZERO))
        )
    return tuple(result)


def _groups(rows: Iterable[AccountActivity], amount_of) -> tuple[StatementGroup, ...]:
    result: list[StatementGroup] = []
    for (code, name), items in groupby(rows, key=lambda r: (r.main_group_code, r.main_group_name)):
        subgroups = _subgroups(list(items), amount_of)
        result.append(
            StatementGroup(code=code, name=name, subgroups=subgroups, total=sum((s.total for s in subgroups), ZERO))
        )
    return tuple(result)


def _of_type(rows: Sequence[AccountActivity], account_type: AccountType) -> list[AccountActivity]:
    return [r for r in rows if r.account_type is account_type]


def _total(sections) -> Decimal:
    return sum((s.total for s in sections), ZERO)


# =========================================================================
# 3. BALANCE SHEET
# =========================================================================


def build_balance_sheet(
    rows: Sequence[AccountActivity],
    as_of: date,
    metadata: ReportMetadata,
) -> BalanceSheetReport:
    """
    Balance sheet from closing balances up to ``as_of``.

    Current earnings are revenue less cost and expense balances to date;
    they are folded into equity so the sheet balances before closing.
    """
    def closing(r: AccountActivity) -> Decimal:
        return r.balance

    assets = _groups(_of_type(rows, AccountType.ASSET), closing)
    liabilities = _groups(_of_type(rows, AccountType.LIABILITY), closing)
    equity = _groups(_of_type(rows, AccountType.EQUITY), closing)

    revenue = sum((r.balance for r in _of_type(rows, AccountType.REVENUE)), ZERO)
    costs = sum((r.balance for r in _of_type(rows, AccountType.COST)), ZERO)
    expenses = sum((r.balance for r in _of_type(rows, AccountType.EXPENSE)), ZERO)
    current_earnings = revenue - costs - expenses

    total_assets = _total(assets)
    total_liabilities = _total(liabilities)
    total_equity = _total(equity) + current_earnings
    total_le = total_liabilities + total_equity

    return BalanceSheetReport(
        metadata=metadata,
        as_of=as_of,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        current_earnings=current_earnings,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        total_equity=total_equity,
        total_liabilities_and_equity=total_le,
        is_balanced=total_assets == total_le,
    )


# =========================================================================
# 4. INCOME STATEMENT
# =========================================================================


def build_income_statement(
    rows: Sequence[AccountActivity],
    metadata: ReportMetadata,
) -> IncomeStatementReport:
    """Period movement of revenue, cost and expense accounts."""
    revenue = _subgroups(_of_type(rows, AccountType.REVENUE), period_change)
    cost = _subgroups(_of_type(rows, AccountType.COST), period_change)
    expense = _subgroups(_of_type(rows, AccountType.EXPENSE), period_change)

    total_revenue = _total(revenue)
    total_cost = _total(cost)
    total_expense = _total(expense)
    gross_profit = total_revenue - total_cost

    return IncomeStatementReport(
        metadata=metadata,
        revenue=revenue,
        cost=cost,
        expense=expense,
        total_revenue=total_revenue,
        total_cost=total_cost,
        total_expense=total_expense,
        gross_profit=gross_profit,
        net_income=gross_profit - total_expense,
    )


# =========================================================================
# 5. LEDGERS
# =========================================================================


def build_account_ledger(
    row: AccountActivity,
    lines: Sequence[LedgerLineView],
    metadata: ReportMetadata,
) -> AccountLedgerReport:
    """Brought-forward balance, then each line with its running balance."""
    running = row.brought_forward
    ledger_lines: list[AccountLedgerLine] = []
    for line in lines:
        running += balance_change(line.debit, line.credit, row.account_type)
        ledger_lines.append(
            AccountLedgerLine(
                entry_id=line.entry_id,
                number=line.number,
                kind=line.kind,
                entry_date=line.entry_date,
                reference=line.reference,
                description=line.description,
                debit=line.debit,
                credit=line.credit,
                running_balance=running,
            )
        )
    return AccountLedgerReport(
        metadata=metadata,
        account_id=row.account_id,
        account_code=row.account_code,
        account_name=row.account_name,
        account_type=row.account_type.value,
        brought_forward=row.brought_forward,
        lines=tuple(ledger_lines),
        total_debit=sum((l.debit for l in ledger_lines), ZERO),
        total_credit=sum((l.credit for l in ledger_lines), ZERO),
        closing_balance=running,
    )


def build_general_journal(
    entries: Sequence[EntryView],
    metadata: ReportMetadata,
) -> GeneralJournalReport:
    return GeneralJournalReport(
        metadata=metadata,
        entries=tuple(entries),
        total_debit=sum((e.total_debit for e in entries), ZERO),
        total_credit=sum((e.total_credit for e in entries), ZERO),
    )


def find_balance_drift(rows: Sequence[AccountActivity]) -> tuple[BalanceDrift, ...]:
    """Accounts whose cached balance disagrees with the ledger (all-time rows)."""
    return tuple(
        BalanceDrift(
            account_id=r.account_id,
            account_code=r.account_code,
            account_name=r.account_name,
            cached_balance=r.cached_balance,
            recomputed_balance=r.balance,
        )
        for r in rows
        if r.cached_balance != r.balance
    )


# =========================================================================
# 6. RENDERER
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to plain data for JSON serialization.

    Decimal and UUID become strings, dates ISO strings, enums their
    values, tuples lists.
    """
    if obj is None:
        return None
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: render_to_dict(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
