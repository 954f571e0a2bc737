"""
Module: stockbook_engines.balances
Responsibility:
    Pure double-entry balance arithmetic shared by the ledger poster and
    the reporting aggregators: the sign convention per account type, the
    exact debit == credit check, and the trial-balance column split.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Asset, expense and cost accounts grow with debits; liability, equity
      and revenue accounts grow with credits.
    - An entry balances only when total debits equal total credits
      exactly.  No tolerance is applied.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from stockbook_kernel.domain.account_types import DEBIT_NORMAL_TYPES, AccountType
from stockbook_kernel.domain.amounts import ZERO, non_negative
from stockbook_kernel.exceptions import UnbalancedEntryError, ValidationError


def is_debit_normal(account_type: AccountType | str) -> bool:
    return AccountType(account_type) in DEBIT_NORMAL_TYPES


def balance_change(debit, credit, account_type: AccountType | str) -> Decimal:
    """Effect of one line on its account's natural balance."""
    debit = Decimal(debit)
    credit = Decimal(credit)
    if is_debit_normal(account_type):
        return debit - credit
    return credit - debit


def natural_balance(
    opening_balance,
    total_debit,
    total_credit,
    account_type: AccountType | str,
) -> Decimal:
    """Opening balance plus the signed effect of the given totals."""
    return Decimal(opening_balance) + balance_change(total_debit, total_credit, account_type)


def trial_balance_columns(
    balance: Decimal,
    account_type: AccountType | str,
) -> tuple[Decimal, Decimal]:
    """
    Split a natural balance into (debit, credit) trial-balance columns.

    A positive balance sits on the account's normal side; a negative
    balance is shown on the opposite side as a positive figure.
    """
    if balance == ZERO:
        return ZERO, ZERO
    debit_normal = is_debit_normal(account_type)
    if (balance > ZERO) == debit_normal:
        return abs(balance), ZERO
    return ZERO, abs(balance)


def check_balanced(lines: Iterable[tuple[Decimal, Decimal]]) -> tuple[Decimal, Decimal]:
    """
    Validate (debit, credit) pairs and return (total_debit, total_credit).

    Raises:
        ValidationError: a line is negative, has both sides set, or is empty.
        UnbalancedEntryError: totals differ, or there are no amounts at all.
    """
    total_debit = ZERO
    total_credit = ZERO
    count = 0
    for debit, credit in lines:
        debit = non_negative(debit, "debit")
        credit = non_negative(credit, "credit")
        if debit > ZERO and credit > ZERO:
            raise ValidationError("A line cannot carry both a debit and a credit", field="lines")
        if debit == ZERO and credit == ZERO:
            raise ValidationError("A line must carry a debit or a credit", field="lines")
        total_debit += debit
        total_credit += credit
        count += 1

    if count < 2:
        raise ValidationError("An entry needs at least two lines", field="lines")
    if total_debit != total_credit:
        raise UnbalancedEntryError(total_debit, total_credit)
    return total_debit, total_credit
