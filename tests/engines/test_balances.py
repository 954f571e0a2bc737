"""Tests for the pure balance helpers."""

from decimal import Decimal

import pytest

from stockbook_engines.balances import (
    balance_change,
    check_balanced,
    is_debit_normal,
    natural_balance,
    trial_balance_columns,
)
from stockbook_kernel.domain.account_types import AccountType
from stockbook_kernel.exceptions import UnbalancedEntryError, ValidationError


class TestNormalSide:

    @pytest.mark.parametrize(
        "account_type",
        [AccountType.ASSET, AccountType.EXPENSE, AccountType.COST],
    )
    def test_debit_normal(self, account_type):
        assert is_debit_normal(account_type)

    @pytest.mark.parametrize(
        "account_type",
        [AccountType.LIABILITY, AccountType.EQUITY, AccountType.REVENUE],
    )
    def test_credit_normal(self, account_type):
        assert not is_debit_normal(account_type)

    def test_accepts_string_value(self):
        assert is_debit_normal("asset")


class TestBalanceChange:

    def test_debit_increases_asset(self):
        assert balance_change(Decimal("50"), Decimal("0"), AccountType.ASSET) == Decimal("50")

    def test_credit_increases_liability(self):
        assert balance_change(Decimal("0"), Decimal("50"), AccountType.LIABILITY) == Decimal("50")

    def test_debit_decreases_revenue(self):
        assert balance_change(Decimal("20"), Decimal("0"), AccountType.REVENUE) == Decimal("-20")

    def test_natural_balance_includes_opening(self):
        result = natural_balance(Decimal("100"), Decimal("30"), Decimal("80"), AccountType.ASSET)

        assert result == Decimal("50")


class TestTrialBalanceColumns:

    def test_positive_asset_on_debit_side(self):
        assert trial_balance_columns(Decimal("75"), AccountType.ASSET) == (Decimal("75"), Decimal("0"))

    def test_positive_liability_on_credit_side(self):
        assert trial_balance_columns(Decimal("75"), AccountType.LIABILITY) == (Decimal("0"), Decimal("75"))

    def test_negative_asset_flips_to_credit(self):
        """An overdrawn cash account shows as a credit."""
        assert trial_balance_columns(Decimal("-10"), AccountType.ASSET) == (Decimal("0"), Decimal("10"))

    def test_zero(self):
        assert trial_balance_columns(Decimal("0"), AccountType.REVENUE) == (Decimal("0"), Decimal("0"))


class TestCheckBalanced:

    def test_balanced_returns_totals(self):
        totals = check_balanced(
            [
                (Decimal("100"), Decimal("0")),
                (Decimal("0"), Decimal("60")),
                (Decimal("0"), Decimal("40")),
            ]
        )

        assert totals == (Decimal("100"), Decimal("100"))

    def test_unbalanced(self):
        with pytest.raises(UnbalancedEntryError):
            check_balanced([(Decimal("100"), Decimal("0")), (Decimal("0"), Decimal("99.99"))])

    def test_single_line_rejected(self):
        with pytest.raises(ValidationError):
            check_balanced([(Decimal("100"), Decimal("0"))])

    def test_two_sided_line_rejected(self):
        with pytest.raises(ValidationError):
            check_balanced([(Decimal("5"), Decimal("5")), (Decimal("0"), Decimal("0"))])

    def test_empty_line_rejected(self):
        with pytest.raises(ValidationError):
            check_balanced([(Decimal("0"), Decimal("0")), (Decimal("0"), Decimal("0"))])

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            check_balanced([(Decimal("-5"), Decimal("0")), (Decimal("0"), Decimal("-5"))])
