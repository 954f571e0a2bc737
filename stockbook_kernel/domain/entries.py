"""
Ledger entry inputs.

Frozen value objects handed to LedgerPoster.  A line names its account by
id or by chart-of-accounts code; document modules use codes from
configuration, the voucher module passes ids chosen by the user.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from stockbook_kernel.domain.amounts import ZERO, to_decimal
from stockbook_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class LineSpec:
    """One debit or credit against an account."""

    account_id: UUID | None = None
    account_code: str | None = None
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None

    def __post_init__(self):
        if self.account_id is None and not self.account_code:
            raise ValidationError("A line needs an account id or code", field="account")
        object.__setattr__(self, "debit", to_decimal(self.debit, "debit"))
        object.__setattr__(self, "credit", to_decimal(self.credit, "credit"))

    @classmethod
    def dr(cls, account: str | UUID, amount, description: str | None = None) -> "LineSpec":
        return cls._build(account, debit=amount, description=description)

    @classmethod
    def cr(cls, account: str | UUID, amount, description: str | None = None) -> "LineSpec":
        return cls._build(account, credit=amount, description=description)

    @classmethod
    def _build(cls, account, description=None, **amounts) -> "LineSpec":
        if isinstance(account, UUID):
            return cls(account_id=account, description=description, **amounts)
        return cls(account_code=account, description=description, **amounts)


@dataclass(frozen=True)
class EntryDraft:
    """
    Everything needed to write one ledger entry.

    kind is "journal" or "voucher"; voucher_type only applies to vouchers.
    number may be supplied (user-numbered vouchers); otherwise LedgerPoster
    assigns the next number for the entry's prefix.
    """

    entry_date: date
    lines: tuple[LineSpec, ...]
    kind: str = "journal"
    voucher_type: str | None = None
    number: str | None = None
    reference: str | None = None
    description: str | None = None
    source_type: str | None = None
    source_id: UUID | None = None
