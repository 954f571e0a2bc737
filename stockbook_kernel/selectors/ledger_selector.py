"""
Module: stockbook_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: per-account debit/credit totals
    over a date range, account line listings and entry listings.  These
    are the inputs of every financial statement.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only POSTED entries are summed.
    - Figures come from ledger lines plus opening balances, never from the
      cached Account.current_balance (exposed separately as cached_balance
      for reconciliation).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from stockbook_engines.balances import balance_change, natural_balance
from stockbook_kernel.domain.account_types import AccountType
from stockbook_kernel.exceptions import AccountNotFoundError
from stockbook_kernel.models.account import Account, MainGroup, Subgroup
from stockbook_kernel.models.ledger import EntryStatus, LedgerEntry, LedgerLine
from stockbook_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


@dataclass(frozen=True)
class AccountActivity:
    """
    One account's figures for a period.

    brought_forward is the opening balance plus every posted line dated
    before the period; debit_total/credit_total cover the period itself.
    """

    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    main_group_code: str
    main_group_name: str
    main_group_order: int
    subgroup_code: str
    subgroup_name: str
    opening_balance: Decimal
    brought_forward: Decimal
    debit_total: Decimal
    credit_total: Decimal
    cached_balance: Decimal

    @property
    def balance(self) -> Decimal:
        """Closing natural balance at the end of the period."""
        return natural_balance(
            self.brought_forward, self.debit_total, self.credit_total, self.account_type,
        )


@dataclass(frozen=True)
class LedgerLineView:
    entry_id: UUID
    number: str
    kind: str
    entry_date: date
    reference: str | None
    description: str | None
    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class EntryLineView:
    account_id: UUID
    account_code: str
    account_name: str
    debit: Decimal
    credit: Decimal
    description: str | None


@dataclass(frozen=True)
class EntryView:
    id: UUID
    number: str
    kind: str
    voucher_type: str | None
    entry_date: date
    reference: str | None
    description: str | None
    status: str
    total_debit: Decimal
    total_credit: Decimal
    source_type: str | None
    source_id: UUID | None
    lines: tuple[EntryLineView, ...]


def to_entry_view(entry: LedgerEntry) -> EntryView:
    return EntryView(
        id=entry.id,
        number=entry.number,
        kind=entry.kind,
        voucher_type=entry.voucher_type,
        entry_date=entry.entry_date,
        reference=entry.reference,
        description=entry.description,
        status=entry.status,
        total_debit=entry.total_debit,
        total_credit=entry.total_credit,
        source_type=entry.source_type,
        source_id=entry.source_id,
        lines=tuple(
            EntryLineView(
                account_id=line.account_id,
                account_code=line.account.code,
                account_name=line.account.name,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
            )
            for line in entry.lines
        ),
    )


class LedgerSelector(BaseSelector[LedgerLine]):

    def _totals(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        before: date | None = None,
    ) -> dict[UUID, tuple[Decimal, Decimal]]:
        query = (
            select(
                LedgerLine.account_id,
                func.sum(LedgerLine.debit).label("debit_total"),
                func.sum(LedgerLine.credit).label("credit_total"),
            )
            .join(LedgerEntry, LedgerLine.entry_id == LedgerEntry.id)
            .where(LedgerEntry.status == EntryStatus.POSTED.value)
            .group_by(LedgerLine.account_id)
        )
        if from_date is not None:
            query = query.where(LedgerEntry.entry_date >= from_date)
        if to_date is not None:
            query = query.where(LedgerEntry.entry_date <= to_date)
        if before is not None:
            query = query.where(LedgerEntry.entry_date < before)

        return {
            row.account_id: (row.debit_total or ZERO, row.credit_total or ZERO)
            for row in self.session.execute(query).all()
        }

    def account_activity(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        account_type: AccountType | str | None = None,
    ) -> list[AccountActivity]:
        """
        Every account (including those with no lines) with its period figures,
        ordered by main-group display order, then account code.
        """
        query = (
            select(Account, Subgroup, MainGroup)
            .join(Subgroup, Account.subgroup_id == Subgroup.id)
            .join(MainGroup, Subgroup.main_group_id == MainGroup.id)
            .order_by(MainGroup.display_order, MainGroup.code, Subgroup.code, Account.code)
        )
        if account_type is not None:
            query = query.where(MainGroup.type == AccountType(account_type).value)

        period = self._totals(from_date=from_date, to_date=to_date)
        prior = self._totals(before=from_date) if from_date is not None else {}

        rows: list[AccountActivity] = []
        for account, subgroup, main_group in self.session.execute(query).all():
            acct_type = AccountType(main_group.type)
            prior_dr, prior_cr = prior.get(account.id, (ZERO, ZERO))
            debit, credit = period.get(account.id, (ZERO, ZERO))
            rows.append(
                AccountActivity(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=acct_type,
                    main_group_code=main_group.code,
                    main_group_name=main_group.name,
                    main_group_order=main_group.display_order,
                    subgroup_code=subgroup.code,
                    subgroup_name=subgroup.name,
                    opening_balance=account.opening_balance,
                    brought_forward=account.opening_balance
                    + balance_change(prior_dr, prior_cr, acct_type),
                    debit_total=debit,
                    credit_total=credit,
                    cached_balance=account.current_balance,
                )
            )
        return rows

    def account_lines(
        self,
        account_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[LedgerLineView]:
        """Posted lines of one account in date, number, line order."""
        query = (
            select(LedgerLine, LedgerEntry)
            .join(LedgerEntry, LedgerLine.entry_id == LedgerEntry.id)
            .where(
                LedgerLine.account_id == account_id,
                LedgerEntry.status == EntryStatus.POSTED.value,
            )
            .order_by(LedgerEntry.entry_date, LedgerEntry.number, LedgerLine.line_order)
        )
        if from_date is not None:
            query = query.where(LedgerEntry.entry_date >= from_date)
        if to_date is not None:
            query = query.where(LedgerEntry.entry_date <= to_date)

        return [
            LedgerLineView(
                entry_id=entry.id,
                number=entry.number,
                kind=entry.kind,
                entry_date=entry.entry_date,
                reference=entry.reference,
                description=line.description or entry.description,
                debit=line.debit,
                credit=line.credit,
            )
            for line, entry in self.session.execute(query).all()
        ]

    def entries(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        kind: str | None = None,
        status: str | None = EntryStatus.POSTED.value,
    ) -> list[EntryView]:
        query = select(LedgerEntry).order_by(LedgerEntry.entry_date, LedgerEntry.number)
        if from_date is not None:
            query = query.where(LedgerEntry.entry_date >= from_date)
        if to_date is not None:
            query = query.where(LedgerEntry.entry_date <= to_date)
        if kind is not None:
            query = query.where(LedgerEntry.kind == kind)
        if status is not None:
            query = query.where(LedgerEntry.status == status)
        return [to_entry_view(e) for e in self.session.scalars(query).all()]

    def entries_for_source(self, source_type: str, source_id: UUID) -> list[EntryView]:
        query = (
            select(LedgerEntry)
            .where(LedgerEntry.source_type == source_type, LedgerEntry.source_id == source_id)
            .order_by(LedgerEntry.number)
        )
        return [to_entry_view(e) for e in self.session.scalars(query).all()]

    def account_id_for_code(self, code: str) -> UUID:
        account_id = self.session.scalar(select(Account.id).where(Account.code == code))
        if account_id is None:
            raise AccountNotFoundError(code)
        return account_id

    def line_count(self, account_id: UUID) -> int:
        """Lines of any status referencing the account."""
        return int(
            self.session.scalar(
                select(func.count(LedgerLine.id)).where(LedgerLine.account_id == account_id)
            )
        )
