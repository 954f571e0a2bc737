"""
LedgerPoster -- the single posting interface for journal entries and vouchers.

Responsibility:
    Persist ledger entries and keep Account.current_balance in step with
    them.  Posting applies each line's balance change as an atomic SQL
    increment; reversal applies the negated change and removes the entry.
    Journal entries and vouchers share this one code path.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns commit/rollback.

Invariants enforced:
    - Sum of debits == sum of credits, exactly, before anything is written.
    - Only posting (draft -> posted, or post_entry) changes balances, and
      only reversal undoes them.  A draft is deleted without touching
      balances.
    - draft -> posted is a compare-and-swap on status, so an entry cannot
      be posted twice even by concurrent callers.
    - post then reverse restores every affected balance exactly.

Failure modes:
    - UnbalancedEntryError when debits != credits.
    - ValidationError on negative, empty or two-sided lines.
    - AccountNotFoundError when a line names a missing account.
    - AlreadyPostedError / EntryNotPostedError on illegal state changes.
    - EntryNotFoundError for unknown entry ids.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update

from stockbook_engines.balances import balance_change, check_balanced
from stockbook_kernel.domain.amounts import ZERO
from stockbook_kernel.domain.entries import EntryDraft, LineSpec
from stockbook_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyPostedError,
    EntryNotFoundError,
    EntryNotPostedError,
    InvalidTransitionError,
    ValidationError,
)
from stockbook_kernel.logging_config import get_logger
from stockbook_kernel.models.account import Account
from stockbook_kernel.models.ledger import (
    EntryKind,
    EntryStatus,
    LedgerEntry,
    LedgerLine,
    VoucherType,
)
from stockbook_kernel.services.base import BaseService

logger = get_logger("services.ledger_poster")

_NUMBER_PREFIXES = {
    VoucherType.JOURNAL.value: "JV",
    VoucherType.PAYMENT.value: "PV",
    VoucherType.RECEIPT.value: "RV",
    VoucherType.CONTRA.value: "CV",
}


class LedgerPoster(BaseService[LedgerEntry]):
    """
    Writes, posts and reverses ledger entries.

    Usage:
        poster = LedgerPoster(session, clock)
        entry_id = poster.post_entry(
            EntryDraft(
                entry_date=date(2024, 6, 1),
                lines=(LineSpec.dr("101001", 500), LineSpec.cr("301001", 500)),
            ),
            actor_id=actor,
        )
        poster.reverse_entry(entry_id, actor_id=actor)
    """

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def post_entry(self, draft: EntryDraft, actor_id: UUID) -> UUID:
        """Write ``draft`` as a posted entry and apply its balance changes."""
        entry = self._write(draft, EntryStatus.POSTED, actor_id)
        self._apply_balances(entry.lines, sign=1)
        logger.info(
            "ledger_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "number": entry.number,
                "kind": entry.kind,
                "total": str(entry.total_debit),
                "line_count": len(entry.lines),
                "source_type": entry.source_type,
            },
        )
        return entry.id

    def create_draft(self, draft: EntryDraft, actor_id: UUID) -> UUID:
        """Write ``draft`` with status draft.  Balances are untouched."""
        entry = self._write(draft, EntryStatus.DRAFT, actor_id)
        logger.info(
            "ledger_entry_drafted",
            extra={"entry_id": str(entry.id), "number": entry.number, "kind": entry.kind},
        )
        return entry.id

    def replace_draft_lines(
        self,
        entry_id: UUID,
        lines: tuple[LineSpec, ...],
        actor_id: UUID,
        description: str | None = None,
    ) -> None:
        """Swap the lines of a draft entry.  Posted entries are immutable."""
        entry = self.get_entry(entry_id)
        if entry.status != EntryStatus.DRAFT.value:
            raise InvalidTransitionError("ledger entry", str(entry_id), entry.status, "edit")

        accounts = self._resolve_accounts(lines)
        total_debit, total_credit = check_balanced((l.debit, l.credit) for l in lines)

        entry.lines.clear()
        self.session.flush()
        entry.lines.extend(self._build_lines(lines, accounts, actor_id))
        entry.total_debit = total_debit
        entry.total_credit = total_credit
        entry.updated_by_id = actor_id
        if description is not None:
            entry.description = description
        self.session.flush()

    def _write(self, draft: EntryDraft, status: EntryStatus, actor_id: UUID) -> LedgerEntry:
        if draft.kind not in (EntryKind.JOURNAL.value, EntryKind.VOUCHER.value):
            raise ValidationError(f"Unknown entry kind: {draft.kind}", field="kind")
        if draft.kind == EntryKind.VOUCHER.value and draft.voucher_type not in _NUMBER_PREFIXES:
            raise ValidationError(
                f"Unknown voucher type: {draft.voucher_type}", field="voucher_type",
            )

        accounts = self._resolve_accounts(draft.lines)
        total_debit, total_credit = check_balanced((l.debit, l.credit) for l in draft.lines)

        number = draft.number or self.next_number(self._prefix_for(draft))
        entry = LedgerEntry(
            number=number,
            kind=draft.kind,
            voucher_type=draft.voucher_type if draft.kind == EntryKind.VOUCHER.value else None,
            entry_date=draft.entry_date,
            reference=draft.reference,
            description=draft.description,
            status=status.value,
            total_debit=total_debit,
            total_credit=total_credit,
            posted_at=self.clock.now() if status is EntryStatus.POSTED else None,
            source_type=draft.source_type,
            source_id=draft.source_id,
            created_by_id=actor_id,
        )
        entry.lines = self._build_lines(draft.lines, accounts, actor_id)
        self.session.add(entry)
        self.session.flush()
        return entry

    @staticmethod
    def _build_lines(
        lines: tuple[LineSpec, ...],
        accounts: list[Account],
        actor_id: UUID,
    ) -> list[LedgerLine]:
        return [
            LedgerLine(
                account_id=account.id,
                description=spec.description,
                debit=spec.debit,
                credit=spec.credit,
                line_order=index,
                created_by_id=actor_id,
            )
            for index, (spec, account) in enumerate(zip(lines, accounts))
        ]

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def post(self, entry_id: UUID, actor_id: UUID) -> None:
        """Transition a draft entry to posted and apply its balance changes."""
        entry = self.get_entry(entry_id)
        result = self.session.execute(
            update(LedgerEntry)
            .where(
                LedgerEntry.id == entry_id,
                LedgerEntry.status == EntryStatus.DRAFT.value,
            )
            .values(
                status=EntryStatus.POSTED.value,
                posted_at=self.clock.now(),
                updated_by_id=actor_id,
            )
        )
        if result.rowcount != 1:
            raise AlreadyPostedError(str(entry_id), entry.number)

        self.session.refresh(entry)
        self._apply_balances(entry.lines, sign=1)
        logger.info(
            "ledger_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "number": entry.number,
                "kind": entry.kind,
                "total": str(entry.total_debit),
                "line_count": len(entry.lines),
                "source_type": entry.source_type,
            },
        )

    def reverse_entry(self, entry_id: UUID, actor_id: UUID) -> str:
        """
        Undo a posted entry: negate every line's balance change, then delete
        the entry and its lines.  Returns the removed entry's number.
        """
        entry = self.get_entry(entry_id)
        if entry.status != EntryStatus.POSTED.value:
            raise EntryNotPostedError(str(entry_id), entry.status)

        number = entry.number
        self._apply_balances(entry.lines, sign=-1)
        self.session.delete(entry)
        self.session.flush()

        logger.info(
            "ledger_entry_reversed",
            extra={
                "entry_id": str(entry_id),
                "number": number,
                "actor_id": str(actor_id),
            },
        )
        return number

    def delete_entry(self, entry_id: UUID, actor_id: UUID) -> str:
        """Delete an entry, reversing it first when it is posted."""
        entry = self.get_entry(entry_id)
        if entry.status == EntryStatus.POSTED.value:
            return self.reverse_entry(entry_id, actor_id)

        number = entry.number
        self.session.delete(entry)
        self.session.flush()
        logger.info("ledger_draft_deleted", extra={"entry_id": str(entry_id), "number": number})
        return number

    def reverse_entries_for_source(
        self,
        source_type: str,
        source_id: UUID,
        actor_id: UUID,
    ) -> list[str]:
        """Delete every entry a document generated, reversing posted ones."""
        entry_ids = self.session.scalars(
            select(LedgerEntry.id)
            .where(
                LedgerEntry.source_type == source_type,
                LedgerEntry.source_id == source_id,
            )
            .order_by(LedgerEntry.number)
        ).all()
        return [self.delete_entry(entry_id, actor_id) for entry_id in entry_ids]

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    def _apply_balances(self, lines: list[LedgerLine], sign: int) -> None:
        deltas: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        for line in lines:
            account = self.session.get(Account, line.account_id)
            deltas[line.account_id] += balance_change(line.debit, line.credit, account.account_type)

        for account_id, delta in sorted(deltas.items(), key=lambda kv: str(kv[0])):
            if delta == ZERO:
                continue
            self.session.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(current_balance=Account.current_balance + sign * delta)
            )
        self.session.flush()

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_entry(self, entry_id: UUID) -> LedgerEntry:
        entry = self.session.get(LedgerEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def _resolve_accounts(self, lines: tuple[LineSpec, ...]) -> list[Account]:
        accounts: list[Account] = []
        for spec in lines:
            if spec.account_id is not None:
                account = self.session.get(Account, spec.account_id)
                key = str(spec.account_id)
            else:
                account = self.session.scalars(
                    select(Account).where(Account.code == spec.account_code)
                ).one_or_none()
                key = spec.account_code
            if account is None:
                raise AccountNotFoundError(key)
            accounts.append(account)
        return accounts

    @staticmethod
    def _prefix_for(draft: EntryDraft) -> str:
        if draft.kind == EntryKind.VOUCHER.value:
            return _NUMBER_PREFIXES[draft.voucher_type]
        return _NUMBER_PREFIXES[VoucherType.JOURNAL.value]

    def next_number(self, prefix: str) -> str:
        """Next sequential number for ``prefix``, e.g. JV0007."""
        existing = self.session.scalars(
            select(LedgerEntry.number).where(LedgerEntry.number.like(f"{prefix}%"))
        ).all()
        highest = 0
        for number in existing:
            suffix = number[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{prefix}{highest + 1:04d}"

