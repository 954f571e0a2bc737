"""
Voucher Module Service (``stockbook_modules.vouchers.service``).

Manual journal entries and payment/receipt/contra/journal vouchers.  Both
are LedgerEntry rows written through LedgerPoster; ``kind`` tells them
apart.  A voucher may be kept as a draft, edited, and posted later.
Entries generated by documents (``source_type`` set) are read-only here:
they change only through their document.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockbook_kernel.domain.clock import Clock, SystemClock
from stockbook_kernel.domain.entries import EntryDraft, LineSpec
from stockbook_kernel.exceptions import ValidationError
from stockbook_kernel.logging_config import LogContext, get_logger
from stockbook_kernel.models.ledger import EntryKind, LedgerEntry, VoucherType
from stockbook_kernel.selectors.ledger_selector import EntryView, LedgerSelector, to_entry_view
from stockbook_kernel.services.ledger_poster import LedgerPoster

logger = get_logger("modules.vouchers.service")


class VoucherService:

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._poster = LedgerPoster(session, self._clock)

    def create_voucher(
        self,
        voucher_type: VoucherType | str,
        entry_date: date,
        lines: Sequence[LineSpec],
        actor_id: UUID,
        description: str | None = None,
        reference: str | None = None,
        number: str | None = None,
        post: bool = False,
    ) -> EntryView:
        """
        Write a voucher, as a draft unless ``post`` is set.

        Raises:
            ValidationError: unknown voucher type, bad lines, or a number
                that is already in use.
            UnbalancedEntryError: debits and credits differ.
        """
        try:
            voucher_type = VoucherType(voucher_type)
        except ValueError as exc:
            raise ValidationError(str(exc), field="voucher_type") from exc
        return self._create(
            EntryDraft(
                entry_date=entry_date,
                lines=tuple(lines),
                kind=EntryKind.VOUCHER.value,
                voucher_type=voucher_type.value,
                number=number,
                reference=reference,
                description=description,
            ),
            actor_id,
            post,
        )

    def create_journal_entry(
        self,
        entry_date: date,
        lines: Sequence[LineSpec],
        actor_id: UUID,
        description: str | None = None,
        reference: str | None = None,
        number: str | None = None,
        post: bool = True,
    ) -> EntryView:
        return self._create(
            EntryDraft(
                entry_date=entry_date,
                lines=tuple(lines),
                kind=EntryKind.JOURNAL.value,
                number=number,
                reference=reference,
                description=description,
            ),
            actor_id,
            post,
        )

    def _create(self, draft: EntryDraft, actor_id: UUID, post: bool) -> EntryView:
        try:
            if draft.number is not None:
                self._require_unused_number(draft.number)
            if post:
                entry_id = self._poster.post_entry(draft, actor_id)
            else:
                entry_id = self._poster.create_draft(draft, actor_id)
            view = to_entry_view(self._poster.get_entry(entry_id))
            logger.info(
                "voucher_created",
                extra={
                    "entry_id": str(entry_id),
                    "number": view.number,
                    "kind": view.kind,
                    "voucher_type": view.voucher_type,
                    "status": view.status,
                },
            )
            self._session.commit()
            return view
        except Exception:
            self._session.rollback()
            raise

    def _require_unused_number(self, number: str) -> None:
        taken = self._session.scalar(select(LedgerEntry.id).where(LedgerEntry.number == number))
        if taken is not None:
            raise ValidationError(f"Entry number already in use: {number}", field="number")

    def _manual_entry(self, entry_id: UUID) -> LedgerEntry:
        entry = self._poster.get_entry(entry_id)
        if entry.source_type is not None:
            raise ValidationError(
                f"Entry {entry.number} was generated by a {entry.source_type} "
                "and changes only through it",
                field="entry_id",
            )
        return entry

    def update_voucher(
        self,
        entry_id: UUID,
        lines: Sequence[LineSpec],
        actor_id: UUID,
        description: str | None = None,
    ) -> EntryView:
        """Replace the lines of a draft.  Posted entries raise InvalidTransitionError."""
        try:
            self._manual_entry(entry_id)
            self._poster.replace_draft_lines(entry_id, tuple(lines), actor_id, description)
            view = to_entry_view(self._poster.get_entry(entry_id))
            logger.info(
                "voucher_updated",
                extra={"entry_id": str(entry_id), "number": view.number, "line_count": len(view.lines)},
            )
            self._session.commit()
            return view
        except Exception:
            self._session.rollback()
            raise

    def post_voucher(self, entry_id: UUID, actor_id: UUID) -> EntryView:
        try:
            with LogContext.bind(entry_id=str(entry_id), actor_id=str(actor_id)):
                self._manual_entry(entry_id)
                self._poster.post(entry_id, actor_id)
                view = to_entry_view(self._poster.get_entry(entry_id))
            self._session.commit()
            return view
        except Exception:
            self._session.rollback()
            raise

    def delete_voucher(self, entry_id: UUID, actor_id: UUID) -> str:
        """Delete a draft, or reverse and delete a posted entry.  Returns its number."""
        try:
            self._manual_entry(entry_id)
            number = self._poster.delete_entry(entry_id, actor_id)
            self._session.commit()
            return number
        except Exception:
            self._session.rollback()
            raise

    def get_voucher(self, entry_id: UUID) -> EntryView:
        return to_entry_view(self._poster.get_entry(entry_id))

    def list_entries(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        kind: str | None = None,
        status: str | None = None,
    ) -> list[EntryView]:
        return LedgerSelector(self._session).entries(from_date, to_date, kind, status)
