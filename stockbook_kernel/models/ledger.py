"""
Module: stockbook_kernel.models.ledger
Responsibility: ORM persistence for the single canonical ledger-entry record.
    Journal entries and vouchers share one table, distinguished by ``kind``,
    so there is exactly one balance-update path.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - Every entry has lines whose debit total equals its credit total
      (enforced by LedgerPoster before any row is written).
    - Only POSTED entries affect Account.current_balance.  Deleting a posted
      entry goes through LedgerPoster.reverse_entry.
    - number is unique across both kinds.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockbook_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from stockbook_kernel.models.account import Account


class EntryKind(str, Enum):
    """Tag of the ledger-entry variant."""

    JOURNAL = "journal"
    VOUCHER = "voucher"


class VoucherType(str, Enum):
    JOURNAL = "journal"
    PAYMENT = "payment"
    RECEIPT = "receipt"
    CONTRA = "contra"


class EntryStatus(str, Enum):
    """One-way: DRAFT -> POSTED.  Posted entries leave only by reversal."""

    DRAFT = "draft"
    POSTED = "posted"


class LedgerEntry(TrackedBase):
    """
    Header of a journal entry or voucher.

    source_type/source_id point at the document that generated the entry
    (purchase_order, direct_purchase, sales_invoice, ...), which is how
    document deletion finds the entries it must reverse.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint("number", name="uq_ledger_entry_number"),
        Index("idx_ledger_entry_date", "entry_date"),
        Index("idx_ledger_entry_status", "status"),
        Index("idx_ledger_entry_source", "source_type", "source_id"),
    )

    number: Mapped[str] = mapped_column(String(50), nullable=False)
    kind: Mapped[EntryKind] = mapped_column(String(20), nullable=False)

    # Only meaningful for kind=voucher
    voucher_type: Mapped[VoucherType | None] = mapped_column(String(20), nullable=True)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[EntryStatus] = mapped_column(
        String(20),
        nullable=False,
        default=EntryStatus.DRAFT.value,
    )

    total_debit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_credit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    posted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    source_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lines: Mapped[list["LedgerLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="LedgerLine.line_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.number} [{self.kind}/{self.status}]>"

    @property
    def is_posted(self) -> bool:
        return self.status == EntryStatus.POSTED.value

    @property
    def is_balanced(self) -> bool:
        debits = sum((line.debit for line in self.lines), Decimal("0"))
        credits = sum((line.credit for line in self.lines), Decimal("0"))
        return debits == credits


class LedgerLine(TrackedBase):
    """One account line of a ledger entry.  debit and credit are non-negative."""

    __tablename__ = "ledger_lines"

    __table_args__ = (
        Index("idx_ledger_line_entry", "entry_id"),
        Index("idx_ledger_line_account", "account_id"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    debit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    line_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped[LedgerEntry] = relationship(back_populates="lines")
    account: Mapped["Account"] = relationship(back_populates="ledger_lines")

    def __repr__(self) -> str:
        return f"<LedgerLine {self.account_id} Dr {self.debit} Cr {self.credit}>"
