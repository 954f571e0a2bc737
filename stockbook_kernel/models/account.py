"""
Module: stockbook_kernel.models.account
Responsibility: ORM persistence for the chart of accounts: MainGroup ->
    Subgroup -> Account.  Accounts are the target of every ledger line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - MainGroup, Subgroup and Account codes are unique.
    - The statement category (AccountType) lives on the MainGroup; an account
      inherits it through its subgroup.
    - current_balance is a cached, materialized balance.  It is only changed
      by LedgerPoster (posting and reversal) and by the balance
      recalculation job; reports never read it.

Failure modes:
    - AccountNotFoundError when a posting references a missing account.
    - AccountReferencedError when deletion is attempted on a referenced account.
"""

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockbook_kernel.db.base import TrackedBase, UUIDString
from stockbook_kernel.domain.account_types import DEBIT_NORMAL_TYPES, AccountType

if TYPE_CHECKING:
    from stockbook_kernel.models.ledger import LedgerLine


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class MainGroup(TrackedBase):
    """Top level of the chart of accounts (e.g. 1 Assets, 3 Liabilities)."""

    __tablename__ = "account_main_groups"

    __table_args__ = (
        UniqueConstraint("code", name="uq_main_group_code"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[AccountType] = mapped_column(String(20), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    subgroups: Mapped[list["Subgroup"]] = relationship(
        back_populates="main_group",
        order_by="Subgroup.code",
    )

    def __repr__(self) -> str:
        return f"<MainGroup {self.code}: {self.name}>"


class Subgroup(TrackedBase):
    """Second level of the chart (e.g. 101 Inventory, 301 Supplier Payables)."""

    __tablename__ = "account_subgroups"

    __table_args__ = (
        UniqueConstraint("code", name="uq_subgroup_code"),
        Index("idx_subgroup_main_group", "main_group_id"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    main_group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("account_main_groups.id"),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    main_group: Mapped[MainGroup] = relationship(
        back_populates="subgroups",
        lazy="joined",
    )

    accounts: Mapped[list["Account"]] = relationship(
        back_populates="subgroup",
        order_by="Account.code",
    )

    def __repr__(self) -> str:
        return f"<Subgroup {self.code}: {self.name}>"


class Account(TrackedBase):
    """
    Posting account, a leaf of the chart of accounts.

    Contract:
        code is unique.  opening_balance is expressed on the account's
        normal side.  current_balance = opening_balance plus the signed
        effect of every posted line (see stockbook_engines.balances).
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_subgroup", "subgroup_id"),
        Index("idx_account_status", "status"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    subgroup_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("account_subgroups.id"),
        nullable=False,
    )

    opening_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    current_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    status: Mapped[AccountStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AccountStatus.ACTIVE.value,
    )

    # System accounts (inventory, COGS, control payables) are locked
    can_delete: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    subgroup: Mapped[Subgroup] = relationship(
        back_populates="accounts",
        lazy="joined",
    )

    ledger_lines: Mapped[list["LedgerLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def account_type(self) -> AccountType:
        return AccountType(self.subgroup.main_group.type)

    @property
    def is_debit_normal(self) -> bool:
        return self.account_type in DEBIT_NORMAL_TYPES

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE.value
