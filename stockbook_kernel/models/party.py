"""
Module: stockbook_kernel.models.party
Responsibility: Suppliers and customers, each owning its own ledger account.
Architecture position: Kernel > Models.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockbook_kernel.db.base import TrackedBase, UUIDString
from stockbook_kernel.models.account import Account


class Supplier(TrackedBase):
    """
    Vendor of parts.

    payable_account_id is the supplier's own 301xxx payable account, created
    alongside the supplier.  Postings fall back to the control payable
    account when it is absent.
    """

    __tablename__ = "suppliers"
    __table_args__ = (UniqueConstraint("code", name="uq_supplier_code"),)

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    payable_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    payable_account: Mapped[Account | None] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<Supplier {self.code}: {self.name}>"


class Customer(TrackedBase):
    """
    Buyer on credit.

    receivable_account_id is the customer's own 103xxx receivable account.
    Invoices without a customer post to the control receivable account.
    """

    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("code", name="uq_customer_code"),)

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    credit_limit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    receivable_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    receivable_account: Mapped[Account | None] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<Customer {self.code}: {self.name}>"
