"""
Module: stockbook_modules.sales.orm
Responsibility: SQLAlchemy tables for sales invoices, customer returns and
their lines.

Architecture position: Modules > Sales > ORM.  Inherits TrackedBase.

Invariants enforced:
    - unit_cost and cogs on a line are captured once, at approval, from the
      canonical part's average cost at that moment.
    - A return line carries the sale price and unit cost of the invoice line
      it reverses.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockbook_kernel.db.base import TrackedBase, UUIDString


class SalesInvoiceModel(TrackedBase):
    """Customer invoice: draft until approved, approval moves stock and posts."""

    __tablename__ = "sales_invoices"

    __table_args__ = (
        UniqueConstraint("invoice_no", name="uq_sales_invoice_no"),
        Index("idx_sales_invoice_date", "invoice_date"),
        Index("idx_sales_invoice_status", "status"),
    )

    invoice_no: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    customer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=True,
    )
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    store_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=True,
    )

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="draft")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cogs_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    items: Mapped[list["SalesInvoiceItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="SalesInvoiceItemModel.line_no",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<SalesInvoiceModel {self.invoice_no} status={self.status}>"


class SalesInvoiceItemModel(TrackedBase):
    __tablename__ = "sales_invoice_items"

    __table_args__ = (
        Index("idx_sales_invoice_item_invoice", "invoice_id"),
        Index("idx_sales_invoice_item_part", "part_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales_invoices.id"), nullable=False,
    )
    part_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parts.id"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    cogs: Mapped[Decimal | None] = mapped_column(nullable=True)

    invoice: Mapped[SalesInvoiceModel] = relationship(back_populates="items")


class SalesReturnModel(TrackedBase):
    """Goods a customer brings back against an approved invoice."""

    __tablename__ = "sales_returns"

    __table_args__ = (
        UniqueConstraint("return_number", name="uq_sales_return_number"),
        Index("idx_sales_return_invoice", "invoice_id"),
    )

    return_number: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales_invoices.id"), nullable=False,
    )
    return_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cost_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    items: Mapped[list["SalesReturnItemModel"]] = relationship(
        back_populates="sales_return",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<SalesReturnModel {self.return_number} status={self.status}>"


class SalesReturnItemModel(TrackedBase):
    __tablename__ = "sales_return_items"

    __table_args__ = (
        Index("idx_sales_return_item_return", "return_id"),
        Index("idx_sales_return_item_part", "part_id"),
    )

    return_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales_returns.id"), nullable=False,
    )
    part_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parts.id"), nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    sales_return: Mapped[SalesReturnModel] = relationship(back_populates="items")
