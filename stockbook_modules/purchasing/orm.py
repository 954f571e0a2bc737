"""
Module: stockbook_modules.purchasing.orm
Responsibility: SQLAlchemy tables for purchase orders, direct purchase
    orders (DPO), their expense lines and DPO returns.

Architecture position: Modules > Purchasing > ORM.  Inherits TrackedBase.

Invariants enforced:
    - Money columns are Decimal (Numeric(38,9)).
    - Status columns hold workflow state names as strings.
    - expense_share and landed_cost on item rows are written once, when
      the document is received.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockbook_kernel.db.base import TrackedBase, UUIDString
from stockbook_kernel.models.party import Supplier


# =============================================================================
# PurchaseOrderModel
# =============================================================================


class PurchaseOrderModel(TrackedBase):
    """Purchase order raised against a supplier, received in one go."""

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_order_number"),
        Index("idx_purchase_order_supplier", "supplier_id"),
        Index("idx_purchase_order_status", "status"),
    )

    po_number: Mapped[str] = mapped_column(String(50), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)

    supplier_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("suppliers.id"), nullable=False,
    )
    store_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=True,
    )

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    items_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    expenses_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    supplier: Mapped[Supplier] = relationship(lazy="joined")

    items: Mapped[list["PurchaseOrderItemModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItemModel.line_no",
        lazy="selectin",
    )
    expenses: Mapped[list["PurchaseExpenseModel"]] = relationship(
        primaryjoin="PurchaseOrderModel.id == PurchaseExpenseModel.purchase_order_id",
        cascade="all",
        order_by="PurchaseExpenseModel.line_no",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.po_number} status={self.status}>"


class PurchaseOrderItemModel(TrackedBase):
    __tablename__ = "purchase_order_items"

    __table_args__ = (
        Index("idx_po_item_order", "purchase_order_id"),
        Index("idx_po_item_part", "part_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("purchase_orders.id"), nullable=False,
    )
    part_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parts.id"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    received_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expense_share: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    landed_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    order: Mapped[PurchaseOrderModel] = relationship(back_populates="items")

    @property
    def unit_price(self) -> Decimal:
        return self.unit_cost


# =============================================================================
# DirectPurchaseOrderModel
# =============================================================================


class DirectPurchaseOrderModel(TrackedBase):
    """Direct purchase: goods bought and received without a prior PO."""

    __tablename__ = "direct_purchase_orders"

    __table_args__ = (
        UniqueConstraint("dpo_number", name="uq_direct_purchase_number"),
        Index("idx_dpo_supplier", "supplier_id"),
        Index("idx_dpo_status", "status"),
    )

    dpo_number: Mapped[str] = mapped_column(String(50), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)

    supplier_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("suppliers.id"), nullable=False,
    )
    store_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=True,
    )

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    items_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    expenses_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    returned_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    supplier: Mapped[Supplier] = relationship(lazy="joined")

    items: Mapped[list["DirectPurchaseOrderItemModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="DirectPurchaseOrderItemModel.line_no",
        lazy="selectin",
    )
    expenses: Mapped[list["PurchaseExpenseModel"]] = relationship(
        primaryjoin="DirectPurchaseOrderModel.id == PurchaseExpenseModel.direct_purchase_order_id",
        cascade="all",
        order_by="PurchaseExpenseModel.line_no",
        lazy="selectin",
    )

    @property
    def outstanding(self) -> Decimal:
        """Still owed to the supplier: items less payments and approved returns."""
        return self.items_total - self.paid_amount - self.returned_amount

    def __repr__(self) -> str:
        return f"<DirectPurchaseOrderModel {self.dpo_number} status={self.status}>"


class DirectPurchaseOrderItemModel(TrackedBase):
    __tablename__ = "direct_purchase_order_items"

    __table_args__ = (
        Index("idx_dpo_item_order", "direct_purchase_order_id"),
        Index("idx_dpo_item_part", "part_id"),
    )

    direct_purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("direct_purchase_orders.id"), nullable=False,
    )
    part_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parts.id"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    purchase_price: Mapped[Decimal] = mapped_column(nullable=False)
    expense_share: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    landed_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    order: Mapped[DirectPurchaseOrderModel] = relationship(back_populates="items")

    @property
    def unit_price(self) -> Decimal:
        return self.purchase_price


# =============================================================================
# PurchaseExpenseModel
# =============================================================================


class PurchaseExpenseModel(TrackedBase):
    """
    Incidental cost on a PO or DPO (freight, duty, handling).

    Exactly one of purchase_order_id / direct_purchase_order_id is set.
    payable_account_id is the account credited for the expense; null means
    the configured purchase-expense payable.
    """

    __tablename__ = "purchase_expenses"

    __table_args__ = (
        Index("idx_purchase_expense_po", "purchase_order_id"),
        Index("idx_purchase_expense_dpo", "direct_purchase_order_id"),
    )

    purchase_order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("purchase_orders.id"), nullable=True,
    )
    direct_purchase_order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("direct_purchase_orders.id"), nullable=True,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expense_type: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payable_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True,
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)


# =============================================================================
# DirectPurchaseReturnModel
# =============================================================================


class DirectPurchaseReturnModel(TrackedBase):
    """Goods sent back to the supplier of a received DPO."""

    __tablename__ = "direct_purchase_returns"

    __table_args__ = (
        UniqueConstraint("return_number", name="uq_dpo_return_number"),
        Index("idx_dpo_return_dpo", "direct_purchase_order_id"),
    )

    return_number: Mapped[str] = mapped_column(String(50), nullable=False)
    direct_purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("direct_purchase_orders.id"), nullable=False,
    )
    return_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    items: Mapped[list["DirectPurchaseReturnItemModel"]] = relationship(
        back_populates="purchase_return",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class DirectPurchaseReturnItemModel(TrackedBase):
    __tablename__ = "direct_purchase_return_items"

    __table_args__ = (
        Index("idx_dpo_return_item_return", "return_id"),
    )

    return_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("direct_purchase_returns.id"), nullable=False,
    )
    part_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parts.id"), nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    purchase_return: Mapped[DirectPurchaseReturnModel] = relationship(back_populates="items")
