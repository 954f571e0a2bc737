"""
Module: stockbook_modules.inventory.orm
Responsibility: SQLAlchemy tables for manual stock adjustments.

Architecture position: Modules > Inventory > ORM.  Inherits TrackedBase.

Invariants enforced:
    - direction is ``in`` or ``out``; quantities are positive.
    - unit_cost on an item row is the cost applied at approval.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockbook_kernel.db.base import TrackedBase, UUIDString


class InventoryAdjustmentModel(TrackedBase):
    """Stock count correction or write-off, posted against the adjustment account."""

    __tablename__ = "inventory_adjustments"

    __table_args__ = (
        UniqueConstraint("adjustment_no", name="uq_inventory_adjustment_no"),
        CheckConstraint("direction IN ('in', 'out')", name="ck_inventory_adjustment_direction"),
        Index("idx_inventory_adjustment_status", "status"),
    )

    adjustment_no: Mapped[str] = mapped_column(String(50), nullable=False)
    adjustment_date: Mapped[date] = mapped_column(Date, nullable=False)
    store_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=True,
    )
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    total_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    items: Mapped[list["InventoryAdjustmentItemModel"]] = relationship(
        back_populates="adjustment",
        cascade="all, delete-orphan",
        order_by="InventoryAdjustmentItemModel.line_no",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<InventoryAdjustmentModel {self.adjustment_no} {self.direction} status={self.status}>"


class InventoryAdjustmentItemModel(TrackedBase):
    __tablename__ = "inventory_adjustment_items"

    __table_args__ = (
        Index("idx_adjustment_item_adjustment", "adjustment_id"),
        Index("idx_adjustment_item_part", "part_id"),
    )

    adjustment_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_adjustments.id"), nullable=False,
    )
    part_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parts.id"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    adjustment: Mapped[InventoryAdjustmentModel] = relationship(back_populates="items")
