"""
Module: stockbook_kernel.models.stock
Responsibility: Stores and the append-only StockMovement quantity ledger.
Architecture position: Kernel > Models.

Invariants enforced:
    - quantity is always positive; movement_type (in/out) carries the sign.
    - Stock on hand is the signed sum of a part's movements, excluding
      reservations.  Reservations are tracked as ``out`` movements tagged
      STOCK_RESERVATION and reduce availability only.
    - reference_type/reference_id point at the originating document.  Rows
      whose document no longer exists are removed by
      InventoryService.purge_orphaned_movements.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stockbook_kernel.db.base import TrackedBase, UUIDString


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"


class ReferenceType(str, Enum):
    """Originating document of a stock movement."""

    PURCHASE = "purchase"
    DIRECT_PURCHASE = "direct_purchase"
    PURCHASE_RETURN = "purchase_return"
    SALES_INVOICE = "sales_invoice"
    SALES_RETURN = "sales_return"
    ADJUSTMENT = "adjustment"
    STOCK_RESERVATION = "stock_reservation"


class Store(TrackedBase):
    """Stock location."""

    __tablename__ = "stores"
    __table_args__ = (UniqueConstraint("code", name="uq_store_code"),)

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class StockMovement(TrackedBase):
    """One quantity delta for a part, tagged with its source document."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movement_quantity"),
        Index("idx_stock_movement_part", "part_id"),
        Index("idx_stock_movement_part_store", "part_id", "store_id"),
        Index("idx_stock_movement_reference", "reference_type", "reference_id"),
    )

    part_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("parts.id"),
        nullable=False,
    )
    store_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("stores.id"),
        nullable=True,
    )

    movement_type: Mapped[MovementType] = mapped_column(String(10), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    reference_type: Mapped[ReferenceType] = mapped_column(String(30), nullable=False)
    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def signed_quantity(self) -> int:
        if self.movement_type == MovementType.IN.value:
            return self.quantity
        return -self.quantity

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.movement_type} {self.quantity} "
            f"part={self.part_id} ref={self.reference_type}>"
        )
