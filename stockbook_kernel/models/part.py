"""
Module: stockbook_kernel.models.part
Responsibility: ORM persistence for the parts catalog: brands, categories,
    subcategories, applications and the Part rows that carry cost.
Architecture position: Kernel > Models.

Invariants enforced:
    - part_no is indexed but NOT unique.  Historical imports left several
      rows per part number; readers and cost writers resolve them through
      PartSelector.canonical_part so that cost never drifts between
      duplicates.  PartService.merge_duplicates folds them into one row.
    - cost_updated_at is stamped whenever a receipt writes cost.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockbook_kernel.db.base import TrackedBase, UUIDString


class CostSource(str, Enum):
    """Where the current Part.cost came from."""

    MANUAL = "manual"
    DPO_RECEIVED = "DPO_RECEIVED"
    PO_RECEIVED = "PO_RECEIVED"


class PartStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# =============================================================================
# Lookup tables
# =============================================================================


class Brand(TrackedBase):
    __tablename__ = "brands"
    __table_args__ = (UniqueConstraint("name", name="uq_brand_name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Category(TrackedBase):
    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("name", name="uq_category_name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    subcategories: Mapped[list["Subcategory"]] = relationship(back_populates="category")


class Subcategory(TrackedBase):
    __tablename__ = "subcategories"
    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_subcategory_name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("categories.id"),
        nullable=False,
    )

    category: Mapped[Category] = relationship(back_populates="subcategories")


class Application(TrackedBase):
    """Vehicle or machine a part fits."""

    __tablename__ = "applications"
    __table_args__ = (UniqueConstraint("name", name="uq_application_name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)


# =============================================================================
# Part
# =============================================================================


class Part(TrackedBase):
    """
    Catalog item.

    cost is the current unit cost (landed or weighted average, depending on
    costing configuration).  price_a/price_b/price_m are the selling tiers.
    """

    __tablename__ = "parts"

    __table_args__ = (
        Index("idx_part_part_no", "part_no"),
        Index("idx_part_brand", "brand_id"),
        Index("idx_part_category", "category_id"),
    )

    part_no: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    brand_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("brands.id"), nullable=True,
    )
    category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("categories.id"), nullable=True,
    )
    subcategory_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("subcategories.id"), nullable=True,
    )
    application_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("applications.id"), nullable=True,
    )

    cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cost_source: Mapped[CostSource] = mapped_column(
        String(20),
        nullable=False,
        default=CostSource.MANUAL.value,
    )
    cost_source_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cost_updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    price_a: Mapped[Decimal | None] = mapped_column(nullable=True)
    price_b: Mapped[Decimal | None] = mapped_column(nullable=True)
    price_m: Mapped[Decimal | None] = mapped_column(nullable=True)

    reorder_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[PartStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PartStatus.ACTIVE.value,
    )

    brand: Mapped[Brand | None] = relationship(lazy="joined")
    category: Mapped[Category | None] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<Part {self.part_no} cost={self.cost}>"
