"""
StockSelector -- stock on hand, reservations and availability.

Stock on hand is the signed sum of a part's movements excluding
reservations; availability subtracts reserved units and never drops
below zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy import case, func, select

from stockbook_kernel.models.part import Part
from stockbook_kernel.models.stock import MovementType, ReferenceType, StockMovement
from stockbook_kernel.selectors.base import BaseSelector


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


@dataclass(frozen=True)
class StockLevel:
    part_id: UUID
    part_no: str
    on_hand: int
    reserved: int
    available: int
    reorder_level: int
    status: StockStatus


def stock_status(on_hand: int, reorder_level: int) -> StockStatus:
    if on_hand <= 0:
        return StockStatus.OUT_OF_STOCK
    if on_hand <= reorder_level:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


_SIGNED_QUANTITY = case(
    (StockMovement.movement_type == MovementType.IN.value, StockMovement.quantity),
    else_=-StockMovement.quantity,
)


class StockSelector(BaseSelector[StockMovement]):

    def stock_quantity(self, part_id: UUID, store_id: UUID | None = None) -> int:
        stmt = select(func.coalesce(func.sum(_SIGNED_QUANTITY), 0)).where(
            StockMovement.part_id == part_id,
            StockMovement.reference_type != ReferenceType.STOCK_RESERVATION.value,
        )
        if store_id is not None:
            stmt = stmt.where(StockMovement.store_id == store_id)
        return int(self.session.scalar(stmt))

    def reserved_quantity(self, part_id: UUID, store_id: UUID | None = None) -> int:
        stmt = select(func.coalesce(func.sum(StockMovement.quantity), 0)).where(
            StockMovement.part_id == part_id,
            StockMovement.reference_type == ReferenceType.STOCK_RESERVATION.value,
        )
        if store_id is not None:
            stmt = stmt.where(StockMovement.store_id == store_id)
        return int(self.session.scalar(stmt))

    def available_quantity(self, part_id: UUID, store_id: UUID | None = None) -> int:
        on_hand = self.stock_quantity(part_id, store_id)
        reserved = self.reserved_quantity(part_id, store_id)
        return max(0, on_hand - reserved)

    def stock_level(self, part_id: UUID, store_id: UUID | None = None) -> StockLevel:
        part = self.session.get(Part, part_id)
        on_hand = self.stock_quantity(part_id, store_id)
        reserved = self.reserved_quantity(part_id, store_id)
        reorder = part.reorder_level if part is not None else 0
        return StockLevel(
            part_id=part_id,
            part_no=part.part_no if part is not None else "",
            on_hand=on_hand,
            reserved=reserved,
            available=max(0, on_hand - reserved),
            reorder_level=reorder,
            status=stock_status(on_hand, reorder),
        )

    def movement_count(self, reference_type: str, reference_id: UUID) -> int:
        return int(
            self.session.scalar(
                select(func.count(StockMovement.id)).where(
                    StockMovement.reference_type == reference_type,
                    StockMovement.reference_id == reference_id,
                )
            )
        )

    def on_hand_by_part(self) -> dict[UUID, int]:
        """Stock on hand for every part that has movements."""
        rows = self.session.execute(
            select(StockMovement.part_id, func.sum(_SIGNED_QUANTITY))
            .where(StockMovement.reference_type != ReferenceType.STOCK_RESERVATION.value)
            .group_by(StockMovement.part_id)
        ).all()
        return {part_id: int(qty) for part_id, qty in rows}
