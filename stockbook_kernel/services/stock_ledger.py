"""
StockLedgerService -- appends and removes StockMovement rows.

Movements are append-only during normal operation.  Rows are removed in
only two cases: a document is deleted with reversal (its movements go
with it) and reservations are released.  Flush-only.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete

from stockbook_kernel.domain.amounts import positive_quantity
from stockbook_kernel.exceptions import InsufficientStockError, PartNotFoundError, ValidationError
from stockbook_kernel.logging_config import get_logger
from stockbook_kernel.models.part import Part
from stockbook_kernel.models.stock import MovementType, ReferenceType, StockMovement
from stockbook_kernel.selectors.stock_selector import StockSelector
from stockbook_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")


class StockLedgerService(BaseService[StockMovement]):

    def record(
        self,
        part_id: UUID,
        movement_type: MovementType | str,
        quantity: int,
        reference_type: ReferenceType | str,
        reference_id: UUID | None,
        actor_id: UUID,
        store_id: UUID | None = None,
        notes: str | None = None,
    ) -> UUID:
        """Append one movement and return its id."""
        quantity = positive_quantity(quantity)
        try:
            movement_type = MovementType(movement_type)
            reference_type = ReferenceType(reference_type)
        except ValueError as exc:
            raise ValidationError(str(exc), field="movement") from exc
        if self.session.get(Part, part_id) is None:
            raise PartNotFoundError(str(part_id))

        movement = StockMovement(
            part_id=part_id,
            store_id=store_id,
            movement_type=movement_type.value,
            quantity=quantity,
            reference_type=reference_type.value,
            reference_id=reference_id,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(movement)
        self.session.flush()

        logger.debug(
            "stock_movement_recorded",
            extra={
                "part_id": str(part_id),
                "movement_type": movement_type.value,
                "quantity": quantity,
                "reference_type": reference_type.value,
                "reference_id": str(reference_id) if reference_id else None,
            },
        )
        return movement.id

    def reserve(
        self,
        part_id: UUID,
        quantity: int,
        actor_id: UUID,
        store_id: UUID | None = None,
        reference_id: UUID | None = None,
        notes: str | None = None,
    ) -> UUID:
        """Hold ``quantity`` units; fails when fewer are available."""
        quantity = positive_quantity(quantity)
        available = StockSelector(self.session).available_quantity(part_id, store_id)
        if quantity > available:
            raise InsufficientStockError(str(part_id), quantity, available)
        movement_id = self.record(
            part_id,
            MovementType.OUT,
            quantity,
            ReferenceType.STOCK_RESERVATION,
            reference_id,
            actor_id,
            store_id=store_id,
            notes=notes,
        )
        logger.info(
            "stock_reserved",
            extra={"part_id": str(part_id), "quantity": quantity, "available_before": available},
        )
        return movement_id

    def release_reservations(
        self,
        part_ids: list[UUID],
        store_id: UUID | None = None,
    ) -> int:
        """Drop reservations for the given parts.  Returns rows removed."""
        if not part_ids:
            return 0
        stmt = delete(StockMovement).where(
            StockMovement.part_id.in_(part_ids),
            StockMovement.reference_type == ReferenceType.STOCK_RESERVATION.value,
        )
        if store_id is not None:
            stmt = stmt.where(StockMovement.store_id == store_id)
        removed = self.session.execute(stmt).rowcount or 0
        self.session.flush()
        if removed:
            logger.info("stock_reservations_released", extra={"removed": removed})
        return removed

    def remove_for_reference(self, reference_type: ReferenceType | str, reference_id: UUID) -> int:
        """Delete the movements of one document.  Returns rows removed."""
        reference_type = ReferenceType(reference_type)
        removed = self.session.execute(
            delete(StockMovement).where(
                StockMovement.reference_type == reference_type.value,
                StockMovement.reference_id == reference_id,
            )
        ).rowcount or 0
        self.session.flush()
        logger.info(
            "stock_movements_removed",
            extra={
                "reference_type": reference_type.value,
                "reference_id": str(reference_id),
                "removed": removed,
            },
        )
        return removed
