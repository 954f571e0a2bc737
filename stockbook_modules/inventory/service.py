"""
Inventory Module Service (``stockbook_modules.inventory.service``).

Responsibility
--------------
Stores, stock adjustments, reservations, stock status and valuation, and
the orphaned-movement cleanup.

Approving an adjustment posts one entry against the configured inventory
adjustment account:

    in:   Dr Inventory / Cr Inventory adjustment   (quantity x unit cost)
    out:  Dr Inventory adjustment / Cr Inventory   (quantity x average cost)

Inbound adjustments feed the weighted average exactly like a receipt with
no expenses; outbound adjustments are valued at the current average cost.

Invariants
----------
- Stock positions and costs are read from the canonical part row.
- Each public mutating method owns its transaction boundary.
- ``purge_orphaned_movements`` never touches reservations.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from stockbook_config import get_active_config
from stockbook_config.schema import StockbookConfig
from stockbook_engines.costing import (
    ReceiptLine,
    SaleLine,
    calculate_inventory_valuation,
    cost_purchase_receipt,
    cost_sale,
)
from stockbook_kernel.domain.amounts import ZERO, round_cost, round_money
from stockbook_kernel.domain.clock import Clock, SystemClock
from stockbook_kernel.domain.entries import EntryDraft, LineSpec
from stockbook_kernel.exceptions import ValidationError
from stockbook_kernel.logging_config import LogContext, get_logger
from stockbook_kernel.models.part import CostSource, Part
from stockbook_kernel.models.stock import MovementType, ReferenceType, StockMovement, Store
from stockbook_kernel.selectors.part_selector import PartSelector
from stockbook_kernel.selectors.stock_selector import StockSelector
from stockbook_kernel.services.ledger_poster import LedgerPoster
from stockbook_kernel.services.part_costs import PartCostService
from stockbook_kernel.services.stock_ledger import StockLedgerService
from stockbook_modules.inventory.models import (
    Adjustment,
    AdjustmentDirection,
    AdjustmentItemInput,
    AdjustmentLine,
    AdjustmentResult,
    InventoryValuation,
    PartStockStatus,
    PurgeResult,
    ValuationLine,
)
from stockbook_modules.inventory.orm import InventoryAdjustmentItemModel, InventoryAdjustmentModel
from stockbook_modules.inventory.workflows import INVENTORY_ADJUSTMENT_WORKFLOW
from stockbook_modules.lifecycle import (
    advance_status,
    load_document,
    next_document_number,
    require,
)
from stockbook_modules.purchasing.orm import (
    DirectPurchaseOrderModel,
    DirectPurchaseReturnModel,
    PurchaseOrderModel,
)
from stockbook_modules.sales.orm import SalesInvoiceModel, SalesReturnModel

logger = get_logger("modules.inventory.service")

INVENTORY_ADJUSTMENT = "inventory adjustment"
SOURCE_INVENTORY_ADJUSTMENT = "inventory_adjustment"

# Document table behind each movement reference type
_REFERENCED_DOCUMENTS = {
    ReferenceType.PURCHASE: PurchaseOrderModel,
    ReferenceType.DIRECT_PURCHASE: DirectPurchaseOrderModel,
    ReferenceType.PURCHASE_RETURN: DirectPurchaseReturnModel,
    ReferenceType.SALES_INVOICE: SalesInvoiceModel,
    ReferenceType.SALES_RETURN: SalesReturnModel,
    ReferenceType.ADJUSTMENT: InventoryAdjustmentModel,
}


def _to_adjustment(adjustment: InventoryAdjustmentModel) -> Adjustment:
    return Adjustment(
        id=adjustment.id,
        adjustment_no=adjustment.adjustment_no,
        adjustment_date=adjustment.adjustment_date,
        direction=adjustment.direction,
        status=adjustment.status,
        store_id=adjustment.store_id,
        reason=adjustment.reason,
        total_value=adjustment.total_value,
        lines=tuple(
            AdjustmentLine(part_id=i.part_id, quantity=i.quantity, unit_cost=i.unit_cost)
            for i in adjustment.items
        ),
    )


class InventoryService:
    """
    Orchestrates stock operations that are not purchases or sales.

    Engine composition:
    - cost_purchase_receipt: inbound adjustment average cost
    - cost_sale: outbound stock check and valuation
    - calculate_inventory_valuation: stock value totals
    """

    def __init__(
        self,
        session: Session,
        config: StockbookConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._parts = PartSelector(session)
        self._stock_reader = StockSelector(session)
        self._stock = StockLedgerService(session, self._clock)
        self._costs = PartCostService(session, self._clock)
        self._poster = LedgerPoster(session, self._clock)

    # -------------------------------------------------------------------------
    # Stores
    # -------------------------------------------------------------------------

    def create_store(self, code: str, name: str, actor_id: UUID) -> UUID:
        try:
            code = code.strip()
            if not code or not name.strip():
                raise ValidationError("Store code and name are required", field="code")
            existing = self._session.scalar(select(Store).where(Store.code == code))
            if existing is not None:
                raise ValidationError(f"Store code already exists: {code}", field="code")
            store = Store(code=code, name=name.strip(), created_by_id=actor_id)
            self._session.add(store)
            self._session.flush()
            logger.info("store_created", extra={"store_id": str(store.id), "code": code})
            store_id = store.id
            self._session.commit()
            return store_id
        except Exception:
            self._session.rollback()
            raise

    # -------------------------------------------------------------------------
    # Adjustments
    # -------------------------------------------------------------------------

    def create_adjustment(
        self,
        adjustment_date: date,
        direction: AdjustmentDirection | str,
        items: Sequence[AdjustmentItemInput],
        actor_id: UUID,
        store_id: UUID | None = None,
        reason: str | None = None,
        adjustment_no: str | None = None,
    ) -> Adjustment:
        try:
            try:
                direction = AdjustmentDirection(direction)
            except ValueError as exc:
                raise ValidationError(str(exc), field="direction") from exc
            if not items:
                raise ValidationError("An adjustment needs at least one item", field="items")
            for item in items:
                self._parts.get(item.part_id)
            if store_id is not None:
                require(self._session, Store, store_id, "Store")

            number = adjustment_no or next_document_number(
                self._session,
                InventoryAdjustmentModel.adjustment_no,
                f"ADJ-{adjustment_date.year}-",
            )
            adjustment = InventoryAdjustmentModel(
                adjustment_no=number,
                adjustment_date=adjustment_date,
                store_id=store_id,
                direction=direction.value,
                status=INVENTORY_ADJUSTMENT_WORKFLOW.initial_state,
                reason=reason,
                total_value=ZERO,
                created_by_id=actor_id,
            )
            adjustment.items = [
                InventoryAdjustmentItemModel(
                    part_id=item.part_id,
                    line_no=index,
                    quantity=item.quantity,
                    unit_cost=item.unit_cost,
                    created_by_id=actor_id,
                )
                for index, item in enumerate(items)
            ]
            self._session.add(adjustment)
            self._session.flush()

            logger.info(
                "inventory_adjustment_created",
                extra={
                    "document_id": str(adjustment.id),
                    "adjustment_no": number,
                    "direction": direction.value,
                    "items": len(items),
                },
            )
            result = _to_adjustment(adjustment)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def approve_adjustment(self, adjustment_id: UUID, actor_id: UUID) -> AdjustmentResult:
        """
        Approve a pending adjustment.

        Inbound lines without a unit cost come in at the part's current
        cost.  Outbound lines fail with InsufficientStockError when stock
        is short and negative stock is not allowed.
        """
        try:
            with LogContext.bind(document_id=str(adjustment_id), actor_id=str(actor_id)):
                adjustment = load_document(
                    self._session, InventoryAdjustmentModel, adjustment_id, INVENTORY_ADJUSTMENT,
                )
                canonical_ids = [self._parts.canonical_id_for(i.part_id) for i in adjustment.items]
                inbound = adjustment.direction == AdjustmentDirection.IN.value

                if inbound:
                    costings = self._cost_inbound(adjustment, canonical_ids)
                else:
                    costings = self._cost_outbound(adjustment, canonical_ids)

                advance_status(
                    self._session,
                    InventoryAdjustmentModel,
                    adjustment,
                    INVENTORY_ADJUSTMENT_WORKFLOW,
                    "approve",
                    actor_id,
                    INVENTORY_ADJUSTMENT,
                    approved_at=self._clock.now(),
                )

                total_value = ZERO
                for item, canonical_id, costing in zip(adjustment.items, canonical_ids, costings):
                    if inbound:
                        self._costs.apply_cost(
                            canonical_id,
                            costing.new_average_cost,
                            CostSource.MANUAL,
                            actor_id,
                            source_ref=adjustment.adjustment_no,
                        )
                        item.unit_cost = round_cost(costing.landed_cost)
                    else:
                        item.unit_cost = round_cost(costing.unit_cost)
                    item.updated_by_id = actor_id
                    total_value += round_money(Decimal(item.quantity) * item.unit_cost)
                    self._stock.record(
                        canonical_id,
                        MovementType.IN if inbound else MovementType.OUT,
                        item.quantity,
                        ReferenceType.ADJUSTMENT,
                        adjustment.id,
                        actor_id,
                        store_id=adjustment.store_id,
                        notes=adjustment.reason or adjustment.adjustment_no,
                    )
                adjustment.total_value = total_value
                self._session.flush()

                entry_number = self._post_adjustment(adjustment, inbound, total_value, actor_id)
                logger.info(
                    "inventory_adjustment_approved",
                    extra={
                        "adjustment_no": adjustment.adjustment_no,
                        "direction": adjustment.direction,
                        "total_value": str(total_value),
                        "entry_number": entry_number,
                    },
                )
                result = AdjustmentResult(
                    adjustment=_to_adjustment(adjustment),
                    entry_number=entry_number,
                    movements_created=len(adjustment.items),
                )
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def _cost_inbound(self, adjustment, canonical_ids):
        lines = []
        for item, canonical_id in zip(adjustment.items, canonical_ids):
            current = self._session.get(Part, canonical_id).cost
            lines.append(
                ReceiptLine(
                    part_id=canonical_id,
                    quantity=item.quantity,
                    unit_price=item.unit_cost if item.unit_cost is not None else current,
                    on_hand_qty=self._stock_reader.stock_quantity(canonical_id),
                    current_cost=current,
                )
            )
        return cost_purchase_receipt(
            lines,
            total_expense=ZERO,
            method=self._config.costing.expense_distribution,
            zero_value_policy=self._config.costing.zero_value_policy,
        )

    def _cost_outbound(self, adjustment, canonical_ids):
        costings = cost_sale(
            [
                SaleLine(
                    part_id=canonical_id,
                    quantity=item.quantity,
                    unit_price=ZERO,
                    on_hand_qty=self._stock_reader.stock_quantity(canonical_id, adjustment.store_id),
                    unit_cost=self._session.get(Part, canonical_id).cost,
                )
                for item, canonical_id in zip(adjustment.items, canonical_ids)
            ],
            allow_negative_stock=self._config.inventory.allow_negative_stock,
        )
        return costings

    def _post_adjustment(
        self,
        adjustment: InventoryAdjustmentModel,
        inbound: bool,
        total_value: Decimal,
        actor_id: UUID,
    ) -> str | None:
        if total_value == ZERO:
            logger.info(
                "adjustment_entry_skipped",
                extra={"adjustment_no": adjustment.adjustment_no, "reason": "zero_value"},
            )
            return None
        inventory = self._config.accounts.inventory
        offset = self._config.accounts.inventory_adjustment
        debit, credit = (inventory, offset) if inbound else (offset, inventory)
        description = f"Stock adjustment {adjustment.adjustment_no} ({adjustment.direction})"
        entry_id = self._poster.post_entry(
            EntryDraft(
                entry_date=adjustment.adjustment_date,
                lines=(
                    LineSpec.dr(debit, total_value, description=description),
                    LineSpec.cr(credit, total_value, description=description),
                ),
                reference=adjustment.adjustment_no,
                description=description,
                source_type=SOURCE_INVENTORY_ADJUSTMENT,
                source_id=adjustment.id,
            ),
            actor_id=actor_id,
        )
        return self._poster.get_entry(entry_id).number

    def delete_adjustment(self, adjustment_id: UUID, actor_id: UUID) -> list[str]:
        """Delete an adjustment, reversing its entry and movements.  Part costs stay."""
        try:
            adjustment = load_document(
                self._session, InventoryAdjustmentModel, adjustment_id, INVENTORY_ADJUSTMENT,
            )
            reversed_numbers = self._poster.reverse_entries_for_source(
                SOURCE_INVENTORY_ADJUSTMENT, adjustment.id, actor_id,
            )
            removed = self._stock.remove_for_reference(ReferenceType.ADJUSTMENT, adjustment.id)
            number = adjustment.adjustment_no
            self._session.delete(adjustment)
            self._session.flush()
            logger.info(
                "inventory_adjustment_deleted",
                extra={
                    "adjustment_no": number,
                    "entries_reversed": reversed_numbers,
                    "movements_removed": removed,
                },
            )
            self._session.commit()
            return reversed_numbers
        except Exception:
            self._session.rollback()
            raise

    def get_adjustment(self, adjustment_id: UUID) -> Adjustment:
        return _to_adjustment(
            load_document(self._session, InventoryAdjustmentModel, adjustment_id, INVENTORY_ADJUSTMENT)
        )

    # -------------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------------

    def reserve_stock(
        self,
        part_id: UUID,
        quantity: int,
        actor_id: UUID,
        store_id: UUID | None = None,
        reference_id: UUID | None = None,
        notes: str | None = None,
    ) -> UUID:
        try:
            canonical_id = self._parts.canonical_id_for(part_id)
            movement_id = self._stock.reserve(
                canonical_id,
                quantity,
                actor_id,
                store_id=store_id,
                reference_id=reference_id,
                notes=notes,
            )
            self._session.commit()
            return movement_id
        except Exception:
            self._session.rollback()
            raise

    def release_reservations(self, part_ids: Sequence[UUID], store_id: UUID | None = None) -> int:
        try:
            canonical_ids = sorted({self._parts.canonical_id_for(p) for p in part_ids}, key=str)
            removed = self._stock.release_reservations(canonical_ids, store_id)
            self._session.commit()
            return removed
        except Exception:
            self._session.rollback()
            raise

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def stock_status(self, part_id: UUID, store_id: UUID | None = None) -> PartStockStatus:
        canonical_id = self._parts.canonical_id_for(part_id)
        level = self._stock_reader.stock_level(canonical_id, store_id)
        return PartStockStatus(
            part_id=canonical_id,
            part_no=level.part_no,
            on_hand=level.on_hand,
            reserved=level.reserved,
            available=level.available,
            reorder_level=level.reorder_level,
            status=level.status,
            unit_cost=self._session.get(Part, canonical_id).cost,
        )

    def inventory_valuation(self) -> InventoryValuation:
        """Stock on hand per part number, valued at the canonical average cost."""
        quantities: dict[UUID, int] = {}
        for part_id, qty in self._stock_reader.on_hand_by_part().items():
            canonical_id = self._parts.canonical_id_for(part_id)
            quantities[canonical_id] = quantities.get(canonical_id, 0) + qty

        lines = []
        for canonical_id, qty in quantities.items():
            if qty == 0:
                continue
            part = self._session.get(Part, canonical_id)
            lines.append(
                ValuationLine(
                    part_id=canonical_id,
                    part_no=part.part_no,
                    quantity=qty,
                    unit_cost=part.cost,
                )
            )
        lines.sort(key=lambda line: line.part_no)
        total = calculate_inventory_valuation((line.quantity, line.unit_cost) for line in lines)
        return InventoryValuation(lines=tuple(lines), total_value=round_money(total))

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def purge_orphaned_movements(self) -> PurgeResult:
        """Delete movements whose source document no longer exists."""
        try:
            removed: dict[str, int] = {}
            for reference_type, model in _REFERENCED_DOCUMENTS.items():
                count = self._session.execute(
                    delete(StockMovement)
                    .where(
                        StockMovement.reference_type == reference_type.value,
                        or_(
                            StockMovement.reference_id.is_(None),
                            StockMovement.reference_id.not_in(select(model.id)),
                        ),
                    )
                    .execution_options(synchronize_session=False)
                ).rowcount or 0
                if count:
                    removed[reference_type.value] = count
            self._session.flush()
            result = PurgeResult(removed=removed)
            logger.info(
                "orphaned_movements_purged",
                extra={"removed": removed, "total": result.total},
            )
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise
