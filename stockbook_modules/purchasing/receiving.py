"""
Purchase receipt side effects shared by purchase orders and direct purchases.

Given a document whose status has already been moved to received,
``PurchaseReceiver.receive`` runs the costing engine over its lines and
expenses, writes Part.cost on each canonical part, appends ``in`` stock
movements, releases reservations for the received parts, and posts

    Dr Inventory            items total + expenses
        Cr Supplier payable     items total
        Cr Expense payable      one line per expense

Flush-only; the calling service owns the transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from stockbook_config.schema import StockbookConfig
from stockbook_engines.costing import ReceiptLine, cost_purchase_receipt
from stockbook_kernel.domain.amounts import ZERO, round_cost, round_money
from stockbook_kernel.domain.clock import Clock
from stockbook_kernel.domain.entries import EntryDraft, LineSpec
from stockbook_kernel.logging_config import get_logger
from stockbook_kernel.models.part import CostSource, Part
from stockbook_kernel.models.party import Supplier
from stockbook_kernel.models.stock import MovementType, ReferenceType
from stockbook_kernel.selectors.part_selector import PartSelector
from stockbook_kernel.selectors.stock_selector import StockSelector
from stockbook_kernel.services.ledger_poster import LedgerPoster
from stockbook_kernel.services.part_costs import PartCostService
from stockbook_kernel.services.stock_ledger import StockLedgerService
from stockbook_modules.purchasing.models import ItemCostFormula, ReceiptFormulas

logger = get_logger("modules.purchasing.receiving")


@dataclass(frozen=True)
class ReceiptOutcome:
    entry_number: str | None
    movements_created: int
    formulas: ReceiptFormulas


def supplier_payable(supplier: Supplier, config: StockbookConfig) -> UUID | str:
    """The supplier's own payable account, else the control payable code."""
    if supplier.payable_account_id is not None:
        return supplier.payable_account_id
    return config.accounts.accounts_payable


class PurchaseReceiver:

    def __init__(self, session: Session, config: StockbookConfig, clock: Clock):
        self._session = session
        self._config = config
        self._parts = PartSelector(session)
        self._stock_reader = StockSelector(session)
        self._costs = PartCostService(session, clock)
        self._stock = StockLedgerService(session, clock)
        self._poster = LedgerPoster(session, clock)

    def receive(
        self,
        *,
        document_id: UUID,
        number: str,
        entry_date: date,
        supplier: Supplier,
        store_id: UUID | None,
        items: list,
        expenses: list,
        reference_type: ReferenceType,
        cost_source: CostSource,
        source_type: str,
        actor_id: UUID,
    ) -> ReceiptOutcome:
        canonical_ids = [self._parts.canonical_id_for(item.part_id) for item in items]
        lines = [
            ReceiptLine(
                part_id=canonical_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                on_hand_qty=self._stock_reader.stock_quantity(canonical_id),
                current_cost=self._session.get(Part, canonical_id).cost,
            )
            for item, canonical_id in zip(items, canonical_ids)
        ]
        total_expense = sum((round_money(e.amount) for e in expenses), ZERO)

        costings = cost_purchase_receipt(
            lines,
            total_expense=total_expense,
            method=self._config.costing.expense_distribution,
            zero_value_policy=self._config.costing.zero_value_policy,
        )

        use_average = self._config.costing.cost_update == "weighted_average"
        formulas: list[ItemCostFormula] = []
        for item, costing in zip(items, costings):
            item.expense_share = costing.expense_share
            item.landed_cost = round_cost(costing.landed_cost)
            if hasattr(item, "received_qty"):
                item.received_qty = item.quantity
            item.updated_by_id = actor_id

            applied = costing.new_average_cost if use_average else costing.landed_cost
            change = self._costs.apply_cost(
                costing.part_id, applied, cost_source, actor_id, source_ref=number,
            )
            formulas.append(
                ItemCostFormula(
                    part_id=costing.part_id,
                    quantity=costing.quantity,
                    unit_price=costing.unit_price,
                    expense_share=costing.expense_share,
                    expense_per_unit=round_cost(costing.expense_per_unit),
                    landed_cost=round_cost(costing.landed_cost),
                    old_cost=costing.old_cost,
                    new_average_cost=round_cost(costing.new_average_cost),
                    applied_cost=change.new_cost,
                )
            )

        for item, canonical_id in zip(items, canonical_ids):
            self._stock.record(
                canonical_id,
                MovementType.IN,
                item.quantity,
                reference_type,
                document_id,
                actor_id,
                store_id=store_id,
                notes=f"{number} received",
            )
        self._stock.release_reservations(sorted(set(canonical_ids), key=str), store_id)

        items_total = round_money(
            sum((Decimal(i.quantity) * i.unit_price for i in items), ZERO)
        )
        entry_number = self._post_receipt_entry(
            document_id=document_id,
            number=number,
            entry_date=entry_date,
            supplier=supplier,
            items_total=items_total,
            expenses=expenses,
            source_type=source_type,
            actor_id=actor_id,
        )

        outcome = ReceiptOutcome(
            entry_number=entry_number,
            movements_created=len(items),
            formulas=ReceiptFormulas(
                total_expenses=total_expense,
                items_processed=len(formulas),
                items=tuple(formulas),
            ),
        )
        logger.info(
            "purchase_received",
            extra={
                "document_id": str(document_id),
                "number": number,
                "source_type": source_type,
                "items_processed": len(formulas),
                "total_expenses": str(total_expense),
                "entry_number": entry_number,
            },
        )
        return outcome

    def _post_receipt_entry(
        self,
        *,
        document_id: UUID,
        number: str,
        entry_date: date,
        supplier: Supplier,
        items_total: Decimal,
        expenses: list,
        source_type: str,
        actor_id: UUID,
    ) -> str | None:
        expense_lines = [
            LineSpec.cr(
                e.payable_account_id or self._config.accounts.purchase_expense_payable,
                round_money(e.amount),
                description=e.description or f"{e.expense_type} on {number}",
            )
            for e in expenses
            if round_money(e.amount) > ZERO
        ]
        inventory_total = items_total + sum((l.credit for l in expense_lines), ZERO)
        if inventory_total == ZERO:
            logger.info("receipt_entry_skipped", extra={"number": number, "reason": "zero_total"})
            return None

        lines = [
            LineSpec.dr(
                self._config.accounts.inventory,
                inventory_total,
                description=f"{number} inventory received",
            ),
        ]
        if items_total > ZERO:
            lines.append(
                LineSpec.cr(
                    supplier_payable(supplier, self._config),
                    items_total,
                    description=f"{number} {supplier.name} liability",
                )
            )
        lines.extend(expense_lines)

        entry_id = self._poster.post_entry(
            EntryDraft(
                entry_date=entry_date,
                lines=tuple(lines),
                reference=number,
                description=f"{number} received from {supplier.name}",
                source_type=source_type,
                source_id=document_id,
            ),
            actor_id=actor_id,
        )
        return self._poster.get_entry(entry_id).number

    def undo(
        self,
        *,
        document_id: UUID,
        reference_type: ReferenceType,
        source_type: str,
        actor_id: UUID,
    ) -> tuple[list[str], int]:
        """Reverse a document's entries and drop its movements."""
        reversed_numbers = self._poster.reverse_entries_for_source(source_type, document_id, actor_id)
        removed = self._stock.remove_for_reference(reference_type, document_id)
        return reversed_numbers, removed
