"""
Purchasing Module Service (``stockbook_modules.purchasing.service``).

Responsibility
--------------
Lifecycle of purchase orders (PO), direct purchase orders (DPO) and DPO
returns: create, receive, pay, return and delete.  Costing comes from
``stockbook_engines.costing`` via ``PurchaseReceiver``; stock, cost and
ledger writes go through the kernel services.

Architecture
------------
Layer: **Modules** -- thin orchestration.

1. ``advance_status`` moves the document with a status compare-and-swap.
2. ``PurchaseReceiver`` costs the receipt, updates canonical Part.cost,
   appends ``in`` movements and posts the receipt entry.
3. ``LedgerPoster`` posts payment vouchers and return entries.

Invariants
----------
- Each public method owns its transaction boundary: commit on success,
  rollback and re-raise on any failure.
- A document is received at most once.  A second receive (sequential or
  concurrent) raises ``AlreadyReceivedError`` before any side effect.
- Deleting a received document reverses every entry it generated and
  removes its movements.

Failure Modes
-------------
- ``ValidationError`` on empty documents, bad quantities or overpayment.
- ``NotFoundError`` subclasses for missing suppliers, parts, accounts or
  documents.
- ``AlreadyReceivedError`` / ``InvalidTransitionError`` on illegal
  status changes.
- ``InsufficientStockError`` when approving a return of stock already gone.

Usage::

    service = DirectPurchaseService(session, config, clock)
    dpo = service.create_order(
        supplier_id=supplier_id,
        order_date=date(2024, 6, 1),
        items=[OrderItemInput(part_id, 5, Decimal("160"))],
        expenses=[ExpenseInput("freight", Decimal("50"))],
        actor_id=actor_id,
    )
    receipt = service.receive_order(dpo.id, actor_id=actor_id)
    receipt.formulas.as_dict()
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockbook_config import get_active_config
from stockbook_config.schema import StockbookConfig
from stockbook_kernel.domain.account_types import AccountType
from stockbook_kernel.domain.amounts import ZERO, round_money, to_decimal
from stockbook_kernel.domain.clock import Clock, SystemClock
from stockbook_kernel.domain.entries import EntryDraft, LineSpec
from stockbook_kernel.exceptions import (
    AccountNotFoundError,
    InsufficientStockError,
    InvalidTransitionError,
    PartNotFoundError,
    ValidationError,
)
from stockbook_kernel.logging_config import LogContext, get_logger
from stockbook_kernel.models.account import Account
from stockbook_kernel.models.ledger import EntryKind, VoucherType
from stockbook_kernel.models.part import CostSource, Part
from stockbook_kernel.models.party import Supplier
from stockbook_kernel.models.stock import MovementType, ReferenceType, Store
from stockbook_kernel.selectors.part_selector import PartSelector
from stockbook_kernel.selectors.stock_selector import StockSelector
from stockbook_kernel.services.ledger_poster import LedgerPoster
from stockbook_kernel.services.stock_ledger import StockLedgerService
from stockbook_modules.lifecycle import (
    advance_status,
    load_document,
    next_document_number,
    require,
)
from stockbook_modules.purchasing.models import (
    ExpenseInput,
    OrderItemInput,
    PaymentResult,
    PurchaseDocument,
    ReceiptResult,
    ReturnItemInput,
    ReturnResult,
)
from stockbook_modules.purchasing.orm import (
    DirectPurchaseOrderItemModel,
    DirectPurchaseOrderModel,
    DirectPurchaseReturnItemModel,
    DirectPurchaseReturnModel,
    PurchaseExpenseModel,
    PurchaseOrderItemModel,
    PurchaseOrderModel,
)
from stockbook_modules.purchasing.receiving import PurchaseReceiver, supplier_payable
from stockbook_modules.purchasing.workflows import (
    DIRECT_PURCHASE_WORKFLOW,
    PURCHASE_ORDER_WORKFLOW,
    PURCHASE_RETURN_WORKFLOW,
)

logger = get_logger("modules.purchasing.service")

PURCHASE_ORDER = "purchase order"
DIRECT_PURCHASE = "direct purchase order"
PURCHASE_RETURN = "direct purchase return"

SOURCE_PURCHASE_ORDER = "purchase_order"
SOURCE_DIRECT_PURCHASE = "direct_purchase"
SOURCE_DIRECT_PURCHASE_PAYMENT = "direct_purchase_payment"
SOURCE_DIRECT_PURCHASE_RETURN = "direct_purchase_return"


def _to_document(order, number: str) -> PurchaseDocument:
    paid = getattr(order, "paid_amount", ZERO)
    outstanding = order.outstanding if isinstance(order, DirectPurchaseOrderModel) else ZERO
    return PurchaseDocument(
        id=order.id,
        number=number,
        status=order.status,
        order_date=order.order_date,
        supplier_id=order.supplier_id,
        store_id=order.store_id,
        items_total=order.items_total,
        expenses_total=order.expenses_total,
        total_amount=order.total_amount,
        paid_amount=paid,
        outstanding=outstanding,
        line_count=len(order.items),
    )


class _PurchaseDocumentService:
    """Validation and header building shared by PO and DPO services."""

    def __init__(
        self,
        session: Session,
        config: StockbookConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._receiver = PurchaseReceiver(session, self._config, self._clock)

    def _validate_header(
        self,
        supplier_id: UUID,
        store_id: UUID | None,
        items: Sequence[OrderItemInput],
        expenses: Sequence[ExpenseInput],
    ) -> None:
        require(self._session, Supplier, supplier_id, "Supplier")
        if store_id is not None:
            require(self._session, Store, store_id, "Store")
        if not items:
            raise ValidationError("A purchase needs at least one item", field="items")
        for item in items:
            if self._session.get(Part, item.part_id) is None:
                raise PartNotFoundError(str(item.part_id))
        for expense in expenses:
            if not expense.expense_type:
                raise ValidationError("Expense type is required", field="expense_type")
            if (
                expense.payable_account_id is not None
                and self._session.get(Account, expense.payable_account_id) is None
            ):
                raise AccountNotFoundError(str(expense.payable_account_id))

    @staticmethod
    def _totals(
        items: Sequence[OrderItemInput],
        expenses: Sequence[ExpenseInput],
    ) -> tuple[Decimal, Decimal]:
        items_total = round_money(sum((i.value for i in items), ZERO))
        expenses_total = round_money(sum((e.amount for e in expenses), ZERO))
        return items_total, expenses_total

    @staticmethod
    def _expense_rows(expenses: Sequence[ExpenseInput], actor_id: UUID) -> list[PurchaseExpenseModel]:
        return [
            PurchaseExpenseModel(
                line_no=index,
                expense_type=e.expense_type,
                amount=e.amount,
                payable_account_id=e.payable_account_id,
                description=e.description,
                created_by_id=actor_id,
            )
            for index, e in enumerate(expenses)
        ]


# =============================================================================
# Purchase orders
# =============================================================================


class PurchaseOrderService(_PurchaseDocumentService):
    """
    Purchase orders: pending -> received.

    Receipt costs the lines with CostSource.PO_RECEIVED and tags stock
    movements ``purchase``.
    """

    def create_order(
        self,
        supplier_id: UUID,
        order_date: date,
        items: Sequence[OrderItemInput],
        actor_id: UUID,
        expenses: Sequence[ExpenseInput] = (),
        store_id: UUID | None = None,
        notes: str | None = None,
        po_number: str | None = None,
    ) -> PurchaseDocument:
        try:
            self._validate_header(supplier_id, store_id, items, expenses)
            items_total, expenses_total = self._totals(items, expenses)
            number = po_number or next_document_number(
                self._session, PurchaseOrderModel.po_number, f"PO-{order_date.year}-",
            )

            order = PurchaseOrderModel(
                po_number=number,
                order_date=order_date,
                supplier_id=supplier_id,
                store_id=store_id,
                status=PURCHASE_ORDER_WORKFLOW.initial_state,
                items_total=items_total,
                expenses_total=expenses_total,
                total_amount=items_total + expenses_total,
                notes=notes,
                created_by_id=actor_id,
            )
            order.items = [
                PurchaseOrderItemModel(
                    part_id=item.part_id,
                    line_no=index,
                    quantity=item.quantity,
                    unit_cost=item.unit_price,
                    created_by_id=actor_id,
                )
                for index, item in enumerate(items)
            ]
            order.expenses = self._expense_rows(expenses, actor_id)
            self._session.add(order)
            self._session.flush()

            logger.info(
                "purchase_order_created",
                extra={
                    "document_id": str(order.id),
                    "po_number": number,
                    "items": len(items),
                    "total_amount": str(order.total_amount),
                },
            )
            result = _to_document(order, number)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def receive_order(
        self,
        order_id: UUID,
        actor_id: UUID,
        receive_date: date | None = None,
    ) -> ReceiptResult:
        """
        Receive every line of a pending PO.

        Postconditions:
            - Status is ``received``; received_qty equals ordered quantity.
            - Part.cost on each canonical part carries the new cost with
              cost_source PO_RECEIVED.
            - One ``in`` movement per line; reservations for the parts are
              released.
            - One posted receipt entry (skipped when the total is zero).

        Raises:
            AlreadyReceivedError: the PO is not pending.
        """
        try:
            with LogContext.bind(document_id=str(order_id), actor_id=str(actor_id)):
                order = load_document(self._session, PurchaseOrderModel, order_id, PURCHASE_ORDER)
                if not order.items:
                    raise ValidationError("Purchase order has no items", field="items")
                advance_status(
                    self._session,
                    PurchaseOrderModel,
                    order,
                    PURCHASE_ORDER_WORKFLOW,
                    "receive",
                    actor_id,
                    PURCHASE_ORDER,
                    received_at=self._clock.now(),
                )
                outcome = self._receiver.receive(
                    document_id=order.id,
                    number=order.po_number,
                    entry_date=receive_date or order.order_date,
                    supplier=order.supplier,
                    store_id=order.store_id,
                    items=list(order.items),
                    expenses=list(order.expenses),
                    reference_type=ReferenceType.PURCHASE,
                    cost_source=CostSource.PO_RECEIVED,
                    source_type=SOURCE_PURCHASE_ORDER,
                    actor_id=actor_id,
                )
                result = ReceiptResult(
                    document_id=order.id,
                    number=order.po_number,
                    status=order.status,
                    entry_number=outcome.entry_number,
                    movements_created=outcome.movements_created,
                    formulas=outcome.formulas,
                )
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def delete_order(self, order_id: UUID, actor_id: UUID) -> list[str]:
        """Delete a PO, reversing its receipt when received.  Returns reversed entry numbers."""
        try:
            order = load_document(self._session, PurchaseOrderModel, order_id, PURCHASE_ORDER)
            reversed_numbers, removed = self._receiver.undo(
                document_id=order.id,
                reference_type=ReferenceType.PURCHASE,
                source_type=SOURCE_PURCHASE_ORDER,
                actor_id=actor_id,
            )
            number = order.po_number
            self._session.delete(order)
            self._session.flush()
            logger.info(
                "purchase_order_deleted",
                extra={
                    "document_id": str(order_id),
                    "po_number": number,
                    "entries_reversed": reversed_numbers,
                    "movements_removed": removed,
                },
            )
            self._session.commit()
            return reversed_numbers
        except Exception:
            self._session.rollback()
            raise

    def get_order(self, order_id: UUID) -> PurchaseDocument:
        order = load_document(self._session, PurchaseOrderModel, order_id, PURCHASE_ORDER)
        return _to_document(order, order.po_number)


# =============================================================================
# Direct purchase orders
# =============================================================================


class DirectPurchaseService(_PurchaseDocumentService):
    """
    Direct purchase orders: pending -> received -> completed, plus returns.

    Receipt costs the lines with CostSource.DPO_RECEIVED and tags stock
    movements ``direct_purchase``.  Payments post payment vouchers; the
    DPO completes when nothing is outstanding.
    """

    def create_order(
        self,
        supplier_id: UUID,
        order_date: date,
        items: Sequence[OrderItemInput],
        actor_id: UUID,
        expenses: Sequence[ExpenseInput] = (),
        store_id: UUID | None = None,
        notes: str | None = None,
    ) -> PurchaseDocument:
        try:
            self._validate_header(supplier_id, store_id, items, expenses)
            items_total, expenses_total = self._totals(items, expenses)
            number = next_document_number(
                self._session,
                DirectPurchaseOrderModel.dpo_number,
                f"DPO-{order_date.year}-",
            )

            order = DirectPurchaseOrderModel(
                dpo_number=number,
                order_date=order_date,
                supplier_id=supplier_id,
                store_id=store_id,
                status=DIRECT_PURCHASE_WORKFLOW.initial_state,
                items_total=items_total,
                expenses_total=expenses_total,
                total_amount=items_total + expenses_total,
                paid_amount=ZERO,
                returned_amount=ZERO,
                notes=notes,
                created_by_id=actor_id,
            )
            order.items = [
                DirectPurchaseOrderItemModel(
                    part_id=item.part_id,
                    line_no=index,
                    quantity=item.quantity,
                    purchase_price=item.unit_price,
                    created_by_id=actor_id,
                )
                for index, item in enumerate(items)
            ]
            order.expenses = self._expense_rows(expenses, actor_id)
            self._session.add(order)
            self._session.flush()

            logger.info(
                "direct_purchase_created",
                extra={
                    "document_id": str(order.id),
                    "dpo_number": number,
                    "items": len(items),
                    "total_amount": str(order.total_amount),
                },
            )
            result = _to_document(order, number)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def receive_order(
        self,
        order_id: UUID,
        actor_id: UUID,
        receive_date: date | None = None,
    ) -> ReceiptResult:
        """Receive a pending DPO.  Same side effects as a PO receipt."""
        try:
            with LogContext.bind(document_id=str(order_id), actor_id=str(actor_id)):
                order = load_document(self._session, DirectPurchaseOrderModel, order_id, DIRECT_PURCHASE)
                if not order.items:
                    raise ValidationError("Direct purchase order has no items", field="items")
                advance_status(
                    self._session,
                    DirectPurchaseOrderModel,
                    order,
                    DIRECT_PURCHASE_WORKFLOW,
                    "receive",
                    actor_id,
                    DIRECT_PURCHASE,
                    received_at=self._clock.now(),
                )
                outcome = self._receiver.receive(
                    document_id=order.id,
                    number=order.dpo_number,
                    entry_date=receive_date or order.order_date,
                    supplier=order.supplier,
                    store_id=order.store_id,
                    items=list(order.items),
                    expenses=list(order.expenses),
                    reference_type=ReferenceType.DIRECT_PURCHASE,
                    cost_source=CostSource.DPO_RECEIVED,
                    source_type=SOURCE_DIRECT_PURCHASE,
                    actor_id=actor_id,
                )
                result = ReceiptResult(
                    document_id=order.id,
                    number=order.dpo_number,
                    status=order.status,
                    entry_number=outcome.entry_number,
                    movements_created=outcome.movements_created,
                    formulas=outcome.formulas,
                )
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def record_payment(
        self,
        order_id: UUID,
        amount,
        actor_id: UUID,
        payment_date: date | None = None,
        cash_account_code: str | None = None,
        description: str | None = None,
    ) -> PaymentResult:
        """
        Pay the supplier of a received DPO.

        Posts a payment voucher Dr supplier payable / Cr cash-or-bank.  The
        DPO moves to ``completed`` once nothing is outstanding.

        Raises:
            InvalidTransitionError: the DPO is not received.
            ValidationError: non-positive amount, overpayment, or a
                cash account that is not an asset.
        """
        try:
            order = load_document(self._session, DirectPurchaseOrderModel, order_id, DIRECT_PURCHASE)
            if order.status != "received":
                raise InvalidTransitionError(DIRECT_PURCHASE, str(order_id), order.status, "pay")

            amount = round_money(to_decimal(amount, "amount"))
            if amount <= ZERO:
                raise ValidationError("Payment amount must be greater than zero", field="amount")
            if amount > order.outstanding:
                raise ValidationError(
                    f"Payment {amount} exceeds outstanding {order.outstanding}",
                    field="amount",
                )

            cash_code = cash_account_code or self._config.accounts.cash
            cash_account = self._session.scalars(
                select(Account).where(Account.code == cash_code)
            ).one_or_none()
            if cash_account is None:
                raise AccountNotFoundError(cash_code)
            if cash_account.account_type is not AccountType.ASSET:
                raise ValidationError(
                    f"Account {cash_code} is not a cash or bank account",
                    field="cash_account_code",
                )

            poster = LedgerPoster(self._session, self._clock)
            entry_id = poster.post_entry(
                EntryDraft(
                    entry_date=payment_date or self._clock.today(),
                    kind=EntryKind.VOUCHER.value,
                    voucher_type=VoucherType.PAYMENT.value,
                    lines=(
                        LineSpec.dr(
                            supplier_payable(order.supplier, self._config),
                            amount,
                            description=description or f"Payment for {order.dpo_number}",
                        ),
                        LineSpec.cr(cash_account.id, amount, description=description or "Payment made"),
                    ),
                    reference=order.dpo_number,
                    description=order.supplier.company_name or order.supplier.name,
                    source_type=SOURCE_DIRECT_PURCHASE_PAYMENT,
                    source_id=order.id,
                ),
                actor_id=actor_id,
            )
            voucher_number = poster.get_entry(entry_id).number

            order.paid_amount = order.paid_amount + amount
            order.updated_by_id = actor_id
            self._session.flush()
            if order.outstanding == ZERO:
                advance_status(
                    self._session,
                    DirectPurchaseOrderModel,
                    order,
                    DIRECT_PURCHASE_WORKFLOW,
                    "settle",
                    actor_id,
                    DIRECT_PURCHASE,
                )

            logger.info(
                "direct_purchase_payment_recorded",
                extra={
                    "document_id": str(order.id),
                    "dpo_number": order.dpo_number,
                    "voucher_number": voucher_number,
                    "amount": str(amount),
                    "outstanding": str(order.outstanding),
                },
            )
            result = PaymentResult(
                document_id=order.id,
                number=order.dpo_number,
                status=order.status,
                voucher_number=voucher_number,
                amount=amount,
                paid_amount=order.paid_amount,
                outstanding=order.outstanding,
            )
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def delete_order(self, order_id: UUID, actor_id: UUID) -> list[str]:
        """
        Delete a DPO with everything it produced: receipt entry, payment
        vouchers, returns and their entries, and stock movements.
        """
        try:
            order = load_document(self._session, DirectPurchaseOrderModel, order_id, DIRECT_PURCHASE)
            poster = LedgerPoster(self._session, self._clock)
            stock = StockLedgerService(self._session, self._clock)

            reversed_numbers: list[str] = []
            returns = self._session.scalars(
                select(DirectPurchaseReturnModel).where(
                    DirectPurchaseReturnModel.direct_purchase_order_id == order.id
                )
            ).all()
            for purchase_return in returns:
                reversed_numbers += poster.reverse_entries_for_source(
                    SOURCE_DIRECT_PURCHASE_RETURN, purchase_return.id, actor_id,
                )
                stock.remove_for_reference(ReferenceType.PURCHASE_RETURN, purchase_return.id)
                self._session.delete(purchase_return)

            reversed_numbers += poster.reverse_entries_for_source(
                SOURCE_DIRECT_PURCHASE_PAYMENT, order.id, actor_id,
            )
            receipt_numbers, removed = self._receiver.undo(
                document_id=order.id,
                reference_type=ReferenceType.DIRECT_PURCHASE,
                source_type=SOURCE_DIRECT_PURCHASE,
                actor_id=actor_id,
            )
            reversed_numbers += receipt_numbers

            number = order.dpo_number
            self._session.delete(order)
            self._session.flush()
            logger.info(
                "direct_purchase_deleted",
                extra={
                    "document_id": str(order_id),
                    "dpo_number": number,
                    "entries_reversed": reversed_numbers,
                    "returns_deleted": len(returns),
                    "movements_removed": removed,
                },
            )
            self._session.commit()
            return reversed_numbers
        except Exception:
            self._session.rollback()
            raise

    def get_order(self, order_id: UUID) -> PurchaseDocument:
        order = load_document(self._session, DirectPurchaseOrderModel, order_id, DIRECT_PURCHASE)
        return _to_document(order, order.dpo_number)

    # -------------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------------

    def create_return(
        self,
        order_id: UUID,
        items: Sequence[ReturnItemInput],
        actor_id: UUID,
        return_date: date | None = None,
        reason: str | None = None,
    ) -> ReturnResult:
        """
        Raise a pending return against a received DPO.

        Unit cost defaults to the DPO line's purchase price.  Quantities
        may not exceed what was bought less what other pending or
        approved returns already claim.
        """
        try:
            order = load_document(self._session, DirectPurchaseOrderModel, order_id, DIRECT_PURCHASE)
            if order.status not in ("received", "completed"):
                raise InvalidTransitionError(DIRECT_PURCHASE, str(order_id), order.status, "return")
            if not items:
                raise ValidationError("A return needs at least one item", field="items")

            bought: dict[UUID, int] = {}
            prices: dict[UUID, Decimal] = {}
            for line in order.items:
                bought[line.part_id] = bought.get(line.part_id, 0) + line.quantity
                prices.setdefault(line.part_id, line.purchase_price)
            claimed = self._claimed_quantities(order.id)

            requested: dict[UUID, int] = {}
            for item in items:
                if item.part_id not in bought:
                    raise ValidationError(
                        f"Part {item.part_id} is not on {order.dpo_number}", field="part_id",
                    )
                requested[item.part_id] = requested.get(item.part_id, 0) + item.quantity
            for part_id, quantity in requested.items():
                allowed = bought[part_id] - claimed.get(part_id, 0)
                if quantity > allowed:
                    raise ValidationError(
                        f"Cannot return {quantity} of part {part_id}; {allowed} returnable",
                        field="quantity",
                    )

            when = return_date or self._clock.today()
            number = next_document_number(
                self._session, DirectPurchaseReturnModel.return_number, f"DPOR-{when.year}-",
            )
            rows = [
                DirectPurchaseReturnItemModel(
                    part_id=item.part_id,
                    quantity=item.quantity,
                    unit_cost=item.unit_cost if item.unit_cost is not None else prices[item.part_id],
                    created_by_id=actor_id,
                )
                for item in items
            ]
            purchase_return = DirectPurchaseReturnModel(
                return_number=number,
                direct_purchase_order_id=order.id,
                return_date=when,
                status=PURCHASE_RETURN_WORKFLOW.initial_state,
                total_amount=round_money(
                    sum((Decimal(r.quantity) * r.unit_cost for r in rows), ZERO)
                ),
                reason=reason,
                created_by_id=actor_id,
            )
            purchase_return.items = rows
            self._session.add(purchase_return)
            self._session.flush()

            logger.info(
                "direct_purchase_return_created",
                extra={
                    "return_id": str(purchase_return.id),
                    "return_number": number,
                    "dpo_number": order.dpo_number,
                    "total_amount": str(purchase_return.total_amount),
                },
            )
            result = self._to_return(purchase_return)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def approve_return(self, return_id: UUID, actor_id: UUID) -> ReturnResult:
        """
        Approve a pending return: ``out`` movements tagged purchase_return
        and Dr supplier payable / Cr inventory at the return value.  A return
        that clears the balance owed settles a received DPO.
        """
        try:
            purchase_return = load_document(
                self._session, DirectPurchaseReturnModel, return_id, PURCHASE_RETURN,
            )
            order = self._session.get(DirectPurchaseOrderModel, purchase_return.direct_purchase_order_id)
            parts = PartSelector(self._session)
            stock_reader = StockSelector(self._session)

            canonical = {item.part_id: parts.canonical_id_for(item.part_id) for item in purchase_return.items}
            needed: dict[UUID, int] = {}
            for item in purchase_return.items:
                needed[canonical[item.part_id]] = needed.get(canonical[item.part_id], 0) + item.quantity
            for part_id, quantity in needed.items():
                on_hand = stock_reader.stock_quantity(part_id)
                if quantity > on_hand and not self._config.inventory.allow_negative_stock:
                    raise InsufficientStockError(str(part_id), quantity, on_hand)

            advance_status(
                self._session,
                DirectPurchaseReturnModel,
                purchase_return,
                PURCHASE_RETURN_WORKFLOW,
                "approve",
                actor_id,
                PURCHASE_RETURN,
            )

            stock = StockLedgerService(self._session, self._clock)
            for item in purchase_return.items:
                stock.record(
                    canonical[item.part_id],
                    MovementType.OUT,
                    item.quantity,
                    ReferenceType.PURCHASE_RETURN,
                    purchase_return.id,
                    actor_id,
                    store_id=order.store_id,
                    notes=f"{purchase_return.return_number} - original {order.dpo_number}",
                )

            entry_number = None
            if purchase_return.total_amount > ZERO:
                poster = LedgerPoster(self._session, self._clock)
                entry_id = poster.post_entry(
                    EntryDraft(
                        entry_date=purchase_return.return_date,
                        lines=(
                            LineSpec.dr(
                                supplier_payable(order.supplier, self._config),
                                purchase_return.total_amount,
                                description=f"Return {purchase_return.return_number}",
                            ),
                            LineSpec.cr(
                                self._config.accounts.inventory,
                                purchase_return.total_amount,
                                description=f"Return {purchase_return.return_number}",
                            ),
                        ),
                        reference=purchase_return.return_number,
                        description=(
                            f"DPO return {purchase_return.return_number} - "
                            f"original {order.dpo_number}"
                        ),
                        source_type=SOURCE_DIRECT_PURCHASE_RETURN,
                        source_id=purchase_return.id,
                    ),
                    actor_id=actor_id,
                )
                entry_number = poster.get_entry(entry_id).number

            order.returned_amount = order.returned_amount + purchase_return.total_amount
            order.updated_by_id = actor_id
            self._session.flush()
            if order.status == "received" and order.outstanding <= ZERO:
                advance_status(
                    self._session,
                    DirectPurchaseOrderModel,
                    order,
                    DIRECT_PURCHASE_WORKFLOW,
                    "settle",
                    actor_id,
                    DIRECT_PURCHASE,
                )

            logger.info(
                "direct_purchase_return_approved",
                extra={
                    "return_id": str(purchase_return.id),
                    "return_number": purchase_return.return_number,
                    "entry_number": entry_number,
                    "total_amount": str(purchase_return.total_amount),
                },
            )
            result = self._to_return(purchase_return, entry_number)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def reject_return(self, return_id: UUID, actor_id: UUID) -> ReturnResult:
        try:
            purchase_return = load_document(
                self._session, DirectPurchaseReturnModel, return_id, PURCHASE_RETURN,
            )
            advance_status(
                self._session,
                DirectPurchaseReturnModel,
                purchase_return,
                PURCHASE_RETURN_WORKFLOW,
                "reject",
                actor_id,
                PURCHASE_RETURN,
            )
            result = self._to_return(purchase_return)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def _claimed_quantities(self, order_id: UUID) -> dict[UUID, int]:
        rows = self._session.execute(
            select(DirectPurchaseReturnItemModel.part_id, DirectPurchaseReturnItemModel.quantity)
            .join(
                DirectPurchaseReturnModel,
                DirectPurchaseReturnItemModel.return_id == DirectPurchaseReturnModel.id,
            )
            .where(
                DirectPurchaseReturnModel.direct_purchase_order_id == order_id,
                DirectPurchaseReturnModel.status.in_(("pending", "approved")),
            )
        ).all()
        claimed: dict[UUID, int] = {}
        for part_id, quantity in rows:
            claimed[part_id] = claimed.get(part_id, 0) + quantity
        return claimed

    @staticmethod
    def _to_return(purchase_return: DirectPurchaseReturnModel, entry_number: str | None = None) -> ReturnResult:
        return ReturnResult(
            id=purchase_return.id,
            return_number=purchase_return.return_number,
            direct_purchase_order_id=purchase_return.direct_purchase_order_id,
            status=purchase_return.status,
            total_amount=purchase_return.total_amount,
            entry_number=entry_number,
        )
