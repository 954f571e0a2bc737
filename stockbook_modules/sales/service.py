"""
Sales Module Service (``stockbook_modules.sales.service``).

Responsibility
--------------
Sales invoice lifecycle and customer returns.  Approval checks stock,
issues it, and posts two entries through the ledger poster:

    Dr Accounts receivable / Cr Sales revenue     (invoice total)
    Dr COGS / Cr Inventory                        (quantity x average cost)

The receivable is the customer's own account when the invoice names a
customer, otherwise the control receivable account.  COGS is always
priced at the canonical part's current average cost; there are no FIFO
or LIFO layers.

An approved return brings the goods back in and posts the mirror image
at the invoice's own price and cost:

    Dr Sales revenue / Cr Accounts receivable     (return value)
    Dr Inventory / Cr COGS                        (quantity x invoice unit cost)

Invariants
----------
- Each public method owns its transaction boundary.
- Approval is a status compare-and-swap; an invoice or return is approved
  once.
- Deleting an approved invoice or return reverses its entries and
  movements.  Deleting an invoice takes its returns with it.
- Pending and approved returns never claim more than was sold.

Failure Modes
-------------
- ``InsufficientStockError`` when a line exceeds stock on hand and
  negative stock is not allowed.
- ``InvalidTransitionError`` when approving a non-draft invoice, returning
  against an unapproved one, or deciding a return twice.
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
from stockbook_engines.costing import SaleLine, cost_sale
from stockbook_kernel.domain.amounts import ZERO, round_cost, round_money
from stockbook_kernel.domain.clock import Clock, SystemClock
from stockbook_kernel.domain.entries import EntryDraft, LineSpec
from stockbook_kernel.exceptions import (
    InsufficientStockError,
    InvalidTransitionError,
    PartNotFoundError,
    ValidationError,
)
from stockbook_kernel.logging_config import LogContext, get_logger
from stockbook_kernel.models.part import Part
from stockbook_kernel.models.party import Customer
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
from stockbook_modules.sales.models import (
    ApprovalResult,
    Invoice,
    InvoiceLine,
    SaleItemInput,
    SalesReturn,
    SalesReturnItemInput,
)
from stockbook_modules.sales.orm import (
    SalesInvoiceItemModel,
    SalesInvoiceModel,
    SalesReturnItemModel,
    SalesReturnModel,
)
from stockbook_modules.sales.workflows import SALES_INVOICE_WORKFLOW, SALES_RETURN_WORKFLOW

logger = get_logger("modules.sales.service")

SALES_INVOICE = "sales invoice"
SALES_RETURN = "sales return"
SOURCE_SALES_INVOICE = "sales_invoice"
SOURCE_SALES_RETURN = "sales_return"


def _to_invoice(invoice: SalesInvoiceModel) -> Invoice:
    return Invoice(
        id=invoice.id,
        invoice_no=invoice.invoice_no,
        invoice_date=invoice.invoice_date,
        customer_name=invoice.customer_name,
        store_id=invoice.store_id,
        status=invoice.status,
        total_amount=invoice.total_amount,
        cogs_total=invoice.cogs_total,
        lines=tuple(
            InvoiceLine(
                part_id=item.part_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                unit_cost=item.unit_cost,
                cogs=item.cogs,
            )
            for item in invoice.items
        ),
        customer_id=invoice.customer_id,
    )


def _to_return(
    sales_return: SalesReturnModel,
    revenue_entry_number: str | None = None,
    cogs_entry_number: str | None = None,
) -> SalesReturn:
    return SalesReturn(
        id=sales_return.id,
        return_number=sales_return.return_number,
        invoice_id=sales_return.invoice_id,
        return_date=sales_return.return_date,
        status=sales_return.status,
        total_amount=sales_return.total_amount,
        cost_total=sales_return.cost_total,
        revenue_entry_number=revenue_entry_number,
        cogs_entry_number=cogs_entry_number,
    )


def customer_receivable(
    session: Session,
    invoice: SalesInvoiceModel,
    config: StockbookConfig,
) -> UUID | str:
    """The invoice customer's own receivable account, else the control receivable code."""
    if invoice.customer_id is not None:
        customer = session.get(Customer, invoice.customer_id)
        if customer is not None and customer.receivable_account_id is not None:
            return customer.receivable_account_id
    return config.accounts.accounts_receivable


def _post_pair(
    poster: LedgerPoster,
    entry_date: date,
    debit_account: UUID | str,
    credit_account: UUID | str,
    amount: Decimal,
    *,
    reference: str,
    description: str,
    source_type: str,
    source_id: UUID,
    actor_id: UUID,
) -> str | None:
    """Post one two-line entry; nothing is posted for a zero amount."""
    if amount == ZERO:
        return None
    entry_id = poster.post_entry(
        EntryDraft(
            entry_date=entry_date,
            lines=(
                LineSpec.dr(debit_account, amount, description=description),
                LineSpec.cr(credit_account, amount, description=description),
            ),
            reference=reference,
            description=description,
            source_type=source_type,
            source_id=source_id,
        ),
        actor_id=actor_id,
    )
    return poster.get_entry(entry_id).number


def _discard_return(
    poster: LedgerPoster,
    stock: StockLedgerService,
    session: Session,
    sales_return: SalesReturnModel,
    actor_id: UUID,
) -> tuple[list[str], int]:
    """Reverse a return's entries, drop its movements and delete it (flush only)."""
    reversed_numbers = poster.reverse_entries_for_source(SOURCE_SALES_RETURN, sales_return.id, actor_id)
    removed = stock.remove_for_reference(ReferenceType.SALES_RETURN, sales_return.id)
    session.delete(sales_return)
    session.flush()
    return reversed_numbers, removed


class SalesInvoiceService:
    """
    Orchestrates invoice creation, approval and deletion.

    Engine composition:
    - cost_sale: stock check, revenue, COGS and gross profit per line

    Transaction boundary: this service commits on success, rolls back on
    failure.  Kernel services it calls only flush.
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
        self._poster = LedgerPoster(session, self._clock)
        self._stock = StockLedgerService(session, self._clock)

    def create_invoice(
        self,
        invoice_date: date,
        items: Sequence[SaleItemInput],
        actor_id: UUID,
        customer_name: str | None = None,
        store_id: UUID | None = None,
        invoice_no: str | None = None,
        notes: str | None = None,
        customer_id: UUID | None = None,
    ) -> Invoice:
        try:
            if not items:
                raise ValidationError("An invoice needs at least one item", field="items")
            for item in items:
                if self._session.get(Part, item.part_id) is None:
                    raise PartNotFoundError(str(item.part_id))
            if store_id is not None:
                require(self._session, Store, store_id, "Store")
            if customer_id is not None:
                customer = require(self._session, Customer, customer_id, "Customer")
                customer_name = customer_name or customer.name

            number = invoice_no or next_document_number(
                self._session, SalesInvoiceModel.invoice_no, f"INV-{invoice_date.year}-",
            )
            invoice = SalesInvoiceModel(
                invoice_no=number,
                invoice_date=invoice_date,
                customer_id=customer_id,
                customer_name=customer_name,
                store_id=store_id,
                status=SALES_INVOICE_WORKFLOW.initial_state,
                total_amount=round_money(
                    sum((item.quantity * item.unit_price for item in items), ZERO)
                ),
                cogs_total=ZERO,
                notes=notes,
                created_by_id=actor_id,
            )
            invoice.items = [
                SalesInvoiceItemModel(
                    part_id=item.part_id,
                    line_no=index,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    created_by_id=actor_id,
                )
                for index, item in enumerate(items)
            ]
            self._session.add(invoice)
            self._session.flush()

            logger.info(
                "sales_invoice_created",
                extra={
                    "document_id": str(invoice.id),
                    "invoice_no": number,
                    "items": len(items),
                    "total_amount": str(invoice.total_amount),
                },
            )
            result = _to_invoice(invoice)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def approve_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        approval_date: date | None = None,
    ) -> ApprovalResult:
        """
        Approve a draft invoice.

        Postconditions:
            - Each line records unit_cost and cogs.
            - One ``out`` movement per line tagged sales_invoice.
            - Revenue entry and COGS entry posted (each skipped at zero).
        """
        try:
            with LogContext.bind(document_id=str(invoice_id), actor_id=str(actor_id)):
                invoice = load_document(self._session, SalesInvoiceModel, invoice_id, SALES_INVOICE)
                parts = PartSelector(self._session)
                stock_reader = StockSelector(self._session)

                canonical_ids = [parts.canonical_id_for(item.part_id) for item in invoice.items]
                costings = cost_sale(
                    [
                        SaleLine(
                            part_id=canonical_id,
                            quantity=item.quantity,
                            unit_price=item.unit_price,
                            on_hand_qty=stock_reader.stock_quantity(canonical_id, invoice.store_id),
                            unit_cost=self._session.get(Part, canonical_id).cost,
                        )
                        for item, canonical_id in zip(invoice.items, canonical_ids)
                    ],
                    allow_negative_stock=self._config.inventory.allow_negative_stock,
                )

                advance_status(
                    self._session,
                    SalesInvoiceModel,
                    invoice,
                    SALES_INVOICE_WORKFLOW,
                    "approve",
                    actor_id,
                    SALES_INVOICE,
                    approved_at=self._clock.now(),
                )

                cogs_total = ZERO
                for item, costing in zip(invoice.items, costings):
                    item.unit_cost = round_cost(costing.unit_cost)
                    item.cogs = round_money(costing.cogs)
                    item.updated_by_id = actor_id
                    cogs_total += item.cogs
                    self._stock.record(
                        costing.part_id,
                        MovementType.OUT,
                        costing.quantity,
                        ReferenceType.SALES_INVOICE,
                        invoice.id,
                        actor_id,
                        store_id=invoice.store_id,
                        notes=f"{invoice.invoice_no} sold",
                    )
                invoice.cogs_total = cogs_total
                self._session.flush()

                entry_date = approval_date or invoice.invoice_date
                revenue_number = _post_pair(
                    self._poster,
                    entry_date,
                    customer_receivable(self._session, invoice, self._config),
                    self._config.accounts.sales_revenue,
                    invoice.total_amount,
                    reference=invoice.invoice_no,
                    description=f"Sales invoice {invoice.invoice_no}",
                    source_type=SOURCE_SALES_INVOICE,
                    source_id=invoice.id,
                    actor_id=actor_id,
                )
                cogs_number = _post_pair(
                    self._poster,
                    entry_date,
                    self._config.accounts.cogs,
                    self._config.accounts.inventory,
                    cogs_total,
                    reference=f"COGS-{invoice.invoice_no}",
                    description=f"Cost of goods sold for {invoice.invoice_no}",
                    source_type=SOURCE_SALES_INVOICE,
                    source_id=invoice.id,
                    actor_id=actor_id,
                )

                logger.info(
                    "sales_invoice_approved",
                    extra={
                        "invoice_no": invoice.invoice_no,
                        "total_amount": str(invoice.total_amount),
                        "cogs_total": str(cogs_total),
                        "revenue_entry": revenue_number,
                        "cogs_entry": cogs_number,
                    },
                )
                result = ApprovalResult(
                    invoice=_to_invoice(invoice),
                    revenue_entry_number=revenue_number,
                    cogs_entry_number=cogs_number,
                    movements_created=len(costings),
                    gross_profit=invoice.total_amount - cogs_total,
                )
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def delete_invoice(self, invoice_id: UUID, actor_id: UUID) -> list[str]:
        """Delete an invoice and its returns, reversing entries and movements."""
        try:
            invoice = load_document(self._session, SalesInvoiceModel, invoice_id, SALES_INVOICE)

            reversed_numbers: list[str] = []
            returns = self._session.scalars(
                select(SalesReturnModel).where(SalesReturnModel.invoice_id == invoice.id)
            ).all()
            for sales_return in returns:
                numbers, _ = _discard_return(
                    self._poster, self._stock, self._session, sales_return, actor_id,
                )
                reversed_numbers += numbers

            reversed_numbers += self._poster.reverse_entries_for_source(
                SOURCE_SALES_INVOICE, invoice.id, actor_id,
            )
            removed = self._stock.remove_for_reference(ReferenceType.SALES_INVOICE, invoice.id)
            number = invoice.invoice_no
            self._session.delete(invoice)
            self._session.flush()
            logger.info(
                "sales_invoice_deleted",
                extra={
                    "document_id": str(invoice_id),
                    "invoice_no": number,
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

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return _to_invoice(
            load_document(self._session, SalesInvoiceModel, invoice_id, SALES_INVOICE)
        )


class SalesReturnService:
    """
    Customer returns against approved invoices: pending -> approved | rejected.

    Transaction boundary: this service commits on success, rolls back on
    failure.
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
        self._poster = LedgerPoster(session, self._clock)
        self._stock = StockLedgerService(session, self._clock)

    def create_return(
        self,
        invoice_id: UUID,
        items: Sequence[SalesReturnItemInput],
        actor_id: UUID,
        return_date: date | None = None,
        reason: str | None = None,
    ) -> SalesReturn:
        """
        Raise a pending return against an approved invoice.

        Each line is valued at the invoice's sale price and the unit cost
        captured when the invoice was approved.  Quantities may not exceed
        what was sold less what other pending or approved returns claim.
        """
        try:
            invoice = load_document(self._session, SalesInvoiceModel, invoice_id, SALES_INVOICE)
            if invoice.status != "approved":
                raise InvalidTransitionError(SALES_INVOICE, str(invoice_id), invoice.status, "return")
            if not items:
                raise ValidationError("A return needs at least one item", field="items")

            sold: dict[UUID, int] = {}
            sale_lines: dict[UUID, SalesInvoiceItemModel] = {}
            for line in invoice.items:
                sold[line.part_id] = sold.get(line.part_id, 0) + line.quantity
                sale_lines.setdefault(line.part_id, line)
            claimed = self._claimed_quantities(invoice.id)

            requested: dict[UUID, int] = {}
            for item in items:
                if item.part_id not in sold:
                    raise ValidationError(
                        f"Part {item.part_id} is not on {invoice.invoice_no}", field="part_id",
                    )
                requested[item.part_id] = requested.get(item.part_id, 0) + item.quantity
            for part_id, quantity in requested.items():
                allowed = sold[part_id] - claimed.get(part_id, 0)
                if quantity > allowed:
                    raise ValidationError(
                        f"Cannot return {quantity} of part {part_id}; {allowed} returnable",
                        field="quantity",
                    )

            when = return_date or self._clock.today()
            number = next_document_number(
                self._session, SalesReturnModel.return_number, f"SR-{when.year}-",
            )
            rows = [
                SalesReturnItemModel(
                    part_id=item.part_id,
                    quantity=item.quantity,
                    unit_price=sale_lines[item.part_id].unit_price,
                    unit_cost=sale_lines[item.part_id].unit_cost or ZERO,
                    created_by_id=actor_id,
                )
                for item in items
            ]
            sales_return = SalesReturnModel(
                return_number=number,
                invoice_id=invoice.id,
                return_date=when,
                status=SALES_RETURN_WORKFLOW.initial_state,
                total_amount=round_money(
                    sum((Decimal(r.quantity) * r.unit_price for r in rows), ZERO)
                ),
                cost_total=round_money(
                    sum((Decimal(r.quantity) * r.unit_cost for r in rows), ZERO)
                ),
                reason=reason,
                created_by_id=actor_id,
            )
            sales_return.items = rows
            self._session.add(sales_return)
            self._session.flush()

            logger.info(
                "sales_return_created",
                extra={
                    "return_id": str(sales_return.id),
                    "return_number": number,
                    "invoice_no": invoice.invoice_no,
                    "total_amount": str(sales_return.total_amount),
                },
            )
            result = _to_return(sales_return)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def approve_return(self, return_id: UUID, actor_id: UUID) -> SalesReturn:
        """
        Approve a pending return: ``in`` movements tagged sales_return, then
        the revenue reversal and the COGS reversal (each skipped at zero).
        """
        try:
            with LogContext.bind(document_id=str(return_id), actor_id=str(actor_id)):
                sales_return = load_document(self._session, SalesReturnModel, return_id, SALES_RETURN)
                invoice = self._session.get(SalesInvoiceModel, sales_return.invoice_id)
                parts = PartSelector(self._session)

                advance_status(
                    self._session,
                    SalesReturnModel,
                    sales_return,
                    SALES_RETURN_WORKFLOW,
                    "approve",
                    actor_id,
                    SALES_RETURN,
                )

                for item in sales_return.items:
                    self._stock.record(
                        parts.canonical_id_for(item.part_id),
                        MovementType.IN,
                        item.quantity,
                        ReferenceType.SALES_RETURN,
                        sales_return.id,
                        actor_id,
                        store_id=invoice.store_id,
                        notes=f"{sales_return.return_number} - invoice {invoice.invoice_no}",
                    )

                revenue_number = _post_pair(
                    self._poster,
                    sales_return.return_date,
                    self._config.accounts.sales_revenue,
                    customer_receivable(self._session, invoice, self._config),
                    sales_return.total_amount,
                    reference=sales_return.return_number,
                    description=f"Sales return {sales_return.return_number} - invoice {invoice.invoice_no}",
                    source_type=SOURCE_SALES_RETURN,
                    source_id=sales_return.id,
                    actor_id=actor_id,
                )
                cogs_number = _post_pair(
                    self._poster,
                    sales_return.return_date,
                    self._config.accounts.inventory,
                    self._config.accounts.cogs,
                    sales_return.cost_total,
                    reference=f"COGS-{sales_return.return_number}",
                    description=f"COGS reversed for return {sales_return.return_number}",
                    source_type=SOURCE_SALES_RETURN,
                    source_id=sales_return.id,
                    actor_id=actor_id,
                )

                logger.info(
                    "sales_return_approved",
                    extra={
                        "return_number": sales_return.return_number,
                        "invoice_no": invoice.invoice_no,
                        "total_amount": str(sales_return.total_amount),
                        "cost_total": str(sales_return.cost_total),
                        "revenue_entry": revenue_number,
                        "cogs_entry": cogs_number,
                    },
                )
                result = _to_return(sales_return, revenue_number, cogs_number)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def reject_return(self, return_id: UUID, actor_id: UUID, reason: str | None = None) -> SalesReturn:
        try:
            sales_return = load_document(self._session, SalesReturnModel, return_id, SALES_RETURN)
            values = {"reason": reason} if reason else {}
            advance_status(
                self._session,
                SalesReturnModel,
                sales_return,
                SALES_RETURN_WORKFLOW,
                "reject",
                actor_id,
                SALES_RETURN,
                **values,
            )
            result = _to_return(sales_return)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def delete_return(self, return_id: UUID, actor_id: UUID) -> list[str]:
        """
        Delete a return.  An approved return has its entries reversed and
        its ``in`` movements removed, which needs the goods still on hand.
        """
        try:
            sales_return = load_document(self._session, SalesReturnModel, return_id, SALES_RETURN)
            if sales_return.status == "approved" and not self._config.inventory.allow_negative_stock:
                parts = PartSelector(self._session)
                stock_reader = StockSelector(self._session)
                needed: dict[UUID, int] = {}
                for item in sales_return.items:
                    canonical_id = parts.canonical_id_for(item.part_id)
                    needed[canonical_id] = needed.get(canonical_id, 0) + item.quantity
                for part_id, quantity in needed.items():
                    on_hand = stock_reader.stock_quantity(part_id)
                    if quantity > on_hand:
                        raise InsufficientStockError(str(part_id), quantity, on_hand)

            number = sales_return.return_number
            reversed_numbers, removed = _discard_return(
                self._poster, self._stock, self._session, sales_return, actor_id,
            )
            logger.info(
                "sales_return_deleted",
                extra={
                    "return_id": str(return_id),
                    "return_number": number,
                    "entries_reversed": reversed_numbers,
                    "movements_removed": removed,
                },
            )
            self._session.commit()
            return reversed_numbers
        except Exception:
            self._session.rollback()
            raise

    def get_return(self, return_id: UUID) -> SalesReturn:
        return _to_return(load_document(self._session, SalesReturnModel, return_id, SALES_RETURN))

    def _claimed_quantities(self, invoice_id: UUID) -> dict[UUID, int]:
        rows = self._session.execute(
            select(SalesReturnItemModel.part_id, SalesReturnItemModel.quantity)
            .join(SalesReturnModel, SalesReturnItemModel.return_id == SalesReturnModel.id)
            .where(
                SalesReturnModel.invoice_id == invoice_id,
                SalesReturnModel.status.in_(("pending", "approved")),
            )
        ).all()
        claimed: dict[UUID, int] = {}
        for part_id, quantity in rows:
            claimed[part_id] = claimed.get(part_id, 0) + quantity
        return claimed
