"""
Tests for sales invoices.

Approval issues stock at the current average cost and posts two entries:
Dr Receivable / Cr Sales for the invoice total and Dr COGS / Cr Inventory
for the cost of the lines.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stockbook_kernel.exceptions import (
    DocumentNotFoundError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    PartNotFoundError,
    ValidationError,
)
from stockbook_kernel.models.stock import ReferenceType
from stockbook_kernel.selectors.ledger_selector import LedgerSelector
from stockbook_kernel.selectors.stock_selector import StockSelector
from stockbook_modules.sales import SaleItemInput, SalesInvoiceService


@pytest.fixture
def invoice_service(session, config, deterministic_clock):
    return SalesInvoiceService(session, config, deterministic_clock)


def _sell(service, part, quantity, price, actor_id, **kwargs):
    return service.create_invoice(
        date(2024, 4, 1),
        [SaleItemInput(part_id=part.id, quantity=quantity, unit_price=Decimal(price))],
        actor_id,
        customer_name="Walk-in",
        **kwargs,
    )


class TestCreateInvoice:

    def test_draft_with_number(self, invoice_service, part, test_actor_id):
        invoice = _sell(invoice_service, part, 4, "150", test_actor_id)

        assert invoice.invoice_no == "INV-2024-001"
        assert invoice.status == "draft"
        assert invoice.total_amount == Decimal("600")
        assert invoice.cogs_total == Decimal("0")

    def test_supplied_number_kept(self, invoice_service, part, test_actor_id):
        invoice = _sell(invoice_service, part, 1, "10", test_actor_id, invoice_no="CASH-17")

        assert invoice.invoice_no == "CASH-17"

    def test_requires_items(self, invoice_service, test_actor_id):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(date(2024, 4, 1), [], test_actor_id)

    def test_unknown_part(self, invoice_service, test_actor_id):
        with pytest.raises(PartNotFoundError):
            invoice_service.create_invoice(
                date(2024, 4, 1),
                [SaleItemInput(part_id=uuid4(), quantity=1, unit_price=Decimal("1"))],
                test_actor_id,
            )


class TestApproveInvoice:

    @pytest.fixture(autouse=True)
    def _stocked(self, session, invoice_service, part, stock_in, test_actor_id):
        self.session = session
        self.service = invoice_service
        self.part = part
        self.actor_id = test_actor_id
        stock_in(part.id, 10, "100")

    def test_revenue_and_cogs_entries(self, balance_of):
        invoice = _sell(self.service, self.part, 4, "150", self.actor_id)

        result = self.service.approve_invoice(invoice.id, self.actor_id)

        assert result.revenue_entry_number == "JV0002"
        assert result.cogs_entry_number == "JV0003"
        assert result.gross_profit == Decimal("200")
        assert balance_of("103001") == Decimal("600")
        assert balance_of("701001") == Decimal("600")
        assert balance_of("901001") == Decimal("400")
        assert balance_of("101001") == Decimal("600")

    def test_customer_invoice_posts_to_own_receivable(self, customer, balance_of):
        invoice = self.service.create_invoice(
            date(2024, 4, 1),
            [SaleItemInput(part_id=self.part.id, quantity=2, unit_price=Decimal("150"))],
            self.actor_id,
            customer_id=customer.id,
        )

        self.service.approve_invoice(invoice.id, self.actor_id)

        assert invoice.customer_name == "Bilal Autos"
        assert invoice.customer_id == customer.id
        assert balance_of(customer.receivable_account_code) == Decimal("300")
        assert balance_of("103001") == Decimal("0")

    def test_unknown_customer(self):
        with pytest.raises(NotFoundError):
            self.service.create_invoice(
                date(2024, 4, 1),
                [SaleItemInput(part_id=self.part.id, quantity=1, unit_price=Decimal("150"))],
                self.actor_id,
                customer_id=uuid4(),
            )

    def test_cogs_entry_reference(self):
        invoice = _sell(self.service, self.part, 1, "150", self.actor_id)
        self.service.approve_invoice(invoice.id, self.actor_id)

        references = [
            e.reference for e in LedgerSelector(self.session).entries_for_source("sales_invoice", invoice.id)
        ]
        assert references == ["INV-2024-001", "COGS-INV-2024-001"]

    def test_lines_record_average_cost(self, stock_in):
        """10 at 100 and 5 at 120 average to 106.6667; three units cost 320.00."""
        stock_in(self.part.id, 5, "120")
        invoice = _sell(self.service, self.part, 3, "200", self.actor_id)

        result = self.service.approve_invoice(invoice.id, self.actor_id)

        line = result.invoice.lines[0]
        assert line.unit_cost == Decimal("106.6667")
        assert line.cogs == Decimal("320.00")
        assert result.invoice.cogs_total == Decimal("320.00")

    def test_stock_issued(self):
        invoice = _sell(self.service, self.part, 4, "150", self.actor_id)

        result = self.service.approve_invoice(invoice.id, self.actor_id)

        reader = StockSelector(self.session)
        assert result.movements_created == 1
        assert reader.stock_quantity(self.part.id) == 6
        assert reader.movement_count(ReferenceType.SALES_INVOICE.value, invoice.id) == 1

    def test_insufficient_stock_leaves_draft(self, balance_of):
        invoice = _sell(self.service, self.part, 11, "150", self.actor_id)

        with pytest.raises(InsufficientStockError) as exc:
            self.service.approve_invoice(invoice.id, self.actor_id)

        assert exc.value.available == 10
        assert self.service.get_invoice(invoice.id).status == "draft"
        assert StockSelector(self.session).stock_quantity(self.part.id) == 10
        assert balance_of("103001") == Decimal("0")

    def test_cannot_approve_twice(self):
        invoice = _sell(self.service, self.part, 1, "150", self.actor_id)
        self.service.approve_invoice(invoice.id, self.actor_id)

        with pytest.raises(InvalidTransitionError):
            self.service.approve_invoice(invoice.id, self.actor_id)

        assert StockSelector(self.session).stock_quantity(self.part.id) == 9

    def test_free_line_posts_cogs_only(self, balance_of):
        invoice = _sell(self.service, self.part, 2, "0", self.actor_id)

        result = self.service.approve_invoice(invoice.id, self.actor_id)

        assert result.revenue_entry_number is None
        assert result.cogs_entry_number == "JV0002"
        assert balance_of("901001") == Decimal("200")


class TestDeleteInvoice:

    def test_delete_approved_invoice(self, session, invoice_service, part, stock_in, test_actor_id, balance_of):
        stock_in(part.id, 10, "100")
        invoice = _sell(invoice_service, part, 4, "150", test_actor_id)
        invoice_service.approve_invoice(invoice.id, test_actor_id)

        reversed_numbers = invoice_service.delete_invoice(invoice.id, test_actor_id)

        assert reversed_numbers == ["JV0002", "JV0003"]
        assert balance_of("103001") == Decimal("0")
        assert balance_of("901001") == Decimal("0")
        assert balance_of("101001") == Decimal("1000")
        assert StockSelector(session).stock_quantity(part.id) == 10
        with pytest.raises(DocumentNotFoundError):
            invoice_service.get_invoice(invoice.id)

    def test_delete_draft(self, invoice_service, part, test_actor_id):
        invoice = _sell(invoice_service, part, 1, "10", test_actor_id)

        assert invoice_service.delete_invoice(invoice.id, test_actor_id) == []
