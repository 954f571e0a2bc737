"""
Tests for customer returns against approved sales invoices.

    stock in    10 units at 100                 (JV0001)
    invoice     4 units at 150 to Bilal Autos   (JV0002 revenue, JV0003 COGS)

An approved return brings the goods back and posts Dr Sales / Cr the
customer's receivable at the sale price, and Dr Inventory / Cr COGS at the
unit cost the invoice captured.
"""

from datetime import date
from decimal import Decimal

import pytest

from stockbook_kernel.exceptions import (
    DocumentNotFoundError,
    InsufficientStockError,
    InvalidTransitionError,
    ValidationError,
)
from stockbook_kernel.models.stock import ReferenceType
from stockbook_kernel.selectors.ledger_selector import LedgerSelector
from stockbook_kernel.selectors.stock_selector import StockSelector
from stockbook_modules.sales import (
    SaleItemInput,
    SalesInvoiceService,
    SalesReturnItemInput,
    SalesReturnService,
)


@pytest.fixture
def invoices(session, config, deterministic_clock):
    return SalesInvoiceService(session, config, deterministic_clock)


@pytest.fixture
def returns(session, config, deterministic_clock):
    return SalesReturnService(session, config, deterministic_clock)


@pytest.fixture
def sold_invoice(invoices, part, customer, stock_in, test_actor_id):
    stock_in(part.id, 10, "100")
    invoice = invoices.create_invoice(
        date(2024, 4, 1),
        [SaleItemInput(part_id=part.id, quantity=4, unit_price=Decimal("150"))],
        test_actor_id,
        customer_id=customer.id,
    )
    invoices.approve_invoice(invoice.id, test_actor_id)
    return invoice


def _return(service, invoice, part, quantity, actor_id):
    return service.create_return(
        invoice.id,
        [SalesReturnItemInput(part_id=part.id, quantity=quantity)],
        actor_id,
        return_date=date(2024, 4, 10),
        reason="Wrong fitment",
    )


class TestCreateReturn:

    def test_valued_at_invoice_price_and_cost(self, returns, sold_invoice, part, test_actor_id):
        sales_return = _return(returns, sold_invoice, part, 1, test_actor_id)

        assert sales_return.return_number == "SR-2024-001"
        assert sales_return.status == "pending"
        assert sales_return.total_amount == Decimal("150")
        assert sales_return.cost_total == Decimal("100")

    def test_draft_invoice_cannot_be_returned(self, invoices, returns, part, test_actor_id):
        draft = invoices.create_invoice(
            date(2024, 4, 1),
            [SaleItemInput(part_id=part.id, quantity=1, unit_price=Decimal("150"))],
            test_actor_id,
        )

        with pytest.raises(InvalidTransitionError):
            _return(returns, draft, part, 1, test_actor_id)

    def test_limited_to_unclaimed_quantity(self, returns, sold_invoice, part, test_actor_id):
        _return(returns, sold_invoice, part, 3, test_actor_id)

        with pytest.raises(ValidationError):
            _return(returns, sold_invoice, part, 2, test_actor_id)

    def test_rejected_return_frees_its_claim(self, returns, sold_invoice, part, test_actor_id):
        first = _return(returns, sold_invoice, part, 4, test_actor_id)
        rejected = returns.reject_return(first.id, test_actor_id, reason="Customer damage")

        second = _return(returns, sold_invoice, part, 4, test_actor_id)

        assert rejected.status == "rejected"
        assert second.return_number == "SR-2024-002"

    def test_part_not_on_invoice(self, returns, sold_invoice, make_part, test_actor_id):
        stranger = make_part("OTHER-1")

        with pytest.raises(ValidationError):
            _return(returns, sold_invoice, stranger, 1, test_actor_id)


class TestApproveReturn:

    def test_restocks_and_reverses(self, session, returns, sold_invoice, part, customer, test_actor_id, balance_of):
        sales_return = _return(returns, sold_invoice, part, 1, test_actor_id)

        approved = returns.approve_return(sales_return.id, test_actor_id)

        reader = StockSelector(session)
        assert approved.status == "approved"
        assert (approved.revenue_entry_number, approved.cogs_entry_number) == ("JV0004", "JV0005")
        assert reader.stock_quantity(part.id) == 7
        assert reader.movement_count(ReferenceType.SALES_RETURN.value, sales_return.id) == 1
        assert balance_of(customer.receivable_account_code) == Decimal("450")
        assert balance_of("701001") == Decimal("450")
        assert balance_of("901001") == Decimal("300")
        assert balance_of("101001") == Decimal("700")

    def test_entries_tagged_with_return(self, session, returns, sold_invoice, part, test_actor_id):
        sales_return = _return(returns, sold_invoice, part, 2, test_actor_id)
        returns.approve_return(sales_return.id, test_actor_id)

        entries = LedgerSelector(session).entries_for_source("sales_return", sales_return.id)

        assert [e.reference for e in entries] == ["SR-2024-001", "COGS-SR-2024-001"]

    def test_walk_in_sale_credits_control_receivable(
        self, invoices, returns, part, stock_in, test_actor_id, balance_of,
    ):
        stock_in(part.id, 5, "100")
        invoice = invoices.create_invoice(
            date(2024, 4, 1),
            [SaleItemInput(part_id=part.id, quantity=2, unit_price=Decimal("150"))],
            test_actor_id,
            customer_name="Walk-in",
        )
        invoices.approve_invoice(invoice.id, test_actor_id)
        sales_return = _return(returns, invoice, part, 2, test_actor_id)

        returns.approve_return(sales_return.id, test_actor_id)

        assert balance_of("103001") == Decimal("0")
        assert balance_of("701001") == Decimal("0")

    def test_decided_once(self, returns, sold_invoice, part, test_actor_id):
        sales_return = _return(returns, sold_invoice, part, 1, test_actor_id)
        returns.approve_return(sales_return.id, test_actor_id)

        with pytest.raises(InvalidTransitionError):
            returns.approve_return(sales_return.id, test_actor_id)
        with pytest.raises(InvalidTransitionError):
            returns.reject_return(sales_return.id, test_actor_id)

    def test_logged_with_document(self, returns, sold_invoice, part, test_actor_id, captured_logs):
        sales_return = _return(returns, sold_invoice, part, 1, test_actor_id)

        returns.approve_return(sales_return.id, test_actor_id)

        approved = [r for r in captured_logs() if r["message"] == "sales_return_approved"]
        assert approved[0]["document_id"] == str(sales_return.id)
        assert approved[0]["revenue_entry"] == "JV0004"


class TestDeleteReturn:

    def test_delete_pending(self, returns, sold_invoice, part, test_actor_id):
        sales_return = _return(returns, sold_invoice, part, 1, test_actor_id)

        assert returns.delete_return(sales_return.id, test_actor_id) == []
        with pytest.raises(DocumentNotFoundError):
            returns.get_return(sales_return.id)

    def test_delete_approved_reverses(
        self, session, returns, sold_invoice, part, customer, test_actor_id, balance_of,
    ):
        sales_return = _return(returns, sold_invoice, part, 1, test_actor_id)
        returns.approve_return(sales_return.id, test_actor_id)

        reversed_numbers = returns.delete_return(sales_return.id, test_actor_id)

        assert reversed_numbers == ["JV0004", "JV0005"]
        assert StockSelector(session).stock_quantity(part.id) == 6
        assert balance_of(customer.receivable_account_code) == Decimal("600")
        assert balance_of("101001") == Decimal("600")

    def test_returned_goods_already_sold_again(
        self, session, invoices, returns, sold_invoice, part, test_actor_id,
    ):
        sales_return = _return(returns, sold_invoice, part, 1, test_actor_id)
        returns.approve_return(sales_return.id, test_actor_id)
        resale = invoices.create_invoice(
            date(2024, 4, 20),
            [SaleItemInput(part_id=part.id, quantity=7, unit_price=Decimal("150"))],
            test_actor_id,
        )
        invoices.approve_invoice(resale.id, test_actor_id)

        with pytest.raises(InsufficientStockError):
            returns.delete_return(sales_return.id, test_actor_id)

        assert returns.get_return(sales_return.id).status == "approved"

    def test_invoice_deletion_takes_its_returns(
        self, session, invoices, returns, sold_invoice, part, customer, test_actor_id, balance_of,
    ):
        sales_return = _return(returns, sold_invoice, part, 1, test_actor_id)
        returns.approve_return(sales_return.id, test_actor_id)

        reversed_numbers = invoices.delete_invoice(sold_invoice.id, test_actor_id)

        assert reversed_numbers == ["JV0004", "JV0005", "JV0002", "JV0003"]
        assert StockSelector(session).stock_quantity(part.id) == 10
        assert balance_of(customer.receivable_account_code) == Decimal("0")
        assert balance_of("701001") == Decimal("0")
        assert balance_of("101001") == Decimal("1000")
        with pytest.raises(DocumentNotFoundError):
            returns.get_return(sales_return.id)
