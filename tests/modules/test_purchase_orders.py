"""
Tests for the purchase order lifecycle.

Covers:
- Creation, numbering and validation
- Receipt: landed cost on Part.cost, stock movements, posted receipt entry
- Double-receipt guard
- Weighted-average cost update and zero-value expense policy
- Deletion with reversal
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stockbook_config.schema import CostingConfig
from stockbook_kernel.exceptions import (
    AlreadyReceivedError,
    DocumentNotFoundError,
    NotFoundError,
    ValidationError,
)
from stockbook_kernel.models.part import Part
from stockbook_kernel.models.stock import ReferenceType
from stockbook_kernel.selectors.ledger_selector import LedgerSelector
from stockbook_kernel.selectors.stock_selector import StockSelector
from stockbook_modules.catalog import ChartOfAccountsService
from stockbook_modules.inventory import InventoryService
from stockbook_modules.purchasing import (
    ExpenseInput,
    OrderItemInput,
    PurchaseOrderService,
)


@pytest.fixture
def po_service(session, config, deterministic_clock):
    return PurchaseOrderService(session, config, deterministic_clock)


@pytest.fixture
def two_parts(make_part):
    return make_part("FLT-100"), make_part("FLT-200")


def _freight_po(service, supplier, parts, actor_id, **kwargs):
    first, second = parts
    return service.create_order(
        supplier.id,
        date(2024, 3, 1),
        [
            OrderItemInput(part_id=first.id, quantity=8, unit_price=Decimal("100")),
            OrderItemInput(part_id=second.id, quantity=2, unit_price=Decimal("100")),
        ],
        actor_id,
        expenses=[ExpenseInput(expense_type="freight", amount=Decimal("200"))],
        **kwargs,
    )


class TestCreateOrder:

    def test_totals_and_number(self, po_service, supplier, two_parts, test_actor_id):
        order = _freight_po(po_service, supplier, two_parts, test_actor_id)

        assert order.number == "PO-2024-001"
        assert order.status == "pending"
        assert order.items_total == Decimal("1000")
        assert order.expenses_total == Decimal("200")
        assert order.total_amount == Decimal("1200")
        assert order.line_count == 2

    def test_numbers_increase_per_year(self, po_service, supplier, two_parts, test_actor_id):
        _freight_po(po_service, supplier, two_parts, test_actor_id)
        second = _freight_po(po_service, supplier, two_parts, test_actor_id)

        assert second.number == "PO-2024-002"

    def test_requires_items(self, po_service, supplier, test_actor_id):
        with pytest.raises(ValidationError):
            po_service.create_order(supplier.id, date(2024, 3, 1), [], test_actor_id)

    def test_unknown_supplier(self, po_service, part, test_actor_id):
        with pytest.raises(NotFoundError):
            po_service.create_order(
                uuid4(),
                date(2024, 3, 1),
                [OrderItemInput(part_id=part.id, quantity=1, unit_price=Decimal("1"))],
                test_actor_id,
            )

    def test_negative_price_rejected_at_input(self, part):
        with pytest.raises(ValidationError):
            OrderItemInput(part_id=part.id, quantity=1, unit_price=Decimal("-1"))

    def test_zero_quantity_rejected_at_input(self, part):
        with pytest.raises(ValidationError):
            OrderItemInput(part_id=part.id, quantity=0, unit_price=Decimal("1"))

    def test_unknown_order(self, po_service):
        with pytest.raises(DocumentNotFoundError):
            po_service.get_order(uuid4())


class TestReceiveOrder:

    @pytest.fixture(autouse=True)
    def _order(self, session, po_service, supplier, two_parts, test_actor_id):
        self.session = session
        self.service = po_service
        self.supplier = supplier
        self.parts = two_parts
        self.actor_id = test_actor_id
        self.order = _freight_po(po_service, supplier, two_parts, test_actor_id)

    def test_landed_cost_written_to_parts(self):
        """Freight of 200 over goods worth 800 and 200 adds 20 per unit to both lines."""
        result = self.service.receive_order(self.order.id, self.actor_id)

        formulas = result.formulas
        assert formulas.total_expenses == Decimal("200")
        assert [i.expense_share for i in formulas.items] == [Decimal("160.00"), Decimal("40.00")]
        assert [i.landed_cost for i in formulas.items] == [Decimal("120"), Decimal("120")]
        for part in self.parts:
            row = self.session.get(Part, part.id)
            assert row.cost == Decimal("120")
            assert row.cost_source == "PO_RECEIVED"
            assert row.cost_source_ref == "PO-2024-001"

    def test_stock_movements(self):
        result = self.service.receive_order(self.order.id, self.actor_id)

        reader = StockSelector(self.session)
        assert result.movements_created == 2
        assert reader.stock_quantity(self.parts[0].id) == 8
        assert reader.stock_quantity(self.parts[1].id) == 2
        assert reader.movement_count(ReferenceType.PURCHASE.value, self.order.id) == 2

    def test_receipt_entry(self, balance_of):
        result = self.service.receive_order(self.order.id, self.actor_id, receive_date=date(2024, 3, 5))

        entries = LedgerSelector(self.session).entries_for_source("purchase_order", self.order.id)
        assert result.entry_number == "JV0001"
        assert len(entries) == 1
        entry = entries[0]
        assert entry.entry_date == date(2024, 3, 5)
        assert entry.reference == "PO-2024-001"
        assert entry.total_debit == entry.total_credit == Decimal("1200")
        assert balance_of("101001") == Decimal("1200")
        assert balance_of(self.supplier.payable_account_code) == Decimal("1000")
        assert balance_of("302009") == Decimal("200")

    def test_status_received(self):
        result = self.service.receive_order(self.order.id, self.actor_id)

        assert result.status == "received"
        assert self.service.get_order(self.order.id).status == "received"

    def test_second_receipt_refused_without_side_effects(self, balance_of):
        self.service.receive_order(self.order.id, self.actor_id)

        with pytest.raises(AlreadyReceivedError):
            self.service.receive_order(self.order.id, self.actor_id)

        reader = StockSelector(self.session)
        assert reader.movement_count(ReferenceType.PURCHASE.value, self.order.id) == 2
        assert len(LedgerSelector(self.session).entries_for_source("purchase_order", self.order.id)) == 1
        assert balance_of("101001") == Decimal("1200")

    def test_receipt_releases_reservations(self, config, deterministic_clock, stock_in):
        reserved_part = self.parts[0]
        stock_in(reserved_part.id, 3, "90")
        inventory = InventoryService(self.session, config, deterministic_clock)
        inventory.reserve_stock(reserved_part.id, 2, self.actor_id)

        self.service.receive_order(self.order.id, self.actor_id)

        assert StockSelector(self.session).reserved_quantity(reserved_part.id) == 0

    def test_logs_receipt(self, captured_logs):
        self.service.receive_order(self.order.id, self.actor_id)

        messages = [r["message"] for r in captured_logs()]
        assert "purchase_received" in messages
        assert "ledger_entry_posted" in messages
        assert "document_transitioned" in messages


class TestCostUpdatePolicies:

    def test_weighted_average(self, session, config, deterministic_clock, supplier, part, stock_in, test_actor_id):
        """10 on hand at 100 plus 5 received at 120 leaves 106.6667."""
        stock_in(part.id, 10, "100")
        averaging = replace(config, costing=CostingConfig(cost_update="weighted_average"))
        service = PurchaseOrderService(session, averaging, deterministic_clock)
        order = service.create_order(
            supplier.id,
            date(2024, 3, 1),
            [OrderItemInput(part_id=part.id, quantity=5, unit_price=Decimal("120"))],
            test_actor_id,
        )

        result = service.receive_order(order.id, test_actor_id)

        assert result.formulas.items[0].old_cost == Decimal("100")
        assert session.get(Part, part.id).cost == Decimal("106.6667")

    def test_landed_cost_replaces_average(self, session, po_service, supplier, part, stock_in, test_actor_id):
        stock_in(part.id, 10, "100")
        order = po_service.create_order(
            supplier.id,
            date(2024, 3, 1),
            [OrderItemInput(part_id=part.id, quantity=5, unit_price=Decimal("120"))],
            test_actor_id,
        )

        po_service.receive_order(order.id, test_actor_id)

        assert session.get(Part, part.id).cost == Decimal("120")

    def test_zero_value_expense_rejected_and_rolled_back(
        self, session, config, deterministic_clock, supplier, part, test_actor_id,
    ):
        strict = replace(config, costing=CostingConfig(zero_value_policy="reject"))
        service = PurchaseOrderService(session, strict, deterministic_clock)
        order = service.create_order(
            supplier.id,
            date(2024, 3, 1),
            [OrderItemInput(part_id=part.id, quantity=5, unit_price=Decimal("0"))],
            test_actor_id,
            expenses=[ExpenseInput(expense_type="duty", amount=Decimal("50"))],
        )

        with pytest.raises(ValidationError):
            service.receive_order(order.id, test_actor_id)

        assert service.get_order(order.id).status == "pending"
        assert StockSelector(session).stock_quantity(part.id) == 0

    def test_zero_value_expense_split_evenly(self, session, po_service, supplier, make_part, test_actor_id):
        first, second = make_part("GIFT-1"), make_part("GIFT-2")
        order = po_service.create_order(
            supplier.id,
            date(2024, 3, 1),
            [
                OrderItemInput(part_id=first.id, quantity=1, unit_price=Decimal("0")),
                OrderItemInput(part_id=second.id, quantity=4, unit_price=Decimal("0")),
            ],
            test_actor_id,
            expenses=[ExpenseInput(expense_type="courier", amount=Decimal("20"))],
        )

        result = po_service.receive_order(order.id, test_actor_id)

        assert [i.expense_share for i in result.formulas.items] == [Decimal("10.00"), Decimal("10.00")]
        assert session.get(Part, second.id).cost == Decimal("2.5")


class TestExpensePayables:

    def test_expense_credited_to_named_account(
        self, session, po_service, supplier, part, test_actor_id, balance_of,
    ):
        customs = ChartOfAccountsService(session).create_account("302", "Customs Payable", test_actor_id)
        order = po_service.create_order(
            supplier.id,
            date(2024, 3, 1),
            [OrderItemInput(part_id=part.id, quantity=1, unit_price=Decimal("100"))],
            test_actor_id,
            expenses=[
                ExpenseInput(expense_type="duty", amount=Decimal("15"), payable_account_id=customs.id),
            ],
        )

        po_service.receive_order(order.id, test_actor_id)

        assert balance_of(customs.code) == Decimal("15")
        assert balance_of("302009") == Decimal("0")


class TestDeleteOrder:

    def test_delete_received_order_reverses_everything(
        self, session, po_service, supplier, two_parts, test_actor_id, balance_of,
    ):
        order = _freight_po(po_service, supplier, two_parts, test_actor_id)
        po_service.receive_order(order.id, test_actor_id)

        reversed_numbers = po_service.delete_order(order.id, test_actor_id)

        assert reversed_numbers == ["JV0001"]
        assert balance_of("101001") == Decimal("0")
        assert balance_of(supplier.payable_account_code) == Decimal("0")
        assert StockSelector(session).stock_quantity(two_parts[0].id) == 0
        with pytest.raises(DocumentNotFoundError):
            po_service.get_order(order.id)

    def test_delete_pending_order(self, po_service, supplier, two_parts, test_actor_id):
        order = _freight_po(po_service, supplier, two_parts, test_actor_id)

        assert po_service.delete_order(order.id, test_actor_id) == []
