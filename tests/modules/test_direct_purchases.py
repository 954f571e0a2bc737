"""
Tests for direct purchase orders: receipt, supplier payments, returns and
deletion with everything the DPO produced.
"""

from datetime import date
from decimal import Decimal

import pytest

from stockbook_kernel.exceptions import (
    AlreadyReceivedError,
    InsufficientStockError,
    InvalidTransitionError,
    ValidationError,
)
from stockbook_kernel.models.part import Part
from stockbook_kernel.models.stock import ReferenceType
from stockbook_kernel.selectors.ledger_selector import LedgerSelector
from stockbook_kernel.selectors.stock_selector import StockSelector
from stockbook_modules.inventory import AdjustmentDirection, AdjustmentItemInput, InventoryService
from stockbook_modules.purchasing import (
    DirectPurchaseService,
    OrderItemInput,
    ReturnItemInput,
)


@pytest.fixture
def dpo_service(session, config, deterministic_clock):
    return DirectPurchaseService(session, config, deterministic_clock)


@pytest.fixture
def received_dpo(dpo_service, supplier, part, test_actor_id):
    """10 units of 6C0570 at 50, received on 2024-02-01."""
    order = dpo_service.create_order(
        supplier.id,
        date(2024, 2, 1),
        [OrderItemInput(part_id=part.id, quantity=10, unit_price=Decimal("50"))],
        test_actor_id,
    )
    dpo_service.receive_order(order.id, test_actor_id)
    return order


class TestReceiveDirectPurchase:

    def test_number_and_totals(self, dpo_service, supplier, part, test_actor_id):
        order = dpo_service.create_order(
            supplier.id,
            date(2024, 2, 1),
            [OrderItemInput(part_id=part.id, quantity=4, unit_price=Decimal("25"))],
            test_actor_id,
        )

        assert order.number == "DPO-2024-001"
        assert order.total_amount == Decimal("100")
        assert order.outstanding == Decimal("100")

    def test_receipt_costs_and_posts(self, session, dpo_service, received_dpo, part, supplier, balance_of):
        assert dpo_service.get_order(received_dpo.id).status == "received"
        row = session.get(Part, part.id)
        assert row.cost == Decimal("50")
        assert row.cost_source == "DPO_RECEIVED"
        assert StockSelector(session).stock_quantity(part.id) == 10
        assert balance_of("101001") == Decimal("500")
        assert balance_of(supplier.payable_account_code) == Decimal("500")

    def test_cannot_receive_twice(self, session, dpo_service, received_dpo, test_actor_id):
        with pytest.raises(AlreadyReceivedError):
            dpo_service.receive_order(received_dpo.id, test_actor_id)

        reader = StockSelector(session)
        assert reader.movement_count(ReferenceType.DIRECT_PURCHASE.value, received_dpo.id) == 1


class TestPayments:

    def test_partial_payment(self, dpo_service, received_dpo, supplier, test_actor_id, balance_of):
        payment = dpo_service.record_payment(
            received_dpo.id, Decimal("200"), test_actor_id, payment_date=date(2024, 2, 10),
        )

        assert payment.voucher_number == "PV0001"
        assert payment.paid_amount == Decimal("200")
        assert payment.outstanding == Decimal("300")
        assert payment.status == "received"
        assert balance_of(supplier.payable_account_code) == Decimal("300")
        assert balance_of("102001") == Decimal("-200")

    def test_full_payment_completes_order(self, dpo_service, received_dpo, test_actor_id):
        dpo_service.record_payment(received_dpo.id, Decimal("200"), test_actor_id)
        final = dpo_service.record_payment(received_dpo.id, Decimal("300"), test_actor_id)

        assert final.voucher_number == "PV0002"
        assert final.status == "completed"
        assert final.outstanding == Decimal("0")
        assert dpo_service.get_order(received_dpo.id).status == "completed"

    def test_pay_from_bank(self, dpo_service, received_dpo, test_actor_id, balance_of):
        dpo_service.record_payment(
            received_dpo.id, Decimal("50"), test_actor_id, cash_account_code="102002",
        )

        assert balance_of("102002") == Decimal("-50")
        assert balance_of("102001") == Decimal("0")

    def test_overpayment_rejected(self, session, dpo_service, received_dpo, test_actor_id):
        with pytest.raises(ValidationError):
            dpo_service.record_payment(received_dpo.id, Decimal("500.01"), test_actor_id)

        assert LedgerSelector(session).entries_for_source("direct_purchase_payment", received_dpo.id) == []

    def test_non_positive_payment_rejected(self, dpo_service, received_dpo, test_actor_id):
        with pytest.raises(ValidationError):
            dpo_service.record_payment(received_dpo.id, Decimal("0"), test_actor_id)

    def test_payment_from_liability_account_rejected(self, dpo_service, received_dpo, test_actor_id):
        with pytest.raises(ValidationError):
            dpo_service.record_payment(
                received_dpo.id, Decimal("10"), test_actor_id, cash_account_code="301001",
            )

    def test_pending_order_cannot_be_paid(self, dpo_service, supplier, part, test_actor_id):
        order = dpo_service.create_order(
            supplier.id,
            date(2024, 2, 1),
            [OrderItemInput(part_id=part.id, quantity=1, unit_price=Decimal("10"))],
            test_actor_id,
        )

        with pytest.raises(InvalidTransitionError):
            dpo_service.record_payment(order.id, Decimal("10"), test_actor_id)

    def test_completed_order_cannot_be_paid_again(self, dpo_service, received_dpo, test_actor_id):
        dpo_service.record_payment(received_dpo.id, Decimal("500"), test_actor_id)

        with pytest.raises(InvalidTransitionError):
            dpo_service.record_payment(received_dpo.id, Decimal("1"), test_actor_id)


class TestReturns:

    def test_create_return_defaults_to_purchase_price(self, dpo_service, received_dpo, part, test_actor_id):
        purchase_return = dpo_service.create_return(
            received_dpo.id,
            [ReturnItemInput(part_id=part.id, quantity=3)],
            test_actor_id,
            return_date=date(2024, 2, 15),
            reason="Damaged in transit",
        )

        assert purchase_return.return_number == "DPOR-2024-001"
        assert purchase_return.status == "pending"
        assert purchase_return.total_amount == Decimal("150")

    def test_approve_return(self, session, dpo_service, received_dpo, part, supplier, test_actor_id, balance_of):
        purchase_return = dpo_service.create_return(
            received_dpo.id, [ReturnItemInput(part_id=part.id, quantity=3)], test_actor_id,
        )

        approved = dpo_service.approve_return(purchase_return.id, test_actor_id)

        reader = StockSelector(session)
        assert approved.status == "approved"
        assert approved.entry_number == "JV0002"
        assert reader.stock_quantity(part.id) == 7
        assert reader.movement_count(ReferenceType.PURCHASE_RETURN.value, purchase_return.id) == 1
        assert balance_of("101001") == Decimal("350")
        assert balance_of(supplier.payable_account_code) == Decimal("350")
        assert dpo_service.get_order(received_dpo.id).outstanding == Decimal("350")

    def test_full_return_settles_unpaid_order(
        self, dpo_service, received_dpo, part, supplier, test_actor_id, balance_of,
    ):
        purchase_return = dpo_service.create_return(
            received_dpo.id, [ReturnItemInput(part_id=part.id, quantity=10)], test_actor_id,
        )

        dpo_service.approve_return(purchase_return.id, test_actor_id)

        order = dpo_service.get_order(received_dpo.id)
        assert order.status == "completed"
        assert order.outstanding == Decimal("0")
        assert balance_of(supplier.payable_account_code) == Decimal("0")
        with pytest.raises(InvalidTransitionError):
            dpo_service.record_payment(received_dpo.id, Decimal("1"), test_actor_id)

    def test_return_limited_to_unclaimed_quantity(self, dpo_service, received_dpo, part, test_actor_id):
        dpo_service.create_return(received_dpo.id, [ReturnItemInput(part_id=part.id, quantity=6)], test_actor_id)

        with pytest.raises(ValidationError):
            dpo_service.create_return(
                received_dpo.id, [ReturnItemInput(part_id=part.id, quantity=5)], test_actor_id,
            )

    def test_rejected_return_frees_its_claim(self, dpo_service, received_dpo, part, test_actor_id):
        first = dpo_service.create_return(
            received_dpo.id, [ReturnItemInput(part_id=part.id, quantity=10)], test_actor_id,
        )
        rejected = dpo_service.reject_return(first.id, test_actor_id)

        second = dpo_service.create_return(
            received_dpo.id, [ReturnItemInput(part_id=part.id, quantity=10)], test_actor_id,
        )

        assert rejected.status == "rejected"
        assert second.return_number == "DPOR-2024-002"

    def test_approved_return_cannot_be_rejected(self, dpo_service, received_dpo, part, test_actor_id):
        purchase_return = dpo_service.create_return(
            received_dpo.id, [ReturnItemInput(part_id=part.id, quantity=1)], test_actor_id,
        )
        dpo_service.approve_return(purchase_return.id, test_actor_id)

        with pytest.raises(InvalidTransitionError):
            dpo_service.reject_return(purchase_return.id, test_actor_id)

    def test_part_not_on_order(self, dpo_service, received_dpo, make_part, test_actor_id):
        stranger = make_part("OTHER-1")

        with pytest.raises(ValidationError):
            dpo_service.create_return(
                received_dpo.id, [ReturnItemInput(part_id=stranger.id, quantity=1)], test_actor_id,
            )

    def test_pending_order_cannot_be_returned(self, dpo_service, supplier, part, test_actor_id):
        order = dpo_service.create_order(
            supplier.id,
            date(2024, 2, 1),
            [OrderItemInput(part_id=part.id, quantity=1, unit_price=Decimal("10"))],
            test_actor_id,
        )

        with pytest.raises(InvalidTransitionError):
            dpo_service.create_return(order.id, [ReturnItemInput(part_id=part.id, quantity=1)], test_actor_id)

    def test_approval_needs_stock_on_hand(
        self, session, config, deterministic_clock, dpo_service, received_dpo, part, test_actor_id,
    ):
        purchase_return = dpo_service.create_return(
            received_dpo.id, [ReturnItemInput(part_id=part.id, quantity=3)], test_actor_id,
        )
        inventory = InventoryService(session, config, deterministic_clock)
        write_off = inventory.create_adjustment(
            date(2024, 2, 12),
            AdjustmentDirection.OUT,
            [AdjustmentItemInput(part_id=part.id, quantity=9)],
            test_actor_id,
            reason="Water damage",
        )
        inventory.approve_adjustment(write_off.id, test_actor_id)

        with pytest.raises(InsufficientStockError):
            dpo_service.approve_return(purchase_return.id, test_actor_id)

        assert StockSelector(session).stock_quantity(part.id) == 1


class TestDeleteDirectPurchase:

    def test_delete_cascades(self, session, dpo_service, received_dpo, part, supplier, test_actor_id, balance_of):
        dpo_service.record_payment(received_dpo.id, Decimal("100"), test_actor_id)
        purchase_return = dpo_service.create_return(
            received_dpo.id, [ReturnItemInput(part_id=part.id, quantity=2)], test_actor_id,
        )
        dpo_service.approve_return(purchase_return.id, test_actor_id)

        reversed_numbers = dpo_service.delete_order(received_dpo.id, test_actor_id)

        assert reversed_numbers == ["JV0002", "PV0001", "JV0001"]
        for code in ("101001", "102001", supplier.payable_account_code):
            assert balance_of(code) == Decimal("0")
        assert StockSelector(session).stock_quantity(part.id) == 0
        assert LedgerSelector(session).entries_for_source("direct_purchase", received_dpo.id) == []

    def test_delete_logs(self, dpo_service, received_dpo, test_actor_id, captured_logs):
        dpo_service.delete_order(received_dpo.id, test_actor_id)

        deleted = [r for r in captured_logs() if r["message"] == "direct_purchase_deleted"]
        assert len(deleted) == 1
        assert deleted[0]["dpo_number"] == "DPO-2024-001"
