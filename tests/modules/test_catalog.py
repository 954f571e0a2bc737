"""
Tests for the catalog module: chart of accounts, suppliers, customers and parts,
including duplicate part numbers left behind by legacy imports.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, update

from stockbook_kernel.domain.account_types import AccountType
from stockbook_kernel.domain.entries import LineSpec
from stockbook_kernel.exceptions import (
    AccountNotFoundError,
    AccountReferencedError,
    NotFoundError,
    PartNotFoundError,
    PartReferencedError,
    ReferentialIntegrityError,
    ValidationError,
)
from stockbook_kernel.models.account import Account
from stockbook_kernel.models.part import CostSource, Part
from stockbook_kernel.models.stock import MovementType, ReferenceType
from stockbook_kernel.selectors.stock_selector import StockSelector
from stockbook_kernel.services.stock_ledger import StockLedgerService
from stockbook_modules.catalog import ChartOfAccountsService, CustomerService, PartService, SupplierService
from stockbook_modules.vouchers import VoucherService

UTC = timezone.utc


@pytest.fixture
def chart(session, deterministic_clock):
    return ChartOfAccountsService(session, deterministic_clock)


@pytest.fixture
def parts(session, deterministic_clock):
    return PartService(session, deterministic_clock)


class TestChartOfAccounts:

    def test_install_is_idempotent(self, chart, test_actor_id):
        result = chart.install_chart(test_actor_id)

        assert (result.main_groups, result.subgroups, result.accounts) == (0, 0, 0)

    def test_default_account_types(self, chart):
        assert chart.get_account_by_code("101001").account_type is AccountType.ASSET
        assert chart.get_account_by_code("301001").account_type is AccountType.LIABILITY
        assert chart.get_account_by_code("701001").account_type is AccountType.REVENUE
        assert chart.get_account_by_code("901001").account_type is AccountType.COST

    def test_next_serial_under_subgroup(self, chart, test_actor_id):
        account = chart.create_account("102", "Petty Cash", test_actor_id, opening_balance=Decimal("250"))

        assert account.code == "102003"
        assert account.subgroup_code == "102"
        assert account.current_balance == Decimal("250")

    def test_explicit_code_must_match_subgroup(self, chart, test_actor_id):
        with pytest.raises(ValidationError):
            chart.create_account("102", "Misplaced", test_actor_id, code="801999")

    def test_duplicate_code(self, chart, test_actor_id):
        with pytest.raises(ValidationError):
            chart.create_account("102", "Second cash", test_actor_id, code="102001")

    def test_unknown_subgroup(self, chart, test_actor_id):
        with pytest.raises(NotFoundError):
            chart.create_account("999", "Nowhere", test_actor_id)

    def test_unknown_code(self, chart):
        with pytest.raises(AccountNotFoundError):
            chart.get_account_by_code("000000")


class TestDeleteAccount:

    def test_delete_unused_account(self, chart, test_actor_id):
        account = chart.create_account("801", "Stationery", test_actor_id)

        assert chart.delete_account(account.id, test_actor_id) == account.code
        with pytest.raises(AccountNotFoundError):
            chart.get_account(account.id)

    def test_system_account_locked(self, chart, test_actor_id):
        inventory = chart.get_account_by_code("101001")

        with pytest.raises(ValidationError):
            chart.delete_account(inventory.id, test_actor_id)

    def test_account_with_lines(self, session, deterministic_clock, chart, test_actor_id):
        account = chart.create_account("801", "Stationery", test_actor_id)
        VoucherService(session, deterministic_clock).create_journal_entry(
            date(2024, 1, 5),
            (LineSpec.dr(account.code, Decimal("12")), LineSpec.cr("102001", Decimal("12"))),
            test_actor_id,
        )

        with pytest.raises(AccountReferencedError) as exc:
            chart.delete_account(account.id, test_actor_id)
        assert exc.value.line_count == 1

    def test_supplier_payable_account(self, chart, supplier, test_actor_id):
        with pytest.raises(ReferentialIntegrityError):
            chart.delete_account(supplier.payable_account_id, test_actor_id)

    def test_customer_receivable_account(self, chart, customer, test_actor_id):
        with pytest.raises(ReferentialIntegrityError):
            chart.delete_account(customer.receivable_account_id, test_actor_id)


class TestRecalculateBalances:

    def test_repairs_drifted_balance(self, session, deterministic_clock, chart, test_actor_id, balance_of):
        VoucherService(session, deterministic_clock).create_journal_entry(
            date(2024, 1, 5),
            (LineSpec.dr("802001", Decimal("30")), LineSpec.cr("102001", Decimal("30"))),
            test_actor_id,
        )
        session.execute(update(Account).where(Account.code == "102001").values(current_balance=Decimal("999")))
        session.commit()

        result = chart.recalculate_balances(test_actor_id)

        assert [c.account_code for c in result.corrections] == ["102001"]
        assert result.corrections[0].cached_balance == Decimal("999")
        assert result.corrections[0].recomputed_balance == Decimal("-30")
        assert balance_of("102001") == Decimal("-30")

    def test_nothing_to_repair(self, chart, test_actor_id):
        result = chart.recalculate_balances(test_actor_id)

        assert result.accounts_checked > 0
        assert result.corrections == ()


class TestSuppliers:

    def test_supplier_gets_own_payable_account(self, supplier):
        assert supplier.code == "SUP-001"
        assert supplier.payable_account_code == "301002"

    def test_payable_named_after_company(self, chart, supplier):
        assert chart.get_account(supplier.payable_account_id).name == "Hashmi Traders Ltd"

    def test_codes_increase(self, make_supplier):
        make_supplier()
        second = make_supplier()

        assert second.code == "SUP-002"
        assert second.payable_account_code == "301003"

    def test_name_required(self, session, config, test_actor_id):
        with pytest.raises(ValidationError):
            SupplierService(session, config).create_supplier("  ", test_actor_id)

    def test_unknown_supplier(self, session, config):
        with pytest.raises(NotFoundError):
            SupplierService(session, config).get_supplier(uuid4())


class TestCustomers:

    def test_customer_gets_own_receivable_account(self, chart, customer):
        account = chart.get_account(customer.receivable_account_id)

        assert customer.code == "CUS-001"
        assert customer.receivable_account_code == "103002"
        assert account.name == "Bilal Autos"
        assert account.account_type == AccountType.ASSET

    def test_second_customer_next_serial(self, session, config, customer, test_actor_id):
        second = CustomerService(session, config).create_customer("Rehman Motors", test_actor_id)

        assert second.code == "CUS-002"
        assert second.receivable_account_code == "103003"

    def test_negative_credit_limit(self, session, config, test_actor_id):
        with pytest.raises(ValidationError):
            CustomerService(session, config).create_customer(
                "Rehman Motors", test_actor_id, credit_limit=Decimal("-1"),
            )

    def test_duplicate_code_creates_nothing(self, session, config, customer, test_actor_id):
        with pytest.raises(ValidationError):
            CustomerService(session, config).create_customer("Other", test_actor_id, code="CUS-001")

        assert session.scalar(select(Account.id).where(Account.code == "103003")) is None

    def test_get_customer(self, session, config, customer):
        found = CustomerService(session, config).get_customer(customer.id)

        assert found == customer

    def test_unknown_customer(self, session, config):
        with pytest.raises(NotFoundError):
            CustomerService(session, config).get_customer(uuid4())


class TestParts:

    def test_part_number_trimmed_and_unique(self, parts, test_actor_id):
        created = parts.create_part("  FLT-1 ", test_actor_id)

        assert created.part_no == "FLT-1"
        with pytest.raises(ValidationError):
            parts.create_part("FLT-1", test_actor_id)

    def test_classification_lookups(self, session, parts, test_actor_id):
        brand = parts.create_brand("Bosch", test_actor_id)
        category = parts.create_category("Filters", test_actor_id)
        subcategory = parts.create_subcategory(category, "Oil filters", test_actor_id)
        application = parts.create_application("Hilux", test_actor_id)

        part = parts.create_part(
            "FLT-2",
            test_actor_id,
            brand_id=brand,
            category_id=category,
            subcategory_id=subcategory,
            application_id=application,
        )

        row = session.get(Part, part.id)
        assert row.brand_id == brand
        assert row.subcategory_id == subcategory

    def test_each_lookup_logged_by_table(self, parts, test_actor_id, captured_logs):
        parts.create_brand(" Denso ", test_actor_id)
        engine_parts = parts.create_category("Engine", test_actor_id)
        parts.create_subcategory(engine_parts, "Gaskets", test_actor_id)
        parts.create_application("Corolla", test_actor_id)

        created = [
            (r["table"], r["lookup_name"])
            for r in captured_logs()
            if r["message"] == "catalog_lookup_created"
        ]
        assert created == [
            ("brands", "Denso"),
            ("categories", "Engine"),
            ("subcategories", "Gaskets"),
            ("applications", "Corolla"),
        ]

    def test_blank_lookup_name_rejected(self, parts, test_actor_id):
        with pytest.raises(ValidationError):
            parts.create_brand("  ", test_actor_id)

    def test_subcategory_must_belong_to_category(self, parts, test_actor_id):
        filters = parts.create_category("Filters", test_actor_id)
        brakes = parts.create_category("Brakes", test_actor_id)
        pads = parts.create_subcategory(brakes, "Pads", test_actor_id)

        with pytest.raises(ValidationError):
            parts.create_part("FLT-3", test_actor_id, category_id=filters, subcategory_id=pads)

    def test_negative_cost_rejected(self, parts, test_actor_id):
        with pytest.raises(ValidationError):
            parts.create_part("FLT-4", test_actor_id, cost=Decimal("-1"))

    def test_update_cost(self, parts, part, test_actor_id):
        change = parts.update_cost(part.id, Decimal("55.5"), test_actor_id, source_ref="price list")

        assert change.new_cost == Decimal("55.5")
        assert parts.get_part(part.id).cost == Decimal("55.5")

    def test_delete_unreferenced_part(self, parts, part, test_actor_id):
        assert parts.delete_part(part.id, test_actor_id) == "6C0570"
        with pytest.raises(PartNotFoundError):
            parts.get_part(part.id)

    def test_referenced_part_kept(self, parts, part, stock_in, test_actor_id):
        stock_in(part.id, 1, "10")

        with pytest.raises(PartReferencedError):
            parts.delete_part(part.id, test_actor_id)
        assert parts.references_to([part.id]) == {"inventory_adjustment_items": 1, "stock_movements": 1}


class TestMergeDuplicates:

    @pytest.fixture(autouse=True)
    def _duplicates(self, session, deterministic_clock, test_actor_id):
        self.session = session
        self.rows = []
        for stamp, cost in ((None, Decimal("10")), (datetime(2024, 6, 1, tzinfo=UTC), Decimal("12"))):
            row = Part(
                part_no="6C0570",
                cost=cost,
                cost_source=CostSource.MANUAL.value,
                cost_updated_at=stamp,
                created_by_id=test_actor_id,
            )
            session.add(row)
            self.rows.append(row)
        session.flush()
        StockLedgerService(session, deterministic_clock).record(
            self.rows[0].id, MovementType.IN, 4, ReferenceType.ADJUSTMENT, uuid4(), test_actor_id,
        )
        session.commit()

    def test_merge_moves_references_to_canonical(self, parts, test_actor_id):
        stale, canonical = self.rows

        result = parts.merge_duplicates("6C0570", test_actor_id)

        assert result.canonical_id == canonical.id
        assert result.merged_ids == (stale.id,)
        assert result.references_moved == {"stock_movements": 1}
        assert StockSelector(self.session).stock_quantity(canonical.id) == 4
        assert self.session.scalars(select(Part).where(Part.part_no == "6C0570")).all() == [
            self.session.get(Part, canonical.id)
        ]

    def test_stale_row_removed_in_same_session(self, parts, test_actor_id):
        stale, canonical = self.rows
        stale_id = stale.id

        parts.merge_duplicates("6C0570", test_actor_id)

        assert self.session.get(Part, stale_id) is None
        assert canonical.updated_by_id == test_actor_id
        assert parts.get_part(canonical.id).part_no == "6C0570"

    def test_canonical_keeps_its_cost(self, parts, test_actor_id):
        parts.merge_duplicates("6C0570", test_actor_id)

        assert parts.canonical_part("6C0570").cost == Decimal("12")

    def test_merge_without_duplicates(self, parts, make_part, test_actor_id):
        single = make_part("UNIQUE-1")

        result = parts.merge_duplicates("UNIQUE-1", test_actor_id)

        assert result.canonical_id == single.id
        assert result.merged_ids == ()

    def test_unknown_part_number(self, parts, test_actor_id):
        with pytest.raises(PartNotFoundError):
            parts.merge_duplicates("NOPE", test_actor_id)
