"""
Catalog Module Service (``stockbook_modules.catalog.service``).

Responsibility
--------------
Master data: the chart of accounts, suppliers and customers with their own
ledger accounts, and the parts catalog with its lookup tables.

Architecture
------------
Layer: **Modules**.  Four services share one module:

- ``ChartOfAccountsService`` installs the configured chart, creates and
  deletes accounts, and rebuilds cached balances from the ledger.
- ``SupplierService`` creates suppliers with a payable account each.
- ``CustomerService`` creates customers with a receivable account each.
- ``PartService`` maintains parts, manual cost edits, and folds
  duplicate part rows into the canonical row.

Invariants
----------
- Account codes are the subgroup code followed by a three-digit serial.
- A new account's ``current_balance`` starts at its opening balance.
- Accounts and parts referenced by transactions cannot be deleted.
- New parts never duplicate an existing part number; legacy duplicates
  are resolved canonically and removed with ``merge_duplicates``.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from stockbook_config import get_active_config, get_default_chart
from stockbook_config.schema import ChartOfAccountsDef, StockbookConfig
from stockbook_kernel.domain.account_types import AccountType
from stockbook_kernel.domain.amounts import ZERO, non_negative, non_negative_quantity, to_decimal
from stockbook_kernel.domain.clock import Clock, SystemClock
from stockbook_kernel.exceptions import (
    AccountNotFoundError,
    AccountReferencedError,
    NotFoundError,
    PartNotFoundError,
    PartReferencedError,
    ReferentialIntegrityError,
    ValidationError,
)
from stockbook_kernel.logging_config import get_logger
from stockbook_kernel.models.account import Account, MainGroup, Subgroup
from stockbook_kernel.models.part import (
    Application,
    Brand,
    Category,
    CostSource,
    Part,
    Subcategory,
)
from stockbook_kernel.models.party import Customer, Supplier
from stockbook_kernel.models.stock import StockMovement
from stockbook_kernel.selectors.ledger_selector import LedgerSelector
from stockbook_kernel.selectors.part_selector import PartSelector, PartView, rank_canonical, to_part_view
from stockbook_kernel.services.part_costs import CostChange, PartCostService
from stockbook_modules.catalog.models import (
    AccountView,
    BalanceCorrection,
    BalanceRecalculation,
    ChartInstallResult,
    CustomerView,
    MergeResult,
    SupplierView,
)
from stockbook_modules.inventory.orm import InventoryAdjustmentItemModel
from stockbook_modules.lifecycle import next_document_number
from stockbook_modules.purchasing.orm import (
    DirectPurchaseOrderItemModel,
    DirectPurchaseReturnItemModel,
    PurchaseExpenseModel,
    PurchaseOrderItemModel,
)
from stockbook_modules.sales.orm import SalesInvoiceItemModel, SalesReturnItemModel

logger = get_logger("modules.catalog.service")

# Every table that points at a part row
_PART_REFERENCES = {
    "purchase_order_items": PurchaseOrderItemModel,
    "direct_purchase_order_items": DirectPurchaseOrderItemModel,
    "direct_purchase_return_items": DirectPurchaseReturnItemModel,
    "sales_invoice_items": SalesInvoiceItemModel,
    "sales_return_items": SalesReturnItemModel,
    "inventory_adjustment_items": InventoryAdjustmentItemModel,
    "stock_movements": StockMovement,
}


def _to_account_view(account: Account) -> AccountView:
    return AccountView(
        id=account.id,
        code=account.code,
        name=account.name,
        subgroup_code=account.subgroup.code,
        account_type=account.account_type,
        opening_balance=account.opening_balance,
        current_balance=account.current_balance,
        status=account.status,
        can_delete=account.can_delete,
    )


def _to_supplier_view(supplier: Supplier) -> SupplierView:
    return SupplierView(
        id=supplier.id,
        code=supplier.code,
        name=supplier.name,
        company_name=supplier.company_name,
        phone=supplier.phone,
        payable_account_id=supplier.payable_account_id,
        payable_account_code=(
            supplier.payable_account.code if supplier.payable_account is not None else None
        ),
    )


def _to_customer_view(customer: Customer) -> CustomerView:
    return CustomerView(
        id=customer.id,
        code=customer.code,
        name=customer.name,
        phone=customer.phone,
        email=customer.email,
        credit_limit=customer.credit_limit,
        receivable_account_id=customer.receivable_account_id,
        receivable_account_code=(
            customer.receivable_account.code if customer.receivable_account is not None else None
        ),
    )


# =============================================================================
# Chart of accounts
# =============================================================================


class ChartOfAccountsService:

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def install_chart(
        self,
        actor_id: UUID,
        chart: ChartOfAccountsDef | None = None,
    ) -> ChartInstallResult:
        """
        Create every main group, subgroup and account of ``chart`` that is
        missing.  Existing rows are left untouched, so a second install is
        a no-op.
        """
        chart = chart or get_default_chart()
        try:
            created = {"main_groups": 0, "subgroups": 0, "accounts": 0}
            for group_def in chart.main_groups:
                group = self._session.scalar(select(MainGroup).where(MainGroup.code == group_def.code))
                if group is None:
                    group = MainGroup(
                        code=group_def.code,
                        name=group_def.name,
                        type=AccountType(group_def.type).value,
                        display_order=group_def.display_order,
                        created_by_id=actor_id,
                    )
                    self._session.add(group)
                    self._session.flush()
                    created["main_groups"] += 1

                for subgroup_def in group_def.subgroups:
                    subgroup = self._session.scalar(
                        select(Subgroup).where(Subgroup.code == subgroup_def.code)
                    )
                    if subgroup is None:
                        subgroup = Subgroup(
                            code=subgroup_def.code,
                            name=subgroup_def.name,
                            main_group_id=group.id,
                            created_by_id=actor_id,
                        )
                        self._session.add(subgroup)
                        self._session.flush()
                        created["subgroups"] += 1

                    for account_def in subgroup_def.accounts:
                        exists = self._session.scalar(
                            select(Account.id).where(Account.code == account_def.code)
                        )
                        if exists is not None:
                            continue
                        opening = to_decimal(account_def.opening_balance, "opening_balance")
                        self._session.add(
                            Account(
                                code=account_def.code,
                                name=account_def.name,
                                subgroup_id=subgroup.id,
                                opening_balance=opening,
                                current_balance=opening,
                                can_delete=account_def.can_delete,
                                created_by_id=actor_id,
                            )
                        )
                        created["accounts"] += 1
            self._session.flush()

            logger.info("chart_of_accounts_installed", extra=created)
            self._session.commit()
            return ChartInstallResult(**created)
        except Exception:
            self._session.rollback()
            raise

    def create_account(
        self,
        subgroup_code: str,
        name: str,
        actor_id: UUID,
        opening_balance=ZERO,
        code: str | None = None,
        can_delete: bool = True,
    ) -> AccountView:
        try:
            account = add_account(
                self._session, subgroup_code, name, actor_id, opening_balance, code, can_delete,
            )
            view = _to_account_view(account)
            self._session.commit()
            return view
        except Exception:
            self._session.rollback()
            raise

    def get_account(self, account_id: UUID) -> AccountView:
        account = self._session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return _to_account_view(account)

    def get_account_by_code(self, code: str) -> AccountView:
        account = self._session.scalar(select(Account).where(Account.code == code))
        if account is None:
            raise AccountNotFoundError(code)
        return _to_account_view(account)

    def delete_account(self, account_id: UUID, actor_id: UUID) -> str:
        """
        Delete an unreferenced account.  Returns its code.

        Raises:
            ValidationError: the account is a locked system account.
            AccountReferencedError: ledger lines reference it.
            ReferentialIntegrityError: a supplier, customer or purchase expense
                uses it.
        """
        try:
            account = self._session.get(Account, account_id)
            if account is None:
                raise AccountNotFoundError(str(account_id))
            if not account.can_delete:
                raise ValidationError(f"Account {account.code} cannot be deleted", field="account_id")

            line_count = LedgerSelector(self._session).line_count(account.id)
            if line_count:
                raise AccountReferencedError(account.code, line_count)

            supplier = self._session.scalar(
                select(Supplier).where(Supplier.payable_account_id == account.id)
            )
            if supplier is not None:
                raise ReferentialIntegrityError(
                    f"Account {account.code} is the payable account of supplier {supplier.code}"
                )
            customer = self._session.scalar(
                select(Customer).where(Customer.receivable_account_id == account.id)
            )
            if customer is not None:
                raise ReferentialIntegrityError(
                    f"Account {account.code} is the receivable account of customer {customer.code}"
                )
            expenses = self._session.scalar(
                select(func.count(PurchaseExpenseModel.id)).where(
                    PurchaseExpenseModel.payable_account_id == account.id
                )
            )
            if expenses:
                raise ReferentialIntegrityError(
                    f"Account {account.code} is referenced by {expenses} purchase expense(s)"
                )

            code = account.code
            self._session.delete(account)
            self._session.flush()
            logger.info("account_deleted", extra={"account_code": code, "actor_id": str(actor_id)})
            self._session.commit()
            return code
        except Exception:
            self._session.rollback()
            raise

    def recalculate_balances(self, actor_id: UUID) -> BalanceRecalculation:
        """Rewrite every drifted current_balance from opening balance and posted lines."""
        try:
            corrections: list[BalanceCorrection] = []
            activity = LedgerSelector(self._session).account_activity()
            for row in activity:
                recomputed = row.balance
                if recomputed == row.cached_balance:
                    continue
                self._session.execute(
                    update(Account)
                    .where(Account.id == row.account_id)
                    .values(current_balance=recomputed, updated_by_id=actor_id)
                )
                corrections.append(
                    BalanceCorrection(
                        account_code=row.account_code,
                        cached_balance=row.cached_balance,
                        recomputed_balance=recomputed,
                    )
                )
                logger.warning(
                    "account_balance_corrected",
                    extra={
                        "account_code": row.account_code,
                        "cached_balance": str(row.cached_balance),
                        "recomputed_balance": str(recomputed),
                    },
                )
            self._session.flush()
            self._session.expire_all()
            logger.info(
                "account_balances_recalculated",
                extra={"accounts_checked": len(activity), "corrected": len(corrections)},
            )
            self._session.commit()
            return BalanceRecalculation(
                accounts_checked=len(activity),
                corrections=tuple(corrections),
            )
        except Exception:
            self._session.rollback()
            raise


def add_account(
    session: Session,
    subgroup_code: str,
    name: str,
    actor_id: UUID,
    opening_balance=ZERO,
    code: str | None = None,
    can_delete: bool = True,
) -> Account:
    """Flush-only account creation; the next serial under the subgroup when no code is given."""
    if not name or not name.strip():
        raise ValidationError("Account name is required", field="name")
    subgroup = session.scalar(select(Subgroup).where(Subgroup.code == subgroup_code))
    if subgroup is None:
        raise NotFoundError("Subgroup", subgroup_code)

    if code is None:
        code = next_document_number(session, Account.code, subgroup.code)
    elif not code.startswith(subgroup.code):
        raise ValidationError(
            f"Account code {code} must start with subgroup code {subgroup.code}", field="code",
        )
    if session.scalar(select(Account.id).where(Account.code == code)) is not None:
        raise ValidationError(f"Account code already exists: {code}", field="code")

    opening = to_decimal(opening_balance, "opening_balance")
    account = Account(
        code=code,
        name=name.strip(),
        subgroup_id=subgroup.id,
        opening_balance=opening,
        current_balance=opening,
        can_delete=can_delete,
        created_by_id=actor_id,
    )
    session.add(account)
    session.flush()
    logger.info(
        "account_created",
        extra={"account_code": code, "subgroup_code": subgroup.code, "opening_balance": str(opening)},
    )
    return account


# =============================================================================
# Suppliers
# =============================================================================


class SupplierService:

    def __init__(self, session: Session, config: StockbookConfig | None = None):
        self._session = session
        self._config = config or get_active_config()

    def create_supplier(
        self,
        name: str,
        actor_id: UUID,
        company_name: str | None = None,
        phone: str | None = None,
        code: str | None = None,
    ) -> SupplierView:
        """Create a supplier and its own payable account under the supplier-payables subgroup."""
        try:
            if not name or not name.strip():
                raise ValidationError("Supplier name is required", field="name")
            code = code or next_document_number(self._session, Supplier.code, "SUP-")
            if self._session.scalar(select(Supplier.id).where(Supplier.code == code)) is not None:
                raise ValidationError(f"Supplier code already exists: {code}", field="code")

            payable = add_account(
                self._session,
                self._config.accounts.supplier_payables_subgroup,
                company_name or name,
                actor_id,
            )
            supplier = Supplier(
                code=code,
                name=name.strip(),
                company_name=company_name,
                phone=phone,
                payable_account_id=payable.id,
                created_by_id=actor_id,
            )
            self._session.add(supplier)
            self._session.flush()
            self._session.refresh(supplier)

            logger.info(
                "supplier_created",
                extra={
                    "supplier_id": str(supplier.id),
                    "code": code,
                    "payable_account_code": payable.code,
                },
            )
            view = _to_supplier_view(supplier)
            self._session.commit()
            return view
        except Exception:
            self._session.rollback()
            raise

    def get_supplier(self, supplier_id: UUID) -> SupplierView:
        supplier = self._session.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier", str(supplier_id))
        return _to_supplier_view(supplier)


# =============================================================================
# Customers
# =============================================================================


class CustomerService:

    def __init__(self, session: Session, config: StockbookConfig | None = None):
        self._session = session
        self._config = config or get_active_config()

    def create_customer(
        self,
        name: str,
        actor_id: UUID,
        phone: str | None = None,
        email: str | None = None,
        credit_limit=ZERO,
        code: str | None = None,
    ) -> CustomerView:
        """Create a customer and its own receivable account under the receivables subgroup."""
        try:
            if not name or not name.strip():
                raise ValidationError("Customer name is required", field="name")
            limit = non_negative(credit_limit, "credit_limit")
            code = code or next_document_number(self._session, Customer.code, "CUS-")
            if self._session.scalar(select(Customer.id).where(Customer.code == code)) is not None:
                raise ValidationError(f"Customer code already exists: {code}", field="code")

            receivable = add_account(
                self._session,
                self._config.accounts.customer_receivables_subgroup,
                name,
                actor_id,
            )
            customer = Customer(
                code=code,
                name=name.strip(),
                phone=phone,
                email=email,
                credit_limit=limit,
                receivable_account_id=receivable.id,
                created_by_id=actor_id,
            )
            self._session.add(customer)
            self._session.flush()
            self._session.refresh(customer)

            logger.info(
                "customer_created",
                extra={
                    "customer_id": str(customer.id),
                    "code": code,
                    "receivable_account_code": receivable.code,
                },
            )
            view = _to_customer_view(customer)
            self._session.commit()
            return view
        except Exception:
            self._session.rollback()
            raise

    def get_customer(self, customer_id: UUID) -> CustomerView:
        customer = self._session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer", str(customer_id))
        return _to_customer_view(customer)


# =============================================================================
# Parts
# =============================================================================


class PartService:

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._parts = PartSelector(session)

    def _create_named(self, model, name: str, actor_id: UUID, **values) -> UUID:
        try:
            if not name or not name.strip():
                raise ValidationError(f"{model.__name__} name is required", field="name")
            row = model(name=name.strip(), created_by_id=actor_id, **values)
            self._session.add(row)
            self._session.flush()
            row_id = row.id
            logger.info(
                "catalog_lookup_created",
                extra={"table": model.__tablename__, "id": str(row_id), "lookup_name": row.name},
            )
            self._session.commit()
            return row_id
        except Exception:
            self._session.rollback()
            raise

    def create_brand(self, name: str, actor_id: UUID) -> UUID:
        return self._create_named(Brand, name, actor_id)

    def create_category(self, name: str, actor_id: UUID) -> UUID:
        return self._create_named(Category, name, actor_id)

    def create_subcategory(self, category_id: UUID, name: str, actor_id: UUID) -> UUID:
        if self._session.get(Category, category_id) is None:
            raise NotFoundError("Category", str(category_id))
        return self._create_named(Subcategory, name, actor_id, category_id=category_id)

    def create_application(self, name: str, actor_id: UUID) -> UUID:
        return self._create_named(Application, name, actor_id)

    def create_part(
        self,
        part_no: str,
        actor_id: UUID,
        description: str | None = None,
        brand_id: UUID | None = None,
        category_id: UUID | None = None,
        subcategory_id: UUID | None = None,
        application_id: UUID | None = None,
        cost=ZERO,
        price_a: Decimal | None = None,
        price_b: Decimal | None = None,
        price_m: Decimal | None = None,
        reorder_level: int = 0,
    ) -> PartView:
        try:
            part_no = (part_no or "").strip()
            if not part_no:
                raise ValidationError("Part number is required", field="part_no")
            if self._session.scalar(select(Part.id).where(Part.part_no == part_no)) is not None:
                raise ValidationError(f"Part number already exists: {part_no}", field="part_no")

            for model, key in ((Brand, brand_id), (Category, category_id), (Application, application_id)):
                if key is not None and self._session.get(model, key) is None:
                    raise NotFoundError(model.__name__, str(key))
            if subcategory_id is not None:
                subcategory = self._session.get(Subcategory, subcategory_id)
                if subcategory is None:
                    raise NotFoundError("Subcategory", str(subcategory_id))
                if category_id is not None and subcategory.category_id != category_id:
                    raise ValidationError(
                        "Subcategory does not belong to the given category", field="subcategory_id",
                    )

            part = Part(
                part_no=part_no,
                description=description,
                brand_id=brand_id,
                category_id=category_id,
                subcategory_id=subcategory_id,
                application_id=application_id,
                cost=non_negative(cost, "cost"),
                cost_source=CostSource.MANUAL.value,
                price_a=None if price_a is None else non_negative(price_a, "price_a"),
                price_b=None if price_b is None else non_negative(price_b, "price_b"),
                price_m=None if price_m is None else non_negative(price_m, "price_m"),
                reorder_level=non_negative_quantity(reorder_level, "reorder_level"),
                created_by_id=actor_id,
            )
            self._session.add(part)
            self._session.flush()
            logger.info("part_created", extra={"part_id": str(part.id), "part_no": part_no})
            view = to_part_view(part)
            self._session.commit()
            return view
        except Exception:
            self._session.rollback()
            raise

    def update_cost(self, part_id: UUID, cost, actor_id: UUID, source_ref: str | None = None) -> CostChange:
        """Manual cost edit; lands on the canonical row of the part number."""
        try:
            change = PartCostService(self._session, self._clock).apply_cost(
                part_id, cost, CostSource.MANUAL, actor_id, source_ref=source_ref,
            )
            self._session.commit()
            return change
        except Exception:
            self._session.rollback()
            raise

    def references_to(self, part_ids: list[UUID]) -> dict[str, int]:
        """Non-zero reference counts per table for the given part rows."""
        counts: dict[str, int] = {}
        for table, model in _PART_REFERENCES.items():
            count = self._session.scalar(
                select(func.count(model.id)).where(model.part_id.in_(part_ids))
            )
            if count:
                counts[table] = int(count)
        return counts

    def delete_part(self, part_id: UUID, actor_id: UUID) -> str:
        """Delete an unreferenced part row.  Returns its part number."""
        try:
            part = self._session.get(Part, part_id)
            if part is None:
                raise PartNotFoundError(str(part_id))
            references = self.references_to([part.id])
            if references:
                raise PartReferencedError(str(part_id), references)

            part_no = part.part_no
            self._session.delete(part)
            self._session.flush()
            logger.info(
                "part_deleted",
                extra={"part_id": str(part_id), "part_no": part_no, "actor_id": str(actor_id)},
            )
            self._session.commit()
            return part_no
        except Exception:
            self._session.rollback()
            raise

    def merge_duplicates(self, part_no: str, actor_id: UUID) -> MergeResult:
        """
        Fold every duplicate row of ``part_no`` into the canonical row.

        Document lines and stock movements are re-pointed at the canonical
        row, then the duplicates are deleted.  The canonical row keeps its
        own cost.
        """
        try:
            ranked = rank_canonical(
                self._session.scalars(select(Part).where(Part.part_no == part_no.strip())).all()
            )
            if not ranked:
                raise PartNotFoundError(part_no)
            canonical, duplicates = ranked[0], ranked[1:]
            duplicate_ids = [p.id for p in duplicates]

            moved: dict[str, int] = {}
            if duplicate_ids:
                for table, model in _PART_REFERENCES.items():
                    count = self._session.execute(
                        update(model)
                        .where(model.part_id.in_(duplicate_ids))
                        .values(part_id=canonical.id)
                        .execution_options(synchronize_session="fetch")
                    ).rowcount or 0
                    if count:
                        moved[table] = count
                for duplicate in duplicates:
                    self._session.delete(duplicate)
                canonical.updated_by_id = actor_id
                self._session.flush()

            logger.info(
                "part_duplicates_merged",
                extra={
                    "part_no": part_no,
                    "canonical_id": str(canonical.id),
                    "merged": len(duplicate_ids),
                    "references_moved": moved,
                },
            )
            result = MergeResult(
                part_no=part_no,
                canonical_id=canonical.id,
                merged_ids=tuple(duplicate_ids),
                references_moved=moved,
            )
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def get_part(self, part_id: UUID) -> PartView:
        return self._parts.get(part_id)

    def canonical_part(self, part_no: str) -> PartView:
        return self._parts.canonical_part(part_no)
