"""
Catalog Domain Models (``stockbook_modules.catalog.models``).

Frozen views of accounts, suppliers and customers, plus the results of chart
installation, balance recalculation and duplicate-part merging.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from stockbook_kernel.domain.account_types import AccountType


@dataclass(frozen=True)
class AccountView:
    id: UUID
    code: str
    name: str
    subgroup_code: str
    account_type: AccountType
    opening_balance: Decimal
    current_balance: Decimal
    status: str
    can_delete: bool


@dataclass(frozen=True)
class ChartInstallResult:
    """Rows created by one install; zero everywhere on a repeat install."""

    main_groups: int
    subgroups: int
    accounts: int


@dataclass(frozen=True)
class BalanceCorrection:
    account_code: str
    cached_balance: Decimal
    recomputed_balance: Decimal


@dataclass(frozen=True)
class BalanceRecalculation:
    accounts_checked: int
    corrections: tuple[BalanceCorrection, ...] = ()


@dataclass(frozen=True)
class SupplierView:
    id: UUID
    code: str
    name: str
    company_name: str | None
    phone: str | None
    payable_account_id: UUID | None
    payable_account_code: str | None


@dataclass(frozen=True)
class CustomerView:
    id: UUID
    code: str
    name: str
    phone: str | None
    email: str | None
    credit_limit: Decimal
    receivable_account_id: UUID | None
    receivable_account_code: str | None


@dataclass(frozen=True)
class MergeResult:
    """Outcome of folding duplicate rows of one part number into the canonical row."""

    part_no: str
    canonical_id: UUID
    merged_ids: tuple[UUID, ...]
    references_moved: dict[str, int] = field(default_factory=dict)
