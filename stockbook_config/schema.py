"""
Stockbook configuration schema.

Frozen dataclasses parsed from YAML by ``stockbook_config.loader``.  Each
section validates itself in ``__post_init__`` and raises
ConfigurationError naming the offending setting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from stockbook_kernel.exceptions import ConfigurationError

VALID_DISTRIBUTION_METHODS = frozenset({"value", "quantity"})
VALID_ZERO_VALUE_POLICIES = frozenset({"even", "reject"})
VALID_COST_UPDATES = frozenset({"landed", "weighted_average"})
VALID_ACCOUNT_TYPES = frozenset({"asset", "liability", "equity", "revenue", "expense", "cost"})


# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///stockbook.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10

    def __post_init__(self):
        if not self.url:
            raise ConfigurationError("database.url is required", setting="database.url")
        if self.pool_size < 1:
            raise ConfigurationError(
                f"database.pool_size must be positive, got {self.pool_size}",
                setting="database.pool_size",
            )


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self):
        if logging.getLevelName(self.level.upper()) == f"Level {self.level.upper()}":
            raise ConfigurationError(
                f"logging.level is not a logging level: {self.level}",
                setting="logging.level",
            )


@dataclass(frozen=True)
class AccountCodes:
    """Chart-of-accounts codes that document postings resolve at run time."""

    inventory: str = "101001"
    cash: str = "102001"
    accounts_receivable: str = "103001"
    accounts_payable: str = "301001"
    purchase_expense_payable: str = "302009"
    sales_revenue: str = "701001"
    inventory_adjustment: str = "802001"
    cogs: str = "901001"
    supplier_payables_subgroup: str = "301"
    customer_receivables_subgroup: str = "103"

    def __post_init__(self):
        for name, value in vars(self).items():
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(
                    f"accounts.{name} must be a non-empty code",
                    setting=f"accounts.{name}",
                )


@dataclass(frozen=True)
class CostingConfig:
    expense_distribution: str = "value"
    zero_value_policy: str = "even"
    cost_update: str = "landed"

    def __post_init__(self):
        if self.expense_distribution not in VALID_DISTRIBUTION_METHODS:
            raise ConfigurationError(
                f"Invalid costing.expense_distribution: {self.expense_distribution}",
                setting="costing.expense_distribution",
            )
        if self.zero_value_policy not in VALID_ZERO_VALUE_POLICIES:
            raise ConfigurationError(
                f"Invalid costing.zero_value_policy: {self.zero_value_policy}",
                setting="costing.zero_value_policy",
            )
        if self.cost_update not in VALID_COST_UPDATES:
            raise ConfigurationError(
                f"Invalid costing.cost_update: {self.cost_update}",
                setting="costing.cost_update",
            )


@dataclass(frozen=True)
class InventoryConfig:
    allow_negative_stock: bool = False


@dataclass(frozen=True)
class StockbookConfig:
    """Complete runtime configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    accounts: AccountCodes = field(default_factory=AccountCodes)
    costing: CostingConfig = field(default_factory=CostingConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    checksum: str = ""


# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountDef:
    code: str
    name: str
    opening_balance: str = "0"
    can_delete: bool = True


@dataclass(frozen=True)
class SubgroupDef:
    code: str
    name: str
    accounts: tuple[AccountDef, ...] = ()

    def __post_init__(self):
        for account in self.accounts:
            if not account.code.startswith(self.code):
                raise ConfigurationError(
                    f"Account {account.code} does not belong under subgroup {self.code}",
                    setting="chart_of_accounts",
                )


@dataclass(frozen=True)
class MainGroupDef:
    code: str
    name: str
    type: str
    display_order: int = 0
    subgroups: tuple[SubgroupDef, ...] = ()

    def __post_init__(self):
        if self.type not in VALID_ACCOUNT_TYPES:
            raise ConfigurationError(
                f"Main group {self.code} has invalid type: {self.type}",
                setting="chart_of_accounts",
            )


@dataclass(frozen=True)
class ChartOfAccountsDef:
    main_groups: tuple[MainGroupDef, ...]

    def __post_init__(self):
        codes: list[str] = []
        for group in self.main_groups:
            codes.append(group.code)
            for subgroup in group.subgroups:
                codes.append(subgroup.code)
                codes.extend(a.code for a in subgroup.accounts)
        duplicates = sorted({c for c in codes if codes.count(c) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Duplicate chart-of-accounts codes: {', '.join(duplicates)}",
                setting="chart_of_accounts",
            )

    def account_codes(self) -> tuple[str, ...]:
        return tuple(
            account.code
            for group in self.main_groups
            for subgroup in group.subgroups
            for account in subgroup.accounts
        )
