"""
stockbook_config -- runtime configuration entrypoint.

Responsibility:
    ``get_active_config()`` returns the merged, validated StockbookConfig:
    the packaged ``defaults.yaml``, overlaid by the YAML file named in
    ``STOCKBOOK_CONFIG`` (or passed explicitly), with the database URL
    overridable through ``STOCKBOOK_DATABASE_URL``.
    ``get_default_chart()`` returns the packaged chart of accounts.

Architecture position:
    Sits above ``stockbook_kernel`` and below ``stockbook_modules``.  The
    kernel never imports this package; modules receive the parsed objects.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from stockbook_config.loader import (
    load_chart_of_accounts,
    load_yaml_file,
    merge_settings,
    parse_config,
)
from stockbook_config.schema import (
    AccountCodes,
    ChartOfAccountsDef,
    CostingConfig,
    DatabaseConfig,
    InventoryConfig,
    LoggingConfig,
    StockbookConfig,
)
from stockbook_kernel.logging_config import get_logger

logger = get_logger("config")

_PACKAGE_DIR = Path(__file__).parent
DEFAULTS_PATH = _PACKAGE_DIR / "defaults.yaml"
CHART_PATH = _PACKAGE_DIR / "chart_of_accounts.yaml"

CONFIG_ENV_VAR = "STOCKBOOK_CONFIG"
DATABASE_URL_ENV_VAR = "STOCKBOOK_DATABASE_URL"


def get_active_config(config_path: Path | str | None = None) -> StockbookConfig:
    """Load defaults, apply the override file and environment, validate."""
    data = load_yaml_file(DEFAULTS_PATH)

    override_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if override_path:
        data = merge_settings(data, load_yaml_file(Path(override_path)))

    config = parse_config(data)

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        config = replace(config, database=replace(config.database, url=database_url))

    logger.info(
        "STOCKBOOK_CONFIG_TRACE",
        extra={
            "checksum": config.checksum,
            "override_path": str(override_path) if override_path else None,
            "expense_distribution": config.costing.expense_distribution,
            "zero_value_policy": config.costing.zero_value_policy,
            "cost_update": config.costing.cost_update,
        },
    )
    return config


def get_default_chart() -> ChartOfAccountsDef:
    return load_chart_of_accounts(CHART_PATH)


__all__ = [
    "AccountCodes",
    "ChartOfAccountsDef",
    "CostingConfig",
    "DatabaseConfig",
    "InventoryConfig",
    "LoggingConfig",
    "StockbookConfig",
    "get_active_config",
    "get_default_chart",
]
