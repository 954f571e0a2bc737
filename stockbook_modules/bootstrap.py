"""
Process start-up for an application embedding stockbook.

Applies the active configuration to the kernel: logging level, the
process-wide engine, the schema and the default chart of accounts.
"""

from __future__ import annotations

from uuid import UUID

from stockbook_config import StockbookConfig, get_active_config
from stockbook_kernel.db.engine import get_engine, init_engine_from_url, session_scope
from stockbook_kernel.logging_config import configure_logging, get_logger
from stockbook_modules._orm_registry import create_all_tables
from stockbook_modules.catalog import ChartOfAccountsService

logger = get_logger("modules.bootstrap")


def bootstrap(
    actor_id: UUID,
    config: StockbookConfig | None = None,
    *,
    install_chart: bool = True,
) -> StockbookConfig:
    """
    Configure logging, connect, create missing tables and install the chart.

    Safe to call on an existing database: table creation and chart
    installation only add what is missing.
    """
    config = config or get_active_config()

    configure_logging(level=config.logging.level.upper())
    init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    create_all_tables(get_engine())

    if install_chart:
        with session_scope() as session:
            result = ChartOfAccountsService(session).install_chart(actor_id)
        logger.info(
            "stockbook_bootstrapped",
            extra={
                "config_checksum": config.checksum,
                "main_groups_created": result.main_groups,
                "subgroups_created": result.subgroups,
                "accounts_created": result.accounts,
            },
        )
    return config
