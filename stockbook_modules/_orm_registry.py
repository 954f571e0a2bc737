"""
Module ORM registry (``stockbook_modules._orm_registry``).

Imports every ORM module so ``Base.metadata`` knows all tables, and
provides ``create_all_tables()`` -- the single schema-creation entry point
used by tests and deployments.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Register kernel and document tables on Base.metadata (idempotent)."""
    import stockbook_kernel.models  # noqa: F401
    import stockbook_modules.inventory.orm  # noqa: F401
    import stockbook_modules.purchasing.orm  # noqa: F401
    import stockbook_modules.sales.orm  # noqa: F401


def create_all_tables(engine: Engine) -> None:
    from stockbook_kernel.db.base import Base

    import_all_orm_models()
    Base.metadata.create_all(engine)


def drop_all_tables(engine: Engine) -> None:
    from stockbook_kernel.db.base import Base

    import_all_orm_models()
    Base.metadata.drop_all(engine)
