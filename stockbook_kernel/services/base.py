"""
BaseService -- abstract base for all kernel services.

Kernel services receive the caller's SQLAlchemy ``Session`` and persist with
``session.flush()`` only.  They never commit or roll back: the document
services in ``stockbook_modules`` own the transaction boundary, so a
receipt's cost update, stock movements and ledger entry commit or fail
together.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stockbook_kernel.db.base import Base
from stockbook_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Holds the caller's session and clock.  Flush-only."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
