"""
Module: stockbook_kernel.selectors.base
Responsibility: Abstract base for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/ and models/.

Invariants enforced:
    - Selectors never add, delete, flush or commit.
    - Selectors return frozen dataclasses, not ORM instances.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stockbook_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Holds the caller's session for read-only queries."""

    def __init__(self, session: Session):
        self.session = session
