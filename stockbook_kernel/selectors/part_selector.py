"""
PartSelector -- catalog reads and canonical-part resolution.

Several Part rows may share one part number.  Every cost-bearing read and
every cost write goes through the canonical row:

    1. most recent cost_updated_at (rows never costed rank last)
    2. then most recent updated_at
    3. then earliest created_at
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from stockbook_kernel.exceptions import PartNotFoundError
from stockbook_kernel.models.part import Part
from stockbook_kernel.selectors.base import BaseSelector

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)
_LATEST = datetime.max.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class PartView:
    id: UUID
    part_no: str
    description: str | None
    cost: Decimal
    cost_source: str
    cost_source_ref: str | None
    cost_updated_at: datetime | None
    price_a: Decimal | None
    price_b: Decimal | None
    price_m: Decimal | None
    reorder_level: int


def _utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; stored values are UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def rank_canonical(parts: Sequence) -> list:
    """
    Order duplicate rows so the canonical one comes first.

    Three stable sorts, lowest priority first.  Works on Part rows or any
    object with cost_updated_at, updated_at, created_at and id.
    """
    ordered = sorted(parts, key=lambda p: (_utc(p.created_at) or _LATEST, str(p.id)))
    ordered = sorted(ordered, key=lambda p: _utc(p.updated_at) or _EARLIEST, reverse=True)
    ordered = sorted(
        ordered,
        key=lambda p: (p.cost_updated_at is not None, _utc(p.cost_updated_at) or _EARLIEST),
        reverse=True,
    )
    return ordered


def select_canonical(parts: Sequence):
    """The canonical row among ``parts``, or None when empty."""
    ranked = rank_canonical(parts)
    return ranked[0] if ranked else None


def to_part_view(part: Part) -> PartView:
    return PartView(
        id=part.id,
        part_no=part.part_no,
        description=part.description,
        cost=part.cost,
        cost_source=part.cost_source,
        cost_source_ref=part.cost_source_ref,
        cost_updated_at=part.cost_updated_at,
        price_a=part.price_a,
        price_b=part.price_b,
        price_m=part.price_m,
        reorder_level=part.reorder_level,
    )


class PartSelector(BaseSelector[Part]):

    def _rows_for(self, part_no: str) -> list[Part]:
        return list(
            self.session.scalars(select(Part).where(Part.part_no == part_no.strip())).all()
        )

    def canonical_part_id(self, part_no: str) -> UUID:
        canonical = select_canonical(self._rows_for(part_no))
        if canonical is None:
            raise PartNotFoundError(part_no)
        return canonical.id

    def canonical_part(self, part_no: str) -> PartView:
        canonical = select_canonical(self._rows_for(part_no))
        if canonical is None:
            raise PartNotFoundError(part_no)
        return to_part_view(canonical)

    def canonical_id_for(self, part_id: UUID) -> UUID:
        """The canonical row for whatever part number ``part_id`` carries."""
        part = self.session.get(Part, part_id)
        if part is None:
            raise PartNotFoundError(str(part_id))
        return self.canonical_part_id(part.part_no)

    def get(self, part_id: UUID) -> PartView:
        part = self.session.get(Part, part_id)
        if part is None:
            raise PartNotFoundError(str(part_id))
        return to_part_view(part)

    def duplicates_of(self, part_no: str) -> list[PartView]:
        """All rows sharing ``part_no``, canonical first."""
        return [to_part_view(p) for p in rank_canonical(self._rows_for(part_no))]

    def duplicated_part_numbers(self) -> list[str]:
        return list(
            self.session.scalars(
                select(Part.part_no)
                .group_by(Part.part_no)
                .having(func.count(Part.id) > 1)
                .order_by(Part.part_no)
            ).all()
        )
