"""
PartCostService -- writes Part.cost on the canonical row.

Receipts, adjustments and manual edits all go through apply_cost so the
cost lands on the canonical row for the part number, whichever duplicate
the document line happened to reference.  Flush-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from stockbook_kernel.domain.amounts import non_negative, round_cost
from stockbook_kernel.logging_config import get_logger
from stockbook_kernel.models.part import CostSource, Part
from stockbook_kernel.selectors.part_selector import PartSelector
from stockbook_kernel.services.base import BaseService

logger = get_logger("services.part_costs")


@dataclass(frozen=True)
class CostChange:
    part_id: UUID
    old_cost: Decimal
    new_cost: Decimal
    source: str
    source_ref: str | None


class PartCostService(BaseService[Part]):

    def apply_cost(
        self,
        part_id: UUID,
        new_cost,
        source: CostSource | str,
        actor_id: UUID,
        source_ref: str | None = None,
    ) -> CostChange:
        """Set the canonical row's cost, stamping source and cost_updated_at."""
        cost = round_cost(non_negative(new_cost, "cost"))
        source = CostSource(source)

        canonical_id = PartSelector(self.session).canonical_id_for(part_id)
        part = self.session.get(Part, canonical_id)
        old_cost = part.cost

        part.cost = cost
        part.cost_source = source.value
        part.cost_source_ref = source_ref
        part.cost_updated_at = self.clock.now()
        part.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "part_cost_updated",
            extra={
                "part_id": str(canonical_id),
                "requested_part_id": str(part_id),
                "part_no": part.part_no,
                "old_cost": str(old_cost),
                "new_cost": str(cost),
                "cost_source": source.value,
                "cost_source_ref": source_ref,
            },
        )
        return CostChange(
            part_id=canonical_id,
            old_cost=old_cost,
            new_cost=cost,
            source=source.value,
            source_ref=source_ref,
        )
