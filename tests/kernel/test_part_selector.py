"""
Tests for canonical part selection and cost writes.

Several Part rows may share a part number.  The canonical one is the row
with the most recent cost update, then the most recent update, then the
oldest creation.
"""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from stockbook_kernel.exceptions import PartNotFoundError
from stockbook_kernel.models.part import CostSource, Part
from stockbook_kernel.selectors.part_selector import PartSelector, rank_canonical, select_canonical
from stockbook_kernel.services.part_costs import PartCostService

UTC = timezone.utc


def _row(cost_updated_at=None, updated_at=None, created_at=None):
    base = datetime(2023, 1, 1, tzinfo=UTC)
    return SimpleNamespace(
        id=uuid4(),
        cost_updated_at=cost_updated_at,
        updated_at=updated_at or base,
        created_at=created_at or base,
    )


class TestRanking:

    def test_latest_cost_update_wins(self):
        """Rows with cost_updated_at null, 2024-01-01 and 2024-06-01: the June row wins."""
        never = _row()
        january = _row(cost_updated_at=datetime(2024, 1, 1, tzinfo=UTC))
        june = _row(cost_updated_at=datetime(2024, 6, 1, tzinfo=UTC))

        assert select_canonical([never, january, june]) is june
        assert rank_canonical([never, january, june]) == [june, january, never]

    def test_never_costed_rows_rank_last(self):
        never = _row(updated_at=datetime(2030, 1, 1, tzinfo=UTC))
        costed = _row(cost_updated_at=datetime(2020, 1, 1, tzinfo=UTC))

        assert select_canonical([never, costed]) is costed

    def test_updated_at_breaks_ties(self):
        older = _row(updated_at=datetime(2024, 1, 1, tzinfo=UTC))
        newer = _row(updated_at=datetime(2024, 2, 1, tzinfo=UTC))

        assert select_canonical([older, newer]) is newer

    def test_created_at_breaks_remaining_ties(self):
        first = _row(created_at=datetime(2022, 1, 1, tzinfo=UTC))
        second = _row(created_at=datetime(2022, 5, 1, tzinfo=UTC))

        assert select_canonical([second, first]) is first

    def test_naive_timestamps_compare_as_utc(self):
        aware = _row(cost_updated_at=datetime(2024, 1, 1, tzinfo=UTC))
        naive = _row(cost_updated_at=datetime(2024, 3, 1))

        assert select_canonical([aware, naive]) is naive

    def test_empty(self):
        assert select_canonical([]) is None


class TestPartSelector:

    @pytest.fixture(autouse=True)
    def _duplicates(self, session, test_actor_id):
        """Three rows for 6C0570 inserted directly, as legacy imports left them."""
        self.session = session
        self.rows = {}
        for label, stamp, cost in (
            ("never", None, Decimal("10")),
            ("january", datetime(2024, 1, 1, tzinfo=UTC), Decimal("11")),
            ("june", datetime(2024, 6, 1, tzinfo=UTC), Decimal("12")),
        ):
            part = Part(
                part_no="6C0570",
                cost=cost,
                cost_source=CostSource.MANUAL.value,
                cost_updated_at=stamp,
                created_by_id=test_actor_id,
            )
            session.add(part)
            self.rows[label] = part
        session.commit()
        self.selector = PartSelector(session)

    def test_canonical_part(self):
        view = self.selector.canonical_part("6C0570")

        assert view.id == self.rows["june"].id
        assert view.cost == Decimal("12")

    def test_canonical_id_for_any_duplicate(self):
        assert self.selector.canonical_id_for(self.rows["never"].id) == self.rows["june"].id

    def test_part_number_is_trimmed(self):
        assert self.selector.canonical_part_id("  6C0570 ") == self.rows["june"].id

    def test_duplicated_part_numbers(self):
        assert self.selector.duplicated_part_numbers() == ["6C0570"]
        assert len(self.selector.duplicates_of("6C0570")) == 3

    def test_unknown_part_number(self):
        with pytest.raises(PartNotFoundError):
            self.selector.canonical_part("NOPE")

    def test_cost_lands_on_canonical_row(self, deterministic_clock, test_actor_id):
        change = PartCostService(self.session, deterministic_clock).apply_cost(
            self.rows["never"].id, Decimal("13.123456"), CostSource.PO_RECEIVED, test_actor_id,
            source_ref="PO-2024-001",
        )

        assert change.part_id == self.rows["june"].id
        assert change.old_cost == Decimal("12")
        assert change.new_cost == Decimal("13.1235")
        canonical = self.session.get(Part, self.rows["june"].id)
        assert canonical.cost_source == "PO_RECEIVED"
        assert canonical.cost_source_ref == "PO-2024-001"
        assert self.session.get(Part, self.rows["never"].id).cost == Decimal("10")

    def test_cost_update_keeps_row_canonical(self, deterministic_clock, test_actor_id):
        """Stamping cost_updated_at with the clock keeps the written row canonical."""
        deterministic_clock.set(datetime(2025, 1, 1, tzinfo=UTC))
        PartCostService(self.session, deterministic_clock).apply_cost(
            self.rows["january"].id, Decimal("20"), CostSource.MANUAL, test_actor_id,
        )

        assert self.selector.canonical_part("6C0570").cost == Decimal("20")
