"""
Module: stockbook_engines.costing
Responsibility:
    Pure cost arithmetic for inventory: weighted average cost, expense
    distribution across receipt lines, landed cost, COGS and stock
    quantity.  Composite calculators cost a whole purchase receipt or a
    whole sale in one call.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stockbook_kernel.domain, stockbook_kernel.exceptions
    and the logging factory.

Invariants enforced:
    - Expense shares always sum exactly to the total expense: shares are
      truncated to cents and the rounding remainder lands on the line with
      the largest weight.
    - Stock quantity is a commutative signed sum; insertion order of
      movements never changes it.  Reservation movements are excluded.
    - Negative quantities and prices are rejected with ValidationError.

Failure modes:
    - ValidationError on negative or non-numeric input, on a non-zero
      expense with no lines, and on zero total value when the zero-value
      policy is REJECT.
    - InsufficientStockError from cost_sale when a line exceeds stock and
      negative stock is not allowed.

Usage:
    from stockbook_engines.costing import calculate_average_cost

    calculate_average_cost(10, Decimal("100"), 5, Decimal("120"))
    # Decimal('106.6666666666666666666666667')
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from uuid import UUID

from stockbook_engines.tracer import traced_engine
from stockbook_kernel.domain.amounts import (
    MONEY_QUANTUM,
    ZERO,
    non_negative,
    non_negative_quantity,
    to_decimal,
)
from stockbook_kernel.exceptions import InsufficientStockError, ValidationError
from stockbook_kernel.logging_config import get_logger

logger = get_logger("engines.costing")

RESERVATION_REFERENCE = "stock_reservation"


class ExpenseDistributionMethod(str, Enum):
    """Basis for spreading receipt expenses over lines."""

    VALUE = "value"  # By line value (quantity x unit price)
    QUANTITY = "quantity"  # By units received


class ZeroValuePolicy(str, Enum):
    """What to do when every line has zero weight."""

    EVEN = "even"
    REJECT = "reject"


# =============================================================================
# Single-figure formulas
# =============================================================================


def calculate_average_cost(
    old_qty: int,
    old_avg_cost,
    incoming_qty: int,
    incoming_unit_cost,
) -> Decimal:
    """
    Weighted average unit cost after receiving ``incoming_qty`` units.

    (old_qty * old_avg + incoming_qty * incoming_cost) / (old_qty + incoming_qty)

    When there is no positive stock to average against (old_qty <= 0) or the
    combined quantity is zero, the incoming unit cost is returned.  The
    result is unrounded; callers round when persisting.
    """
    old_avg = non_negative(old_avg_cost, "old_avg_cost")
    incoming_cost = non_negative(incoming_unit_cost, "incoming_unit_cost")
    incoming = non_negative_quantity(incoming_qty, "incoming_qty")

    if old_qty <= 0:
        return incoming_cost

    total_qty = old_qty + incoming
    if total_qty == 0:
        return incoming_cost

    total_value = Decimal(old_qty) * old_avg + Decimal(incoming) * incoming_cost
    return total_value / Decimal(total_qty)


def calculate_average_expense_per_unit(total_expense, quantity: int) -> Decimal:
    """Expense carried by each unit of a line; zero for an empty line."""
    expense = non_negative(total_expense, "total_expense")
    qty = non_negative_quantity(quantity)
    if qty == 0:
        return ZERO
    return expense / Decimal(qty)


def calculate_landed_cost(unit_purchase_price, expense_per_unit) -> Decimal:
    """Landed cost = purchase price + per-unit share of expenses."""
    return (
        non_negative(unit_purchase_price, "unit_purchase_price")
        + non_negative(expense_per_unit, "expense_per_unit")
    )


def calculate_cogs(quantity_sold: int, unit_cost) -> Decimal:
    """Cost of goods sold at the current average cost (no FIFO/LIFO layers)."""
    qty = non_negative_quantity(quantity_sold, "quantity_sold")
    return Decimal(qty) * non_negative(unit_cost, "unit_cost")


def calculate_stock_quantity(movements: Iterable) -> int:
    """
    Signed sum of movement quantities: ``in`` adds, ``out`` subtracts.

    Accepts any objects exposing movement_type, quantity and (optionally)
    reference_type, including StockMovement rows.  Reservations do not
    change stock on hand and are skipped.
    """
    total = 0
    for movement in movements:
        if getattr(movement, "reference_type", None) == RESERVATION_REFERENCE:
            continue
        if movement.movement_type == "in":
            total += movement.quantity
        elif movement.movement_type == "out":
            total -= movement.quantity
        else:
            raise ValidationError(
                f"Unknown movement type: {movement.movement_type!r}",
                field="movement_type",
            )
    return total


def calculate_inventory_valuation(rows: Iterable[tuple[int, Decimal]]) -> Decimal:
    """Total stock value from (quantity, unit_cost) pairs."""
    return sum(
        (Decimal(qty) * to_decimal(cost, "unit_cost") for qty, cost in rows),
        ZERO,
    )


# =============================================================================
# Expense distribution
# =============================================================================


def _allocate_by_weights(total: Decimal, weights: Sequence[Decimal]) -> list[Decimal]:
    """Pro-rata allocation truncated to cents; the heaviest line absorbs the remainder."""
    weight_sum = sum(weights, ZERO)
    rounding_index = max(range(len(weights)), key=lambda i: weights[i])

    shares: list[Decimal] = []
    allocated = ZERO
    for weight in weights:
        share = (total * weight / weight_sum).quantize(MONEY_QUANTUM, rounding=ROUND_DOWN)
        shares.append(share)
        allocated += share

    shares[rounding_index] += total - allocated
    return shares


def _distribute(
    weights: Sequence[Decimal],
    total_expense,
    zero_value_policy: ZeroValuePolicy,
    basis: str,
) -> list[Decimal]:
    total = non_negative(total_expense, "total_expense")

    if not weights:
        if total == ZERO:
            return []
        raise ValidationError(
            f"Cannot distribute expense {total} over zero lines",
            field="items",
        )

    if total == ZERO:
        return [ZERO for _ in weights]

    if sum(weights, ZERO) == ZERO:
        if ZeroValuePolicy(zero_value_policy) is ZeroValuePolicy.REJECT:
            logger.error(
                "expense_distribution_zero_basis",
                extra={"basis": basis, "total_expense": str(total), "lines": len(weights)},
            )
            raise ValidationError(
                f"Cannot distribute expense {total} by {basis}: every line is zero",
                field="items",
            )
        return _allocate_by_weights(total, [Decimal("1")] * len(weights))

    return _allocate_by_weights(total, weights)


def distribute_expenses_by_value(
    values: Sequence,
    total_expense,
    zero_value_policy: ZeroValuePolicy = ZeroValuePolicy.EVEN,
) -> list[Decimal]:
    """
    Split ``total_expense`` in proportion to each line's value.

    share_i = total_expense * value_i / sum(values), truncated to cents with
    the remainder on the largest line.  When every value is zero the
    zero-value policy decides between an even split and ValidationError.
    """
    weights = [non_negative(v, "value") for v in values]
    return _distribute(weights, total_expense, zero_value_policy, "value")


def distribute_expenses_by_quantity(
    quantities: Sequence[int],
    total_expense,
    zero_value_policy: ZeroValuePolicy = ZeroValuePolicy.EVEN,
) -> list[Decimal]:
    """Split ``total_expense`` in proportion to units received."""
    weights = [Decimal(non_negative_quantity(q)) for q in quantities]
    return _distribute(weights, total_expense, zero_value_policy, "quantity")


# =============================================================================
# Composite calculators
# =============================================================================


@dataclass(frozen=True)
class ReceiptLine:
    """One received line plus the part's stock and cost before the receipt."""

    part_id: UUID
    quantity: int
    unit_price: Decimal
    on_hand_qty: int = 0
    current_cost: Decimal = ZERO


@dataclass(frozen=True)
class ReceiptCosting:
    """Cost outcome for one received line."""

    part_id: UUID
    quantity: int
    unit_price: Decimal
    line_value: Decimal
    expense_share: Decimal
    expense_per_unit: Decimal
    landed_cost: Decimal
    old_cost: Decimal
    new_average_cost: Decimal
    old_qty: int
    new_qty: int


@traced_engine("costing.receipt", "1.0", fingerprint_fields=("total_expense", "method"))
def cost_purchase_receipt(
    lines: Sequence[ReceiptLine],
    *,
    total_expense=ZERO,
    method: ExpenseDistributionMethod = ExpenseDistributionMethod.VALUE,
    zero_value_policy: ZeroValuePolicy = ZeroValuePolicy.EVEN,
) -> tuple[ReceiptCosting, ...]:
    """
    Cost every line of a purchase receipt.

    Expenses are distributed over the lines (by value or by quantity),
    turned into a per-unit figure, and added to the purchase price to give
    the landed cost.  The weighted average is computed against the stock
    on hand before the receipt; when one part appears on several lines the
    later lines average against the earlier ones.
    """
    for line in lines:
        non_negative_quantity(line.quantity)
        non_negative(line.unit_price, "unit_price")

    values = [Decimal(line.quantity) * to_decimal(line.unit_price) for line in lines]
    if ExpenseDistributionMethod(method) is ExpenseDistributionMethod.QUANTITY:
        shares = distribute_expenses_by_quantity(
            [line.quantity for line in lines], total_expense, zero_value_policy,
        )
    else:
        shares = distribute_expenses_by_value(values, total_expense, zero_value_policy)

    running_qty: dict[UUID, int] = {}
    running_cost: dict[UUID, Decimal] = {}
    results: list[ReceiptCosting] = []

    for line, value, share in zip(lines, values, shares):
        old_qty = running_qty.get(line.part_id, line.on_hand_qty)
        old_cost = running_cost.get(line.part_id, to_decimal(line.current_cost))

        per_unit = calculate_average_expense_per_unit(share, line.quantity)
        landed = calculate_landed_cost(line.unit_price, per_unit)
        new_avg = calculate_average_cost(old_qty, old_cost, line.quantity, landed)
        new_qty = old_qty + line.quantity

        running_qty[line.part_id] = new_qty
        running_cost[line.part_id] = new_avg

        results.append(
            ReceiptCosting(
                part_id=line.part_id,
                quantity=line.quantity,
                unit_price=to_decimal(line.unit_price),
                line_value=value,
                expense_share=share,
                expense_per_unit=per_unit,
                landed_cost=landed,
                old_cost=old_cost,
                new_average_cost=new_avg,
                old_qty=old_qty,
                new_qty=new_qty,
            )
        )

    logger.info(
        "receipt_costed",
        extra={
            "line_count": len(results),
            "total_expense": str(sum(shares, ZERO)),
            "method": ExpenseDistributionMethod(method).value,
        },
    )
    return tuple(results)


@dataclass(frozen=True)
class SaleLine:
    """One sold line plus the part's stock and average cost at sale time."""

    part_id: UUID
    quantity: int
    unit_price: Decimal
    on_hand_qty: int
    unit_cost: Decimal


@dataclass(frozen=True)
class SaleCosting:
    part_id: UUID
    quantity: int
    revenue: Decimal
    unit_cost: Decimal
    cogs: Decimal
    gross_profit: Decimal
    remaining_qty: int


@traced_engine("costing.sale", "1.0", fingerprint_fields=("allow_negative_stock",))
def cost_sale(
    lines: Sequence[SaleLine],
    *,
    allow_negative_stock: bool = False,
) -> tuple[SaleCosting, ...]:
    """
    Revenue, COGS and gross profit per sold line.

    Stock is checked line by line against a running balance so two lines
    of the same part cannot together oversell it.
    """
    running_qty: dict[UUID, int] = {}
    results: list[SaleCosting] = []

    for line in lines:
        qty = non_negative_quantity(line.quantity)
        price = non_negative(line.unit_price, "unit_price")
        on_hand = running_qty.get(line.part_id, line.on_hand_qty)

        if qty > on_hand and not allow_negative_stock:
            logger.warning(
                "sale_insufficient_stock",
                extra={
                    "part_id": str(line.part_id),
                    "requested": qty,
                    "available": on_hand,
                },
            )
            raise InsufficientStockError(str(line.part_id), qty, on_hand)

        revenue = Decimal(qty) * price
        cogs = calculate_cogs(qty, line.unit_cost)
        remaining = on_hand - qty
        running_qty[line.part_id] = remaining

        results.append(
            SaleCosting(
                part_id=line.part_id,
                quantity=qty,
                revenue=revenue,
                unit_cost=to_decimal(line.unit_cost),
                cogs=cogs,
                gross_profit=revenue - cogs,
                remaining_qty=remaining,
            )
        )

    return tuple(results)
