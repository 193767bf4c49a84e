"""
Consumption budget allocator.

Given a time budget (minutes) and the pending items of the current session in
fetch order (oldest first), decide which items are released to the user.

The walk is greedy and FIFO: an item is accepted when its cost fits in what
is left of the budget, otherwise it is skipped and stays pending for a later
call. Older items win over cheaper, newer ones even when that leaves budget
unused. Skipped items are never deleted; "discarded" in the result means
"left pending".

Costs are exact in hundredths of a minute, so the walk is done on integer
units and the accepted total can never exceed the budget.

This module is pure: the store feeds it ``(id, category)`` pairs and writes
the accepted ids back in one bulk update.
"""

import enum
import math
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from app.models.content import ContentCategory
from app.schemas.content import ConsumeResult


# Minutes of simulated consumption per item
CATEGORY_COSTS: Dict[str, float] = {
    ContentCategory.MEME.value: 0.5,
    ContentCategory.JOKE.value: 0.3,
    ContentCategory.NEWS.value: 2.0,
    ContentCategory.VIDEO.value: 3.0,
    ContentCategory.GOSSIP.value: 1.5,
}
DEFAULT_CATEGORY_COST = 1.0
MIN_CATEGORY_COST = min(CATEGORY_COSTS.values())

UNITS_PER_MINUTE = 100


def category_cost(category: str) -> float:
    """Cost in minutes for a category; unknown categories cost 1.0."""
    return CATEGORY_COSTS.get(category, DEFAULT_CATEGORY_COST)


def category_cost_units(category: str) -> int:
    """Cost in hundredths of a minute."""
    return round(category_cost(category) * UNITS_PER_MINUTE)


def budget_units(budget_minutes: float) -> int:
    """
    Whole hundredths of a minute available in ``budget_minutes``, rounded down.

    The float is read through its shortest decimal form, so 0.3 is 30 units
    while 0.2999999995 is 29.
    """
    if not math.isfinite(budget_minutes) or budget_minutes <= 0:
        return 0
    scaled = Decimal(repr(float(budget_minutes))) * UNITS_PER_MINUTE
    return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


class EmptyReason(str, enum.Enum):
    """Why a consume call released nothing."""

    EMPTY_BUFFER = "empty_buffer"
    BUDGET_TOO_SMALL = "budget_too_small"
    ALL_ITEMS_TOO_EXPENSIVE = "all_items_too_expensive"

    def __str__(self) -> str:
        return self.value


def diagnose_empty(
    budget_minutes: float,
    pending: Sequence[Tuple[str, str]],
) -> Optional[EmptyReason]:
    """
    Classify a call that cannot release anything.

    Checked in order: no pending items, budget below the cheapest category,
    every pending item costing more than the budget. Returns None when at
    least one item fits.
    """
    if not pending:
        return EmptyReason.EMPTY_BUFFER
    available = budget_units(budget_minutes)
    if available < round(MIN_CATEGORY_COST * UNITS_PER_MINUTE):
        return EmptyReason.BUDGET_TOO_SMALL
    if all(category_cost_units(category) > available for _, category in pending):
        return EmptyReason.ALL_ITEMS_TOO_EXPENSIVE
    return None


@dataclass
class Allocation:
    """Result of one allocation pass."""

    budget_minutes: float
    pending_count: int
    accepted_ids: List[str] = field(default_factory=list)
    consumed_units: int = 0
    category_counts: Dict[str, int] = field(default_factory=dict)
    total_pending_cost: float = 0.0
    min_item_cost: Optional[float] = None
    empty_reason: Optional[EmptyReason] = None

    @property
    def time_consumed_minutes(self) -> float:
        return self.consumed_units / UNITS_PER_MINUTE

    @property
    def items_consumed(self) -> int:
        return len(self.accepted_ids)

    @property
    def items_discarded(self) -> int:
        return self.pending_count - self.items_consumed

    @property
    def estimated_max_items(self) -> int:
        if not self.min_item_cost:
            return 0
        return budget_units(self.budget_minutes) // round(self.min_item_cost * UNITS_PER_MINUTE)

    def to_result(self) -> ConsumeResult:
        counts = self.category_counts
        return ConsumeResult(
            items_consumed=self.items_consumed,
            items_discarded=self.items_discarded,
            time_consumed_minutes=self.time_consumed_minutes,
            memes_consumed=counts.get(ContentCategory.MEME.value, 0),
            jokes_consumed=counts.get(ContentCategory.JOKE.value, 0),
            news_consumed=counts.get(ContentCategory.NEWS.value, 0),
            videos_consumed=counts.get(ContentCategory.VIDEO.value, 0),
            gossip_consumed=counts.get(ContentCategory.GOSSIP.value, 0),
            empty_reason=self.empty_reason.value if self.empty_reason else None,
        )


def allocate(
    budget_minutes: float,
    pending: Sequence[Tuple[str, str]],
) -> Allocation:
    """
    Greedy FIFO allocation of a time budget.

    Args:
        budget_minutes: Minutes of simulated consumption available
        pending: ``(id, category)`` pairs ordered oldest first

    Returns:
        Allocation with the accepted ids, per-category counts and the
        diagnostic figures logged by the store. ``empty_reason`` is set
        only when nothing was accepted.
    """
    budget = max(0.0, float(budget_minutes))
    costs = [category_cost(category) for _, category in pending]

    allocation = Allocation(
        budget_minutes=budget,
        pending_count=len(pending),
        total_pending_cost=sum(costs),
        min_item_cost=min(costs) if costs else None,
    )

    remaining = budget_units(budget)
    for item_id, category in pending:
        cost = category_cost_units(category)
        if cost > remaining:
            continue
        allocation.accepted_ids.append(item_id)
        remaining -= cost
        allocation.consumed_units += cost
        if category in CATEGORY_COSTS:
            allocation.category_counts[category] = allocation.category_counts.get(category, 0) + 1

    if not allocation.accepted_ids:
        allocation.empty_reason = diagnose_empty(budget, pending)

    return allocation
