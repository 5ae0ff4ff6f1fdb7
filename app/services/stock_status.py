"""Stock status classification and the counters derived from it.

Everything here is a pure function of already-fetched rows, recomputed on
every request.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Protocol


class StockStatus(str, PyEnum):
    NEUTRAL = "neutral"  # no quantity known
    CRITICAL = "critical"
    WARNING = "warning"
    POSITIVE = "positive"


class Stocked(Protocol):
    quantity: int | None
    min_stock_level: int
    warning_stock_level: int


def classify(quantity: int | None, min_stock_level: int, warning_stock_level: int) -> StockStatus:
    """Classify one quantity against its thresholds.

    Both bounds are inclusive and critical is checked first, so an inverted
    configuration (warning below min) still reports critical up to min.
    """
    if quantity is None:
        return StockStatus.NEUTRAL
    if quantity <= min_stock_level:
        return StockStatus.CRITICAL
    if quantity <= warning_stock_level:
        return StockStatus.WARNING
    return StockStatus.POSITIVE


def classify_item(item: Stocked) -> StockStatus:
    return classify(item.quantity, item.min_stock_level, item.warning_stock_level)


def aggregate(statuses: Iterable[StockStatus]) -> StockStatus:
    """Worst-case reduction: one critical member makes the whole group critical."""
    seen = set(statuses)
    if StockStatus.CRITICAL in seen:
        return StockStatus.CRITICAL
    if StockStatus.WARNING in seen:
        return StockStatus.WARNING
    if seen:
        return StockStatus.POSITIVE
    return StockStatus.NEUTRAL


@dataclass
class StatusCounts:
    total_items: int = 0
    critical_items: int = 0
    warning_items: int = 0


def count_statuses(items: Iterable[Stocked]) -> StatusCounts:
    counts = StatusCounts()
    for item in items:
        counts.total_items += item.quantity or 0
        status = classify_item(item)
        if status == StockStatus.CRITICAL:
            counts.critical_items += 1
        elif status == StockStatus.WARNING:
            counts.warning_items += 1
    return counts


def items_to_order(items: Iterable[Stocked]) -> int:
    """Rows at or below their minimum level."""
    return sum(1 for i in items if i.quantity is not None and i.quantity <= i.min_stock_level)
