"""Supplier order status rules.

    draft ──► ordered ──► partially_received ──► received
      │          │
      └──────────┴──► cancelled

``pending`` is a legacy initial state that behaves like ``draft``.
"""

import random
from collections.abc import Iterable
from datetime import datetime, timezone

from app.models.order import OrderStatus

EDITABLE = frozenset({OrderStatus.DRAFT, OrderStatus.PENDING})
RECEIVABLE = frozenset({OrderStatus.ORDERED, OrderStatus.PARTIALLY_RECEIVED})
CANCELLABLE = frozenset({OrderStatus.DRAFT, OrderStatus.PENDING, OrderStatus.ORDERED})

# Statuses an order may be created in
INITIAL = frozenset({OrderStatus.DRAFT, OrderStatus.ORDERED})

# Orders still waiting on the supplier
ACTIVE = frozenset({OrderStatus.PENDING, OrderStatus.ORDERED, OrderStatus.PARTIALLY_RECEIVED})


def can_edit(status: OrderStatus) -> bool:
    return status in EDITABLE


def can_receive(status: OrderStatus) -> bool:
    return status in RECEIVABLE


def can_cancel(status: OrderStatus) -> bool:
    return status in CANCELLABLE


def allowed_actions(status: OrderStatus) -> list[str]:
    actions = []
    if can_edit(status):
        actions.extend(["edit", "place"])
    if can_receive(status):
        actions.append("receive")
    if can_cancel(status):
        actions.append("cancel")
    return actions


def status_after_receipt(lines: Iterable[tuple[int, int]]) -> OrderStatus:
    """Status once receipts are booked, from (quantity, received_quantity) pairs."""
    lines = list(lines)
    if lines and all(received >= quantity for quantity, received in lines):
        return OrderStatus.RECEIVED
    return OrderStatus.PARTIALLY_RECEIVED


def completion_percentage(received_quantity: int, total_quantity: int) -> int:
    if total_quantity <= 0:
        return 0
    return round(received_quantity / total_quantity * 100)


def generate_reference_number(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"CMD-{now.strftime('%Y%m%d')}-{random.randint(0, 999):03d}"
