import re
from datetime import datetime

import pytest

from app.models.order import OrderStatus
from app.services import order_lifecycle


@pytest.mark.parametrize(
    "status, edit, receive, cancel",
    [
        (OrderStatus.DRAFT, True, False, True),
        (OrderStatus.PENDING, True, False, True),
        (OrderStatus.ORDERED, False, True, True),
        (OrderStatus.PARTIALLY_RECEIVED, False, True, False),
        (OrderStatus.RECEIVED, False, False, False),
        (OrderStatus.CANCELLED, False, False, False),
    ],
)
def test_guards(status, edit, receive, cancel):
    assert order_lifecycle.can_edit(status) is edit
    assert order_lifecycle.can_receive(status) is receive
    assert order_lifecycle.can_cancel(status) is cancel


def test_terminal_states_allow_nothing():
    assert order_lifecycle.allowed_actions(OrderStatus.RECEIVED) == []
    assert order_lifecycle.allowed_actions(OrderStatus.CANCELLED) == []
    assert order_lifecycle.allowed_actions(OrderStatus.DRAFT) == ["edit", "place", "cancel"]
    assert order_lifecycle.allowed_actions(OrderStatus.ORDERED) == ["receive", "cancel"]


def test_status_after_receipt():
    assert order_lifecycle.status_after_receipt([(10, 10), (5, 5)]) == OrderStatus.RECEIVED
    assert order_lifecycle.status_after_receipt([(10, 10), (5, 2)]) == OrderStatus.PARTIALLY_RECEIVED
    assert order_lifecycle.status_after_receipt([(10, 3)]) == OrderStatus.PARTIALLY_RECEIVED


def test_completion_percentage():
    assert order_lifecycle.completion_percentage(5, 10) == 50
    assert order_lifecycle.completion_percentage(1, 3) == 33
    assert order_lifecycle.completion_percentage(2, 3) == 67
    assert order_lifecycle.completion_percentage(0, 0) == 0


def test_reference_number_format():
    ref = order_lifecycle.generate_reference_number(datetime(2024, 3, 7, 12, 0))
    assert re.fullmatch(r"CMD-20240307-\d{3}", ref)
