"""Unit tests for the order status state machine."""

import pytest

from app.models.enums import OrderStatus
from app.services.affiliate.order_lifecycle import (
    ALLOWED_TRANSITIONS,
    check_transition,
)
from app.utils.exceptions import InvalidOrderTransition


@pytest.mark.parametrize(
    "from_status,to_status",
    [
        (OrderStatus.PENDING_VERIFICATION, OrderStatus.PAYMENT_CONFIRMED),
        (OrderStatus.PENDING_VERIFICATION, OrderStatus.CANCEL),
        (OrderStatus.PAYMENT_CONFIRMED, OrderStatus.SHIPPING),
        (OrderStatus.PAYMENT_CONFIRMED, OrderStatus.DELIVERED),
        (OrderStatus.SHIPPING, OrderStatus.DELIVERED),
        (OrderStatus.SHIPPING, OrderStatus.CANCEL),
    ],
)
def test_allowed_transitions(from_status, to_status):
    check_transition("ORD-1", from_status, to_status)


@pytest.mark.parametrize(
    "from_status,to_status",
    [
        (OrderStatus.PENDING_VERIFICATION, OrderStatus.DELIVERED),
        (OrderStatus.DELIVERED, OrderStatus.CANCEL),
        (OrderStatus.CANCEL, OrderStatus.PAYMENT_CONFIRMED),
        (OrderStatus.SHIPPING, OrderStatus.PAYMENT_CONFIRMED),
    ],
)
def test_illegal_transitions(from_status, to_status):
    with pytest.raises(InvalidOrderTransition) as exc_info:
        check_transition("ORD-1", from_status, to_status)

    assert exc_info.value.from_status == from_status.value
    assert exc_info.value.to_status == to_status.value


def test_terminal_states():
    """Delivered and Cancel have no outgoing transitions."""
    assert not ALLOWED_TRANSITIONS[OrderStatus.DELIVERED]
    assert not ALLOWED_TRANSITIONS[OrderStatus.CANCEL]


def test_every_status_has_entry():
    assert set(ALLOWED_TRANSITIONS) == set(OrderStatus)
