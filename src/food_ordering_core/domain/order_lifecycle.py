"""Order lifecycle state machine.

PENDING_CONFIRMATION -> CONFIRMED -> PREPARING, then either READY_FOR_PICKUP
or OUT_FOR_DELIVERY, both of which lead to DELIVERED. Every non-terminal
status can be cancelled. DELIVERED and CANCELLED are terminal.

Only cancel and checkout are triggered through the core; the forward
transitions are driven by the resource gateway's fulfillment operations and
are only validated here.
"""

import logging
from enum import Enum

from food_ordering_core.domain.access_policy import (
    can_cancel_order,
    can_checkout_order,
    enforce,
)
from food_ordering_core.errors import CoreError, InvalidStateTransition
from food_ordering_core.models.identity_models import Principal
from food_ordering_core.models.order_models import (
    CHECKOUT_STATUSES,
    TERMINAL_STATUSES,
    Order,
    OrderStatus,
)
from food_ordering_core.observability.metrics import record_order_transition

logger = logging.getLogger(__name__)


class OrderTransition(str, Enum):
    """Named transitions of the order lifecycle."""

    CONFIRM = "confirm"
    PREPARE = "prepare"
    MARK_READY = "mark_ready"
    DISPATCH = "dispatch"
    DELIVER = "deliver"
    CANCEL = "cancel"
    CHECKOUT = "checkout"


_FORWARD: dict[OrderStatus, dict[OrderTransition, OrderStatus]] = {
    OrderStatus.PENDING_CONFIRMATION: {OrderTransition.CONFIRM: OrderStatus.CONFIRMED},
    OrderStatus.CONFIRMED: {OrderTransition.PREPARE: OrderStatus.PREPARING},
    OrderStatus.PREPARING: {
        OrderTransition.MARK_READY: OrderStatus.READY_FOR_PICKUP,
        OrderTransition.DISPATCH: OrderStatus.OUT_FOR_DELIVERY,
    },
    OrderStatus.READY_FOR_PICKUP: {OrderTransition.DELIVER: OrderStatus.DELIVERED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderTransition.DELIVER: OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {},
    OrderStatus.CANCELLED: {},
}


def _build_transition_table() -> dict[OrderStatus, dict[OrderTransition, OrderStatus]]:
    table: dict[OrderStatus, dict[OrderTransition, OrderStatus]] = {}
    for status, forward in _FORWARD.items():
        transitions = dict(forward)
        if status not in TERMINAL_STATUSES:
            transitions[OrderTransition.CANCEL] = OrderStatus.CANCELLED
        if status in CHECKOUT_STATUSES:
            # Checkout starts the external payment flow without changing status
            transitions[OrderTransition.CHECKOUT] = status
        table[status] = transitions
    return table


TRANSITIONS = _build_transition_table()


def parse_status(value: str) -> OrderStatus:
    """Parse a status value received at the data boundary.

    Args:
        value: Raw status string

    Returns:
        OrderStatus matching the value

    Raises:
        ValueError: If the value is not a known status
    """
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValueError(f"Unknown order status: {value!r}") from None


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def allowed_transitions(status: OrderStatus) -> frozenset[OrderTransition]:
    """Transitions that are legal from a status, regardless of who triggers them."""
    return frozenset(TRANSITIONS[status])


def next_status(status: OrderStatus, transition: OrderTransition) -> OrderStatus:
    """Compute the status reached by applying a transition.

    Args:
        status: Current status
        transition: Transition to apply

    Returns:
        The resulting status

    Raises:
        InvalidStateTransition: If the transition is not legal from the status
    """
    target = TRANSITIONS[status].get(transition)
    if target is None:
        raise InvalidStateTransition(
            f"Cannot {transition.value} an order that is {status.value}"
        )
    return target


def cancel(principal: Principal | None, order: Order) -> Order:
    """Validate a cancellation and return the cancelled order.

    Args:
        principal: Acting principal
        order: Order as last read from the gateway

    Returns:
        Copy of the order in CANCELLED status

    Raises:
        AuthenticationFailure: No principal
        AuthorizationFailure: Principal may not cancel this order
        InvalidStateTransition: Order is already delivered or cancelled
    """
    try:
        enforce(can_cancel_order(principal, order), "order", OrderTransition.CANCEL.value)
        target = next_status(order.status, OrderTransition.CANCEL)
    except CoreError as e:
        record_order_transition(OrderTransition.CANCEL.value, type(e).__name__)
        raise

    logger.info(f"Order {order.id} cancellation validated from {order.status.value}")
    return order.model_copy(update={"status": target})


def ensure_checkout_allowed(principal: Principal | None, order: Order) -> None:
    """Validate the preconditions for starting checkout.

    Args:
        principal: Acting principal
        order: Order as last read from the gateway

    Raises:
        AuthenticationFailure: No principal
        AuthorizationFailure: Principal may not see this order
        InvalidStateTransition: Order is past CONFIRMED or terminal
    """
    try:
        enforce(can_checkout_order(principal, order), "order", OrderTransition.CHECKOUT.value)
        next_status(order.status, OrderTransition.CHECKOUT)
    except CoreError as e:
        record_order_transition(OrderTransition.CHECKOUT.value, type(e).__name__)
        raise
