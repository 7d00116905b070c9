"""Access control policy.

Pure decision functions, one per resource class and action. Every function
takes the principal (None when unauthenticated) and the target resource and
returns a Decision. No function raises or performs I/O; `enforce` converts a
denied decision into the matching error at the call site.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar

from food_ordering_core.errors import (
    AuthenticationFailure,
    AuthorizationFailure,
    DenialReason,
    InvalidOperation,
    InvalidStateTransition,
)
from food_ordering_core.models.catalog_models import Restaurant
from food_ordering_core.models.identity_models import Principal, Role
from food_ordering_core.models.order_models import CHECKOUT_STATUSES, TERMINAL_STATUSES, Order
from food_ordering_core.models.payment_models import PaymentMethod
from food_ordering_core.observability.metrics import record_access_denied

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Decision:
    """Outcome of a policy check.

    Attributes:
        allowed: Whether the action is permitted
        reason: Denial reason tag, None when allowed
    """

    allowed: bool
    reason: DenialReason | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(allowed=True)


def deny(reason: DenialReason) -> Decision:
    return Decision(allowed=False, reason=reason)


def _same_region(principal: Principal, region: str) -> Decision:
    if principal.region is not None and principal.region == region:
        return ALLOW
    return deny(DenialReason.WRONG_REGION)


def can_read_restaurant(principal: Principal | None, restaurant: Restaurant) -> Decision:
    """Admins read every restaurant; everyone else only those in their region."""
    if principal is None:
        return deny(DenialReason.NOT_AUTHENTICATED)
    if principal.is_admin:
        return ALLOW
    return _same_region(principal, restaurant.region)


def can_read_menu(principal: Principal | None, restaurant: Restaurant) -> Decision:
    """Menus follow the visibility of their restaurant."""
    return can_read_restaurant(principal, restaurant)


def can_read_order(principal: Principal | None, order: Order) -> Decision:
    """Decide whether a principal may see an order.

    Admins see all orders, managers see orders placed with restaurants in their
    region, members see only their own orders.
    """
    if principal is None:
        return deny(DenialReason.NOT_AUTHENTICATED)
    if principal.is_admin:
        return ALLOW
    if principal.role == Role.MANAGER:
        return _same_region(principal, order.region)
    if order.user_id == principal.id:
        return ALLOW
    return deny(DenialReason.NOT_OWNER)


def can_create_order(principal: Principal | None, restaurant: Restaurant) -> Decision:
    """Any authenticated principal may order from a restaurant they can read."""
    return can_read_restaurant(principal, restaurant)


def can_cancel_order(principal: Principal | None, order: Order) -> Decision:
    """Decide whether a principal may cancel an order.

    Members never cancel. Managers cancel within their region. Nobody cancels
    an order that is already delivered or cancelled.
    """
    if principal is None:
        return deny(DenialReason.NOT_AUTHENTICATED)
    if principal.role == Role.MEMBER:
        return deny(DenialReason.WRONG_ROLE)
    if principal.role == Role.MANAGER:
        region_decision = _same_region(principal, order.region)
        if not region_decision:
            return region_decision
    if order.status in TERMINAL_STATUSES:
        return deny(DenialReason.INVALID_STATE)
    return ALLOW


def can_checkout_order(principal: Principal | None, order: Order) -> Decision:
    """Checkout requires read access and a not-yet-prepared order."""
    read_decision = can_read_order(principal, order)
    if not read_decision:
        return read_decision
    if order.status not in CHECKOUT_STATUSES:
        return deny(DenialReason.INVALID_STATE)
    return ALLOW


def can_manage_global_payment_methods(principal: Principal | None) -> Decision:
    """Only admins manage the platform-wide payment methods."""
    if principal is None:
        return deny(DenialReason.NOT_AUTHENTICATED)
    if not principal.is_admin:
        return deny(DenialReason.WRONG_ROLE)
    return ALLOW


def can_manage_own_payment_method(
    principal: Principal | None, method: PaymentMethod
) -> Decision:
    """Any authenticated principal manages the payment methods they own.

    Methods without an owner are unsaved entries, which the submitting
    principal will own once created.
    """
    if principal is None:
        return deny(DenialReason.NOT_AUTHENTICATED)
    if method.owner_id is not None and method.owner_id != principal.id:
        return deny(DenialReason.NOT_OWNER)
    return ALLOW


def can_delete_payment_method(
    principal: Principal | None,
    method: PaymentMethod,
    owned_methods: Iterable[PaymentMethod],
) -> Decision:
    """Ownership is required and the sole primary method may not be deleted."""
    ownership = can_manage_own_payment_method(principal, method)
    if not ownership:
        return ownership
    if method.is_primary:
        other_primaries = [m for m in owned_methods if m.is_primary and m.id != method.id]
        if not other_primaries:
            return deny(DenialReason.INVALID_STATE)
    return ALLOW


def filter_allowed(
    principal: Principal | None,
    resources: Iterable[T],
    check: Callable[[Principal | None, T], Decision],
) -> list[T]:
    """Keep only the resources the principal is allowed to see.

    Args:
        principal: Acting principal
        resources: Candidate resources
        check: Policy function deciding visibility of one resource

    Returns:
        List of visible resources in their original order
    """
    return [resource for resource in resources if check(principal, resource)]


def enforce(decision: Decision, resource: str, action: str) -> None:
    """Raise the error matching a denied decision.

    The reason tag is logged and counted but never put in the public message.

    Args:
        decision: Result of a policy function
        resource: Resource class for logs and metrics (e.g., "order")
        action: Attempted action for logs and metrics (e.g., "cancel")

    Raises:
        AuthenticationFailure: The principal is missing
        InvalidStateTransition: The order is in a status that forbids the action
        InvalidOperation: Another resource is in a state that forbids the action
        AuthorizationFailure: Any other denial
    """
    if decision.allowed:
        return

    reason = decision.reason or DenialReason.WRONG_ROLE
    logger.info(f"Access denied: {action} {resource} ({reason.value})")
    record_access_denied(resource, action, reason.value)

    if reason == DenialReason.NOT_AUTHENTICATED:
        raise AuthenticationFailure()
    if reason == DenialReason.INVALID_STATE:
        message = f"Cannot {action} {resource} in its current state"
        if resource == "order":
            raise InvalidStateTransition(message)
        raise InvalidOperation(message)
    raise AuthorizationFailure(reason)
