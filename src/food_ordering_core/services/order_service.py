"""Order service enforcing policy on restaurant and order operations.

Every operation reads fresh data from the resource gateway and applies the
access policy before returning data or calling a mutating endpoint. The
gateway remains the ultimate authority and may still reject a call the policy
allowed.
"""

import logging
from datetime import UTC, datetime

from food_ordering_core.domain import order_lifecycle
from food_ordering_core.domain.access_policy import (
    can_create_order,
    can_read_menu,
    can_read_order,
    can_read_restaurant,
    enforce,
    filter_allowed,
)
from food_ordering_core.errors import InvalidOperation
from food_ordering_core.models.catalog_models import MenuSection, Restaurant
from food_ordering_core.models.gateway_models import GatewayOutcome, OutcomeKind
from food_ordering_core.models.identity_models import Principal
from food_ordering_core.models.order_models import (
    CheckoutResult,
    Order,
    OrderCreateRequest,
    OrderItem,
    OrderStatus,
    calculate_total,
)
from food_ordering_core.observability import traced
from food_ordering_core.observability.metrics import record_order_transition
from food_ordering_core.services.gateway_client import ResourceGatewayClient

logger = logging.getLogger(__name__)


class OrderService:
    """Service for browsing restaurants and managing orders.

    All methods take the acting principal and the bearer token that
    authenticated it; the token is forwarded to the gateway unchanged.
    """

    def __init__(self, gateway: ResourceGatewayClient) -> None:
        """Initialize the OrderService.

        Args:
            gateway: Client for the resource gateway
        """
        self.gateway = gateway

    @traced("list_restaurants")
    async def list_restaurants(
        self,
        principal: Principal,
        token: str,
        cuisine: str | None = None,
        search: str | None = None,
    ) -> list[Restaurant]:
        """List restaurants visible to the principal.

        Args:
            principal: Acting principal
            token: Bearer token forwarded to the gateway
            cuisine: Keep only restaurants with exactly this cuisine
            search: Case-insensitive term matched against name and cuisine

        Returns:
            Restaurants in the principal's region, or all of them for admins
        """
        outcome = await self.gateway.list_restaurants(token)
        restaurants = outcome.parse_list(Restaurant, "restaurants")
        visible = filter_allowed(principal, restaurants, can_read_restaurant)

        if cuisine:
            visible = [r for r in visible if r.cuisine == cuisine]
        if search:
            visible = [r for r in visible if _matches(search, r.name, r.cuisine)]
        return visible

    async def _fetch_restaurant(self, token: str, restaurant_id: str) -> Restaurant:
        outcome = await self.gateway.get_restaurant(token, restaurant_id)
        return outcome.parse(Restaurant)

    @traced("get_restaurant")
    async def get_restaurant(
        self, principal: Principal, token: str, restaurant_id: str
    ) -> Restaurant:
        """Get a restaurant the principal may read.

        Raises:
            AuthorizationFailure: Restaurant is outside the principal's region
            ResourceNotFound: Restaurant does not exist
        """
        restaurant = await self._fetch_restaurant(token, restaurant_id)
        enforce(can_read_restaurant(principal, restaurant), "restaurant", "read")
        return restaurant

    @traced("get_menu")
    async def get_menu(
        self, principal: Principal, token: str, restaurant_id: str
    ) -> list[MenuSection]:
        """Get the menu of a restaurant the principal may read."""
        restaurant = await self._fetch_restaurant(token, restaurant_id)
        enforce(can_read_menu(principal, restaurant), "menu", "read")
        return restaurant.menu

    @traced("list_orders")
    async def list_orders(
        self,
        principal: Principal,
        token: str,
        status: OrderStatus | None = None,
        search: str | None = None,
    ) -> list[Order]:
        """List orders visible to the principal, newest first.

        Args:
            principal: Acting principal
            token: Bearer token forwarded to the gateway
            status: Keep only orders in this status
            search: Case-insensitive term matched against order id,
                restaurant name and customer name

        Returns:
            All orders for admins, regional orders for managers, own orders for members
        """
        outcome = await self.gateway.list_orders(token)
        orders = outcome.parse_list(Order, "orders")
        visible = filter_allowed(principal, orders, can_read_order)

        if status is not None:
            visible = [o for o in visible if o.status == status]
        if search:
            visible = [
                o for o in visible if _matches(search, o.id, o.restaurant_name, o.user_name)
            ]
        return sorted(visible, key=lambda o: o.order_date, reverse=True)

    @traced("get_order")
    async def get_order(self, principal: Principal, token: str, order_id: str) -> Order:
        """Get an order the principal may read.

        Raises:
            AuthorizationFailure: Principal may not see the order
            ResourceNotFound: Order does not exist
        """
        outcome = await self.gateway.get_order(token, order_id)
        order = outcome.parse(Order)
        enforce(can_read_order(principal, order), "order", "read")
        return order

    @traced("place_order")
    async def place_order(
        self, principal: Principal, token: str, request: OrderCreateRequest
    ) -> Order:
        """Place a new order.

        Line names and prices are copied from the restaurant's current menu and
        the total is computed once here; it is never recomputed afterwards.

        Args:
            principal: Acting principal
            token: Bearer token forwarded to the gateway
            request: Requested restaurant, lines and delivery details

        Returns:
            The created order as stored by the gateway

        Raises:
            AuthorizationFailure: Restaurant is outside the principal's region
            InvalidOperation: A requested item is not on the restaurant's menu
            FeatureNotImplemented: Gateway does not accept orders yet
        """
        restaurant = await self._fetch_restaurant(token, request.restaurant_id)
        enforce(can_create_order(principal, restaurant), "order", "create")

        items: list[OrderItem] = []
        for line in request.items:
            menu_item = restaurant.find_menu_item(line.menu_item_id)
            if menu_item is None:
                raise InvalidOperation(
                    f"Menu item {line.menu_item_id} is not on the menu of {restaurant.name}"
                )
            items.append(
                OrderItem(
                    menu_item_id=menu_item.id,
                    name=menu_item.name,
                    quantity=line.quantity,
                    price=menu_item.price,
                )
            )

        total = calculate_total(items)
        payload = {
            "user_id": principal.id,
            "user_name": principal.name,
            "restaurant_id": restaurant.id,
            "restaurant_name": restaurant.name,
            "region": restaurant.region,
            "items": [item.model_dump(mode="json") for item in items],
            "total_amount": str(total),
            "status": OrderStatus.PENDING_CONFIRMATION.value,
            "order_date": datetime.now(UTC).isoformat(),
            "delivery_address": request.delivery_address,
            "notes": request.notes,
        }

        logger.info(
            f"Placing order for user {principal.id} at restaurant {restaurant.id} "
            f"with {len(items)} lines totalling {total}"
        )

        outcome = await self.gateway.create_order(token, payload)
        return outcome.parse(Order)

    @traced("cancel_order")
    async def cancel_order(self, principal: Principal, token: str, order_id: str) -> Order:
        """Cancel an order.

        The order is re-read from the gateway before the guard runs. A
        "not implemented" answer is raised as FeatureNotImplemented and the
        order is not reported as cancelled.

        Raises:
            AuthorizationFailure: Principal may not cancel the order
            InvalidStateTransition: Order is already delivered or cancelled
            FeatureNotImplemented: Gateway does not support cancellation yet
        """
        order = await self.get_order(principal, token, order_id)
        cancelled = order_lifecycle.cancel(principal, order)

        outcome = await self.gateway.cancel_order(token, order_id)
        self._record_outcome(order_lifecycle.OrderTransition.CANCEL, outcome)

        if outcome.data is None:
            outcome.raise_for_kind()
            return cancelled
        return outcome.parse(Order)

    @traced("checkout_order")
    async def checkout_order(
        self, principal: Principal, token: str, order_id: str
    ) -> CheckoutResult:
        """Start checkout for an order.

        Checkout does not change the order status; it hands over to the
        external payment flow once the preconditions hold.

        Raises:
            AuthorizationFailure: Principal may not see the order
            InvalidStateTransition: Order is past CONFIRMED or terminal
            FeatureNotImplemented: Gateway does not support checkout yet
        """
        order = await self.get_order(principal, token, order_id)
        order_lifecycle.ensure_checkout_allowed(principal, order)

        outcome = await self.gateway.checkout_order(token, order_id)
        self._record_outcome(order_lifecycle.OrderTransition.CHECKOUT, outcome)
        outcome.raise_for_kind()

        details = outcome.data if isinstance(outcome.data, dict) else {}
        return CheckoutResult(order_id=order.id, status=order.status, details=details)

    def _record_outcome(
        self, transition: order_lifecycle.OrderTransition, outcome: GatewayOutcome
    ) -> None:
        record_order_transition(transition.value, outcome.kind.value)

        if outcome.kind == OutcomeKind.NOT_IMPLEMENTED:
            logger.info(f"Order {transition.value} is not implemented by the gateway yet")
        elif not outcome.ok:
            logger.warning(f"Gateway rejected order {transition.value}: {outcome.message}")


def _matches(term: str, *fields: str | None) -> bool:
    needle = term.strip().lower()
    return any(needle in field.lower() for field in fields if field)
