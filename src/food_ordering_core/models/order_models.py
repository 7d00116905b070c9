"""Order models.

Orders are persisted by the resource gateway. The total amount is a frozen
historical fact computed once at creation time.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    """Enumeration of order status values."""

    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# No transition leaves a terminal status
TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Statuses from which the external payment flow may start
CHECKOUT_STATUSES = frozenset({OrderStatus.PENDING_CONFIRMATION, OrderStatus.CONFIRMED})


class OrderItem(BaseModel):
    """Line item of an order.

    Name and price are copied from the menu item at ordering time.
    """

    model_config = ConfigDict(json_encoders={Decimal: str})

    menu_item_id: str = Field(..., description="Menu item that was ordered")
    name: str = Field(..., description="Item name at time of order")
    quantity: int = Field(..., description="Number of units", gt=0)
    price: Decimal = Field(..., description="Unit price at time of order", ge=0)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


def calculate_total(items: list[OrderItem]) -> Decimal:
    """Sum price * quantity over all line items.

    Args:
        items: Order line items

    Returns:
        Decimal total, zero for an empty list
    """
    return sum((item.line_total for item in items), Decimal("0"))


class Order(BaseModel):
    """Order model."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique order identifier")
    user_id: str = Field(..., description="User who placed the order")
    restaurant_id: str = Field(..., description="Restaurant the order was placed with")
    region: str = Field(..., description="Region of the restaurant")
    items: list[OrderItem] = Field(..., description="Ordered line items")
    total_amount: Decimal = Field(..., description="Total at creation time", ge=0)
    status: OrderStatus = Field(..., description="Current lifecycle status")
    order_date: datetime = Field(..., description="When the order was placed")
    delivery_address: str | None = Field(None, description="Delivery address")
    notes: str | None = Field(None, description="Free-form customer notes")
    user_name: str | None = Field(None, description="Display name of the ordering user")
    restaurant_name: str | None = Field(None, description="Display name of the restaurant")

    @field_validator("order_date")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Treat timestamps without an offset as UTC so orders stay comparable."""
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class OrderLineRequest(BaseModel):
    """Requested line of a new order."""

    menu_item_id: str = Field(..., description="Menu item to order")
    quantity: int = Field(..., description="Number of units", gt=0)


class OrderCreateRequest(BaseModel):
    """Payload submitted by a client to place an order."""

    restaurant_id: str = Field(..., description="Restaurant to order from")
    items: list[OrderLineRequest] = Field(..., description="Requested lines", min_length=1)
    delivery_address: str = Field(..., description="Delivery address", min_length=1)
    notes: str | None = Field(None, description="Free-form customer notes")


class CheckoutResult(BaseModel):
    """Acknowledgement that the external payment flow was started."""

    order_id: str = Field(..., description="Order being paid")
    status: OrderStatus = Field(..., description="Order status, unchanged by checkout")
    details: dict[str, Any] = Field(
        default_factory=dict, description="Payment flow details returned by the gateway"
    )
