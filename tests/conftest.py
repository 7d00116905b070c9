"""Shared pytest fixtures and configuration for all tests."""

import os
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal

import pytest

# Keep module-level app creation in main and lambda_handler out of test collection
os.environ.setdefault("ENVIRONMENT", "test")

from food_ordering_core.models.catalog_models import MenuItem, MenuSection, Restaurant  # noqa: E402
from food_ordering_core.models.identity_models import Principal, Role, User  # noqa: E402
from food_ordering_core.models.order_models import Order, OrderItem, OrderStatus  # noqa: E402
from food_ordering_core.models.payment_models import (  # noqa: E402
    PaymentMethod,
    PaymentMethodType,
)


@pytest.fixture
def admin() -> Principal:
    """Fixture providing an org-wide admin principal."""
    return Principal(id="user_admin", role=Role.ADMIN, email="admin@example.com", name="Ada Admin")


@pytest.fixture
def north_manager() -> Principal:
    """Fixture providing a manager scoped to the North region."""
    return Principal(
        id="user_mgr_north",
        role=Role.MANAGER,
        region="North",
        email="manager.north@example.com",
        name="Nora North",
    )


@pytest.fixture
def south_manager() -> Principal:
    """Fixture providing a manager scoped to the South region."""
    return Principal(
        id="user_mgr_south",
        role=Role.MANAGER,
        region="South",
        email="manager.south@example.com",
        name="Sam South",
    )


@pytest.fixture
def north_member() -> Principal:
    """Fixture providing a member in the North region."""
    return Principal(
        id="user_member_north",
        role=Role.MEMBER,
        region="North",
        email="member.north@example.com",
        name="Mia Member",
    )


@pytest.fixture
def other_north_member() -> Principal:
    """Fixture providing a second member in the North region."""
    return Principal(
        id="user_member_north_2",
        role=Role.MEMBER,
        region="North",
        email="member2.north@example.com",
        name="Max Member",
    )


@pytest.fixture
def member_user() -> User:
    """Fixture providing the directory record behind north_member."""
    return User(
        id="user_member_north",
        name="Mia Member",
        email="member.north@example.com",
        role=Role.MEMBER,
        region="North",
    )


@pytest.fixture
def north_restaurant() -> Restaurant:
    """Fixture providing a restaurant in the North region with a small menu."""
    return Restaurant(
        id="rest_north",
        name="Northern Grill",
        region="North",
        cuisine="American",
        menu=[
            MenuSection(
                id="sec_mains",
                name="Mains",
                items=[
                    MenuItem(
                        id="item_burger",
                        name="Cheeseburger",
                        description="Classic beef cheeseburger",
                        price=Decimal("12.99"),
                        category="Mains",
                    ),
                    MenuItem(
                        id="item_salad",
                        name="Caesar Salad",
                        description="Fresh romaine with caesar dressing",
                        price=Decimal("9.50"),
                        category="Mains",
                    ),
                ],
            )
        ],
    )


@pytest.fixture
def south_restaurant() -> Restaurant:
    """Fixture providing a restaurant in the South region."""
    return Restaurant(id="rest_south", name="Southern Kitchen", region="South", menu=[])


def make_order(
    status: OrderStatus = OrderStatus.PENDING_CONFIRMATION,
    user_id: str = "user_member_north",
    region: str = "North",
    order_id: str = "order_1",
) -> Order:
    """Build an order with one line item."""
    item = OrderItem(
        menu_item_id="item_burger", name="Cheeseburger", quantity=2, price=Decimal("12.99")
    )
    return Order(
        id=order_id,
        user_id=user_id,
        restaurant_id="rest_north" if region == "North" else "rest_south",
        region=region,
        items=[item],
        total_amount=Decimal("25.98"),
        status=status,
        order_date=datetime(2024, 1, 15, 10, 30, tzinfo=UTC),
        delivery_address="1 Main St",
    )


@pytest.fixture
def order_factory() -> Callable[..., Order]:
    """Fixture providing a factory for orders with a chosen status, owner and region."""
    return make_order


@pytest.fixture
def north_order() -> Order:
    """Fixture providing a pending North order placed by north_member."""
    return make_order()


@pytest.fixture
def card() -> PaymentMethod:
    """Fixture providing a saved primary credit card."""
    return PaymentMethod(
        id="pm_card",
        type=PaymentMethodType.CREDIT_CARD,
        last4="4242",
        is_primary=True,
        owner_id="user_member_north",
    )


@pytest.fixture
def paypal() -> PaymentMethod:
    """Fixture providing a saved non-primary PayPal account."""
    return PaymentMethod(
        id="pm_paypal",
        type=PaymentMethodType.PAYPAL,
        email="mia@example.com",
        is_primary=False,
        owner_id="user_member_north",
    )
