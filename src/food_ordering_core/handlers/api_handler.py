"""FastAPI application exposing the policy-enforcing API."""

import logging
from typing import Any, Union

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr, Field

from food_ordering_core.auth.api_dependencies import (
    UNAUTHENTICATED_HEADERS,
    bearer_scheme,
    extract_bearer_token,
    get_principal_from_credentials,
)
from food_ordering_core.auth.credential_service import CredentialService
from food_ordering_core.errors import (
    AuthenticationFailure,
    AuthorizationFailure,
    CoreError,
    FeatureNotImplemented,
    InvalidOperation,
    InvalidStateTransition,
    ResourceNotFound,
    TransportFailure,
)
from food_ordering_core.models.catalog_models import MenuSection, Restaurant
from food_ordering_core.models.identity_models import IssuedCredential, Principal
from food_ordering_core.models.order_models import (
    CheckoutResult,
    Order,
    OrderCreateRequest,
    OrderStatus,
)
from food_ordering_core.models.payment_models import PaymentMethod
from food_ordering_core.services.order_service import OrderService
from food_ordering_core.services.payment_method_service import (
    BatchResult,
    PaymentMethodService,
)

logger = logging.getLogger(__name__)

# Most specific classes first: InvalidStateTransition subclasses InvalidOperation
ERROR_STATUS_CODES: list[tuple[type[CoreError], int]] = [
    (AuthenticationFailure, 401),
    (AuthorizationFailure, 403),
    (ResourceNotFound, 404),
    (InvalidStateTransition, 409),
    (InvalidOperation, 422),
    (FeatureNotImplemented, 501),
    (TransportFailure, 502),
]


def status_code_for(error: CoreError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return 500


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class LoginRequest(BaseModel):
    """Request model for signing in."""

    email: EmailStr = Field(..., description="Email address of the account")


class PaymentMethodBatchRequest(BaseModel):
    """Request model for submitting an edited payment method collection."""

    payment_methods: list[PaymentMethod]


class PaymentMethodBatchResponse(BaseModel):
    """Response model for payment method batches."""

    success: bool
    succeeded: int
    failed: int
    not_implemented: int
    results: list[dict[str, Any]]
    payment_methods: list[PaymentMethod]
    pending_edits: list[PaymentMethod]
    stale: bool = False


def to_batch_response(batch: BatchResult) -> Union[PaymentMethodBatchResponse, JSONResponse]:
    """Convert a BatchResult to the API response.

    Returns 200 when every operation succeeded and 207 when some did not.
    """
    response = PaymentMethodBatchResponse(
        success=batch.success,
        succeeded=batch.succeeded,
        failed=batch.failed,
        not_implemented=batch.not_implemented,
        results=[
            {
                "operation": r.operation.value,
                "payment_method_id": r.method.id,
                "type": r.method.type.value,
                "kind": r.kind.value,
                "message": r.message,
                "retained": r.retain_local_edit,
            }
            for r in batch.results
        ],
        payment_methods=batch.payment_methods,
        pending_edits=batch.pending_edits,
        stale=batch.stale,
    )

    if not batch.success:
        return JSONResponse(status_code=207, content=response.model_dump(mode="json"))

    return response


def create_app(
    order_service: OrderService,
    payment_method_service: PaymentMethodService,
    credential_service: CredentialService,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        order_service: Service for restaurants and orders
        payment_method_service: Service for payment method collections
        credential_service: Service issuing and verifying credentials

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Food Ordering Core API",
        description="Role and region scoped access to restaurants, orders and payment methods",
        version="1.0.0",
    )

    # Store services in app state for access in route handlers
    app.state.order_service = order_service
    app.state.payment_method_service = payment_method_service
    app.state.credential_service = credential_service

    @app.exception_handler(CoreError)
    async def handle_core_error(request: Request, exc: CoreError) -> JSONResponse:
        """Map core errors to HTTP responses with their public message."""
        status_code = status_code_for(exc)
        if status_code >= 500 and status_code != 501:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")

        headers = UNAUTHENTICATED_HEADERS if status_code == 401 else None
        return JSONResponse(
            status_code=status_code, content={"detail": exc.public_message}, headers=headers
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint.

        Returns:
            Health status indicating service is running
        """
        return HealthResponse(status="healthy")

    def current_principal(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    ) -> Principal:
        """Dependency to resolve the authenticated principal."""
        return get_principal_from_credentials(
            credentials, credential_service=app.state.credential_service
        )

    def bearer_token(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    ) -> str:
        """Dependency to forward the caller's credential to the gateway."""
        return extract_bearer_token(credentials) or ""

    # Authentication

    @app.post("/auth/login", response_model=IssuedCredential, tags=["Auth"])
    async def login(request: LoginRequest) -> IssuedCredential:
        """Sign in by email and receive a bearer credential.

        Raises:
            HTTPException: 401 if no account matches the email
        """
        credential: IssuedCredential | None = app.state.credential_service.authenticate(
            request.email
        )
        if credential is None:
            raise HTTPException(
                status_code=401, detail="Invalid email", headers=UNAUTHENTICATED_HEADERS
            )
        return credential

    @app.get("/auth/me", response_model=Principal, tags=["Auth"])
    async def get_me(principal: Principal = Depends(current_principal)) -> Principal:
        """Return the principal the credential resolves to."""
        return principal

    # Restaurants

    @app.get("/restaurants", response_model=list[Restaurant], tags=["Restaurants"])
    async def list_restaurants(
        cuisine: str | None = Query(None, description="Only restaurants with this cuisine"),
        search: str | None = Query(None, description="Match on name or cuisine"),
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> list[Restaurant]:
        """List restaurants visible to the caller."""
        restaurants: list[Restaurant] = await app.state.order_service.list_restaurants(
            principal, token, cuisine=cuisine, search=search
        )
        return restaurants

    @app.get("/restaurants/{restaurant_id}", response_model=Restaurant, tags=["Restaurants"])
    async def get_restaurant(
        restaurant_id: str,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> Restaurant:
        """Get one restaurant with its menu."""
        restaurant: Restaurant = await app.state.order_service.get_restaurant(
            principal, token, restaurant_id
        )
        return restaurant

    @app.get(
        "/restaurants/{restaurant_id}/menu",
        response_model=list[MenuSection],
        tags=["Restaurants"],
    )
    async def get_menu(
        restaurant_id: str,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> list[MenuSection]:
        """Get the menu of one restaurant."""
        menu: list[MenuSection] = await app.state.order_service.get_menu(
            principal, token, restaurant_id
        )
        return menu

    # Orders

    @app.get("/orders", response_model=list[Order], tags=["Orders"])
    async def list_orders(
        status: OrderStatus | None = Query(None, description="Only orders in this status"),
        search: str | None = Query(
            None, description="Match on order id, restaurant name or customer name"
        ),
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> list[Order]:
        """List orders visible to the caller, newest first."""
        orders: list[Order] = await app.state.order_service.list_orders(
            principal, token, status=status, search=search
        )
        return orders

    @app.get("/orders/{order_id}", response_model=Order, tags=["Orders"])
    async def get_order(
        order_id: str,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> Order:
        """Get one order."""
        order: Order = await app.state.order_service.get_order(principal, token, order_id)
        return order

    @app.post("/orders", response_model=Order, status_code=201, tags=["Orders"])
    async def place_order(
        request: OrderCreateRequest,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> Order:
        """Place an order with a restaurant in the caller's region."""
        order: Order = await app.state.order_service.place_order(principal, token, request)
        return order

    @app.post("/orders/{order_id}/cancel", response_model=Order, tags=["Orders"])
    async def cancel_order(
        order_id: str,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> Order:
        """Cancel an order (admins, and managers within their region)."""
        logger.info(f"Cancel requested for order {order_id} by user {principal.id}")
        order: Order = await app.state.order_service.cancel_order(principal, token, order_id)
        return order

    @app.post("/orders/{order_id}/checkout", response_model=CheckoutResult, tags=["Orders"])
    async def checkout_order(
        order_id: str,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> CheckoutResult:
        """Start checkout for a pending or confirmed order."""
        result: CheckoutResult = await app.state.order_service.checkout_order(
            principal, token, order_id
        )
        return result

    # Own payment methods

    @app.get("/me/payment-methods", response_model=list[PaymentMethod], tags=["Payment Methods"])
    async def list_own_payment_methods(
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> list[PaymentMethod]:
        """List the caller's payment methods."""
        methods: list[PaymentMethod] = await app.state.payment_method_service.list_own(
            principal, token
        )
        return methods

    @app.put(
        "/me/payment-methods",
        response_model=PaymentMethodBatchResponse,
        tags=["Payment Methods"],
    )
    async def reconcile_own_payment_methods(
        request: PaymentMethodBatchRequest,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> Union[PaymentMethodBatchResponse, JSONResponse]:
        """Replace the caller's collection with an edited version."""
        batch = await app.state.payment_method_service.reconcile_own(
            principal, token, request.payment_methods
        )
        return to_batch_response(batch)

    @app.post(
        "/me/payment-methods",
        response_model=PaymentMethodBatchResponse,
        tags=["Payment Methods"],
    )
    async def add_own_payment_method(
        method: PaymentMethod,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> Union[PaymentMethodBatchResponse, JSONResponse]:
        """Add a payment method to the caller's collection."""
        batch = await app.state.payment_method_service.add_own(principal, token, method)
        return to_batch_response(batch)

    @app.put(
        "/me/payment-methods/{method_id}",
        response_model=PaymentMethodBatchResponse,
        tags=["Payment Methods"],
    )
    async def update_own_payment_method(
        method_id: str,
        method: PaymentMethod,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> Union[PaymentMethodBatchResponse, JSONResponse]:
        """Update one of the caller's payment methods."""
        batch = await app.state.payment_method_service.update_own(
            principal, token, method_id, method
        )
        return to_batch_response(batch)

    @app.delete(
        "/me/payment-methods/{method_id}",
        response_model=PaymentMethodBatchResponse,
        tags=["Payment Methods"],
    )
    async def delete_own_payment_method(
        method_id: str,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> Union[PaymentMethodBatchResponse, JSONResponse]:
        """Delete one of the caller's payment methods."""
        batch = await app.state.payment_method_service.delete_own(principal, token, method_id)
        return to_batch_response(batch)

    # Platform-wide payment methods

    @app.get("/payment-methods", response_model=list[PaymentMethod], tags=["Admin"])
    async def list_payment_methods(
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> list[PaymentMethod]:
        """List the platform-wide payment methods (admins only)."""
        methods: list[PaymentMethod] = await app.state.payment_method_service.list_global(
            principal, token
        )
        return methods

    @app.put("/payment-methods", response_model=PaymentMethodBatchResponse, tags=["Admin"])
    async def reconcile_payment_methods(
        request: PaymentMethodBatchRequest,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> Union[PaymentMethodBatchResponse, JSONResponse]:
        """Replace the platform-wide collection with an edited version (admins only)."""
        batch = await app.state.payment_method_service.reconcile_global(
            principal, token, request.payment_methods
        )
        return to_batch_response(batch)

    @app.put(
        "/payment-methods/{method_id}",
        response_model=PaymentMethodBatchResponse,
        tags=["Admin"],
    )
    async def update_payment_method(
        method_id: str,
        method: PaymentMethod,
        principal: Principal = Depends(current_principal),
        token: str = Depends(bearer_token),
    ) -> Union[PaymentMethodBatchResponse, JSONResponse]:
        """Update one platform-wide payment method (admins only)."""
        batch = await app.state.payment_method_service.update_global(
            principal, token, method_id, method
        )
        return to_batch_response(batch)

    return app
