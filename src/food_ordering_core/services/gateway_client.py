"""Client for the resource gateway REST API.

The gateway persists restaurants, orders and payment methods and is the source
of truth for all of them. Every call returns a GatewayOutcome instead of
raising, so "not implemented" answers from stubbed endpoints reach the caller
as a distinct outcome rather than as a crash.
"""

import logging
import time
from typing import Any

import httpx

from food_ordering_core.models.gateway_models import GatewayOutcome, OutcomeKind
from food_ordering_core.observability.metrics import record_gateway_call

logger = logging.getLogger(__name__)

STATUS_KINDS: dict[int, OutcomeKind] = {
    400: OutcomeKind.VALIDATION_FAILURE,
    401: OutcomeKind.AUTHENTICATION_FAILURE,
    403: OutcomeKind.AUTHORIZATION_FAILURE,
    404: OutcomeKind.NOT_FOUND,
    409: OutcomeKind.VALIDATION_FAILURE,
    422: OutcomeKind.VALIDATION_FAILURE,
    501: OutcomeKind.NOT_IMPLEMENTED,
}


def _error_message(response: httpx.Response) -> str:
    """Best-effort error message from a non-success response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        if isinstance(message, str) and message:
            return message

    return f"Gateway responded with status {response.status_code}"


class ResourceGatewayClient:
    """HTTP client for the resource gateway.

    The caller's bearer credential is forwarded on every request; a call
    without a credential is reported as an authentication failure without
    reaching the network.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the gateway client.

        Args:
            base_url: Base URL of the gateway API (e.g., "https://api.example.com/api/v1")
            timeout_seconds: Timeout applied to each request
            transport: Optional httpx transport, used to substitute the network in tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        token: str | None,
        route: str,
        json: dict[str, Any] | None = None,
    ) -> GatewayOutcome:
        """Send one request and classify the response.

        Args:
            method: HTTP method
            path: Request path below the base URL
            token: Caller's bearer credential
            route: Path template used as a low-cardinality metric label
            json: Optional JSON body

        Returns:
            GatewayOutcome describing the response
        """
        if not token:
            return GatewayOutcome(
                kind=OutcomeKind.AUTHENTICATION_FAILURE, message="No credential to forward"
            )

        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"}
        started = time.perf_counter()

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport
            ) as client:
                response = await client.request(method, url, headers=headers, json=json)
        except httpx.RequestError as e:
            logger.error(f"Gateway request {method} {route} failed: {e}")
            return GatewayOutcome(kind=OutcomeKind.TRANSPORT_FAILURE, message=str(e))
        finally:
            record_gateway_call(method, route, time.perf_counter() - started)

        return self._to_outcome(method, route, response)

    def _to_outcome(self, method: str, route: str, response: httpx.Response) -> GatewayOutcome:
        status = response.status_code

        if 200 <= status < 300:
            if status == 204 or not response.content:
                return GatewayOutcome(kind=OutcomeKind.SUCCESS, status_code=status)
            try:
                data = response.json()
            except ValueError:
                logger.error(f"Gateway response to {method} {route} is not valid JSON")
                return GatewayOutcome(
                    kind=OutcomeKind.TRANSPORT_FAILURE,
                    status_code=status,
                    message="Gateway response could not be parsed",
                )
            return GatewayOutcome(kind=OutcomeKind.SUCCESS, status_code=status, data=data)

        kind = STATUS_KINDS.get(status, OutcomeKind.TRANSPORT_FAILURE)
        message = _error_message(response)

        if kind == OutcomeKind.NOT_IMPLEMENTED:
            logger.info(f"Gateway does not implement {method} {route} yet")
        else:
            logger.warning(f"Gateway {method} {route} answered {status}: {message}")

        return GatewayOutcome(kind=kind, status_code=status, message=message)

    # Restaurants

    async def list_restaurants(self, token: str | None) -> GatewayOutcome:
        return await self._request("GET", "/restaurants", token, "/restaurants")

    async def get_restaurant(self, token: str | None, restaurant_id: str) -> GatewayOutcome:
        return await self._request(
            "GET", f"/restaurants/{restaurant_id}", token, "/restaurants/{id}"
        )

    # Orders

    async def list_orders(self, token: str | None) -> GatewayOutcome:
        return await self._request("GET", "/orders", token, "/orders")

    async def get_order(self, token: str | None, order_id: str) -> GatewayOutcome:
        return await self._request("GET", f"/orders/{order_id}", token, "/orders/{id}")

    async def create_order(self, token: str | None, payload: dict[str, Any]) -> GatewayOutcome:
        return await self._request("POST", "/orders", token, "/orders", json=payload)

    async def cancel_order(self, token: str | None, order_id: str) -> GatewayOutcome:
        return await self._request(
            "POST", f"/orders/{order_id}/cancel", token, "/orders/{id}/cancel"
        )

    async def checkout_order(self, token: str | None, order_id: str) -> GatewayOutcome:
        return await self._request(
            "POST", f"/orders/{order_id}/checkout", token, "/orders/{id}/checkout"
        )

    # Payment methods owned by the caller

    async def list_own_payment_methods(self, token: str | None) -> GatewayOutcome:
        return await self._request("GET", "/me/payment-methods", token, "/me/payment-methods")

    async def create_own_payment_method(
        self, token: str | None, payload: dict[str, Any]
    ) -> GatewayOutcome:
        return await self._request(
            "POST", "/me/payment-methods", token, "/me/payment-methods", json=payload
        )

    async def update_own_payment_method(
        self, token: str | None, method_id: str, payload: dict[str, Any]
    ) -> GatewayOutcome:
        return await self._request(
            "PUT",
            f"/me/payment-methods/{method_id}",
            token,
            "/me/payment-methods/{id}",
            json=payload,
        )

    async def delete_own_payment_method(self, token: str | None, method_id: str) -> GatewayOutcome:
        return await self._request(
            "DELETE", f"/me/payment-methods/{method_id}", token, "/me/payment-methods/{id}"
        )

    # Platform-wide payment methods (admin)

    async def list_payment_methods(self, token: str | None) -> GatewayOutcome:
        return await self._request("GET", "/payment-methods", token, "/payment-methods")

    async def create_payment_method(
        self, token: str | None, payload: dict[str, Any]
    ) -> GatewayOutcome:
        return await self._request(
            "POST", "/payment-methods", token, "/payment-methods", json=payload
        )

    async def update_payment_method(
        self, token: str | None, method_id: str, payload: dict[str, Any]
    ) -> GatewayOutcome:
        return await self._request(
            "PUT", f"/payment-methods/{method_id}", token, "/payment-methods/{id}", json=payload
        )

    async def delete_payment_method(self, token: str | None, method_id: str) -> GatewayOutcome:
        return await self._request(
            "DELETE", f"/payment-methods/{method_id}", token, "/payment-methods/{id}"
        )
