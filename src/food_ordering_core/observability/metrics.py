"""Custom metrics for the food ordering core."""

from opentelemetry import metrics

# Get meter for the core service
meter = metrics.get_meter("food-ordering-core")

# Policy denials by resource, action and reason tag
access_denied_counter = meter.create_counter(
    name="access_denied_total",
    description="Total number of denied access decisions",
    unit="1",
)

order_transition_counter = meter.create_counter(
    name="order_transition_total",
    description="Total number of order transition attempts by outcome",
    unit="1",
)

payment_method_operation_counter = meter.create_counter(
    name="payment_method_operation_total",
    description="Total number of payment method operations dispatched by outcome kind",
    unit="1",
)

# Gateway response time histogram
gateway_response_time = meter.create_histogram(
    name="gateway_response_time_seconds",
    description="Response time for resource gateway calls",
    unit="s",
)


def record_access_denied(resource: str, action: str, reason: str) -> None:
    """Record a denied access decision.

    Args:
        resource: Resource class (e.g., "order", "restaurant")
        action: Attempted action (e.g., "read", "cancel")
        reason: Denial reason tag
    """
    access_denied_counter.add(1, {"resource": resource, "action": action, "reason": reason})


def record_order_transition(transition: str, outcome: str) -> None:
    """Record an order transition attempt.

    Args:
        transition: Transition name (e.g., "cancel", "checkout")
        outcome: Outcome kind reported by the gateway or the guard
    """
    order_transition_counter.add(1, {"transition": transition, "outcome": outcome})


def record_payment_method_operation(operation: str, outcome: str) -> None:
    """Record a dispatched payment method operation.

    Args:
        operation: "create", "update" or "delete"
        outcome: Outcome kind reported by the gateway
    """
    payment_method_operation_counter.add(1, {"operation": operation, "outcome": outcome})


def record_gateway_call(method: str, path: str, duration_seconds: float) -> None:
    """Record a resource gateway call.

    Args:
        method: HTTP method
        path: Request path
        duration_seconds: Duration in seconds
    """
    gateway_response_time.record(duration_seconds, {"method": method, "path": path})
