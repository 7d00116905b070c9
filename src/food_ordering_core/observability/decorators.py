"""OpenTelemetry tracing decorators."""

import asyncio
import functools
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

from food_ordering_core.errors import AuthorizationFailure, CoreError

# Type variable for generic function signatures
F = TypeVar("F", bound=Callable[..., Any])


def _record_failure(span: Span, error: Exception) -> None:
    """Attach error details to a span.

    Core errors are expected outcomes, so they are tagged by class and denial
    reason instead of being recorded as exceptions with a stack trace.
    """
    span.set_attribute("success", False)
    span.set_attribute("error.type", type(error).__name__)

    if isinstance(error, AuthorizationFailure):
        span.set_attribute("access.denial_reason", error.reason.value)

    if isinstance(error, CoreError):
        span.set_attribute("error.message", error.message)
    else:
        span.set_attribute("error.message", str(error))
        span.record_exception(error)


def traced(
    span_name: str | None = None, service_name: str = "food-ordering-core"
) -> Callable[[F], F]:
    """Decorator to add OpenTelemetry tracing to a function.

    Creates a new span for the decorated function with automatic error tracking.
    Async functions are supported.

    Args:
        span_name: Name for the span (defaults to function name if not provided)
        service_name: Service name for span attributes

    Returns:
        Decorated function with tracing

    Example:
        @traced("cancel_order")
        async def cancel_order(self, principal: Principal, order_id: str) -> Order:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__qualname__
        tracer = trace.get_tracer(service_name)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                span.set_attribute("service.name", service_name)
                span.set_attribute("function.name", func.__qualname__)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                span.set_attribute("service.name", service_name)
                span.set_attribute("function.name", func.__qualname__)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
