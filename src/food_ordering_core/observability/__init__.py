"""OpenTelemetry instrumentation and observability utilities."""

from food_ordering_core.observability.config import configure_logging, setup_observability
from food_ordering_core.observability.decorators import traced

__all__ = ["setup_observability", "configure_logging", "traced"]
