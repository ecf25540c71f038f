"""External service integrations."""

from .otel import command_span, configure_otel, record_event, set_span_attribute, shutdown_otel

__all__ = [
    "command_span",
    "configure_otel",
    "record_event",
    "set_span_attribute",
    "shutdown_otel",
]
