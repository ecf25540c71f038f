"""Tracing for the dispatch pipeline.

Export goes to Azure Monitor when ``APPLICATIONINSIGHTS_CONNECTION_STRING``
is set and the ``monitoring`` extra is installed.  Until then every helper
here is a no-op, so call sites never need to check.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from ..util.singletons import register_singleton

logger = logging.getLogger(__name__)

TRACER_NAME = "chatgate"

_enabled = False

_CHATTY_LOGGERS = (
    "azure.core.pipeline.policies.http_logging_policy",
    "azure.monitor.opentelemetry.exporter.export._base",
    "botframework.connector",
    "msrest",
)


def quiet_noisy_loggers() -> None:
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _disable() -> None:
    global _enabled
    _enabled = False


register_singleton(_disable)


def is_active() -> bool:
    return _enabled


def configure_otel(connection_string: str, *, sampling_ratio: float = 1.0) -> bool:
    """Start exporting spans; return whether tracing is now enabled.

    Failures are logged and reported as ``False``; the bot runs untraced.
    """
    global _enabled

    if _enabled:
        return True
    if not connection_string:
        logger.info("[otel.configure] tracing disabled (no connection string)")
        return False

    try:
        from azure.monitor.opentelemetry import configure_azure_monitor
    except ImportError:
        logger.warning(
            "[otel.configure] azure-monitor-opentelemetry missing; "
            "install chatgate[monitoring] to enable tracing"
        )
        return False

    os.environ.setdefault("OTEL_SERVICE_NAME", TRACER_NAME)
    try:
        configure_azure_monitor(connection_string=connection_string, sampling_ratio=sampling_ratio)
    except Exception:
        logger.error("[otel.configure] exporter setup failed", exc_info=True)
        return False

    quiet_noisy_loggers()
    _enabled = True
    logger.info("[otel.configure] exporting to Azure Monitor (sampling=%.2f)", sampling_ratio)
    return True


def shutdown_otel() -> None:
    """Flush pending spans; safe to call when tracing never started."""
    if not _enabled:
        return
    from opentelemetry import trace

    provider = trace.get_tracer_provider()
    try:
        flush = getattr(provider, "shutdown", None)
        if flush is not None:
            flush()
    except Exception:
        logger.warning("[otel.shutdown] provider shutdown failed", exc_info=True)
    finally:
        _disable()


def _recording_span() -> Any | None:
    if not _enabled:
        return None
    from opentelemetry import trace

    span = trace.get_current_span()
    return span if span.is_recording() else None


@contextmanager
def command_span(name: str, *, attributes: dict[str, Any] | None = None) -> Iterator[Any]:
    """Trace the enclosed block as span *name*; yields ``None`` when disabled.

    An exception escaping the block is recorded on the span and re-raised.
    """
    if not _enabled:
        yield None
        return

    from opentelemetry import trace

    clean = {k: v for k, v in (attributes or {}).items() if v is not None}
    with trace.get_tracer(TRACER_NAME).start_as_current_span(name, attributes=clean) as span:
        yield span


def record_event(name: str, attributes: dict[str, Any] | None = None) -> None:
    span = _recording_span()
    if span is not None:
        span.add_event(name, attributes=attributes or {})


def set_span_attribute(key: str, value: Any) -> None:
    span = _recording_span()
    if span is not None:
        span.set_attribute(key, value)
