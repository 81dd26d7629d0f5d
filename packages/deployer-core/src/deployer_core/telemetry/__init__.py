"""Logging and tracing for deployer-core.

- configure_logging / add_trace_context: structlog setup with trace correlation
- create_span / traced: OpenTelemetry span helpers
- sanitize_error_message: credential redaction for recorded errors
"""

from __future__ import annotations

from deployer_core.telemetry.logging import add_trace_context, configure_logging
from deployer_core.telemetry.sanitization import sanitize_error_message
from deployer_core.telemetry.tracing import (
    create_span,
    get_tracer,
    reset_tracer,
    set_tracer,
    traced,
)

__all__ = [
    "add_trace_context",
    "configure_logging",
    "create_span",
    "get_tracer",
    "reset_tracer",
    "sanitize_error_message",
    "set_tracer",
    "traced",
]
