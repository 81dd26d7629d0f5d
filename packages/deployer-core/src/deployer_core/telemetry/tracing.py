"""OpenTelemetry tracing helpers for promotion operations.

Provides a cached tracer lookup that degrades to a NoOp tracer, the
``create_span`` context manager, and the ``@traced`` decorator. Failed
operations mark their span with ERROR status and a sanitized message;
the exception always propagates.

Span Names:
    - deployer.promotion.promote_images: One promotion request
    - deployer.promotion.resolve_target: Target registry client resolution
    - deployer.promotion.promote_image: One image
    - deployer.promotion.copy_layer: One blob copy
"""

from __future__ import annotations

import functools
import threading
from collections.abc import Callable
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar, overload

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode, Tracer

from deployer_core.telemetry.sanitization import sanitize_error_message

if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span

P = ParamSpec("P")
R = TypeVar("R")

TRACER_NAME = "deployer_core"

SPAN_PROMOTE_IMAGES = "deployer.promotion.promote_images"
SPAN_RESOLVE_TARGET = "deployer.promotion.resolve_target"
SPAN_PROMOTE_IMAGE = "deployer.promotion.promote_image"
SPAN_COPY_LAYER = "deployer.promotion.copy_layer"

_tracers: dict[str, Tracer] = {}
_lock = threading.Lock()


def get_tracer(name: str = TRACER_NAME) -> Tracer:
    """Return a cached tracer, or a NoOp tracer if OpenTelemetry is unusable."""
    cached = _tracers.get(name)
    if cached is not None:
        return cached
    with _lock:
        if name not in _tracers:
            try:
                _tracers[name] = trace.get_tracer(name)
            except Exception:
                # Corrupted global provider state; tracing is optional.
                return trace.NoOpTracer()
        return _tracers[name]


def set_tracer(tracer: Tracer | None, name: str = TRACER_NAME) -> None:
    """Inject a tracer (tests) or clear the cached one."""
    with _lock:
        if tracer is None:
            _tracers.pop(name, None)
        else:
            _tracers[name] = tracer


def reset_tracer() -> None:
    """Clear all cached tracers."""
    with _lock:
        _tracers.clear()


def _record_failure(span: Span, exc: Exception) -> None:
    sanitized = sanitize_error_message(str(exc))
    span.set_status(Status(StatusCode.ERROR, sanitized))
    span.set_attribute("exception.type", type(exc).__name__)
    span.set_attribute("exception.message", sanitized)


@contextmanager
def create_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Create a span as a context manager.

    Attributes whose value is None are skipped, so optional context such as
    ``target.account`` can be passed unconditionally.

    Args:
        name: Span name.
        attributes: Optional span attributes.

    Yields:
        The active span.

    Example:
        >>> with create_span(SPAN_PROMOTE_IMAGE, {"image.repository": "myapp/api"}):
        ...     pass
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        name,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            _record_failure(span, e)
            raise


@overload
def traced(func: Callable[P, R]) -> Callable[P, R]: ...


@overload
def traced(
    *,
    name: str | None = None,
    attributes: dict[str, str] | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]: ...


def traced(
    func: Callable[P, R] | None = None,
    *,
    name: str | None = None,
    attributes: dict[str, str] | None = None,
) -> Callable[P, R] | Callable[[Callable[P, R]], Callable[P, R]]:
    """Wrap a function in a span named after it (or ``name``)."""

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        span_name = name if name is not None else fn.__qualname__

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with create_span(span_name, attributes):
                return fn(*args, **kwargs)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


__all__ = [
    "SPAN_COPY_LAYER",
    "SPAN_PROMOTE_IMAGE",
    "SPAN_PROMOTE_IMAGES",
    "SPAN_RESOLVE_TARGET",
    "TRACER_NAME",
    "create_span",
    "get_tracer",
    "reset_tracer",
    "set_tracer",
    "traced",
]
