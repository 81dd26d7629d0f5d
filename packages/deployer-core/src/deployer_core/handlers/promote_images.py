"""Lambda entry point for the promote-images pipeline step.

The deployment workflow invokes ``handler`` with the promotion request as
the event and consumes the returned dict as the step output. Errors
propagate to the workflow, which fails the step and may retry it.

Example event::

    {
        "env": "prod",
        "repo": "myapp",
        "sk": "2a1b3c",
        "s3_bucket": "build-artifacts",
        "s3_key": "myapp/main/1.0.0/",
        "target_account": "123456789012",
        "target_region": "eu-west-1"
    }
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

import structlog

from deployer_core.config import get_settings
from deployer_core.promotion.coordinator import PromotionCoordinator
from deployer_core.schemas.promotion import PromotionRequest
from deployer_core.telemetry.logging import configure_logging
from deployer_core.telemetry.sanitization import sanitize_error_message

logger = structlog.get_logger(__name__)

R = TypeVar("R")


@runtime_checkable
class StatusSink(Protocol):
    """Destination for build failure status.

    Implemented by the build-record store, which marks the build as failed
    so the deployment is not retried against it.
    """

    def record_failure(self, request: PromotionRequest, message: str) -> None:
        """Record that the step failed for ``request``."""
        ...


def fail_build_on_error(
    func: Callable[[PromotionRequest], R],
    sink: StatusSink,
) -> Callable[[PromotionRequest], R]:
    """Wrap a step so its failure is also recorded on the build.

    The original exception is always re-raised. If the sink itself fails,
    that failure is logged and the original exception still propagates.

    Example:
        >>> step = fail_build_on_error(coordinator.promote, build_records)
        >>> step(request)
    """

    @functools.wraps(func)
    def wrapper(request: PromotionRequest) -> R:
        try:
            return func(request)
        except Exception as e:
            message = sanitize_error_message(str(e))
            try:
                sink.record_failure(request, message)
            except Exception as sink_error:
                logger.error(
                    "build_failure_not_recorded",
                    build_id=request.build_id,
                    error=sanitize_error_message(str(sink_error)),
                )
            raise

    return wrapper


def run_promotion(event: dict[str, Any], coordinator: PromotionCoordinator) -> dict[str, object]:
    """Validate ``event`` and promote its images with ``coordinator``.

    Raises:
        pydantic.ValidationError: If the event is not a valid request.
        PromotionError: If the promotion fails.
    """
    request = PromotionRequest.model_validate(event)
    logger.info(
        "promote_images_invoked",
        env=request.env,
        repo=request.repository,
        build_id=request.build_id,
    )
    return coordinator.promote(request).to_output()


def handler(event: dict[str, Any], context: Any) -> dict[str, object]:  # noqa: ARG001
    """AWS Lambda handler.

    Args:
        event: Promotion request in the workflow's wire format.
        context: Lambda context (unused).

    Returns:
        ``{"images_promoted": int, "images": [...], "skipped": bool}``
    """
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    return run_promotion(event, PromotionCoordinator.from_settings(settings))


__all__ = ["StatusSink", "fail_build_on_error", "handler", "run_promotion"]
