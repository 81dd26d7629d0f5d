"""Unit tests for the promote-images Lambda handler."""

from __future__ import annotations

import io
import json
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from deployer_core.handlers.promote_images import (
    StatusSink,
    fail_build_on_error,
    handler,
    run_promotion,
)
from deployer_core.promotion.coordinator import PromotionCoordinator
from deployer_core.promotion.errors import LayerTransferError
from deployer_core.schemas.promotion import PromotionRequest, PromotionResult
from deployer_core.telemetry.logging import configure_logging

_EVENT: dict[str, Any] = {
    "env": "prod",
    "repo": "myapp",
    "sk": "2a1b3c",
    "s3_bucket": "build-artifacts",
    "s3_key": "myapp/main/1.0.0/",
    "target_account": "123456789012",
    "target_region": "eu-west-1",
}


def _coordinator(result: PromotionResult | None = None) -> MagicMock:
    coordinator = MagicMock()
    coordinator.promote.return_value = result or PromotionResult(
        images_promoted=1, image_uris=["123456789012.dkr.ecr.eu-west-1.amazonaws.com/myapp/api:1"]
    )
    return coordinator


class TestRunPromotion:
    """Tests for run_promotion()."""

    def test_returns_step_output(self) -> None:
        """The coordinator result is returned in wire form."""
        output = run_promotion(_EVENT, _coordinator())

        assert output == {
            "images_promoted": 1,
            "images": ["123456789012.dkr.ecr.eu-west-1.amazonaws.com/myapp/api:1"],
            "skipped": False,
        }

    def test_event_parsed_into_request(self) -> None:
        """Wire names are mapped onto the request."""
        coordinator = _coordinator()

        run_promotion(_EVENT, coordinator)

        (request,) = coordinator.promote.call_args.args
        assert request.repository == "myapp"
        assert request.build_id == "2a1b3c"
        assert request.source_key_prefix == "myapp/main/1.0.0/"
        assert request.target.account == "123456789012"

    def test_invalid_event(self) -> None:
        """An event without a bucket is rejected before promotion."""
        coordinator = _coordinator()
        event = {key: value for key, value in _EVENT.items() if key != "s3_bucket"}

        with pytest.raises(ValidationError):
            run_promotion(event, coordinator)

        coordinator.promote.assert_not_called()

    def test_promotion_errors_propagate(self) -> None:
        """Failures reach the workflow unchanged."""
        coordinator = _coordinator()
        coordinator.promote.side_effect = LayerTransferError(
            "myapp/api", "sha256:abc", "upload", "timeout"
        )

        with pytest.raises(LayerTransferError):
            run_promotion(_EVENT, coordinator)


class TestHandler:
    """Tests for the Lambda entry point."""

    def test_builds_coordinator_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The handler configures logging and promotes with a settings-built coordinator."""
        monkeypatch.setenv("DEPLOYER_LOG_LEVEL", "DEBUG")
        monkeypatch.delenv("DEPLOYER_LOG_JSON", raising=False)
        coordinator = _coordinator(PromotionResult.skipped_result())

        with (
            patch.object(
                PromotionCoordinator, "from_settings", return_value=coordinator
            ) as from_settings,
            patch("deployer_core.handlers.promote_images.configure_logging") as configure,
        ):
            output = handler(_EVENT, None)

        assert output == {"images_promoted": 0, "images": [], "skipped": True}
        configure.assert_called_once_with("DEBUG", json_output=True)
        (settings,) = from_settings.call_args.args
        assert settings.log_level == "DEBUG"


class _RecordingSink:
    def __init__(self, fail: bool = False) -> None:
        self.failures: list[tuple[PromotionRequest, str]] = []
        self.fail = fail

    def record_failure(self, request: PromotionRequest, message: str) -> None:
        if self.fail:
            raise ConnectionError("build record store unavailable")
        self.failures.append((request, message))


class TestFailBuildOnError:
    """Tests for fail_build_on_error()."""

    @pytest.fixture
    def request_(self) -> PromotionRequest:
        return PromotionRequest.model_validate(_EVENT)

    def test_sink_protocol(self) -> None:
        """Objects with record_failure satisfy StatusSink."""
        assert isinstance(_RecordingSink(), StatusSink)

    def test_success_not_recorded(self, request_: PromotionRequest) -> None:
        """Successful steps return their value and leave the sink alone."""
        sink = _RecordingSink()
        step = fail_build_on_error(lambda request: "ok", sink)

        assert step(request_) == "ok"
        assert sink.failures == []

    def test_failure_recorded_and_reraised(self, request_: PromotionRequest) -> None:
        """A failure is recorded with a sanitized message and re-raised."""
        sink = _RecordingSink()
        error = RuntimeError("GET https://b/l?X-Amz-Signature=deadbeef failed")

        def step(request: PromotionRequest) -> None:
            raise error

        with pytest.raises(RuntimeError) as excinfo:
            fail_build_on_error(step, sink)(request_)

        assert excinfo.value is error
        ((recorded_request, message),) = sink.failures
        assert recorded_request is request_
        assert "deadbeef" not in message
        assert message.endswith(" failed")

    def test_sink_failure_logged_original_raised(self, request_: PromotionRequest) -> None:
        """If recording fails, that is logged and the original error still propagates."""
        stream = io.StringIO()
        configure_logging("INFO", file=stream)

        def step(request: PromotionRequest) -> None:
            raise LayerTransferError("myapp/api", "sha256:abc", "upload", "timeout")

        with pytest.raises(LayerTransferError):
            fail_build_on_error(step, _RecordingSink(fail=True))(request_)

        (event,) = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert event["event"] == "build_failure_not_recorded"
        assert event["build_id"] == "2a1b3c"
        assert event["level"] == "error"
