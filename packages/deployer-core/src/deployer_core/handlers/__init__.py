"""Serverless entry points."""

from __future__ import annotations

from deployer_core.handlers.promote_images import (
    StatusSink,
    fail_build_on_error,
    handler,
    run_promotion,
)

__all__ = ["StatusSink", "fail_build_on_error", "handler", "run_promotion"]
