"""Command-line interface for deployer-core."""

from __future__ import annotations

from deployer_core.cli.main import cli, main

__all__ = ["cli", "main"]
