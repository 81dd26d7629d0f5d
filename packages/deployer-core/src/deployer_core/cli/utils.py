"""CLI output helpers and exit codes.

Errors go to stderr as plain text with a non-zero exit code so the
invoking pipeline can act on them; stdout carries only command results.

Example:
    from deployer_core.cli.utils import error_exit, ExitCode

    error_exit("Deploy manifest unreadable", exit_code=ExitCode.GENERAL_ERROR)
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Exit codes of the deployer CLI, mirroring PromotionError.exit_code."""

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error, including an unreadable deploy manifest."""

    TARGET_CREDENTIALS_ERROR = 2
    """Target registry credentials could not be obtained."""

    SOURCE_NOT_FOUND = 3
    """Source image or its manifest does not exist."""

    VALIDATION_ERROR = 4
    """Invalid input (empty repository or tag, malformed request)."""

    REGISTRY_ERROR = 5
    """Registry API or blob transfer failure."""


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Example:
        error("Promotion failed", image="myapp/api:1.0.0")
        # Output: Error: Promotion failed (image=myapp/api:1.0.0)
    """
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        full_message = f"Error: {message} ({context_str})"
    else:
        full_message = f"Error: {message}"

    click.echo(full_message, err=True)


def error_exit(
    message: str,
    exit_code: int = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with ``exit_code``.

    Raises:
        SystemExit: Always.
    """
    error(message, **context)
    sys.exit(int(exit_code))


def info(message: str) -> None:
    """Print a progress message to stderr, keeping stdout machine-readable."""
    click.echo(message, err=True)


__all__ = ["ExitCode", "error", "error_exit", "info"]
