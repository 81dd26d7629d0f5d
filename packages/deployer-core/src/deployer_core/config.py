"""Runtime settings for the promotion entry points.

Settings are read from ``DEPLOYER_*`` environment variables (and a local
``.env`` file when present). The Lambda runtime's ``AWS_REGION`` is honoured
as the invoking region.

Example:
    >>> settings = get_settings(layer_copy_workers=2)
    >>> settings.layer_copy_workers
    2
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class DeployerSettings(BaseSettings):
    """Configuration for image promotion.

    Environment Variables:
        DEPLOYER_REGION / AWS_REGION: Invoking region, default target region
        DEPLOYER_ENV / ENV: Deployment environment name
        DEPLOYER_ROLE_SESSION_NAME: STS session name for cross-account access
        DEPLOYER_LAYER_COPY_WORKERS: Parallel layer copies within one image
        DEPLOYER_DOWNLOAD_TIMEOUT_SECONDS: Blob download timeout
        DEPLOYER_LOG_LEVEL: Minimum log level
        DEPLOYER_LOG_JSON: JSON (true) or console (false) log rendering
    """

    model_config = SettingsConfigDict(
        env_prefix="DEPLOYER_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    region: str = Field(
        default="us-east-1",
        min_length=1,
        validation_alias=AliasChoices("DEPLOYER_REGION", "AWS_REGION", "region"),
        description="Invoking AWS region; used when no target region is given",
    )
    env: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DEPLOYER_ENV", "ENV", "env"),
        description="Deployment environment name",
    )
    role_session_name: str = Field(
        default="deployer-promote-images",
        min_length=2,
        max_length=64,
        description="RoleSessionName used when assuming the target execution role",
    )
    layer_copy_workers: int = Field(
        default=4,
        ge=1,
        le=20,
        description="Maximum concurrent layer copies within one image",
    )
    download_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="HTTP timeout for downloading a layer blob",
    )
    log_level: LogLevel = Field(default="INFO", description="Minimum log level")
    log_json: bool = Field(default=True, description="Render logs as JSON")


def get_settings(**overrides: Any) -> DeployerSettings:
    """Build validated settings from the environment plus explicit overrides.

    Raises:
        pydantic.ValidationError: If a value is out of range or malformed.
    """
    return DeployerSettings(**overrides)


__all__ = ["DeployerSettings", "LogLevel", "get_settings"]
