"""``deployer promote-images``: run the promotion step locally.

Builds the same request the deployment workflow sends to the Lambda
handler, from options or their environment variables, and prints the step
output as JSON on stdout. Logs go to stderr.

Example:
    $ deployer promote-images --env prod --repo myapp --build-id 2a1b3c \\
        --s3-bucket build-artifacts --s3-key myapp/main/1.0.0/ \\
        --target-account 123456789012 --target-region eu-west-1
"""

from __future__ import annotations

import json
import sys

import click
import structlog
from pydantic import ValidationError

from deployer_core.cli.utils import ExitCode, error_exit, info
from deployer_core.config import get_settings
from deployer_core.schemas.promotion import PromotionRequest
from deployer_core.telemetry.logging import configure_logging

logger = structlog.get_logger(__name__)


@click.command(
    name="promote-images",
    help="Promote the container images of a build to the deployment target.",
    epilog="""
Exit Codes:
    0 - Success (including nothing to promote)
    1 - General error / deploy manifest unreadable
    2 - Target registry credentials failed
    3 - Source image not found
    4 - Invalid input
    5 - Registry or layer transfer failure
""",
)
@click.option("--env", envvar="ENV", required=True, help="Deployment environment.")
@click.option("--repo", envvar="REPO", required=True, help="Source code repository name.")
@click.option("--build-id", envvar="BUILD_ID", required=True, help="Build identifier.")
@click.option("--s3-bucket", envvar="S3_BUCKET", required=True, help="Artifact bucket.")
@click.option("--s3-key", envvar="S3_KEY", required=True, help="Artifact key prefix.")
@click.option(
    "--target-account",
    envvar="TARGET_ACCOUNT",
    default=None,
    help="Target AWS account id. Omit to publish within the invoking account.",
)
@click.option(
    "--target-region",
    envvar="TARGET_REGION",
    default=None,
    help="Target AWS region. Defaults to the invoking region.",
)
def promote_images_command(
    env: str,
    repo: str,
    build_id: str,
    s3_bucket: str,
    s3_key: str,
    target_account: str | None,
    target_region: str | None,
) -> None:
    """Promote the images listed in a build's deploy manifest."""
    from deployer_core.promotion.coordinator import PromotionCoordinator
    from deployer_core.promotion.errors import PromotionError

    try:
        settings = get_settings()
    except ValidationError as e:
        error_exit(f"Invalid settings: {e}", exit_code=ExitCode.VALIDATION_ERROR)

    configure_logging(settings.log_level, json_output=settings.log_json, file=sys.stderr)

    try:
        request = PromotionRequest.model_validate(
            {
                "env": env,
                "repo": repo,
                "sk": build_id,
                "s3_bucket": s3_bucket,
                "s3_key": s3_key,
                "target_account": target_account,
                "target_region": target_region,
            }
        )
    except ValidationError as e:
        error_exit(f"Invalid request: {e}", exit_code=ExitCode.VALIDATION_ERROR)

    info(f"Promoting images of {repo} build {build_id} ({env})")
    try:
        result = PromotionCoordinator.from_settings(settings).promote(request)
    except PromotionError as e:
        logger.error("promote_images_failed", error_type=type(e).__name__)
        error_exit(str(e), exit_code=e.exit_code)

    click.echo(json.dumps(result.to_output(), indent=2))


__all__ = ["promote_images_command"]
