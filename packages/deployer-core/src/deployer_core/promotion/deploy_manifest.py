"""Deploy manifest reader.

The build publishes ``deploy-manifest.json`` next to its artifacts, listing
the images the deployment needs::

    {"images": [{"repository": "myapp/api", "tag": "1.0.0"}]}

A build without container images simply has no manifest object, so
"not found" is a normal outcome here, not an error.
"""

from __future__ import annotations

from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from deployer_core.promotion.errors import ManifestReadError
from deployer_core.promotion.registry import error_code
from deployer_core.schemas.promotion import DeployManifest

logger = structlog.get_logger(__name__)

DEPLOY_MANIFEST_NAME = "deploy-manifest.json"

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})


def manifest_key(key_prefix: str) -> str:
    """Return the manifest object key under an artifact prefix.

    Example:
        >>> manifest_key("myapp/main/1.2.3/")
        'myapp/main/1.2.3/deploy-manifest.json'
    """
    return f"{key_prefix.rstrip('/')}/{DEPLOY_MANIFEST_NAME}"


class DeployManifestReader:
    """Reads deploy manifests from S3.

    Args:
        s3_client: boto3 S3 client.
    """

    def __init__(self, s3_client: Any) -> None:
        self._s3 = s3_client

    def read(self, bucket: str, key_prefix: str) -> DeployManifest | None:
        """Fetch and parse the deploy manifest under ``key_prefix``.

        Args:
            bucket: Artifact bucket.
            key_prefix: Artifact key prefix (trailing slash optional).

        Returns:
            The manifest, or None if no manifest object exists.

        Raises:
            ManifestReadError: On any other storage error or malformed content.
        """
        key = manifest_key(key_prefix)
        log = logger.bind(bucket=bucket, key=key)

        try:
            response = self._s3.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if error_code(e) in _NOT_FOUND_CODES:
                log.info("deploy_manifest_not_found")
                return None
            raise ManifestReadError(bucket, key, str(e)) from e
        except BotoCoreError as e:
            raise ManifestReadError(bucket, key, str(e)) from e

        body = response["Body"]
        try:
            content = body.read()
        except (BotoCoreError, OSError) as e:
            raise ManifestReadError(bucket, key, f"failed to read manifest: {e}") from e
        finally:
            body.close()

        try:
            manifest = DeployManifest.model_validate_json(content)
        except ValidationError as e:
            raise ManifestReadError(bucket, key, f"failed to parse manifest JSON: {e}") from e

        log.info("deploy_manifest_loaded", image_count=len(manifest.images))
        return manifest


__all__ = ["DEPLOY_MANIFEST_NAME", "DeployManifestReader", "manifest_key"]
