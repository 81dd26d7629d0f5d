"""Amazon ECR registry adapter.

Wraps a boto3 ECR client with the operations promotion needs and maps
ECR error codes at this boundary:

- "already exists" responses become ``WriteOutcome.ALREADY_EXISTS``
- "not found" responses become ``None`` / ``False`` results
- every other ``ClientError`` becomes ``RegistryOperationError``

The same class serves as source and target registry; which account it
talks to is decided by the credentials of the wrapped client.

Example:
    >>> import boto3
    >>> source = ECRRegistry(boto3.client("ecr", region_name="us-east-1"))
    >>> prod = boto3.Session(profile_name="prod")
    >>> target = ECRRegistry(prod.client("ecr"), account="123456789012")
    >>> image = source.get_image("myapp/api", "1.0.0")
    >>> outcome = target.put_image("myapp/api", "1.0.0", image.manifest, image.media_type)
    >>> outcome is WriteOutcome.ALREADY_EXISTS  # idempotent re-run
    True
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from deployer_core.promotion.errors import RegistryOperationError
from deployer_core.schemas.registry import ACCEPTED_MANIFEST_MEDIA_TYPES

logger = structlog.get_logger(__name__)

MAX_LAYER_AVAILABILITY_BATCH = 100
"""ECR BatchCheckLayerAvailability accepts at most 100 digests per call."""

MANAGED_BY_TAG = {"Key": "ManagedBy", "Value": "deployer"}

LAYER_AVAILABLE = "AVAILABLE"


class WriteOutcome(str, Enum):
    """Result of an idempotent registry write."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class SourceImage:
    """An image as returned by BatchGetImage.

    Attributes:
        manifest: Raw manifest document, or None if the registry omitted it.
        media_type: Declared manifest media type, if any.
        digest: Image (manifest) digest, if reported.
    """

    manifest: str | None
    media_type: str | None = None
    digest: str | None = None


@dataclass(frozen=True)
class LayerStatus:
    """Per-digest result of a layer availability query.

    Attributes:
        digest: Layer digest.
        available: True only if the registry reported the layer AVAILABLE.
        failure_code: ECR failure code when the digest could not be checked.
    """

    digest: str
    available: bool
    failure_code: str | None = None


def error_code(exc: ClientError) -> str:
    """Return the AWS error code of a ClientError ("" if absent)."""
    return str(exc.response.get("Error", {}).get("Code", ""))


class ECRRegistry:
    """ECR operations used by image promotion.

    Attributes:
        client: The wrapped boto3 ECR client.
        account: Account the client writes to, None for the invoking account.
        region: Region of the client, if known.
    """

    def __init__(
        self,
        client: Any,
        *,
        account: str | None = None,
        region: str | None = None,
    ) -> None:
        self.client = client
        self.account = account
        self.region = region
        self._log = logger.bind(registry_account=account, registry_region=region)

    def _fail(self, operation: str, repository: str, exc: Exception) -> RegistryOperationError:
        return RegistryOperationError(operation, repository, str(exc))

    def get_image(self, repository: str, tag: str) -> SourceImage | None:
        """Fetch an image manifest by tag.

        Returns:
            The image, or None if the repository holds no such tag.

        Raises:
            RegistryOperationError: On any other failure.
        """
        try:
            response = self.client.batch_get_image(
                repositoryName=repository,
                imageIds=[{"imageTag": tag}],
                acceptedMediaTypes=list(ACCEPTED_MANIFEST_MEDIA_TYPES),
            )
        except ClientError as e:
            if error_code(e) in ("RepositoryNotFoundException", "ImageNotFoundException"):
                return None
            raise self._fail("batch_get_image", repository, e) from e
        except BotoCoreError as e:
            raise self._fail("batch_get_image", repository, e) from e

        images = response.get("images") or []
        if not images:
            for failure in response.get("failures") or []:
                self._log.debug(
                    "image_lookup_failure",
                    repository=repository,
                    tag=tag,
                    failure_code=failure.get("failureCode"),
                    failure_reason=failure.get("failureReason"),
                )
            return None

        image = images[0]
        return SourceImage(
            manifest=image.get("imageManifest"),
            media_type=image.get("imageManifestMediaType"),
            digest=(image.get("imageId") or {}).get("imageDigest"),
        )

    def check_layer_availability(self, repository: str, digests: list[str]) -> list[LayerStatus]:
        """Query availability of up to 100 layer digests.

        Returns:
            One LayerStatus per digest the registry reported on, whether as a
            layer or as a failure.

        Raises:
            ValueError: If more than MAX_LAYER_AVAILABILITY_BATCH digests are given.
            RegistryOperationError: If the query itself fails.
        """
        if len(digests) > MAX_LAYER_AVAILABILITY_BATCH:
            raise ValueError(
                f"At most {MAX_LAYER_AVAILABILITY_BATCH} digests per availability check, "
                f"got {len(digests)}"
            )
        try:
            response = self.client.batch_check_layer_availability(
                repositoryName=repository,
                layerDigests=digests,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._fail("batch_check_layer_availability", repository, e) from e

        statuses = [
            LayerStatus(
                digest=layer["layerDigest"],
                available=layer.get("layerAvailability") == LAYER_AVAILABLE,
            )
            for layer in response.get("layers") or []
            if layer.get("layerDigest")
        ]
        statuses.extend(
            LayerStatus(
                digest=failure["layerDigest"],
                available=False,
                failure_code=failure.get("failureCode"),
            )
            for failure in response.get("failures") or []
            if failure.get("layerDigest")
        )
        return statuses

    def get_download_url(self, repository: str, digest: str) -> str:
        """Return a time-limited download URL for a layer blob.

        Raises:
            RegistryOperationError: If the call fails or returns no URL.
        """
        try:
            response = self.client.get_download_url_for_layer(
                repositoryName=repository,
                layerDigest=digest,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._fail("get_download_url_for_layer", repository, e) from e

        url = response.get("downloadUrl")
        if not url:
            raise RegistryOperationError(
                "get_download_url_for_layer",
                repository,
                f"download URL is empty for layer {digest}",
            )
        return str(url)

    def initiate_upload(self, repository: str) -> str:
        """Open a layer upload session and return its upload id."""
        try:
            response = self.client.initiate_layer_upload(repositoryName=repository)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("initiate_layer_upload", repository, e) from e

        upload_id = response.get("uploadId")
        if not upload_id:
            raise RegistryOperationError("initiate_layer_upload", repository, "upload id is empty")
        return str(upload_id)

    def upload_part(
        self,
        repository: str,
        upload_id: str,
        first_byte: int,
        last_byte: int,
        blob: bytes,
    ) -> None:
        """Upload one part of a layer; byte offsets are inclusive."""
        try:
            self.client.upload_layer_part(
                repositoryName=repository,
                uploadId=upload_id,
                partFirstByte=first_byte,
                partLastByte=last_byte,
                layerPartBlob=blob,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._fail("upload_layer_part", repository, e) from e

    def complete_upload(self, repository: str, upload_id: str, digest: str) -> WriteOutcome:
        """Finish an upload session, declaring the digest of the uploaded bytes.

        The registry verifies ``digest`` against what it received.

        Returns:
            CREATED, or ALREADY_EXISTS if the layer was already present.
        """
        try:
            self.client.complete_layer_upload(
                repositoryName=repository,
                uploadId=upload_id,
                layerDigests=[digest],
            )
        except ClientError as e:
            if error_code(e) == "LayerAlreadyExistsException":
                return WriteOutcome.ALREADY_EXISTS
            raise self._fail("complete_layer_upload", repository, e) from e
        except BotoCoreError as e:
            raise self._fail("complete_layer_upload", repository, e) from e
        return WriteOutcome.CREATED

    def put_image(
        self,
        repository: str,
        tag: str,
        manifest: str,
        media_type: str | None = None,
    ) -> WriteOutcome:
        """Publish a manifest under a tag.

        Returns:
            CREATED, or ALREADY_EXISTS if the identical image is already tagged.
        """
        params: dict[str, Any] = {
            "repositoryName": repository,
            "imageManifest": manifest,
            "imageTag": tag,
        }
        if media_type:
            params["imageManifestMediaType"] = media_type
        try:
            self.client.put_image(**params)
        except ClientError as e:
            if error_code(e) == "ImageAlreadyExistsException":
                return WriteOutcome.ALREADY_EXISTS
            raise self._fail("put_image", repository, e) from e
        except BotoCoreError as e:
            raise self._fail("put_image", repository, e) from e
        return WriteOutcome.CREATED

    def repository_exists(self, repository: str) -> bool:
        """Check whether a repository exists."""
        try:
            self.client.describe_repositories(repositoryNames=[repository])
        except ClientError as e:
            if error_code(e) == "RepositoryNotFoundException":
                return False
            raise self._fail("describe_repositories", repository, e) from e
        except BotoCoreError as e:
            raise self._fail("describe_repositories", repository, e) from e
        return True

    def create_repository(self, repository: str) -> WriteOutcome:
        """Create an immutable, scan-on-push repository.

        Returns:
            CREATED, or ALREADY_EXISTS if another writer created it first.
        """
        try:
            self.client.create_repository(
                repositoryName=repository,
                imageTagMutability="IMMUTABLE",
                imageScanningConfiguration={"scanOnPush": True},
                tags=[MANAGED_BY_TAG],
            )
        except ClientError as e:
            if error_code(e) == "RepositoryAlreadyExistsException":
                return WriteOutcome.ALREADY_EXISTS
            raise RegistryOperationError(
                "create_repository", repository, f"failed to create repository: {e}"
            ) from e
        except BotoCoreError as e:
            raise RegistryOperationError(
                "create_repository", repository, f"failed to create repository: {e}"
            ) from e
        return WriteOutcome.CREATED

    def ensure_repository(self, repository: str) -> WriteOutcome:
        """Create the repository unless it already exists."""
        if self.repository_exists(repository):
            return WriteOutcome.ALREADY_EXISTS
        outcome = self.create_repository(repository)
        self._log.info("repository_ensured", repository=repository, outcome=outcome.value)
        return outcome


__all__ = [
    "LAYER_AVAILABLE",
    "MAX_LAYER_AVAILABILITY_BATCH",
    "ECRRegistry",
    "LayerStatus",
    "SourceImage",
    "WriteOutcome",
    "error_code",
]
