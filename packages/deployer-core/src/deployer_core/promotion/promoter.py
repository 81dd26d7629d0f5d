"""Single-image promotion.

Promoting one image:

1. Reject an empty repository or tag before any registry call.
2. Fetch the source manifest by tag.
3. Make sure the target repository exists.
4. Cross-account only: copy every blob the target lacks. This must finish
   before the manifest is published, since ECR rejects manifests that
   reference blobs it does not hold.
5. Publish the unmodified manifest bytes and media type under the same
   repository and tag. An identical image already present is success.
6. Return the image reference at the target.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from deployer_core.promotion.errors import InvalidImageSpecError, UpstreamNotFoundError
from deployer_core.promotion.layers import find_missing_layers
from deployer_core.promotion.manifest import extract_blob_digests
from deployer_core.promotion.metrics import PromotionMetrics
from deployer_core.telemetry.tracing import SPAN_PROMOTE_IMAGE, create_span

if TYPE_CHECKING:
    from deployer_core.promotion.registry import ECRRegistry
    from deployer_core.promotion.transfer import LayerCopier
    from deployer_core.schemas.promotion import ImageSpec

logger = structlog.get_logger(__name__)

REGISTRY_DOMAIN = "dkr.ecr"


def image_uri(repository: str, tag: str, account: str | None, region: str) -> str:
    """Return the reference of a promoted image.

    Example:
        >>> image_uri("myapp/api", "1.0.0", "123456789012", "eu-west-1")
        '123456789012.dkr.ecr.eu-west-1.amazonaws.com/myapp/api:1.0.0'
        >>> image_uri("myapp/api", "1.0.0", None, "eu-west-1")
        'myapp/api:1.0.0'
    """
    if account:
        return f"{account}.{REGISTRY_DOMAIN}.{region}.amazonaws.com/{repository}:{tag}"
    return f"{repository}:{tag}"


def validate_image_spec(image: ImageSpec) -> None:
    """Raise InvalidImageSpecError if the repository or tag is empty."""
    if not image.repository:
        raise InvalidImageSpecError(image.repository, image.tag, "image repository cannot be empty")
    if not image.tag:
        raise InvalidImageSpecError(image.repository, image.tag, "image tag cannot be empty")


class ImagePromoter:
    """Promotes images from a source registry into one target.

    Args:
        source: Registry holding the images.
        target: Registry to publish into (may be ``source`` itself).
        copier: Layer copier between ``source`` and ``target``.
        account: Target account; None for same-account promotion.
        region: Target region (already defaulted to the invoking region).
        layer_copy_workers: Parallel layer copies within one image.
        metrics: Metric recorder.
    """

    def __init__(
        self,
        source: ECRRegistry,
        target: ECRRegistry,
        *,
        copier: LayerCopier,
        account: str | None,
        region: str,
        layer_copy_workers: int = 1,
        metrics: PromotionMetrics | None = None,
    ) -> None:
        self._source = source
        self._target = target
        self._copier = copier
        self._account = account
        self._region = region
        self._layer_copy_workers = layer_copy_workers
        self._metrics = metrics if metrics is not None else PromotionMetrics()

    @property
    def cross_account(self) -> bool:
        return bool(self._account)

    def promote(self, image: ImageSpec) -> str:
        """Promote one image and return its reference at the target.

        Raises:
            InvalidImageSpecError: Empty repository or tag.
            UpstreamNotFoundError: Source image or manifest missing.
            InvalidManifestError: Source manifest cannot be parsed.
            RegistryOperationError: A registry call failed.
            LayerTransferError: A layer copy failed.
        """
        validate_image_spec(image)
        log = logger.bind(repository=image.repository, tag=image.tag, target_account=self._account)

        span_attributes = {
            "image.repository": image.repository,
            "image.tag": image.tag,
            "target.account": self._account,
            "target.region": self._region,
        }
        with self._metrics.image_timer(cross_account=self.cross_account), create_span(
            SPAN_PROMOTE_IMAGE, span_attributes
        ) as span:
            source_image = self._source.get_image(image.repository, image.tag)
            if source_image is None:
                raise UpstreamNotFoundError(image.repository, image.tag, "source image not found")
            if source_image.manifest is None:
                raise UpstreamNotFoundError(
                    image.repository, image.tag, "source image manifest is nil"
                )
            log.debug("source_manifest_retrieved", media_type=source_image.media_type)

            self._target.ensure_repository(image.repository)

            if self.cross_account:
                copied = self._copy_missing_layers(image.repository, source_image.manifest)
                span.set_attribute("layers.copied", copied)

            outcome = self._target.put_image(
                image.repository,
                image.tag,
                source_image.manifest,
                source_image.media_type,
            )
            span.set_attribute("image.outcome", outcome.value)

        uri = image_uri(image.repository, image.tag, self._account, self._region)
        log.info("image_published", image_uri=uri, outcome=outcome.value)
        return uri

    def _copy_missing_layers(self, repository: str, manifest: str) -> int:
        """Copy the blobs ``manifest`` references that the target lacks."""
        digests = extract_blob_digests(manifest)
        if not digests:
            logger.debug("no_layers_to_copy", repository=repository)
            return 0

        diff = find_missing_layers(self._target, repository, digests)
        if not diff.missing:
            logger.info("layers_already_present", repository=repository, layer_count=len(digests))
            return 0

        logger.info(
            "copying_missing_layers",
            repository=repository,
            missing_count=len(diff.missing),
            present_count=len(diff.present),
        )
        results = self._copier.copy_all(
            repository, diff.missing, max_workers=self._layer_copy_workers
        )
        return len(results)


__all__ = ["REGISTRY_DOMAIN", "ImagePromoter", "image_uri", "validate_image_spec"]
