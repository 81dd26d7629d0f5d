"""Promotion coordinator: the promote-images pipeline step.

Reads the deploy manifest, resolves the target registry once, and promotes
every image strictly in manifest order. The first failure aborts the batch
and is re-raised tagged with the offending ``repository:tag``; the invoking
workflow retries the whole batch, which is safe because every registry
write is idempotent.

Collaborators are injected at construction. ``from_settings`` wires the
production boto3 and httpx clients.

Example:
    >>> coordinator = PromotionCoordinator.from_settings(get_settings())
    >>> result = coordinator.promote(PromotionRequest.model_validate(event))
    >>> result.to_output()
    {'images_promoted': 1, 'images': ['myapp/api:1.0.0'], 'skipped': False}
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import boto3
import httpx
import structlog

from deployer_core.promotion.deploy_manifest import DeployManifestReader
from deployer_core.promotion.errors import ImagePromotionError, PromotionError
from deployer_core.promotion.metrics import PromotionMetrics
from deployer_core.promotion.promoter import ImagePromoter
from deployer_core.promotion.registry import ECRRegistry
from deployer_core.promotion.target import TargetClientResolver
from deployer_core.promotion.transfer import LayerCopier
from deployer_core.schemas.promotion import PromotionRequest, PromotionResult
from deployer_core.telemetry.tracing import SPAN_PROMOTE_IMAGES, create_span

if TYPE_CHECKING:
    from deployer_core.config import DeployerSettings

logger = structlog.get_logger(__name__)


class PromotionCoordinator:
    """Entry point for promoting the images of one build.

    Args:
        reader: Deploy manifest reader.
        source: Source registry (invoking account).
        resolver: Target registry resolver.
        http_client: HTTP client for layer downloads.
        region: Invoking region, the default target region.
        layer_copy_workers: Parallel layer copies within one image.
        metrics: Metric recorder.
    """

    def __init__(
        self,
        *,
        reader: DeployManifestReader,
        source: ECRRegistry,
        resolver: TargetClientResolver,
        http_client: httpx.Client,
        region: str,
        layer_copy_workers: int = 1,
        metrics: PromotionMetrics | None = None,
    ) -> None:
        self._reader = reader
        self._source = source
        self._resolver = resolver
        self._http = http_client
        self._region = region
        self._layer_copy_workers = layer_copy_workers
        self._metrics = metrics if metrics is not None else PromotionMetrics()

    @classmethod
    def from_settings(
        cls,
        settings: DeployerSettings,
        *,
        session: Any | None = None,
        http_client: httpx.Client | None = None,
    ) -> PromotionCoordinator:
        """Build a coordinator from settings and the ambient AWS credentials.

        Args:
            settings: Deployer settings.
            session: boto3 session; one for ``settings.region`` is created if omitted.
            http_client: HTTP client; one with the configured download timeout
                is created if omitted.
        """
        if session is None:
            session = boto3.Session(region_name=settings.region)
        if http_client is None:
            http_client = httpx.Client(
                timeout=settings.download_timeout_seconds,
                follow_redirects=True,
            )

        source = ECRRegistry(
            session.client("ecr", region_name=settings.region),
            region=settings.region,
        )
        return cls(
            reader=DeployManifestReader(session.client("s3", region_name=settings.region)),
            source=source,
            resolver=TargetClientResolver(
                source,
                session=session,
                region=settings.region,
                role_session_name=settings.role_session_name,
            ),
            http_client=http_client,
            region=settings.region,
            layer_copy_workers=settings.layer_copy_workers,
        )

    def promote(self, request: PromotionRequest) -> PromotionResult:
        """Promote every image listed in the request's deploy manifest.

        Returns:
            The result; ``skipped`` when there is no manifest or it lists no images.

        Raises:
            ManifestReadError: The manifest exists but cannot be read.
            TargetClientError: The target registry client cannot be built.
            ImagePromotionError: An image failed; carries its repository and tag.
        """
        target = request.target
        region = target.region or self._region
        log = logger.bind(
            env=request.env,
            repo=request.repository,
            build_id=request.build_id,
            target_account=target.account,
            target_region=region,
        )

        with create_span(
            SPAN_PROMOTE_IMAGES,
            {
                "deploy.env": request.env,
                "deploy.repository": request.repository,
                "deploy.build_id": request.build_id,
                "target.account": target.account,
                "target.region": region,
            },
        ) as span:
            log.info(
                "checking_deploy_manifest",
                bucket=request.source_bucket,
                key_prefix=request.source_key_prefix,
            )
            manifest = self._reader.read(request.source_bucket, request.source_key_prefix)
            if manifest is None or not manifest.images:
                log.info("no_images_to_promote")
                span.set_attribute("promotion.skipped", True)
                return PromotionResult.skipped_result()

            log.info("images_to_promote", image_count=len(manifest.images))
            target_registry = self._resolver.resolve(target)
            promoter = ImagePromoter(
                self._source,
                target_registry,
                copier=LayerCopier(
                    self._source,
                    target_registry,
                    http_client=self._http,
                    metrics=self._metrics,
                ),
                account=target.account,
                region=region,
                layer_copy_workers=self._layer_copy_workers,
                metrics=self._metrics,
            )

            image_uris: list[str] = []
            for image in manifest.images:
                try:
                    uri = promoter.promote(image)
                except PromotionError as e:
                    raise ImagePromotionError(image.repository, image.tag, e) from e
                image_uris.append(uri)
                log.info(
                    "image_promoted",
                    repository=image.repository,
                    tag=image.tag,
                    image_uri=uri,
                )

            span.set_attribute("promotion.images_promoted", len(image_uris))

        return PromotionResult(
            images_promoted=len(image_uris),
            image_uris=image_uris,
            skipped=False,
        )


__all__ = ["PromotionCoordinator"]
