"""Container image promotion between ECR registries.

Public API:
    PromotionCoordinator: Promote every image of a build's deploy manifest
    ImagePromoter: Promote one image
    LayerCopier: Copy layer blobs between registries
    ECRRegistry: ECR operations with idempotent write outcomes
    DeployManifestReader: Read deploy-manifest.json from S3
    TargetClientResolver: Same-account or assumed-role target registry

Example:
    >>> from deployer_core.promotion import PromotionCoordinator
    >>> coordinator = PromotionCoordinator.from_settings(get_settings())
    >>> coordinator.promote(request).images_promoted
    2
"""

from __future__ import annotations

from deployer_core.promotion.coordinator import PromotionCoordinator
from deployer_core.promotion.deploy_manifest import DeployManifestReader, manifest_key
from deployer_core.promotion.errors import (
    ImagePromotionError,
    InvalidImageSpecError,
    InvalidManifestError,
    LayerTransferError,
    ManifestReadError,
    PromotionError,
    RegistryOperationError,
    TargetClientError,
    UpstreamNotFoundError,
)
from deployer_core.promotion.layers import LayerDiff, find_missing_layers
from deployer_core.promotion.manifest import calculate_digest, extract_blob_digests
from deployer_core.promotion.promoter import ImagePromoter, image_uri
from deployer_core.promotion.registry import ECRRegistry, WriteOutcome
from deployer_core.promotion.target import TargetClientResolver
from deployer_core.promotion.transfer import LayerCopier, LayerCopyResult

__all__ = [
    "DeployManifestReader",
    "ECRRegistry",
    "ImagePromoter",
    "ImagePromotionError",
    "InvalidImageSpecError",
    "InvalidManifestError",
    "LayerCopier",
    "LayerCopyResult",
    "LayerDiff",
    "LayerTransferError",
    "ManifestReadError",
    "PromotionCoordinator",
    "PromotionError",
    "RegistryOperationError",
    "TargetClientError",
    "TargetClientResolver",
    "UpstreamNotFoundError",
    "WriteOutcome",
    "calculate_digest",
    "extract_blob_digests",
    "find_missing_layers",
    "image_uri",
    "manifest_key",
]
