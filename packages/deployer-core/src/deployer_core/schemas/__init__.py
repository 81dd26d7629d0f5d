"""Pydantic schemas for deployer-core."""

from __future__ import annotations

from deployer_core.schemas.promotion import (
    DeployManifest,
    ImageSpec,
    PromotionRequest,
    PromotionResult,
    TargetContext,
)
from deployer_core.schemas.registry import (
    ACCEPTED_MANIFEST_MEDIA_TYPES,
    BlobDescriptor,
    FSLayer,
    RegistryManifest,
)

__all__ = [
    "ACCEPTED_MANIFEST_MEDIA_TYPES",
    "BlobDescriptor",
    "DeployManifest",
    "FSLayer",
    "ImageSpec",
    "PromotionRequest",
    "PromotionResult",
    "RegistryManifest",
    "TargetContext",
]
