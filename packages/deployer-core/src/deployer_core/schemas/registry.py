"""Registry image manifest schemas.

Decodes the subset of Docker schema v1, Docker schema v2 and OCI image
manifests needed to enumerate an image's blobs. Every other field is
ignored; the manifest bytes are always republished unmodified, never
re-serialized from these models.

Media Types:
    application/vnd.docker.distribution.manifest.v1+prettyjws (schema v1, signed)
    application/vnd.docker.distribution.manifest.v2+json
    application/vnd.oci.image.manifest.v1+json
    application/vnd.docker.distribution.manifest.list.v2+json (not expanded)
    application/vnd.oci.image.index.v1+json (not expanded)
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DOCKER_MANIFEST_V1 = "application/vnd.docker.distribution.manifest.v1+json"
"""Docker image manifest schema v1 (unsigned)."""

DOCKER_MANIFEST_V1_SIGNED = "application/vnd.docker.distribution.manifest.v1+prettyjws"
"""Docker image manifest schema v1 (signed)."""

DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
"""Docker image manifest schema v2."""

DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
"""Docker multi-architecture manifest list."""

OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
"""OCI image manifest."""

OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
"""OCI image index."""

ACCEPTED_MANIFEST_MEDIA_TYPES: tuple[str, ...] = (
    DOCKER_MANIFEST_V1_SIGNED,
    DOCKER_MANIFEST_V2,
    OCI_IMAGE_MANIFEST,
    DOCKER_MANIFEST_LIST,
    OCI_IMAGE_INDEX,
)
"""Media types requested from the source so the stored document is returned as-is."""


class BlobDescriptor(BaseModel):
    """Reference to a config or layer blob (v2/OCI)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    media_type: str = Field(default="", alias="mediaType")
    digest: str = Field(default="")
    size: int = Field(default=0, ge=0)


class FSLayer(BaseModel):
    """Legacy schema v1 layer entry."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    blob_sum: str = Field(default="", alias="blobSum")


class RegistryManifest(BaseModel):
    """Decoded registry manifest.

    v2/OCI documents declare an optional typed ``config`` block and ordered
    ``layers``; schema v1 documents carry a flat ``fsLayers`` blob-sum list.
    Manifest lists and indices carry ``manifests``, which are recorded but
    never expanded.

    Examples:
        >>> m = RegistryManifest.model_validate_json(
        ...     '{"config": {"digest": "sha256:c"}, "layers": [{"digest": "sha256:l"}]}'
        ... )
        >>> m.blob_digests()
        ['sha256:c', 'sha256:l']
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    schema_version: int | None = Field(default=None, alias="schemaVersion")
    media_type: str | None = Field(default=None, alias="mediaType")
    config: BlobDescriptor | None = None
    layers: list[BlobDescriptor] = Field(default_factory=list)
    fs_layers: list[FSLayer] = Field(default_factory=list, alias="fsLayers")
    manifests: list[BlobDescriptor] = Field(default_factory=list)

    @field_validator("layers", "fs_layers", "manifests", mode="before")
    @classmethod
    def null_list_is_empty(cls, v: Any) -> Any:
        """Treat an explicit JSON null list as empty."""
        return [] if v is None else v

    @property
    def is_index(self) -> bool:
        """Whether this document is a manifest list / image index."""
        return bool(self.manifests) or self.media_type in (DOCKER_MANIFEST_LIST, OCI_IMAGE_INDEX)

    def blob_digests(self) -> list[str]:
        """Return blob digests in manifest order, config first when declared.

        Empty digests are skipped. Index entries are not included.
        """
        digests: list[str] = []
        if self.config is not None and self.config.digest:
            digests.append(self.config.digest)
        digests.extend(layer.digest for layer in self.layers if layer.digest)
        digests.extend(layer.blob_sum for layer in self.fs_layers if layer.blob_sum)
        return digests


__all__ = [
    "ACCEPTED_MANIFEST_MEDIA_TYPES",
    "DOCKER_MANIFEST_LIST",
    "DOCKER_MANIFEST_V1",
    "DOCKER_MANIFEST_V1_SIGNED",
    "DOCKER_MANIFEST_V2",
    "OCI_IMAGE_INDEX",
    "OCI_IMAGE_MANIFEST",
    "BlobDescriptor",
    "FSLayer",
    "RegistryManifest",
]
