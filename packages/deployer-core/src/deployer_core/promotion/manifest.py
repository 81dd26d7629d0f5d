"""Registry image manifest parsing and blob digests.

Key Functions:
    extract_blob_digests: Ordered blob digests of one image manifest
    parse_registry_manifest: Decode a manifest document
    calculate_digest: SHA256 digest of content in registry format

Example:
    >>> extract_blob_digests('{"fsLayers": [{"blobSum": "sha256:a"}]}')
    ['sha256:a']
    >>> calculate_digest(b"hello world")
    'sha256:b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9'
"""

from __future__ import annotations

import hashlib

import structlog
from pydantic import ValidationError

from deployer_core.promotion.errors import InvalidManifestError
from deployer_core.schemas.registry import RegistryManifest

logger = structlog.get_logger(__name__)

DIGEST_ALGORITHM = "sha256"


def calculate_digest(content: bytes) -> str:
    """Calculate the SHA256 digest of content.

    Args:
        content: Raw bytes.

    Returns:
        Digest string ``"sha256:<hex>"``.
    """
    return f"{DIGEST_ALGORITHM}:{hashlib.sha256(content).hexdigest()}"


def parse_registry_manifest(document: str | bytes) -> RegistryManifest:
    """Decode a registry manifest document.

    Args:
        document: Raw manifest JSON as returned by the registry.

    Returns:
        The decoded RegistryManifest.

    Raises:
        InvalidManifestError: If the document is not JSON or not a manifest object.
    """
    try:
        return RegistryManifest.model_validate_json(document)
    except ValidationError as e:
        raise InvalidManifestError(str(e)) from e


def extract_blob_digests(document: str | bytes) -> list[str]:
    """Return the blob digests referenced by an image manifest, in order.

    The config digest comes first when the document declares a typed config
    block, followed by layer digests. Schema v1 documents yield their
    blob-sum list unchanged. Manifest lists/indices are not expanded and
    yield only what they declare directly (normally nothing).

    Args:
        document: Raw manifest JSON.

    Returns:
        Ordered digest list; empty for a valid but empty document.

    Raises:
        InvalidManifestError: If the document is structurally invalid.
    """
    manifest = parse_registry_manifest(document)
    if manifest.is_index:
        logger.debug(
            "manifest_index_not_expanded",
            media_type=manifest.media_type,
            manifest_count=len(manifest.manifests),
        )
    return manifest.blob_digests()


__all__ = [
    "DIGEST_ALGORITHM",
    "calculate_digest",
    "extract_blob_digests",
    "parse_registry_manifest",
]
