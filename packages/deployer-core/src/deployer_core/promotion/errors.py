"""Exception hierarchy for image promotion.

All exceptions inherit from PromotionError so the entry points can catch
every fatal promotion failure with a single except clause.

Exception Hierarchy:
    PromotionError (base)
    ├── ManifestReadError       # deploy manifest unreadable or malformed
    ├── InvalidManifestError    # registry image manifest structurally invalid
    ├── TargetClientError       # target registry credentials/client failed
    ├── UpstreamNotFoundError   # source image or its manifest missing
    ├── InvalidImageSpecError   # empty repository or tag
    ├── RegistryOperationError  # registry API call failed
    ├── LayerTransferError      # blob download/upload failed
    └── ImagePromotionError     # any of the above, tagged with repository:tag

A missing deploy manifest and "already exists" registry responses are not
errors and have no exception type.

Exit Codes:
    1 - General error (PromotionError, ManifestReadError, InvalidManifestError)
    2 - Target credentials (TargetClientError)
    3 - Source image not found (UpstreamNotFoundError)
    4 - Invalid input (InvalidImageSpecError)
    5 - Registry/network failure (RegistryOperationError, LayerTransferError)
"""

from __future__ import annotations


class PromotionError(Exception):
    """Base exception for all promotion errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
    """

    exit_code: int = 1


class ManifestReadError(PromotionError):
    """Raised when the deploy manifest exists but cannot be read or parsed.

    Attributes:
        bucket: Bucket holding the manifest.
        key: Object key of the manifest.
        reason: Description of the failure.
    """

    def __init__(self, bucket: str, key: str, reason: str) -> None:
        self.bucket = bucket
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to read deploy manifest s3://{bucket}/{key}: {reason}")


class InvalidManifestError(PromotionError):
    """Raised when a registry image manifest is not a valid manifest document.

    Attributes:
        reason: Description of the structural problem.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to parse image manifest: {reason}")


class TargetClientError(PromotionError):
    """Raised when a registry client for the target cannot be obtained.

    Usually means the execution role in the target account cannot be
    assumed. Raised before any image is touched.

    Attributes:
        account: Target account id.
        region: Target region.
        reason: Description of the failure.
        exit_code: CLI exit code (2).
    """

    exit_code: int = 2

    def __init__(self, account: str, region: str, reason: str) -> None:
        self.account = account
        self.region = region
        self.reason = reason
        super().__init__(
            f"Failed to create target registry client for account {account} "
            f"in {region}: {reason}"
        )


class UpstreamNotFoundError(PromotionError):
    """Raised when the source image, or its manifest, does not exist.

    Attributes:
        repository: Source repository name.
        tag: Requested tag.
        reason: What was missing.
        exit_code: CLI exit code (3).

    Example:
        >>> raise UpstreamNotFoundError("myapp/api", "1.0.0", "source image not found")
        Traceback (most recent call last):
            ...
        UpstreamNotFoundError: source image not found: myapp/api:1.0.0
    """

    exit_code: int = 3

    def __init__(self, repository: str, tag: str, reason: str) -> None:
        self.repository = repository
        self.tag = tag
        self.reason = reason
        super().__init__(f"{reason}: {repository}:{tag}")


class InvalidImageSpecError(PromotionError):
    """Raised when an image entry has an empty repository or tag.

    Attributes:
        repository: Repository as given (may be empty).
        tag: Tag as given (may be empty).
        reason: Which field is invalid.
        exit_code: CLI exit code (4).
    """

    exit_code: int = 4

    def __init__(self, repository: str, tag: str, reason: str) -> None:
        self.repository = repository
        self.tag = tag
        self.reason = reason
        super().__init__(reason)


class RegistryOperationError(PromotionError):
    """Raised when a registry API call fails.

    Attributes:
        operation: Registry operation name (e.g. "put_image").
        repository: Repository the call targeted.
        reason: Description of the failure.
        exit_code: CLI exit code (5).
    """

    exit_code: int = 5

    def __init__(self, operation: str, repository: str, reason: str) -> None:
        self.operation = operation
        self.repository = repository
        self.reason = reason
        super().__init__(f"Registry operation '{operation}' failed for {repository}: {reason}")


class LayerTransferError(PromotionError):
    """Raised when copying a blob from source to target fails.

    Attributes:
        repository: Repository the blob belongs to.
        digest: Blob digest being copied.
        stage: Transfer stage that failed (download_url, download, upload, complete).
        reason: Description of the failure.
        bytes_transferred: Bytes downloaded (download stages) or uploaded
            (upload stages) before the failure.
        exit_code: CLI exit code (5).
    """

    exit_code: int = 5

    def __init__(
        self,
        repository: str,
        digest: str,
        stage: str,
        reason: str,
        bytes_transferred: int = 0,
    ) -> None:
        self.repository = repository
        self.digest = digest
        self.stage = stage
        self.reason = reason
        self.bytes_transferred = bytes_transferred
        super().__init__(
            f"Failed to copy layer {digest} ({stage}, {bytes_transferred} bytes "
            f"transferred): {reason}"
        )


class ImagePromotionError(PromotionError):
    """Raised by the coordinator when one image of a batch fails.

    Carries the offending image identity and keeps the exit code of the
    underlying error.

    Attributes:
        repository: Repository of the failed image.
        tag: Tag of the failed image.
        cause: The underlying error.
    """

    def __init__(self, repository: str, tag: str, cause: Exception) -> None:
        self.repository = repository
        self.tag = tag
        self.cause = cause
        self.exit_code = getattr(cause, "exit_code", PromotionError.exit_code)
        super().__init__(f"Failed to promote image {repository}:{tag}: {cause}")


__all__ = [
    "ImagePromotionError",
    "InvalidImageSpecError",
    "InvalidManifestError",
    "LayerTransferError",
    "ManifestReadError",
    "PromotionError",
    "RegistryOperationError",
    "TargetClientError",
    "UpstreamNotFoundError",
]
