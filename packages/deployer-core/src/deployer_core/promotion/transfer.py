"""Layer copy from a source registry to a target registry.

One copy is: presigned download URL from the source, full download over
HTTP, then an upload session at the target (one or more sequential parts)
completed with the SHA256 digest recomputed from the uploaded bytes. The
target verifies that digest, which is the integrity check of the copy.

A "layer already exists" completion is success, so re-running a copy after
a partial failure or racing another writer is harmless.

Missing layers of one image may be copied in parallel with copy_all();
it returns only after every copy has finished or the first failure has
been raised.

Example:
    >>> copier = LayerCopier(source, target, http_client=httpx.Client())
    >>> result = copier.copy("myapp/api", "sha256:abc...")
    >>> result.outcome
    <WriteOutcome.CREATED: 'created'>
"""

from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
import structlog

from deployer_core.promotion.errors import LayerTransferError, RegistryOperationError
from deployer_core.promotion.manifest import calculate_digest
from deployer_core.promotion.metrics import PromotionMetrics
from deployer_core.telemetry.sanitization import sanitize_error_message
from deployer_core.telemetry.tracing import SPAN_COPY_LAYER, create_span

if TYPE_CHECKING:
    from deployer_core.promotion.registry import ECRRegistry, WriteOutcome

logger = structlog.get_logger(__name__)

MAX_PART_SIZE = 5 * 1024 * 1024 * 1024
"""Largest part ECR accepts in one UploadLayerPart call (5 GiB)."""

MAX_WORKERS_LIMIT = 20
"""Upper bound on parallel layer copies per image."""


def plan_parts(total_size: int, max_part_size: int = MAX_PART_SIZE) -> list[tuple[int, int]]:
    """Split ``total_size`` bytes into inclusive (first_byte, last_byte) ranges.

    A blob no larger than ``max_part_size`` is a single part. An empty blob
    has no parts.

    Raises:
        ValueError: If ``max_part_size`` is not positive or ``total_size`` is negative.

    Example:
        >>> plan_parts(10, max_part_size=4)
        [(0, 3), (4, 7), (8, 9)]
    """
    if max_part_size < 1:
        raise ValueError(f"max_part_size must be positive, got {max_part_size}")
    if total_size < 0:
        raise ValueError(f"total_size must not be negative, got {total_size}")
    return [
        (start, min(start + max_part_size, total_size) - 1)
        for start in range(0, total_size, max_part_size)
    ]


@dataclass(frozen=True)
class LayerCopyResult:
    """Outcome of one layer copy.

    Attributes:
        digest: Requested layer digest.
        size: Bytes copied.
        outcome: CREATED, or ALREADY_EXISTS if the target already had it.
    """

    digest: str
    size: int
    outcome: WriteOutcome


class LayerCopier:
    """Copies layer blobs between two registries.

    Args:
        source: Registry to download from.
        target: Registry to upload to.
        http_client: Client used for the presigned blob download.
        max_part_size: Largest upload part; blobs above it are split.
        metrics: Metric recorder (a default one is created if omitted).
    """

    def __init__(
        self,
        source: ECRRegistry,
        target: ECRRegistry,
        *,
        http_client: httpx.Client,
        max_part_size: int = MAX_PART_SIZE,
        metrics: PromotionMetrics | None = None,
    ) -> None:
        self._source = source
        self._target = target
        self._http = http_client
        self._max_part_size = max_part_size
        self._metrics = metrics if metrics is not None else PromotionMetrics()

    def download(self, repository: str, digest: str) -> bytes:
        """Download a whole layer blob from the source registry.

        Raises:
            LayerTransferError: If the URL cannot be obtained or the download fails.
        """
        try:
            url = self._source.get_download_url(repository, digest)
        except RegistryOperationError as e:
            raise LayerTransferError(repository, digest, "download_url", e.reason) from e

        buffer = bytearray()
        try:
            with self._http.stream("GET", url) as response:
                if response.status_code != httpx.codes.OK:
                    raise LayerTransferError(
                        repository,
                        digest,
                        "download",
                        f"unexpected status code downloading layer: {response.status_code}",
                    )
                for chunk in response.iter_bytes():
                    buffer.extend(chunk)
        except httpx.HTTPError as e:
            raise LayerTransferError(
                repository,
                digest,
                "download",
                sanitize_error_message(str(e)),
                bytes_transferred=len(buffer),
            ) from e
        return bytes(buffer)

    def upload(self, repository: str, digest: str, blob: bytes) -> WriteOutcome:
        """Upload a blob to the target registry and complete it.

        The digest declared at completion is computed from ``blob``; the
        requested ``digest`` is only used for error context.

        Raises:
            LayerTransferError: If any upload step fails.
        """
        uploaded = 0
        try:
            upload_id = self._target.initiate_upload(repository)
            for first, last in plan_parts(len(blob), self._max_part_size):
                part = blob if (first, last) == (0, len(blob) - 1) else blob[first : last + 1]
                self._target.upload_part(repository, upload_id, first, last, part)
                uploaded = last + 1

            actual = calculate_digest(blob)
            if actual != digest:
                logger.warning(
                    "layer_digest_differs",
                    repository=repository,
                    requested_digest=digest,
                    computed_digest=actual,
                )
            return self._target.complete_upload(repository, upload_id, actual)
        except RegistryOperationError as e:
            raise LayerTransferError(
                repository, digest, e.operation, e.reason, bytes_transferred=uploaded
            ) from e

    def copy(self, repository: str, digest: str) -> LayerCopyResult:
        """Copy one layer from source to target."""
        with create_span(
            SPAN_COPY_LAYER,
            {"image.repository": repository, "layer.digest": digest},
        ) as span:
            blob = self.download(repository, digest)
            outcome = self.upload(repository, digest, blob)
            span.set_attribute("layer.size", len(blob))
            span.set_attribute("layer.outcome", outcome.value)

        self._metrics.record_layer_copy(outcome.value, len(blob))
        logger.debug(
            "layer_copied",
            repository=repository,
            digest=digest,
            size=len(blob),
            outcome=outcome.value,
        )
        return LayerCopyResult(digest=digest, size=len(blob), outcome=outcome)

    def copy_all(
        self,
        repository: str,
        digests: list[str],
        *,
        max_workers: int = 1,
    ) -> list[LayerCopyResult]:
        """Copy several layers, in parallel when ``max_workers`` > 1.

        Returns only once every copy has finished. On failure, copies not yet
        started are cancelled, running ones are awaited, and the first error
        observed is raised.

        Returns:
            Results in the order of ``digests``.

        Raises:
            LayerTransferError: If any copy fails.
        """
        workers = min(max_workers, MAX_WORKERS_LIMIT, len(digests))
        if workers <= 1:
            return [self.copy(repository, digest) for digest in digests]

        results: dict[str, LayerCopyResult] = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(
                    contextvars.copy_context().run, self.copy, repository, digest
                ): digest
                for digest in digests
            }
            try:
                for future in as_completed(futures):
                    result = future.result()
                    results[result.digest] = result
            except Exception:
                for pending in futures:
                    pending.cancel()
                raise
        return [results[digest] for digest in digests]


__all__ = [
    "MAX_PART_SIZE",
    "MAX_WORKERS_LIMIT",
    "LayerCopier",
    "LayerCopyResult",
    "plan_parts",
]
