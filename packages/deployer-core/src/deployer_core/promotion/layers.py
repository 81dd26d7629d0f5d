"""Layer diff: which blobs does the target repository still need?

Availability is queried in batches of at most 100 digests (an ECR API
limit) and merged. A digest counts as missing unless the registry
explicitly reports it AVAILABLE: unavailable layers, per-digest failures
and digests the response leaves out are all copied.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from deployer_core.promotion.registry import MAX_LAYER_AVAILABILITY_BATCH

if TYPE_CHECKING:
    from deployer_core.promotion.registry import ECRRegistry

logger = structlog.get_logger(__name__)


def unique_digests(digests: Iterable[str]) -> list[str]:
    """Drop repeated digests, keeping first-occurrence order."""
    return list(dict.fromkeys(digests))


def chunked(items: list[str], size: int) -> Iterator[list[str]]:
    """Yield consecutive slices of at most ``size`` items.

    Raises:
        ValueError: If ``size`` is not positive.

    Example:
        >>> list(chunked(["a", "b", "c"], 2))
        [['a', 'b'], ['c']]
    """
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass
class LayerDiff:
    """Partition of an image's digests at the target.

    Attributes:
        present: Digests the target reported AVAILABLE.
        missing: Digests that must be copied, in input order.
    """

    present: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


def find_missing_layers(
    registry: ECRRegistry,
    repository: str,
    digests: list[str],
    *,
    batch_size: int = MAX_LAYER_AVAILABILITY_BATCH,
) -> LayerDiff:
    """Partition ``digests`` into present and missing at ``registry``.

    Args:
        registry: Target registry.
        repository: Target repository name.
        digests: Blob digests of one image (duplicates are collapsed).
        batch_size: Digests per availability query, capped at the ECR limit.

    Returns:
        The LayerDiff.

    Raises:
        RegistryOperationError: If an availability query fails.
    """
    diff = LayerDiff()
    batch_size = min(batch_size, MAX_LAYER_AVAILABILITY_BATCH)

    for batch in chunked(unique_digests(digests), batch_size):
        available = {
            status.digest
            for status in registry.check_layer_availability(repository, batch)
            if status.available
        }
        for digest in batch:
            if digest in available:
                diff.present.append(digest)
            else:
                diff.missing.append(digest)

    logger.debug(
        "layer_diff_resolved",
        repository=repository,
        present=len(diff.present),
        missing=len(diff.missing),
    )
    return diff


__all__ = ["LayerDiff", "chunked", "find_missing_layers", "unique_digests"]
