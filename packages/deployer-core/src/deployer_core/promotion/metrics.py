"""OpenTelemetry metrics for image promotion.

Metrics Emitted:
    Counters:
        - deployer_images_promoted_total: Images promoted, by status and mode
        - deployer_layers_copied_total: Layer copies, by outcome (created/already_exists)
        - deployer_layer_bytes_total: Bytes uploaded to target registries

    Histograms:
        - deployer_image_promotion_duration_seconds: Per-image promotion time

Instruments are created lazily from the global meter provider; without an
SDK configured they are no-ops.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from opentelemetry import metrics

if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.metrics import Counter, Histogram


class PromotionMetrics:
    """Metric instruments for promotion operations.

    Example:
        >>> m = PromotionMetrics()
        >>> with m.image_timer(cross_account=True):
        ...     promote()
        >>> m.record_layer_copy("created", size=1024)
    """

    IMAGES_PROMOTED_TOTAL = "deployer_images_promoted_total"
    LAYERS_COPIED_TOTAL = "deployer_layers_copied_total"
    LAYER_BYTES_TOTAL = "deployer_layer_bytes_total"
    IMAGE_PROMOTION_DURATION_SECONDS = "deployer_image_promotion_duration_seconds"

    def __init__(
        self,
        meter_name: str = "deployer.promotion",
        meter_version: str = "0.1.0",
    ) -> None:
        self._meter = metrics.get_meter(meter_name, meter_version)
        self._images_counter: Counter | None = None
        self._layers_counter: Counter | None = None
        self._bytes_counter: Counter | None = None
        self._duration_histogram: Histogram | None = None

    @property
    def images_counter(self) -> Counter:
        if self._images_counter is None:
            self._images_counter = self._meter.create_counter(
                self.IMAGES_PROMOTED_TOTAL,
                unit="1",
                description="Images promoted by status and mode",
            )
        return self._images_counter

    @property
    def layers_counter(self) -> Counter:
        if self._layers_counter is None:
            self._layers_counter = self._meter.create_counter(
                self.LAYERS_COPIED_TOTAL,
                unit="1",
                description="Layer copies by outcome",
            )
        return self._layers_counter

    @property
    def bytes_counter(self) -> Counter:
        if self._bytes_counter is None:
            self._bytes_counter = self._meter.create_counter(
                self.LAYER_BYTES_TOTAL,
                unit="By",
                description="Bytes uploaded to target registries",
            )
        return self._bytes_counter

    @property
    def duration_histogram(self) -> Histogram:
        if self._duration_histogram is None:
            self._duration_histogram = self._meter.create_histogram(
                self.IMAGE_PROMOTION_DURATION_SECONDS,
                unit="s",
                description="Duration of one image promotion",
            )
        return self._duration_histogram

    def record_layer_copy(self, outcome: str, size: int) -> None:
        """Record one completed layer copy of ``size`` bytes."""
        self.layers_counter.add(1, {"outcome": outcome})
        self.bytes_counter.add(size)

    @contextmanager
    def image_timer(self, *, cross_account: bool) -> Generator[None, None, None]:
        """Time one image promotion and count it as success or failure."""
        mode = "cross_account" if cross_account else "same_account"
        start = time.monotonic()
        status = "failure"
        try:
            yield
            status = "success"
        finally:
            labels = {"status": status, "mode": mode}
            self.duration_histogram.record(time.monotonic() - start, labels)
            self.images_counter.add(1, labels)


__all__ = ["PromotionMetrics"]
