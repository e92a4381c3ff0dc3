"""
Prometheus metrics for the stream processor.

Responsibilities:
- Count consumed events by type
- Count decode and publish failures
- Count published intents by destination
- Time per-event processing
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from src.utils.logging import get_logger

logger = get_logger(__name__)


class PipelineMetrics:
    """
    Prometheus metrics for the consume/classify/publish pipeline.

    Each instance owns its registry so several pipelines (and tests) can
    coexist in one process.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        prefix: str = "stream_processor",
    ) -> None:
        """
        Initialize metrics.

        Args:
            registry: Prometheus registry (a private one if None)
            prefix: Prefix for all metric names
        """
        self._registry = registry or CollectorRegistry()
        self._prefix = prefix

        self.events_consumed_total = Counter(
            self._metric_name("events_consumed_total"),
            "Interaction events decoded and recorded",
            ["event_type"],
            registry=self._registry,
        )

        self.decode_errors_total = Counter(
            self._metric_name("decode_errors_total"),
            "Inbound messages skipped because they could not be decoded",
            registry=self._registry,
        )

        self.processing_errors_total = Counter(
            self._metric_name("processing_errors_total"),
            "Decoded events whose processing raised unexpectedly",
            registry=self._registry,
        )

        self.intents_published_total = Counter(
            self._metric_name("intents_published_total"),
            "Derived intents sent to their destination",
            ["destination"],
            registry=self._registry,
        )

        self.publish_errors_total = Counter(
            self._metric_name("publish_errors_total"),
            "Derived intents that failed to send",
            ["destination"],
            registry=self._registry,
        )

        self.event_processing_seconds = Histogram(
            self._metric_name("event_processing_seconds"),
            "Time from decode to last publish for one event",
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=self._registry,
        )

        logger.debug("Metrics initialized", prefix=prefix)

    def _metric_name(self, name: str) -> str:
        return f"{self._prefix}_{name}"

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def value(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Read a sample value from this registry (0.0 if absent)."""
        result = self._registry.get_sample_value(self._metric_name(name), labels or {})
        return result or 0.0

    def export(self) -> bytes:
        """Render all metrics in the Prometheus exposition format."""
        return generate_latest(self._registry)
