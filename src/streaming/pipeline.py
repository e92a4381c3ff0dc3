"""
Stream pipeline: consume, decode, classify, derive, publish.

State machine:
    STARTING -> RUNNING -> DRAINING -> STOPPED
    STARTING -> STOPPED (subscription failure, raised to the caller)

The poll call is the only place the loop waits; it is bounded by the poll
timeout so a cancellation request is seen promptly. Malformed messages and
failed publishes are logged and counted, never fatal.
"""

import asyncio
import time
from enum import Enum
from collections.abc import Callable
from typing import Any, Protocol

from aiokafka.errors import KafkaError

from config.settings import KafkaSettings, get_settings
from src.analytics.aggregator import StatsAggregator
from src.analytics.rules import ClassificationRules
from src.events.codec import decode, encode_intent
from src.events.models import (
    DerivedIntent,
    Destination,
    EventType,
    FraudAlert,
    InteractionEvent,
)
from src.monitoring.metrics import PipelineMetrics
from src.streaming.consumer import InboundMessage
from src.utils.exceptions import DecodeError, PublishError, SubscriptionError
from src.utils.logging import get_logger, log_context

logger = get_logger(__name__)


class PipelineState(str, Enum):
    """Lifecycle of a pipeline run."""

    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class InboundSource(Protocol):
    """Where interaction events come from (EventConsumer in production)."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def poll(self, timeout: float) -> list[InboundMessage]: ...


class OutboundSink(Protocol):
    """Where derived intents go (IntentPublisher in production)."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def publish(self, destination: str, key: str | None, payload: bytes) -> None: ...


def routes_from_settings(kafka: KafkaSettings) -> dict[Destination, str]:
    """Map each logical destination to its configured topic."""
    return {
        Destination.FRAUD_ALERTS: kafka.fraud_alerts_topic,
        Destination.PROCESSED_PURCHASES: kafka.processed_purchases_topic,
        Destination.RECOMMENDATIONS: kafka.recommendations_topic,
    }


class StreamPipeline:
    """
    The control loop between the inbound source and the outbound sink.

    Owns the per-event decode/record/classify/publish sequence and nothing
    else; counters belong to the aggregator, which may be shared with a
    reporter.
    """

    def __init__(
        self,
        source: InboundSource,
        sink: OutboundSink,
        aggregator: StatsAggregator | None = None,
        rules: ClassificationRules | None = None,
        metrics: PipelineMetrics | None = None,
        poll_timeout: float | None = None,
        routes: dict[Destination, str] | None = None,
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            source: Inbound message source
            sink: Outbound publisher
            aggregator: Shared statistics aggregator
            rules: Classification rule set
            metrics: Prometheus metrics holder
            poll_timeout: Maximum seconds one poll may wait
            routes: Topic for each logical destination
            on_progress: Called with the running processed-event count after
                each recorded event and its publishes
        """
        settings = get_settings()

        self._source = source
        self._sink = sink
        self.aggregator = aggregator if aggregator is not None else StatsAggregator()
        self.rules = rules or ClassificationRules.from_settings(settings.processor)
        self.metrics = metrics or PipelineMetrics()
        self.poll_timeout = (
            poll_timeout if poll_timeout is not None else settings.processor.poll_timeout_seconds
        )
        self._routes = routes or routes_from_settings(settings.kafka)
        self.on_progress = on_progress

        self._state = PipelineState.STOPPED
        self._has_run = False

        # Stats
        self._events_processed = 0
        self._decode_errors = 0
        self._processing_errors = 0
        self._published: dict[str, int] = {d.value: 0 for d in Destination}
        self._publish_failures = 0

    @property
    def state(self) -> PipelineState:
        return self._state

    async def run(self, cancel: asyncio.Event) -> None:
        """
        Run the pipeline until `cancel` is set.

        Args:
            cancel: Cooperative cancellation signal, shared with the reporter

        Raises:
            SubscriptionError: If the inbound source cannot be attached
            RuntimeError: If this pipeline has already run
        """
        if self._has_run:
            raise RuntimeError("Pipeline has already run; create a new one")
        self._has_run = True

        self._state = PipelineState.STARTING
        logger.info("Starting stream pipeline", poll_timeout=self.poll_timeout)

        try:
            await self._source.start()
            await self._sink.start()
        except SubscriptionError as e:
            logger.error("Subscription failed, pipeline stopped", error=str(e))
            await self._close()
            self._state = PipelineState.STOPPED
            raise
        except KafkaError as e:
            logger.error("Publisher failed to start, pipeline stopped", error=str(e))
            await self._close()
            self._state = PipelineState.STOPPED
            raise SubscriptionError(f"cannot start publisher: {e}") from e

        self._state = PipelineState.RUNNING
        logger.info("Stream pipeline running")

        try:
            while not cancel.is_set():
                try:
                    messages = await self._source.poll(self.poll_timeout)
                except KafkaError as e:
                    logger.error("Poll failed", error=str(e))
                    await self._wait(cancel, self.poll_timeout)
                    continue

                # A fetched batch is in flight: finish it even if cancelled meanwhile
                for message in messages:
                    await self.process_message(message)

            self._state = PipelineState.DRAINING
            logger.info("Cancellation received, draining pipeline")

        finally:
            await self._close()
            self._state = PipelineState.STOPPED
            logger.info("Stream pipeline stopped", **self.get_stats())

    async def process_message(self, message: InboundMessage) -> list[DerivedIntent]:
        """
        Decode, record, classify and publish one inbound message.

        Returns:
            The intents derived from the message (empty if it was skipped)
        """
        result = decode(message.value)

        if isinstance(result, DecodeError):
            self._decode_errors += 1
            self.metrics.decode_errors_total.inc()
            logger.warning(
                "Skipping undecodable message",
                reason=result.reason,
                topic=message.topic,
                partition=message.partition,
                offset=message.offset,
                payload=result.preview(),
            )
            return []

        return await self.process_event(result, message)

    async def process_event(
        self,
        event: InteractionEvent,
        message: InboundMessage | None = None,
    ) -> list[DerivedIntent]:
        """Record an already-decoded event and publish what it derives."""
        partition = message.partition if message else None
        offset = message.offset if message else None
        started = time.perf_counter()

        with log_context(user_id=event.user_id, event_type=event.event_type):
            try:
                self.aggregator.record(event)
                intents = self.rules.evaluate(event)
            except Exception as e:
                self._processing_errors += 1
                self.metrics.processing_errors_total.inc()
                logger.error(
                    "Event processing failed",
                    partition=partition,
                    offset=offset,
                    error=str(e),
                )
                return []

            self._events_processed += 1
            self.metrics.events_consumed_total.labels(event_type=event.event_type).inc()
            self._log_event(event, partition, offset)

            for intent in intents:
                await self._publish(intent)

            if self.on_progress is not None:
                self.on_progress(self._events_processed)

        self.metrics.event_processing_seconds.observe(time.perf_counter() - started)
        return intents

    async def _publish(self, intent: DerivedIntent) -> bool:
        """Send one intent; failures are reported and swallowed."""
        destination = intent.destination
        topic = self._routes[destination]

        try:
            await self._sink.publish(topic, intent.key, encode_intent(intent))
        except PublishError as e:
            self._publish_failures += 1
            self.metrics.publish_errors_total.labels(destination=destination.value).inc()
            logger.error(
                "Failed to publish intent",
                destination=e.destination,
                key=e.key,
                error=e.reason,
            )
            return False
        except Exception as e:
            self._publish_failures += 1
            self.metrics.publish_errors_total.labels(destination=destination.value).inc()
            logger.error(
                "Unexpected error publishing intent",
                destination=topic,
                key=intent.key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        self._published[destination.value] += 1
        self.metrics.intents_published_total.labels(destination=destination.value).inc()

        if isinstance(intent, FraudAlert):
            logger.warning("Fraud alert published", user_id=intent.user_id, value=float(intent.value))
        else:
            logger.debug("Intent published", destination=topic, type=intent.type)

        return True

    def _log_event(self, event: InteractionEvent, partition: int | None, offset: int | None) -> None:
        logger.debug("Event processed", partition=partition, offset=offset)

        if event.event_type == EventType.PURCHASE.value:
            logger.info("Purchase received", product_id=event.product_id, value=float(event.value))
        elif event.event_type == EventType.LOGIN.value:
            logger.info("Login received", session_id=event.session_id)
        elif not event.is_known_type:
            logger.debug("Unknown event type")

    async def _wait(self, cancel: asyncio.Event, timeout: float) -> None:
        try:
            await asyncio.wait_for(cancel.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass

    async def _close(self) -> None:
        """Stop polling first, then flush and close the publisher."""
        for client in (self._source, self._sink):
            try:
                await client.stop()
            except KafkaError as e:
                logger.error("Error closing client", client=type(client).__name__, error=str(e))

    def get_stats(self) -> dict[str, Any]:
        """Get pipeline statistics."""
        return {
            "state": self._state.value,
            "events_processed": self._events_processed,
            "decode_errors": self._decode_errors,
            "processing_errors": self._processing_errors,
            "published": dict(self._published),
            "publish_failures": self._publish_failures,
        }
