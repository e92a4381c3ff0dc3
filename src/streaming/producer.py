"""
Async Kafka producer acting as the pipeline's outbound sink.

Features:
- Connection management with a single start/stop lifecycle
- Raw byte payloads (serialization is done by the event codec)
- Fire-and-forget sends with delivery failures logged and counted
- Optional wait for broker acknowledgement
- Throughput and error metrics
"""

import asyncio
from typing import Any

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from config.settings import get_settings
from src.utils.exceptions import PublishError
from src.utils.logging import get_logger

logger = get_logger(__name__)


class IntentPublisher:
    """
    Async Kafka producer for derived intents.

    Handles:
    - Connection lifecycle
    - Keyed sends to a named destination topic
    - Graceful shutdown with message flushing
    """

    def __init__(
        self,
        bootstrap_servers: str | None = None,
        client_id: str | None = None,
        linger_ms: int = 10,
        compression_type: str | None = "gzip",
        acks: int | str = 1,
        request_timeout_ms: int = 30000,
        wait_for_delivery: bool = False,
        flush_timeout: float = 10.0,
    ) -> None:
        """
        Initialize the intent publisher.

        Args:
            bootstrap_servers: Kafka bootstrap servers
            client_id: Client identifier
            linger_ms: Time to wait for batching
            compression_type: Compression algorithm (gzip, snappy, lz4)
            acks: Acknowledgment level (0, 1, "all")
            request_timeout_ms: Broker request timeout
            wait_for_delivery: Await the broker acknowledgement for each send
            flush_timeout: Seconds to wait for pending sends on stop
        """
        kafka = get_settings().kafka
        self.bootstrap_servers = bootstrap_servers or kafka.bootstrap_servers
        self.wait_for_delivery = wait_for_delivery
        self.flush_timeout = flush_timeout

        self._producer: AIOKafkaProducer | None = None
        self._started = False
        self._lock = asyncio.Lock()

        self._config = {
            "bootstrap_servers": self.bootstrap_servers,
            "client_id": client_id or f"{kafka.client_id}-producer",
            "key_serializer": lambda k: k.encode("utf-8") if k else None,
            "compression_type": compression_type,
            "linger_ms": linger_ms,
            "acks": acks,
            "request_timeout_ms": request_timeout_ms,
        }

        # Metrics
        self._messages_sent = 0
        self._messages_failed = 0
        self._bytes_sent = 0

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start the producer and connect to Kafka."""
        async with self._lock:
            if self._started:
                return

            try:
                self._producer = AIOKafkaProducer(**self._config)
                await self._producer.start()
                self._started = True

                logger.info(
                    "Kafka producer started",
                    bootstrap_servers=self.bootstrap_servers,
                )

            except KafkaError as e:
                logger.error("Failed to connect to Kafka", error=str(e))
                self._producer = None
                raise

    async def stop(self) -> None:
        """Stop the producer and flush pending messages."""
        async with self._lock:
            if not self._started or not self._producer:
                return

            try:
                await asyncio.wait_for(self._producer.flush(), timeout=self.flush_timeout)
            except asyncio.TimeoutError:
                logger.warning("Timed out flushing producer", timeout=self.flush_timeout)

            try:
                await self._producer.stop()

                logger.info(
                    "Kafka producer stopped",
                    messages_sent=self._messages_sent,
                    messages_failed=self._messages_failed,
                    bytes_sent=self._bytes_sent,
                )

            except KafkaError as e:
                logger.error("Error stopping producer", error=str(e))

            finally:
                self._producer = None
                self._started = False

    async def publish(self, destination: str, key: str | None, payload: bytes) -> None:
        """
        Send one payload to a destination topic.

        Args:
            destination: Target topic
            key: Message key for partitioning
            payload: Encoded message value

        Raises:
            PublishError: If the producer is not running or rejects the send
        """
        if not self._started or not self._producer:
            self._messages_failed += 1
            raise PublishError(destination, key, "producer not started")

        try:
            future = await self._producer.send(topic=destination, value=payload, key=key)
            if self.wait_for_delivery:
                metadata = await future
                logger.debug(
                    "Message delivered",
                    topic=destination,
                    partition=metadata.partition,
                    offset=metadata.offset,
                )
            else:
                future.add_done_callback(
                    lambda f: self._on_delivery(f, destination, key)
                )

        except KafkaError as e:
            self._messages_failed += 1
            raise PublishError(destination, key, str(e)) from e

        self._messages_sent += 1
        self._bytes_sent += len(payload)

    def _on_delivery(self, future: asyncio.Future, destination: str, key: str | None) -> None:
        """Log sends that the broker rejected after they were queued."""
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self._messages_failed += 1
            logger.error(
                "Delivery failed",
                destination=destination,
                key=key,
                error=str(error),
            )

    def get_stats(self) -> dict[str, Any]:
        """Get producer statistics."""
        return {
            "started": self._started,
            "messages_sent": self._messages_sent,
            "messages_failed": self._messages_failed,
            "bytes_sent": self._bytes_sent,
        }

    async def __aenter__(self) -> "IntentPublisher":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.stop()
