"""
Async Kafka consumer acting as the pipeline's inbound source.

Features:
- Consumer group management for scalability
- Configurable offset management (auto-commit or manual)
- Bounded-timeout polling so callers regain control regularly
- Raw payload delivery; decoding is left to the pipeline
- Graceful shutdown with offset commit
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError

from config.settings import get_settings
from src.utils.exceptions import SubscriptionError
from src.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class InboundMessage:
    """A raw message plus delivery metadata (informational only)."""

    value: bytes | None
    topic: str = ""
    partition: int = -1
    offset: int = -1
    key: str | None = None


def _decode_key(key: bytes | None) -> str | None:
    return key.decode("utf-8", errors="replace") if key else None


class EventConsumer:
    """
    Async Kafka consumer for the interaction event topic.

    Handles:
    - Subscription at start, surfaced as SubscriptionError on failure
    - Polling with a bounded timeout
    - Offset commit on shutdown when auto-commit is off
    """

    def __init__(
        self,
        topics: list[str] | None = None,
        group_id: str | None = None,
        bootstrap_servers: str | None = None,
        client_id: str | None = None,
        auto_commit: bool | None = None,
        auto_commit_interval_ms: int | None = None,
        max_poll_records: int | None = None,
        session_timeout_ms: int = 30000,
        heartbeat_interval_ms: int = 10000,
        auto_offset_reset: str | None = None,
    ) -> None:
        """
        Initialize the event consumer.

        Args:
            topics: Topics to subscribe to (defaults to the input topic)
            group_id: Consumer group ID
            bootstrap_servers: Kafka bootstrap servers
            client_id: Client identifier
            auto_commit: Whether to auto-commit offsets
            auto_commit_interval_ms: Auto-commit interval
            max_poll_records: Maximum records returned by one poll
            session_timeout_ms: Session timeout
            heartbeat_interval_ms: Heartbeat interval
            auto_offset_reset: Where to start if no offset ("earliest" or "latest")
        """
        settings = get_settings()
        kafka = settings.kafka

        self.topics = topics or [kafka.input_topic]
        self.group_id = group_id or kafka.consumer_group
        self.bootstrap_servers = bootstrap_servers or kafka.bootstrap_servers
        self.auto_commit = kafka.enable_auto_commit if auto_commit is None else auto_commit
        self.max_poll_records = max_poll_records or settings.processor.max_poll_records

        self._consumer: AIOKafkaConsumer | None = None
        self._started = False
        self._lock = asyncio.Lock()

        self._config = {
            "bootstrap_servers": self.bootstrap_servers,
            "group_id": self.group_id,
            "client_id": client_id or f"{kafka.client_id}-consumer",
            "enable_auto_commit": self.auto_commit,
            "auto_commit_interval_ms": auto_commit_interval_ms or kafka.auto_commit_interval_ms,
            "max_poll_records": self.max_poll_records,
            "session_timeout_ms": session_timeout_ms,
            "heartbeat_interval_ms": heartbeat_interval_ms,
            "auto_offset_reset": auto_offset_reset or kafka.auto_offset_reset,
        }

        # Metrics
        self._messages_received = 0
        self._last_message_time: datetime | None = None

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """
        Connect and subscribe to the configured topics.

        Raises:
            SubscriptionError: If the broker cannot be reached or joined
        """
        async with self._lock:
            if self._started:
                return

            try:
                self._consumer = AIOKafkaConsumer(*self.topics, **self._config)
                await self._consumer.start()
                self._started = True

                logger.info(
                    "Kafka consumer started",
                    topics=self.topics,
                    group_id=self.group_id,
                    bootstrap_servers=self.bootstrap_servers,
                )

            except KafkaError as e:
                logger.error("Failed to subscribe to Kafka", topics=self.topics, error=str(e))
                self._consumer = None
                raise SubscriptionError(f"cannot subscribe to {self.topics}: {e}") from e

    async def stop(self) -> None:
        """Stop the consumer gracefully."""
        async with self._lock:
            if not self._started or not self._consumer:
                return

            try:
                # Commit final offsets if not auto-committing
                if not self.auto_commit:
                    await self._consumer.commit()

                await self._consumer.stop()

                logger.info(
                    "Kafka consumer stopped",
                    messages_received=self._messages_received,
                )

            except KafkaError as e:
                logger.error("Error stopping consumer", error=str(e))

            finally:
                self._consumer = None
                self._started = False

    async def poll(self, timeout: float) -> list[InboundMessage]:
        """
        Fetch the next batch of messages, waiting at most `timeout` seconds.

        Args:
            timeout: Maximum wait in seconds

        Returns:
            Messages in delivery order per partition (empty on timeout)
        """
        if not self._started or not self._consumer:
            raise RuntimeError("Consumer not started")

        data = await self._consumer.getmany(
            timeout_ms=int(timeout * 1000),
            max_records=self.max_poll_records,
        )

        messages = []
        for _tp, records in data.items():
            for record in records:
                messages.append(
                    InboundMessage(
                        value=record.value,
                        topic=record.topic,
                        partition=record.partition,
                        offset=record.offset,
                        key=_decode_key(record.key),
                    )
                )

        if messages:
            self._messages_received += len(messages)
            self._last_message_time = datetime.now()

        return messages

    async def commit(self) -> None:
        """Manually commit current offsets."""
        if not self._started or not self._consumer:
            return

        try:
            await self._consumer.commit()
            logger.debug("Offsets committed")
        except KafkaError as e:
            logger.error("Failed to commit offsets", error=str(e))

    def get_stats(self) -> dict[str, Any]:
        """Get consumer statistics."""
        return {
            "started": self._started,
            "messages_received": self._messages_received,
            "last_message_time": self._last_message_time.isoformat() if self._last_message_time else None,
            "topics": self.topics,
            "group_id": self.group_id,
        }

    async def __aenter__(self) -> "EventConsumer":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.stop()
