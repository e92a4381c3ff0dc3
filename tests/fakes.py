"""
In-memory test doubles for the Kafka-facing collaborators.
"""

import asyncio
import json
from collections.abc import Callable
from typing import Any

from src.events.codec import decode_intent
from src.streaming.consumer import InboundMessage
from src.utils.exceptions import PublishError, SubscriptionError


class FixedRandom:
    """Random source returning a fixed sequence of values, cycling at the end."""

    def __init__(self, *values: float) -> None:
        self.values = list(values) or [0.0]
        self.calls = 0

    def random(self) -> float:
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


class FakeSource:
    """In-memory inbound source returning queued batches."""

    def __init__(
        self,
        batches: list[list[InboundMessage]] | None = None,
        cancel_when_drained: asyncio.Event | None = None,
        fail_start: bool = False,
    ) -> None:
        self.batches = list(batches or [])
        self.cancel_when_drained = cancel_when_drained
        self.fail_start = fail_start
        self.started = False
        self.stopped = False
        self.poll_calls = 0

    async def start(self) -> None:
        if self.fail_start:
            raise SubscriptionError("broker unreachable")
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def poll(self, timeout: float) -> list[InboundMessage]:
        self.poll_calls += 1
        if self.batches:
            return self.batches.pop(0)
        if self.cancel_when_drained is not None:
            self.cancel_when_drained.set()
            return []
        # Nothing to deliver: wait out the poll timeout like a real broker
        await asyncio.sleep(timeout)
        return []


class RecordingSink:
    """In-memory outbound sink that records every publish."""

    def __init__(self, fail_destinations: tuple[str, ...] = ()) -> None:
        self.fail_destinations = fail_destinations
        self.published: list[tuple[str, str | None, bytes]] = []
        self.attempts = 0
        self.started = False
        self.stopped = False
        self.on_publish: Callable[[], None] | None = None

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def publish(self, destination: str, key: str | None, payload: bytes) -> None:
        self.attempts += 1
        if self.on_publish is not None:
            self.on_publish()
        if destination in self.fail_destinations:
            raise PublishError(destination, key, "broker unavailable")
        self.published.append((destination, key, payload))

    def destinations(self) -> list[str]:
        return [destination for destination, _, _ in self.published]

    def intents(self, destination: str | None = None) -> list[Any]:
        return [
            decode_intent(payload)
            for dest, _, payload in self.published
            if destination is None or dest == destination
        ]


def build_event_payload(
    event_type: str = "login",
    user_id: str = "user001",
    value: float | int | str = 0,
    product_id: str | None = None,
    session_id: str = "session_1000",
    timestamp: str = "2024-01-15T10:30:00Z",
) -> dict[str, Any]:
    return {
        "timestamp": timestamp,
        "userId": user_id,
        "eventType": event_type,
        "productId": product_id,
        "sessionId": session_id,
        "value": value,
    }


def build_message(offset: int = 0, **kwargs: Any) -> InboundMessage:
    payload = build_event_payload(**kwargs)
    return InboundMessage(
        value=json.dumps(payload).encode("utf-8"),
        topic="ecommerce-events",
        partition=0,
        offset=offset,
        key=payload["userId"],
    )
