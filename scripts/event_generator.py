#!/usr/bin/env python3
"""
Event generator for the stream processor.

Publishes random e-commerce interaction events to the input topic, keyed by
user ID, with a short random pause between events. Useful for demos and for
exercising the processor end to end.
"""

import argparse
import asyncio
import random
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import get_settings
from src.events.codec import encode_event
from src.events.models import EventType, InteractionEvent

USERS = ["user001", "user002", "user003", "user004", "user005"]
PRODUCTS = ["product_A", "product_B", "product_C", "product_D"]


def generate_event(rng: random.Random) -> InteractionEvent:
    """Build one random interaction event."""
    return InteractionEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        user_id=rng.choice(USERS),
        event_type=rng.choice(list(EventType)).value,
        product_id=rng.choice(PRODUCTS) if rng.random() > 0.3 else None,
        session_id=f"session_{rng.randint(1000, 9999)}",
        value=Decimal(str(round(rng.random() * 490 + 10, 2))),
    )


async def run(
    bootstrap_servers: str,
    topic: str,
    count: int,
    min_delay: float,
    max_delay: float,
    seed: int | None,
) -> dict:
    """Publish `count` events and return send statistics."""
    rng = random.Random(seed)
    stats = {"sent": 0, "failed": 0}

    producer = AIOKafkaProducer(bootstrap_servers=bootstrap_servers, client_id="event-generator")
    await producer.start()

    try:
        for i in range(1, count + 1):
            event = generate_event(rng)

            try:
                metadata = await producer.send_and_wait(
                    topic,
                    value=encode_event(event),
                    key=event.user_id.encode("utf-8"),
                )
                stats["sent"] += 1
                print(
                    f"Event {i}: {event.event_type} - "
                    f"User: {event.user_id} - "
                    f"Partition: {metadata.partition} - "
                    f"Offset: {metadata.offset}"
                )
            except KafkaError as e:
                stats["failed"] += 1
                print(f"Event {i} failed: {e}")

            await asyncio.sleep(rng.uniform(min_delay, max_delay))

    finally:
        await producer.stop()

    return stats


def main():
    """Main function."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Publish random interaction events")
    parser.add_argument(
        "--bootstrap-servers",
        type=str,
        default=settings.kafka.bootstrap_servers,
        help="Kafka bootstrap servers",
    )
    parser.add_argument("--topic", type=str, default=settings.kafka.input_topic, help="Target topic")
    parser.add_argument("--count", type=int, default=10, help="Number of events to send")
    parser.add_argument("--min-delay", type=float, default=0.5, help="Minimum pause between events (s)")
    parser.add_argument("--max-delay", type=float, default=1.0, help="Maximum pause between events (s)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    args = parser.parse_args()

    print("=" * 60)
    print("Stream Processor - Event Generator")
    print("=" * 60)
    print(f"Topic: {args.topic}")
    print(f"Events: {args.count}")
    print()

    results = asyncio.run(
        run(
            args.bootstrap_servers,
            args.topic,
            args.count,
            args.min_delay,
            args.max_delay,
            args.seed,
        )
    )

    print()
    print(f"Sent: {results['sent']}  Failed: {results['failed']}")


if __name__ == "__main__":
    main()
