#!/usr/bin/env python3
"""
Topic setup script for the stream processor.

This script:
- Connects to the Kafka cluster with the admin client
- Lists existing topics
- Creates the input topic and the derived topics that are missing

Topic provisioning is an operational step; the processor itself assumes the
topics exist.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import KafkaError

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import get_settings


async def create_topics(
    bootstrap_servers: str,
    topics: list[str],
    partitions: int = 3,
    replication_factor: int = 1,
) -> list[str]:
    """Create the topics that do not exist yet and return their names."""
    admin = AIOKafkaAdminClient(bootstrap_servers=bootstrap_servers)
    await admin.start()

    try:
        existing = set(await admin.list_topics())
        missing = [t for t in topics if t not in existing]

        for topic in topics:
            if topic in existing:
                print(f"Topic already exists: {topic}")

        if missing:
            await admin.create_topics(
                [
                    NewTopic(
                        name=topic,
                        num_partitions=partitions,
                        replication_factor=replication_factor,
                    )
                    for topic in missing
                ]
            )
            for topic in missing:
                print(f"Created topic: {topic}")

        return missing

    finally:
        await admin.close()


def main():
    """Main function."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Create Kafka topics for the stream processor")
    parser.add_argument(
        "--bootstrap-servers",
        type=str,
        default=settings.kafka.bootstrap_servers,
        help="Kafka bootstrap servers",
    )
    parser.add_argument("--partitions", type=int, default=3, help="Partitions per topic")
    parser.add_argument("--replication-factor", type=int, default=1, help="Replication factor")
    args = parser.parse_args()

    topics = [settings.kafka.input_topic, *settings.kafka.output_topics]

    print("=" * 60)
    print("Stream Processor - Topic Setup")
    print("=" * 60)
    print(f"Brokers: {args.bootstrap_servers}")
    print(f"Topics: {topics}")
    print()

    try:
        asyncio.run(
            create_topics(
                args.bootstrap_servers,
                topics,
                partitions=args.partitions,
                replication_factor=args.replication_factor,
            )
        )
    except KafkaError as e:
        print(f"Error creating topics: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
