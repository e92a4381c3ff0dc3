"""
Command-line entry point for the stream processor.

Wires the Kafka consumer and producer, the shared aggregator, the rule set,
the pipeline and the periodic reporter, and turns SIGINT/SIGTERM into the
shared cancellation signal.
"""

import argparse
import asyncio
import random
import signal
import sys

from pydantic import ValidationError

from config.settings import AppSettings, get_settings
from src.analytics.aggregator import StatsAggregator
from src.analytics.rules import ClassificationRules
from src.monitoring.metrics import PipelineMetrics
from src.streaming.consumer import EventConsumer
from src.streaming.pipeline import StreamPipeline, routes_from_settings
from src.streaming.producer import IntentPublisher
from src.streaming.reporter import PeriodicReporter
from src.utils.exceptions import SubscriptionError
from src.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stream-processor",
        description="Consume e-commerce events, keep live statistics and publish derived events",
    )
    parser.add_argument("--bootstrap-servers", type=str, help="Kafka bootstrap servers")
    parser.add_argument("--group-id", type=str, help="Consumer group ID")
    parser.add_argument("--input-topic", type=str, help="Topic to consume interaction events from")
    parser.add_argument("--poll-timeout", type=float, help="Maximum seconds per poll")
    parser.add_argument("--fraud-threshold", type=float, help="Purchase value that triggers a fraud alert")
    parser.add_argument("--report-interval", type=float, help="Seconds between statistics reports")
    parser.add_argument("--report-every", type=int, help="Also report after every N processed events (0 disables)")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible runs")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level",
    )
    parser.add_argument("--log-format", type=str, choices=["json", "console"], help="Log format")
    return parser


def apply_overrides(settings: AppSettings, args: argparse.Namespace) -> AppSettings:
    """
    Return a copy of the settings with command-line values applied.

    Raises:
        pydantic.ValidationError: If an override is out of range
    """
    kafka_updates = {
        "bootstrap_servers": args.bootstrap_servers,
        "consumer_group": args.group_id,
        "input_topic": args.input_topic,
    }
    processor_updates = {
        "poll_timeout_seconds": args.poll_timeout,
        "fraud_threshold": args.fraud_threshold,
        "report_interval_seconds": args.report_interval,
        "report_every_events": args.report_every,
        "random_seed": args.seed,
    }

    data = settings.model_dump()
    data["kafka"].update({k: v for k, v in kafka_updates.items() if v is not None})
    data["processor"].update({k: v for k, v in processor_updates.items() if v is not None})
    return AppSettings.model_validate(data)


def _install_signal_handlers(cancel: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(cancel.set))


async def run(settings: AppSettings, cancel: asyncio.Event | None = None) -> int:
    """
    Run the processor until cancelled.

    Returns:
        Process exit code (1 if the subscription could not be established)
    """
    cancel = cancel or asyncio.Event()
    kafka = settings.kafka
    processor = settings.processor

    aggregator = StatsAggregator()
    rules = ClassificationRules.from_settings(processor, random.Random(processor.random_seed))

    pipeline = StreamPipeline(
        source=EventConsumer(
            topics=[kafka.input_topic],
            group_id=kafka.consumer_group,
            bootstrap_servers=kafka.bootstrap_servers,
            max_poll_records=processor.max_poll_records,
        ),
        sink=IntentPublisher(bootstrap_servers=kafka.bootstrap_servers),
        aggregator=aggregator,
        rules=rules,
        metrics=PipelineMetrics(),
        poll_timeout=processor.poll_timeout_seconds,
        routes=routes_from_settings(kafka),
    )
    reporter = PeriodicReporter(
        aggregator,
        interval=processor.report_interval_seconds,
        top_users=processor.top_users,
        pipeline=pipeline,
        every_events=processor.report_every_events,
    )
    pipeline.on_progress = reporter.on_progress

    reporter_task = asyncio.create_task(reporter.run(cancel))
    exit_code = 0

    try:
        await pipeline.run(cancel)
    except SubscriptionError as e:
        logger.error("Stream processor could not start", error=str(e))
        exit_code = 1
    finally:
        cancel.set()
        await reporter_task
        reporter.report()

    logger.info("Stream processor finished", exit_code=exit_code)
    return exit_code


async def _main(settings: AppSettings) -> int:
    cancel = asyncio.Event()
    _install_signal_handlers(cancel)
    return await run(settings, cancel)


def main(argv: list[str] | None = None) -> int:
    """Main function."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = apply_overrides(get_settings(), args)
    except ValidationError as e:
        parser.error(str(e))

    setup_logging(args.log_level, args.log_format)
    logger.info(
        "Starting stream processor",
        bootstrap_servers=settings.kafka.bootstrap_servers,
        input_topic=settings.kafka.input_topic,
        group_id=settings.kafka.consumer_group,
    )

    return asyncio.run(_main(settings))


if __name__ == "__main__":
    sys.exit(main())
