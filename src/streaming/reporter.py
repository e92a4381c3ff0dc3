"""
Periodic statistics reporter.

Renders aggregator snapshots on a fixed interval using APScheduler, alongside
the pipeline. It only reads snapshots and never mutates the aggregator.
"""

import asyncio
import sys
from collections.abc import Callable
from typing import Any, Protocol

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.analytics.aggregator import StatsAggregator, StatsSnapshot
from src.events.models import Destination
from src.utils.logging import get_logger

logger = get_logger(__name__)

RULE = "=" * 50


class StatsProvider(Protocol):
    def get_stats(self) -> dict[str, Any]: ...


def _write_stdout(text: str) -> None:
    sys.stdout.write(text + "\n")
    sys.stdout.flush()


def render(
    snapshot: StatsSnapshot,
    top_users: int = 3,
    pipeline_stats: dict[str, Any] | None = None,
) -> str:
    """
    Format a snapshot as a human-readable summary.

    Args:
        snapshot: Aggregator snapshot
        top_users: How many of the most active users to list
        pipeline_stats: Optional StreamPipeline.get_stats() output

    Returns:
        Multi-line summary text
    """
    lines = [
        RULE,
        "REAL-TIME STATISTICS",
        RULE,
        f"Total events: {snapshot.total_events}",
        f"Total value: {snapshot.total_value:.2f}",
        f"Distinct sessions: {snapshot.distinct_sessions}",
        "",
        "Events by type:",
    ]
    lines.extend(f"  {event_type}: {count}" for event_type, count in snapshot.top_event_types())

    lines.append("")
    lines.append("Top users:")
    lines.extend(f"  {user}: {count} events" for user, count in snapshot.top_users(top_users))

    if pipeline_stats is not None:
        published = pipeline_stats.get("published", {})
        lines.append("")
        lines.append(f"Fraud alerts sent: {published.get(Destination.FRAUD_ALERTS.value, 0)}")
        lines.append(f"Purchases processed: {published.get(Destination.PROCESSED_PURCHASES.value, 0)}")
        lines.append(f"Recommendations sent: {published.get(Destination.RECOMMENDATIONS.value, 0)}")
        lines.append(f"Decode errors: {pipeline_stats.get('decode_errors', 0)}")

    lines.append(RULE)
    return "\n".join(lines)


class PeriodicReporter:
    """
    Emits a statistics summary every `interval` seconds until cancelled.

    Args:
        aggregator: Aggregator to snapshot
        interval: Seconds between reports
        top_users: Number of users in the "top users" section
        pipeline: Optional pipeline whose publish counts are included
        emit: Receives each rendered summary (stdout by default)
        every_events: Also report when the processed-event count reaches a
            multiple of this (0 disables)
    """

    def __init__(
        self,
        aggregator: StatsAggregator,
        interval: float = 30.0,
        top_users: int = 3,
        pipeline: StatsProvider | None = None,
        emit: Callable[[str], None] | None = None,
        every_events: int = 0,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        if every_events < 0:
            raise ValueError("every_events must not be negative")

        self._aggregator = aggregator
        self.interval = interval
        self.top_users = top_users
        self._pipeline = pipeline
        self._emit = emit or _write_stdout
        self.every_events = every_events

    def report(self) -> str:
        """Render and emit one summary from a fresh snapshot."""
        snapshot = self._aggregator.snapshot()
        pipeline_stats = self._pipeline.get_stats() if self._pipeline else None
        text = render(snapshot, self.top_users, pipeline_stats)

        self._emit(text)
        logger.debug(
            "Statistics reported",
            total_events=snapshot.total_events,
            distinct_sessions=snapshot.distinct_sessions,
        )
        return text

    def on_progress(self, events_processed: int) -> None:
        """Report when the processed-event count hits the configured step."""
        if self.every_events and events_processed % self.every_events == 0:
            self.report()

    async def _tick(self) -> None:
        self.report()

    def _create_scheduler(self) -> AsyncIOScheduler:
        scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": int(max(1, self.interval)),
            },
        )
        scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=self.interval),
            id="stats-report",
            name="Statistics report",
        )
        return scheduler

    async def run(self, cancel: asyncio.Event) -> None:
        """Report on schedule until `cancel` is set."""
        scheduler = self._create_scheduler()
        scheduler.start()
        logger.info("Periodic reporter started", interval=self.interval)

        try:
            await cancel.wait()
        finally:
            scheduler.shutdown(wait=False)
            logger.info("Periodic reporter stopped")
