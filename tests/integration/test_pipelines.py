"""
Integration tests for the stream pipeline and reporter.

Tests cover:
- Pipeline and reporter sharing one aggregator under one cancellation signal
- Prompt cancellation while a poll is waiting
- Draining an in-flight batch without reprocessing
- Concurrent recording from producer threads while the pipeline runs
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.analytics.aggregator import StatsAggregator
from src.analytics.rules import ClassificationRules
from src.monitoring.metrics import PipelineMetrics
from src.streaming.pipeline import PipelineState, StreamPipeline
from src.streaming.reporter import PeriodicReporter
from tests.fakes import FakeSource, FixedRandom, RecordingSink, build_message


def _pipeline(source, sink, aggregator=None, poll_timeout=0.2) -> StreamPipeline:
    return StreamPipeline(
        source=source,
        sink=sink,
        aggregator=aggregator or StatsAggregator(),
        rules=ClassificationRules(rng=FixedRandom(0.9)),
        metrics=PipelineMetrics(),
        poll_timeout=poll_timeout,
    )


class TestCancellation:
    """Cancellation behaviour of the running pipeline."""

    @pytest.mark.asyncio
    async def test_cancel_during_poll_wait_returns_promptly(self):
        """Test cancelling while idle stops within the poll timeout."""
        poll_timeout = 0.2
        source = FakeSource()
        pipeline = _pipeline(source, RecordingSink(), poll_timeout=poll_timeout)
        cancel = asyncio.Event()

        task = asyncio.create_task(pipeline.run(cancel))
        await asyncio.sleep(0.05)
        assert pipeline.state == PipelineState.RUNNING

        started = time.monotonic()
        cancel.set()
        await asyncio.wait_for(task, timeout=poll_timeout * 3)
        elapsed = time.monotonic() - started

        assert elapsed <= poll_timeout + 0.1
        assert pipeline.state == PipelineState.STOPPED
        assert source.stopped

    @pytest.mark.asyncio
    async def test_in_flight_batch_finishes_once(self):
        """Test a batch fetched before cancellation is processed exactly once."""
        cancel = asyncio.Event()
        batch = [
            build_message(offset=0, event_type="purchase", user_id="u1", value=50),
            build_message(offset=1, event_type="purchase", user_id="u2", value=60),
        ]
        source = FakeSource([batch, [build_message(offset=2)]])
        sink = RecordingSink()
        sink.on_publish = cancel.set
        pipeline = _pipeline(source, sink)

        await asyncio.wait_for(pipeline.run(cancel), timeout=2.0)

        snapshot = pipeline.aggregator.snapshot()
        assert snapshot.total_events == 2
        assert snapshot.events_by_user == {"u1": 1, "u2": 1}
        assert source.poll_calls == 1
        assert [key for _, key, _ in sink.published] == ["u1", "u2"]
        assert pipeline.state == PipelineState.STOPPED

    @pytest.mark.asyncio
    async def test_shared_cancel_stops_pipeline_and_reporter(self):
        """Test one signal stops both tasks."""
        aggregator = StatsAggregator()
        pipeline = _pipeline(FakeSource(), RecordingSink(), aggregator=aggregator, poll_timeout=0.05)
        reporter = PeriodicReporter(aggregator, interval=0.05, pipeline=pipeline, emit=lambda _: None)
        cancel = asyncio.Event()

        tasks = [
            asyncio.create_task(pipeline.run(cancel)),
            asyncio.create_task(reporter.run(cancel)),
        ]
        await asyncio.sleep(0.1)
        cancel.set()

        await asyncio.wait_for(asyncio.gather(*tasks), timeout=1.0)
        assert pipeline.state == PipelineState.STOPPED


class TestSharedAggregator:
    """The aggregator shared between pipeline, reporter and other writers."""

    @pytest.mark.asyncio
    async def test_reporter_sees_pipeline_progress(self):
        """Test reports reflect events processed by the pipeline."""
        cancel = asyncio.Event()
        aggregator = StatsAggregator()
        messages = [build_message(offset=i, event_type="login", user_id=f"u{i % 2}") for i in range(6)]
        source = FakeSource([messages])
        pipeline = _pipeline(source, RecordingSink(), aggregator=aggregator, poll_timeout=0.05)
        reports = []
        reporter = PeriodicReporter(aggregator, interval=0.05, pipeline=pipeline, emit=reports.append)

        tasks = [
            asyncio.create_task(pipeline.run(cancel)),
            asyncio.create_task(reporter.run(cancel)),
        ]
        await asyncio.sleep(0.3)
        cancel.set()
        await asyncio.gather(*tasks)

        assert reports
        assert "Total events: 6" in reports[-1]

    @pytest.mark.asyncio
    async def test_concurrent_threads_and_pipeline(self, make_event):
        """Test records from threads and from the pipeline all land."""
        cancel = asyncio.Event()
        aggregator = StatsAggregator()
        messages = [build_message(offset=i, event_type="view_product") for i in range(200)]
        source = FakeSource([messages[:100], messages[100:]], cancel_when_drained=cancel)
        pipeline = _pipeline(source, RecordingSink(), aggregator=aggregator)
        event = make_event(event_type="logout", user_id="thread-user")

        def produce():
            for _ in range(1000):
                aggregator.record(event)

        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=4) as pool:
            writers = [loop.run_in_executor(pool, produce) for _ in range(4)]
            await pipeline.run(cancel)
            await asyncio.gather(*writers)

        snapshot = aggregator.snapshot()
        assert snapshot.total_events == 4200
        assert snapshot.events_by_type == {"view_product": 200, "logout": 4000}
        assert sum(snapshot.events_by_user.values()) == 4200
