"""
Streaming pipeline for real-time interaction processing.

Components:
- Consumer: Async Kafka consumer polling raw interaction events
- Producer: Async Kafka producer publishing derived intents
- Pipeline: The consume/decode/classify/publish control loop
- Reporter: Periodic statistics summaries

Data Flow:
    Input Topic → Consumer → Pipeline → {Aggregator, Rules} → Producer → Derived Topics
"""

from .consumer import EventConsumer, InboundMessage
from .pipeline import (
    InboundSource,
    OutboundSink,
    PipelineState,
    StreamPipeline,
    routes_from_settings,
)
from .producer import IntentPublisher
from .reporter import PeriodicReporter, render

__all__ = [
    # Consumer
    "EventConsumer",
    "InboundMessage",
    # Producer
    "IntentPublisher",
    # Pipeline
    "InboundSource",
    "OutboundSink",
    "PipelineState",
    "StreamPipeline",
    "routes_from_settings",
    # Reporter
    "PeriodicReporter",
    "render",
]
