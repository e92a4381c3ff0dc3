"""
Monitoring for the stream processor.

This module provides:
- PipelineMetrics: Prometheus counters and histograms for the pipeline
"""

from src.monitoring.metrics import PipelineMetrics

__all__ = ["PipelineMetrics"]
