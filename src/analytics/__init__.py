"""
Analytics over the interaction stream.

This module provides:
- StatsAggregator: thread-safe running counters with consistent snapshots
- ClassificationRules: fraud, purchase and recommendation rules
"""

from src.analytics.aggregator import StatsAggregator, StatsSnapshot
from src.analytics.rules import (
    ClassificationRules,
    RandomSource,
    fraud_rule,
    purchase_rule,
    recommendation_rule,
)

__all__ = [
    # Aggregation
    "StatsAggregator",
    "StatsSnapshot",
    # Rules
    "ClassificationRules",
    "RandomSource",
    "fraud_rule",
    "purchase_rule",
    "recommendation_rule",
]
