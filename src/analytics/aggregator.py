"""
Running statistics over consumed interaction events.

The aggregator is the only shared mutable state in the processor. All of an
event's updates are applied under one lock, and snapshots copy under the same
lock, so a snapshot never shows half of an event.
"""

import threading
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from src.events.models import InteractionEvent


@dataclass(frozen=True)
class StatsSnapshot:
    """Consistent point-in-time copy of the aggregate counters."""

    total_events: int = 0
    events_by_type: dict[str, int] = field(default_factory=dict)
    events_by_user: dict[str, int] = field(default_factory=dict)
    total_value: Decimal = Decimal("0")
    sessions: frozenset[str] = field(default_factory=frozenset)

    @property
    def distinct_sessions(self) -> int:
        return len(self.sessions)

    def top_event_types(self) -> list[tuple[str, int]]:
        """Event types by descending count, ties broken by name."""
        return sorted(self.events_by_type.items(), key=lambda kv: (-kv[1], kv[0]))

    def top_users(self, n: int = 3) -> list[tuple[str, int]]:
        """The n most active users by descending count."""
        return sorted(self.events_by_user.items(), key=lambda kv: (-kv[1], kv[0]))[:n]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_events": self.total_events,
            "events_by_type": dict(self.events_by_type),
            "events_by_user": dict(self.events_by_user),
            "total_value": float(self.total_value),
            "distinct_sessions": self.distinct_sessions,
        }


class StatsAggregator:
    """
    Thread-safe accumulator of running counts and sums.

    record() may be called from any thread or task; snapshot() holds the lock
    only long enough to copy the counters.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_events = 0
        self._by_type: Counter[str] = Counter()
        self._by_user: Counter[str] = Counter()
        self._total_value = Decimal("0")
        self._sessions: set[str] = set()

    def record(self, event: InteractionEvent) -> None:
        """Apply one event to every counter atomically."""
        with self._lock:
            self._total_events += 1
            self._by_type[event.event_type] += 1
            self._by_user[event.user_id] += 1
            self._total_value += event.value
            self._sessions.add(event.session_id)

    def snapshot(self) -> StatsSnapshot:
        """Return a consistent copy of the current counters."""
        with self._lock:
            return StatsSnapshot(
                total_events=self._total_events,
                events_by_type=dict(self._by_type),
                events_by_user=dict(self._by_user),
                total_value=self._total_value,
                sessions=frozenset(self._sessions),
            )

    def reset(self) -> None:
        """Clear all counters."""
        with self._lock:
            self._total_events = 0
            self._by_type.clear()
            self._by_user.clear()
            self._total_value = Decimal("0")
            self._sessions.clear()
