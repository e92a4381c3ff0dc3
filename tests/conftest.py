"""
Shared test fixtures and configuration.
"""

from collections.abc import Callable
from decimal import Decimal

import pytest

from src.events.models import InteractionEvent
from src.streaming.consumer import InboundMessage
from tests.fakes import RecordingSink, build_message

# ============================================================================
# Event Fixtures
# ============================================================================


@pytest.fixture
def make_event() -> Callable[..., InteractionEvent]:
    """Factory for interaction events."""

    def _make(
        event_type: str = "login",
        user_id: str = "user001",
        value: str | int = "0",
        product_id: str | None = None,
        session_id: str = "session_1000",
    ) -> InteractionEvent:
        return InteractionEvent(
            timestamp="2024-01-15T10:30:00Z",
            user_id=user_id,
            event_type=event_type,
            product_id=product_id,
            session_id=session_id,
            value=Decimal(str(value)),
        )

    return _make


@pytest.fixture
def make_message() -> Callable[..., InboundMessage]:
    """Factory for raw inbound messages."""
    return build_message


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def recording_sink() -> RecordingSink:
    """Outbound sink that records publishes in memory."""
    return RecordingSink()
