"""
Event model for the interaction stream.

Components:
- Models: InteractionEvent and the derived intent variants
- Codec: JSON decode/encode for the wire format
"""

from .codec import decode, decode_intent, encode_event, encode_intent
from .models import (
    KNOWN_EVENT_TYPES,
    DerivedIntent,
    Destination,
    EventType,
    FraudAlert,
    InteractionEvent,
    PurchaseProcessed,
    Recommendation,
)

__all__ = [
    # Models
    "InteractionEvent",
    "EventType",
    "KNOWN_EVENT_TYPES",
    "Destination",
    "DerivedIntent",
    "FraudAlert",
    "PurchaseProcessed",
    "Recommendation",
    # Codec
    "decode",
    "decode_intent",
    "encode_event",
    "encode_intent",
]
