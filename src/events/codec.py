"""
JSON wire codec for interaction events and derived intents.

decode() never raises on bad input: it returns a DecodeError so the caller
can skip the message and keep consuming.
"""

import json

from pydantic import TypeAdapter, ValidationError

from src.events.models import DerivedIntent, InteractionEvent
from src.utils.exceptions import DecodeError

_intent_adapter: TypeAdapter = TypeAdapter(DerivedIntent)


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def decode(raw: bytes | None) -> InteractionEvent | DecodeError:
    """
    Decode a raw message value into an interaction event.

    Only structure is checked: UTF-8 text, a JSON object, required fields
    present with usable types. Unknown event types are accepted.

    Args:
        raw: Message value as received from the broker

    Returns:
        The decoded event, or a DecodeError describing why it was rejected
    """
    if not raw:
        return DecodeError(raw, "empty payload")

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        return DecodeError(raw, f"invalid utf-8: {e}")

    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as e:
        # ValueError also covers oversized integer literals
        return DecodeError(raw, f"invalid json: {e}")

    if not isinstance(data, dict):
        return DecodeError(raw, f"expected a JSON object, got {type(data).__name__}")

    try:
        return InteractionEvent.model_validate(data)
    except ValidationError as e:
        return DecodeError(raw, _describe_validation_error(e))


def encode_event(event: InteractionEvent) -> bytes:
    """Serialize an interaction event with its wire field names."""
    return event.model_dump_json(by_alias=True).encode("utf-8")


def encode_intent(intent: DerivedIntent) -> bytes:
    """Serialize a derived intent to JSON bytes."""
    return intent.model_dump_json(by_alias=True).encode("utf-8")


def decode_intent(raw: bytes) -> DerivedIntent:
    """
    Parse a derived intent read back from an output topic.

    Raises:
        ValidationError: If the payload does not match any intent schema
    """
    return _intent_adapter.validate_json(raw)
