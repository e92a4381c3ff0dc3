"""
Error taxonomy for the stream processor.

Per-event errors (DecodeError, PublishError) are contained by the pipeline.
SubscriptionError is the only fatal kind and surfaces to the caller.
"""


class StreamProcessorError(Exception):
    """Base exception for stream processing operations."""


class DecodeError(StreamProcessorError):
    """An inbound payload could not be decoded into an interaction event.

    Returned by the decoder rather than raised, so the pipeline can skip the
    message without unwinding the loop.
    """

    def __init__(self, payload: bytes | None, reason: str) -> None:
        super().__init__(reason)
        self.payload = payload
        self.reason = reason

    def preview(self, limit: int = 200) -> str:
        """Printable prefix of the raw payload for log lines."""
        if self.payload is None:
            return ""
        return self.payload[:limit].decode("utf-8", errors="replace")


class PublishError(StreamProcessorError):
    """A derived intent could not be sent to its destination."""

    def __init__(self, destination: str, key: str | None, reason: str) -> None:
        super().__init__(f"failed to publish to {destination}: {reason}")
        self.destination = destination
        self.key = key
        self.reason = reason


class SubscriptionError(StreamProcessorError):
    """The inbound source could not be attached at startup."""
